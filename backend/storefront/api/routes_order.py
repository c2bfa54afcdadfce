import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from storefront.api.deps import Caller, get_notifier, raise_http, require_admin, require_user
from storefront.db import get_db
from storefront.errors import StorefrontError
from storefront.repositories.order_repo import OrderFilter
from storefront.schemas.order_schema import OrderHeaderOut, OrderOut
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService

log = logging.getLogger(__name__)

router = APIRouter(tags=["orders"])


class ShippingAddressIn(BaseModel):
    first_name: str
    last_name: str
    email: Optional[EmailStr] = None
    phone: str
    address: str
    city: str
    state: str
    zip_code: str


class OrderItemIn(BaseModel):
    product_id: int = Field(..., ge=1)
    quantity: int = Field(..., gt=0)


class CreateOrderIn(BaseModel):
    shipping_address: ShippingAddressIn
    items: List[OrderItemIn]
    delivery_method: Optional[str] = None
    payment_method: Optional[str] = None
    delivery_notes: Optional[str] = None
    session_id: Optional[str] = None  # guest cart consumed by this checkout


class UpdateStatusIn(BaseModel):
    status: str


def _order_page(rows, total: int, page: int, size: int) -> dict:
    return {
        "orders": [
            dict(
                OrderHeaderOut.model_validate(o).model_dump(),
                customer_name=o.customer_name,
                customer_email=o.email,
                item_count=n,
            )
            for o, n in rows
        ],
        "pagination": {
            "current_page": page,
            "total_pages": (total + size - 1) // size,
            "total_items": total,
            "items_per_page": size,
        },
    }


@router.post("", summary="Create order (checkout)", status_code=status.HTTP_201_CREATED)
def create_order(
    payload: CreateOrderIn,
    caller: Caller = Depends(require_user),
    notifier: NotificationService = Depends(get_notifier),
    db: Session = Depends(get_db),
):
    svc = OrderService(db, notifier=notifier)
    try:
        resp = svc.create_order(
            caller.user_id,
            payload.shipping_address.model_dump(),
            [it.model_dump() for it in payload.items],
            shipping_method=payload.delivery_method,
            payment_method=payload.payment_method,
            delivery_notes=payload.delivery_notes,
            cart_session_id=payload.session_id,
        )
    except StorefrontError as e:
        raise_http(e)
    except Exception:
        log.exception("unexpected error creating order")
        raise HTTPException(status_code=500, detail={"message": "Failed to create order"})
    return {"message": "Order created successfully", "order": resp}


@router.get("", summary="List the caller's orders")
def list_orders(
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    caller: Caller = Depends(require_user),
    db: Session = Depends(get_db),
):
    svc = OrderService(db)
    rows, total = svc.list_orders(
        OrderFilter(user_id=caller.user_id, status=status_filter, page=page, size=size)
    )
    return _order_page(rows, total, page, size)


@router.get("/admin/all", summary="List all orders (admin)")
def list_all_orders(
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    caller: Caller = Depends(require_admin),
    db: Session = Depends(get_db),
):
    svc = OrderService(db)
    rows, total = svc.list_orders(
        OrderFilter(status=status_filter, search=search, page=page, size=size)
    )
    return _order_page(rows, total, page, size)


@router.get("/{order_id}", summary="Get one order")
def get_order(order_id: int, caller: Caller = Depends(require_user), db: Session = Depends(get_db)):
    svc = OrderService(db)
    try:
        order = svc.get_order(order_id, caller.user_id, is_admin=caller.is_admin)
    except StorefrontError as e:
        raise_http(e)
    return {"order": OrderOut.model_validate(order).model_dump()}


@router.post("/{order_id}/cancel", summary="Cancel an order and return its stock")
def cancel_order(order_id: int, caller: Caller = Depends(require_user), db: Session = Depends(get_db)):
    svc = OrderService(db)
    try:
        order = svc.cancel_order(order_id, caller.user_id, is_admin=caller.is_admin)
    except StorefrontError as e:
        raise_http(e)
    return {"message": "Order cancelled successfully", "status": order.status}


@router.put("/{order_id}/status", summary="Update order status (admin)")
def update_status(
    order_id: int,
    payload: UpdateStatusIn,
    caller: Caller = Depends(require_admin),
    db: Session = Depends(get_db),
):
    svc = OrderService(db)
    try:
        order = svc.update_status(order_id, payload.status)
    except StorefrontError as e:
        raise_http(e)
    return {"message": "Order status updated successfully", "status": order.status}
