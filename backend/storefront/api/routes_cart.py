from typing import Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from storefront.api.deps import (
    CART_COOKIE,
    Caller,
    get_caller,
    get_cart_token,
    raise_http,
    require_user,
)
from storefront.db import get_db
from storefront.errors import StorefrontError
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/api/cart", tags=["cart"])


class AddItemIn(BaseModel):
    product_id: int = Field(..., ge=1)
    quantity: int = Field(..., ge=1)


class UpdateItemIn(BaseModel):
    quantity: int = Field(..., ge=0)


class MergeIn(BaseModel):
    session_id: str = Field(..., min_length=1)


@router.get("", summary="Get cart")
def get_cart(
    caller: Caller = Depends(get_caller),
    token: Optional[str] = Depends(get_cart_token),
    db: Session = Depends(get_db),
):
    svc = CartService(db)
    return svc.get_cart(user_id=caller.user_id, token=token)


@router.post("/add", summary="Add item to cart")
def add_item(
    payload: AddItemIn,
    response: Response,
    caller: Caller = Depends(get_caller),
    token: Optional[str] = Depends(get_cart_token),
    db: Session = Depends(get_db),
):
    svc = CartService(db)
    try:
        cart, item = svc.add_to_cart(
            payload.product_id, payload.quantity, user_id=caller.user_id, token=token
        )
    except StorefrontError as e:
        raise_http(e)

    if not caller.is_authenticated:
        response.set_cookie(CART_COOKIE, cart.session_id, httponly=False, samesite="Lax")
    return {
        "message": "Item added to cart successfully",
        "item_id": item.id,
        "quantity": item.quantity,
        "session_id": None if caller.is_authenticated else cart.session_id,
    }


@router.put("/update/{item_id}", summary="Set cart line quantity")
def update_item(
    item_id: int,
    payload: UpdateItemIn,
    caller: Caller = Depends(get_caller),
    token: Optional[str] = Depends(get_cart_token),
    db: Session = Depends(get_db),
):
    svc = CartService(db)
    try:
        item = svc.update_item(item_id, payload.quantity, token=token, user_id=caller.user_id)
    except StorefrontError as e:
        raise_http(e)
    if item is None:
        return {"message": "Item removed from cart", "item_id": item_id, "quantity": 0}
    return {"message": "Cart updated successfully", "item_id": item.id, "quantity": item.quantity}


@router.delete("/remove/{item_id}", summary="Remove cart line")
def remove_item(
    item_id: int,
    caller: Caller = Depends(get_caller),
    token: Optional[str] = Depends(get_cart_token),
    db: Session = Depends(get_db),
):
    svc = CartService(db)
    try:
        svc.remove_item(item_id, token=token, user_id=caller.user_id)
    except StorefrontError as e:
        raise_http(e)
    return {"message": "Item removed from cart"}


@router.delete("/clear", summary="Empty the cart")
def clear_cart(
    caller: Caller = Depends(get_caller),
    token: Optional[str] = Depends(get_cart_token),
    db: Session = Depends(get_db),
):
    svc = CartService(db)
    try:
        removed = svc.clear(token=token, user_id=caller.user_id)
    except StorefrontError as e:
        raise_http(e)
    if not removed:
        return {"message": "Cart is already empty"}
    return {"message": "Cart cleared successfully", "removed": removed}


@router.post("/merge", summary="Merge a guest cart into the signed-in user's cart")
def merge_cart(
    payload: MergeIn,
    response: Response,
    caller: Caller = Depends(require_user),
    db: Session = Depends(get_db),
):
    svc = CartService(db)
    try:
        svc.merge_carts(payload.session_id, caller.user_id)
    except StorefrontError as e:
        raise_http(e)
    response.delete_cookie(CART_COOKIE)
    return {"message": "Cart merged successfully"}
