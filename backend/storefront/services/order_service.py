import logging
from collections import OrderedDict
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.errors import (
    InternalError,
    InvalidStateTransition,
    NotFound,
    StorefrontError,
    ValidationFailed,
)
from storefront.models.order import ORDER_STATUSES, TERMINAL_STATUSES, Order, OrderLine
from storefront.models.payment import Payment
from storefront.repositories.order_repo import OrderFilter, OrderRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.services import pricing
from storefront.services.cart_service import CartService
from storefront.services.inventory_service import InventoryService
from storefront.services.notification_service import NotificationService, OrderSummary
from storefront.utils.transactions import smart_transaction

log = logging.getLogger(__name__)

REQUIRED_SHIPPING_FIELDS = (
    ("first_name", "First name is required"),
    ("last_name", "Last name is required"),
    ("address", "Shipping address is required"),
    ("city", "Shipping city is required"),
    ("state", "Shipping state is required"),
    ("zip_code", "Shipping zip code is required"),
    ("phone", "Phone number is required"),
)

# forward order of the fulfilment states; cancelled sits outside it
STATUS_RANK = {"pending": 0, "processing": 1, "shipped": 2, "delivered": 3}
CANCELLABLE_STATUSES = ("pending", "processing", "shipped")


class OrderService:
    def __init__(self, db: Session, notifier: Optional[NotificationService] = None, config=None):
        self.db = db
        self.config = config or settings
        self.repo = OrderRepository(db)
        self.product_repo = ProductRepository(db)
        self.inventory = InventoryService(db)
        self.carts = CartService(db)
        self.notifier = notifier

    def _validate(self, shipping: Dict, items: List[Dict], shipping_method: Optional[str]) -> List[Dict]:
        errors = []
        for field, message in REQUIRED_SHIPPING_FIELDS:
            value = shipping.get(field)
            if value is None or not str(value).strip():
                errors.append({"field": f"shipping_address.{field}", "message": message})

        if not items:
            errors.append({"field": "items", "message": "Cart items cannot be empty"})
        for idx, it in enumerate(items or []):
            if not it.get("product_id"):
                errors.append({"field": f"items[{idx}].product_id", "message": "Valid product ID is required"})
            qty = it.get("quantity")
            if not isinstance(qty, int) or qty <= 0:
                errors.append({"field": f"items[{idx}].quantity", "message": "Valid quantity is required"})

        try:
            pricing.shipping_cost_cents(
                shipping_method, self.config.SHIPPING_RATES_CENTS, self.config.DEFAULT_SHIPPING_METHOD
            )
        except pricing.UnknownShippingMethod:
            errors.append({"field": "delivery_method", "message": "Unknown delivery method"})

        if errors:
            raise ValidationFailed.for_fields(errors)

        # one line per product; repeated entries add up
        merged = OrderedDict()
        for it in items:
            pid = int(it["product_id"])
            merged[pid] = merged.get(pid, 0) + int(it["quantity"])
        return [{"product_id": pid, "quantity": qty} for pid, qty in merged.items()]

    def create_order(
        self,
        user_id: int,
        shipping: Dict,
        items: List[Dict],
        shipping_method: Optional[str] = None,
        payment_method: Optional[str] = None,
        delivery_notes: Optional[str] = None,
        cart_session_id: Optional[str] = None,
    ) -> Dict:
        """
        Place an order.

        shipping: first_name, last_name, email, phone, address, city, state, zip_code
        items: list of {product_id: int, quantity: int}

        Unit prices and names come from the catalogue at the moment of the
        transaction and are frozen onto the order lines. The header, the lines,
        the stock decrements, the optional payment row and the cart cleanup
        commit together or not at all. The confirmation notification is sent
        after commit and cannot fail the order.
        """
        lines_in = self._validate(shipping, items, shipping_method)
        method = (shipping_method or self.config.DEFAULT_SHIPPING_METHOD).strip().lower()

        try:
            with smart_transaction(self.db):
                priced = []
                subtotal = 0
                for it in lines_in:
                    product = self.product_repo.get_active(it["product_id"])
                    if not product:
                        raise NotFound(f"Product {it['product_id']} not found")
                    line_total = product.price_cents * it["quantity"]
                    subtotal += line_total
                    priced.append((product, it["quantity"], line_total))

                shipping_cents = pricing.shipping_cost_cents(
                    method, self.config.SHIPPING_RATES_CENTS, self.config.DEFAULT_SHIPPING_METHOD
                )
                tax = pricing.tax_cents(subtotal, self.config.TAX_RATE)

                order = Order(
                    user_id=user_id,
                    status="pending",
                    subtotal_cents=subtotal,
                    shipping_cents=shipping_cents,
                    tax_cents=tax,
                    total_cents=subtotal + shipping_cents + tax,
                    first_name=shipping["first_name"].strip(),
                    last_name=shipping["last_name"].strip(),
                    email=(shipping.get("email") or None),
                    phone=shipping["phone"].strip(),
                    shipping_address=shipping["address"].strip(),
                    shipping_city=shipping["city"].strip(),
                    shipping_state=shipping["state"].strip(),
                    shipping_zip_code=shipping["zip_code"].strip(),
                    shipping_method=method,
                    delivery_notes=delivery_notes,
                )
                self.repo.insert_with_unique_number(
                    order, pricing.generate_order_number, self.config.ORDER_NUMBER_ATTEMPTS
                )

                for product, qty, line_total in priced:
                    self.repo.add_line(
                        order,
                        OrderLine(
                            product_id=product.id,
                            product_name=product.name,
                            unit_price_cents=product.price_cents,
                            quantity=qty,
                            line_total_cents=line_total,
                        ),
                    )
                    self.inventory.decrement(product.id, qty)

                if payment_method:
                    self.db.add(
                        Payment(
                            order_id=order.id,
                            method=payment_method,
                            amount_cents=order.total_cents,
                            status="pending",
                            details={"method": payment_method},
                        )
                    )

                self.carts.discard_after_checkout(user_id, cart_session_id)
                self.db.flush()
                summary = OrderSummary.from_order(order)
        except StorefrontError:
            raise
        except SQLAlchemyError as e:
            log.exception("create order failed for user %s", user_id)
            raise InternalError("Failed to create order") from e

        log.info(
            "order %s created id=%s user=%s total_cents=%s",
            order.order_number,
            order.id,
            user_id,
            order.total_cents,
        )

        if self.notifier is not None:
            try:
                self.notifier.notify_order_created(summary)
            except Exception:
                log.exception("order %s: notification dispatch raised", order.order_number)

        return {
            "orderId": order.id,
            "orderNumber": order.order_number,
            "status": order.status,
            "subtotalCents": order.subtotal_cents,
            "shippingCents": order.shipping_cents,
            "taxCents": order.tax_cents,
            "totalCents": order.total_cents,
        }

    def _load(self, order_id: int, user_id: Optional[int], is_admin: bool) -> Order:
        if is_admin:
            order = self.repo.get(order_id)
        else:
            order = self.repo.get_for_user(order_id, user_id)
        if not order:
            raise NotFound("Order not found")
        return order

    def get_order(self, order_id: int, user_id: Optional[int], is_admin: bool = False) -> Order:
        return self._load(order_id, user_id, is_admin)

    def list_orders(self, filters: OrderFilter):
        return self.repo.list(filters)

    def _cancel(self, order: Order):
        if order.status == "cancelled":
            raise InvalidStateTransition("Order is already cancelled")
        if order.status == "delivered":
            raise InvalidStateTransition("Cannot cancel delivered order")

        # compare-and-set: of two racing cancellations only one gets the row
        if not self.repo.transition(order.id, CANCELLABLE_STATUSES, "cancelled"):
            raise InvalidStateTransition("Order status changed, please reload")

        for line in order.lines:
            if line.product_id is not None:
                self.inventory.restore(line.product_id, line.quantity)
        self.db.refresh(order)

    def cancel_order(self, order_id: int, user_id: Optional[int], is_admin: bool = False) -> Order:
        with smart_transaction(self.db):
            order = self._load(order_id, user_id, is_admin)
            previous = order.status
            self._cancel(order)
            log.info("order %s cancelled (was %s)", order.order_number, previous)
            return order

    def update_status(self, order_id: int, new_status: str) -> Order:
        """
        Privileged status change. Fulfilment states only move forward;
        'cancelled' goes through the same path as cancel_order so stock is
        returned.
        """
        if new_status not in ORDER_STATUSES:
            raise ValidationFailed.for_fields([{"field": "status", "message": "Invalid status"}])

        with smart_transaction(self.db):
            order = self.repo.get(order_id)
            if not order:
                raise NotFound("Order not found")
            previous = order.status

            if new_status == "cancelled":
                self._cancel(order)
            else:
                if previous in TERMINAL_STATUSES:
                    raise InvalidStateTransition(f"Order is {previous} and cannot change")
                if STATUS_RANK[new_status] <= STATUS_RANK[previous]:
                    raise InvalidStateTransition(
                        f"Cannot move order from {previous} to {new_status}"
                    )
                if not self.repo.transition(order.id, [previous], new_status):
                    raise InvalidStateTransition("Order status changed, please reload")
                self.db.refresh(order)

            log.info("order %s status %s -> %s", order.order_number, previous, new_status)
            return order
