import logging
from typing import Dict, Optional, Tuple

from sqlalchemy.orm import Session

from storefront.errors import Forbidden, InsufficientStock, NotFound, ValidationFailed
from storefront.models.cart import CartSession
from storefront.models.cart_item import CartItem
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.utils.transactions import smart_transaction

log = logging.getLogger(__name__)


class CartService:
    def __init__(self, db: Session):
        self.db = db
        self.cart_repo = CartRepository(db)
        self.product_repo = ProductRepository(db)

    def resolve_session(self, user_id: Optional[int] = None, token: Optional[str] = None) -> CartSession:
        """
        Signed-in callers get the session bound to them, created on first use.
        Guests keep the unbound session named by their token, or get a new one.
        """
        with smart_transaction(self.db):
            if user_id is not None:
                cart = self.cart_repo.get_by_user(user_id)
                if cart:
                    return cart
                return self.cart_repo.create_session(user_id=user_id)
            if token:
                cart = self.cart_repo.get_by_token(token)
                if cart and cart.user_id is None:
                    return cart
            return self.cart_repo.create_session()

    def find_session(self, user_id: Optional[int] = None, token: Optional[str] = None) -> Optional[CartSession]:
        if user_id is not None:
            return self.cart_repo.get_by_user(user_id)
        if token:
            cart = self.cart_repo.get_by_token(token)
            if cart and cart.user_id is None:
                return cart
        return None

    def get_cart(self, user_id: Optional[int] = None, token: Optional[str] = None) -> Dict:
        cart = self.find_session(user_id=user_id, token=token)
        if not cart:
            return {"session_id": None, "items": [], "total_cents": 0, "item_count": 0}

        items = []
        total = 0
        count = 0
        for it in cart.items:
            product = it.product
            if not product or not product.is_active:
                continue
            line_total = product.price_cents * it.quantity
            items.append(
                {
                    "id": it.id,
                    "product_id": product.id,
                    "name": product.name,
                    "image": product.image,
                    "category": product.category,
                    "price_cents": product.price_cents,
                    "stock": product.stock,
                    "quantity": it.quantity,
                    "line_total_cents": line_total,
                }
            )
            total += line_total
            count += it.quantity
        return {
            "session_id": None if user_id is not None else cart.session_id,
            "items": items,
            "total_cents": total,
            "item_count": count,
        }

    def add_item(self, session_id: str, product_id: int, quantity: int) -> CartItem:
        """Add quantity to the line for product_id, creating it if absent."""
        if quantity <= 0:
            raise ValidationFailed.for_fields(
                [{"field": "quantity", "message": "Quantity must be positive"}]
            )
        with smart_transaction(self.db):
            cart = self.cart_repo.get_by_token(session_id)
            if not cart:
                raise NotFound("Cart session not found")
            product = self.product_repo.get_active(product_id)
            if not product:
                raise NotFound("Product not found")

            existing = self.cart_repo.find_item(cart, product_id)
            new_qty = quantity + (existing.quantity if existing else 0)
            if new_qty > product.stock:
                if existing:
                    raise InsufficientStock(
                        f"Cannot add more items. Only {product.stock} available in stock",
                        product_id=product_id,
                    )
                raise InsufficientStock(
                    f"Only {product.stock} items available in stock", product_id=product_id
                )
            return self.cart_repo.add_or_increment_item(cart, product_id, quantity)

    def add_to_cart(
        self,
        product_id: int,
        quantity: int,
        user_id: Optional[int] = None,
        token: Optional[str] = None,
    ) -> Tuple[CartSession, CartItem]:
        """
        Resolve the caller's session and add the line as one unit of work, so a
        refused add (missing product, not enough stock) leaves no new session.
        """
        with smart_transaction(self.db):
            cart = self.resolve_session(user_id=user_id, token=token)
            item = self.add_item(cart.session_id, product_id, quantity)
            return cart, item

    def _owned_item(self, item_id: int, token: Optional[str], user_id: Optional[int]) -> CartItem:
        item = self.cart_repo.get_item(item_id)
        if not item:
            raise NotFound("Cart item not found")
        if not item.cart_session.is_owned_by(token=token, user_id=user_id):
            raise Forbidden("Access denied")
        return item

    def update_item(
        self,
        item_id: int,
        quantity: int,
        token: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> Optional[CartItem]:
        """
        Set the line's quantity exactly. Zero removes the line and returns None.
        """
        if quantity < 0:
            raise ValidationFailed.for_fields(
                [{"field": "quantity", "message": "Quantity cannot be negative"}]
            )
        with smart_transaction(self.db):
            item = self._owned_item(item_id, token, user_id)
            if quantity == 0:
                self.cart_repo.remove_item(item)
                return None
            product = item.product
            if quantity > product.stock:
                raise InsufficientStock(
                    f"Only {product.stock} items available in stock", product_id=product.id
                )
            item.quantity = quantity
            self.db.flush()
            return item

    def remove_item(self, item_id: int, token: Optional[str] = None, user_id: Optional[int] = None):
        with smart_transaction(self.db):
            item = self._owned_item(item_id, token, user_id)
            self.cart_repo.remove_item(item)

    def clear(self, token: Optional[str] = None, user_id: Optional[int] = None) -> int:
        with smart_transaction(self.db):
            cart = self.find_session(user_id=user_id, token=token)
            if not cart:
                return 0
            return self.cart_repo.clear(cart)

    def merge_carts(self, guest_session_id: str, user_id: int) -> CartSession:
        """
        Fold a guest cart into the user's cart and delete the guest session.
        Merging a session that no longer exists is a successful no-op.
        """
        with smart_transaction(self.db):
            user_cart = self.cart_repo.get_by_user(user_id)
            if not user_cart:
                user_cart = self.cart_repo.create_session(user_id=user_id)

            guest = self.cart_repo.get_by_token(guest_session_id)
            if guest is None or guest.id == user_cart.id:
                log.info("merge: guest session %s already gone, nothing to do", guest_session_id)
                return user_cart
            if guest.user_id is not None and guest.user_id != user_id:
                raise Forbidden("Access denied")

            moved = len(guest.items)
            self.cart_repo.merge_guest_into_user(guest, user_cart)
            log.info("merge: %d line(s) from %s into user %s", moved, guest_session_id, user_id)
            return user_cart

    def discard_after_checkout(self, user_id: int, session_id: Optional[str] = None):
        """Delete the carts a successful checkout consumed. Runs in the caller's transaction."""
        carts = []
        bound = self.cart_repo.get_by_user(user_id)
        if bound:
            carts.append(bound)
        if session_id:
            guest = self.cart_repo.get_by_token(session_id)
            if guest and guest not in carts and guest.is_owned_by(token=session_id, user_id=user_id):
                carts.append(guest)
        for cart in carts:
            self.cart_repo.delete_session(cart)
