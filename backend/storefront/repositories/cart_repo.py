import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.models.cart import CartSession
from storefront.models.cart_item import CartItem


class CartRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_token(self, token: str) -> Optional[CartSession]:
        return self.db.execute(
            select(CartSession).where(CartSession.session_id == token)
        ).scalar_one_or_none()

    def get_by_user(self, user_id: int) -> Optional[CartSession]:
        return (
            self.db.execute(
                select(CartSession)
                .where(CartSession.user_id == user_id)
                .order_by(CartSession.id)
            )
            .scalars()
            .first()
        )

    def create_session(self, user_id: Optional[int] = None) -> CartSession:
        c = CartSession(session_id=uuid.uuid4().hex, user_id=user_id)
        self.db.add(c)
        self.db.flush()
        return c

    def delete_session(self, cart: CartSession):
        self.db.delete(cart)
        self.db.flush()

    def get_item(self, item_id: int) -> Optional[CartItem]:
        return self.db.get(CartItem, item_id)

    def find_item(self, cart: CartSession, product_id: int) -> Optional[CartItem]:
        return self.db.execute(
            select(CartItem).where(
                CartItem.cart_session_id == cart.id, CartItem.product_id == product_id
            )
        ).scalar_one_or_none()

    def add_or_increment_item(self, cart: CartSession, product_id: int, qty: int) -> CartItem:
        item = self.find_item(cart, product_id)
        if item:
            item.quantity = item.quantity + qty
        else:
            item = CartItem(cart_session_id=cart.id, product_id=product_id, quantity=qty)
            self.db.add(item)
            cart.items.append(item)
        self.db.flush()
        return item

    def remove_item(self, item: CartItem):
        self.db.delete(item)
        self.db.flush()

    def clear(self, cart: CartSession) -> int:
        removed = len(cart.items)
        cart.items.clear()
        self.db.flush()
        return removed

    def merge_guest_into_user(self, guest: CartSession, user_cart: CartSession) -> CartSession:
        # same product on both sides: quantities add up; otherwise the line moves over
        for git in list(guest.items):
            found = self.find_item(user_cart, git.product_id)
            if found:
                found.quantity += git.quantity
            else:
                git.cart_session = user_cart
        self.db.flush()
        self.db.delete(guest)
        self.db.flush()
        return user_cart
