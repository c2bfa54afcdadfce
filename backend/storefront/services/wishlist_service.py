from typing import List

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from storefront.errors import Conflict, NotFound
from storefront.models.product import Product
from storefront.models.wishlist import WishlistItem
from storefront.repositories.product_repo import ProductRepository
from storefront.utils.transactions import smart_transaction


class WishlistService:
    def __init__(self, db: Session):
        self.db = db
        self.product_repo = ProductRepository(db)

    def list(self, user_id: int) -> List[WishlistItem]:
        return (
            self.db.execute(
                select(WishlistItem)
                .join(Product, Product.id == WishlistItem.product_id)
                .where(WishlistItem.user_id == user_id, Product.status == "active")
                .order_by(WishlistItem.created_at.desc(), WishlistItem.id.desc())
            )
            .scalars()
            .all()
        )

    def contains(self, user_id: int, product_id: int) -> bool:
        return (
            self.db.execute(
                select(WishlistItem.id).where(
                    WishlistItem.user_id == user_id, WishlistItem.product_id == product_id
                )
            ).first()
            is not None
        )

    def add(self, user_id: int, product_id: int) -> WishlistItem:
        with smart_transaction(self.db):
            if not self.product_repo.get_active(product_id):
                raise NotFound("Product not found")
            if self.contains(user_id, product_id):
                raise Conflict("Product already in wishlist")
            item = WishlistItem(user_id=user_id, product_id=product_id)
            self.db.add(item)
            self.db.flush()
            return item

    def remove(self, user_id: int, product_id: int):
        with smart_transaction(self.db):
            res = self.db.execute(
                delete(WishlistItem).where(
                    WishlistItem.user_id == user_id, WishlistItem.product_id == product_id
                )
            )
            if res.rowcount == 0:
                raise NotFound("Product not found in wishlist")

    def clear(self, user_id: int) -> int:
        with smart_transaction(self.db):
            res = self.db.execute(delete(WishlistItem).where(WishlistItem.user_id == user_id))
            return res.rowcount
