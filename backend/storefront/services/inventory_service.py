import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.errors import InsufficientStock
from storefront.models.product import Product
from storefront.utils.transactions import in_unit_of_work

log = logging.getLogger(__name__)


class InventoryService:
    """
    The only code path that changes Product.stock.

    Stock moves by -quantity when an order is placed and by +quantity when it
    is cancelled, always inside the transaction that writes the order row.
    """

    def __init__(self, db: Session):
        self.db = db

    def _require_unit_of_work(self):
        if not in_unit_of_work(self.db):
            raise RuntimeError("stock changes must run inside smart_transaction()")

    def decrement(self, product_id: int, qty: int) -> None:
        """
        Check-and-decrement in a single statement; a concurrent checkout can
        never observe the same units as available.
        """
        self._require_unit_of_work()
        if qty <= 0:
            raise ValueError("Quantity must be positive")
        res = self.db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock >= qty)
            .values(stock=Product.stock - qty)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            available = self.db.execute(
                select(Product.stock).where(Product.id == product_id)
            ).scalar_one_or_none()
            log.info(
                "stock decrement refused product=%s requested=%s available=%s",
                product_id,
                qty,
                available,
            )
            raise InsufficientStock(
                f"Insufficient stock for product {product_id}. Only {available or 0} available.",
                product_id=product_id,
            )

    def restore(self, product_id: int, qty: int) -> None:
        self._require_unit_of_work()
        if qty <= 0:
            raise ValueError("Quantity must be positive")
        self.db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + qty)
            .execution_options(synchronize_session=False)
        )
