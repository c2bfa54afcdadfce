from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
)

from storefront.db import Base


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),)

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(64), unique=True, index=True, nullable=False)
    name = Column(String(256), nullable=False, index=True)
    description = Column(Text, nullable=True)
    category = Column(String(128), nullable=True, index=True)
    price_cents = Column(Integer, nullable=False, default=0)
    original_price_cents = Column(Integer, nullable=True)
    image = Column(String(512), nullable=True)
    badge = Column(String(32), nullable=True)  # e.g. "new", "bestseller"; marks a product as featured
    status = Column(String(16), nullable=False, default="active", index=True)  # active, inactive
    stock = Column(Integer, default=0, nullable=False)
    rating = Column(Numeric(3, 2), nullable=False, default=0)
    reviews_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def __repr__(self):
        return f"<Product id={self.id} sku={self.sku} stock={self.stock}>"
