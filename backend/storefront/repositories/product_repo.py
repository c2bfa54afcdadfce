from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from storefront.models.product import Product

FEATURED_MIN_RATING = Decimal("4.5")


@dataclass
class ProductFilter:
    """Catalogue query parameters; every field maps to a bound where-clause."""

    q: Optional[str] = None
    category: Optional[str] = None
    min_price_cents: Optional[int] = None
    max_price_cents: Optional[int] = None
    page: int = 1
    size: int = 20

    def clauses(self) -> list:
        clauses = [Product.status == "active"]
        if self.q:
            like = f"%{self.q}%"
            clauses.append(Product.name.ilike(like) | Product.description.ilike(like))
        if self.category:
            clauses.append(Product.category == self.category)
        if self.min_price_cents is not None:
            clauses.append(Product.price_cents >= self.min_price_cents)
        if self.max_price_cents is not None:
            clauses.append(Product.price_cents <= self.max_price_cents)
        return clauses


class ProductRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_active(self, product_id: int) -> Optional[Product]:
        return self.db.execute(
            select(Product).where(Product.id == product_id, Product.status == "active")
        ).scalar_one_or_none()

    def get_by_sku(self, sku: str) -> Optional[Product]:
        return self.db.execute(select(Product).where(Product.sku == sku)).scalar_one_or_none()

    def list(self, filters: ProductFilter) -> Tuple[List[Product], int]:
        clauses = filters.clauses()
        total = self.db.execute(
            select(func.count()).select_from(Product).where(*clauses)
        ).scalar_one()
        items = (
            self.db.execute(
                select(Product)
                .where(*clauses)
                .order_by(Product.name)
                .offset((filters.page - 1) * filters.size)
                .limit(filters.size)
            )
            .scalars()
            .all()
        )
        return items, total

    def featured(self, limit: int = 3) -> List[Product]:
        """Active products carrying a badge or rated 4.5 and up, best rated first."""
        return (
            self.db.execute(
                select(Product)
                .where(
                    Product.status == "active",
                    (Product.badge.isnot(None)) | (Product.rating >= FEATURED_MIN_RATING),
                )
                .order_by(Product.rating.desc(), Product.created_at.desc(), Product.id.desc())
                .limit(limit)
            )
            .scalars()
            .all()
        )

    def categories(self) -> List[Tuple[str, int]]:
        """(category, active product count), alphabetical; uncategorised products are left out."""
        rows = self.db.execute(
            select(Product.category, func.count(Product.id))
            .where(Product.status == "active", Product.category.isnot(None))
            .group_by(Product.category)
            .order_by(Product.category)
        ).all()
        return [(name, count) for name, count in rows]

    def create_or_update(
        self,
        sku: str,
        name: str,
        price_cents: int,
        stock: int = 0,
        description: str = None,
        image: str = None,
        category: str = None,
        status: str = "active",
        badge: str = None,
    ) -> Product:
        p = self.get_by_sku(sku)
        if p:
            p.name = name
            p.price_cents = price_cents
            p.stock = stock
            p.description = description
            p.image = image
            p.category = category
            p.status = status
            p.badge = badge
        else:
            p = Product(
                sku=sku,
                name=name,
                price_cents=price_cents,
                stock=stock,
                description=description,
                image=image,
                category=category,
                status=status,
                badge=badge,
            )
            self.db.add(p)
        self.db.flush()
        return p
