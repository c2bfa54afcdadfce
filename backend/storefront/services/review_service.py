import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.errors import Conflict, NotFound, ValidationFailed
from storefront.models.review import Review
from storefront.repositories.product_repo import ProductRepository
from storefront.utils.transactions import smart_transaction

log = logging.getLogger(__name__)


class ReviewService:
    def __init__(self, db: Session):
        self.db = db
        self.product_repo = ProductRepository(db)

    def list_for_product(self, product_id: int, limit: int = 50) -> List[Review]:
        return (
            self.db.execute(
                select(Review)
                .where(Review.product_id == product_id)
                .order_by(Review.created_at.desc(), Review.id.desc())
                .limit(limit)
            )
            .scalars()
            .all()
        )

    def add_review(
        self, product_id: int, user_id: int, rating: int, review_text: Optional[str] = None
    ) -> Review:
        """One review per user and product; keeps the product's rating summary current."""
        if not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationFailed.for_fields(
                [{"field": "rating", "message": "Rating must be between 1 and 5"}]
            )
        with smart_transaction(self.db):
            product = self.product_repo.get_active(product_id)
            if not product:
                raise NotFound("Product not found")

            existing = self.db.execute(
                select(Review.id).where(Review.product_id == product_id, Review.user_id == user_id)
            ).first()
            if existing:
                raise Conflict("You have already reviewed this product")

            review = Review(
                product_id=product_id,
                user_id=user_id,
                rating=rating,
                review_text=(review_text or "").strip() or None,
            )
            self.db.add(review)
            try:
                self.db.flush()
            except IntegrityError as e:
                raise Conflict("You have already reviewed this product") from e

            count, average = self.db.execute(
                select(func.count(Review.id), func.avg(Review.rating)).where(
                    Review.product_id == product_id
                )
            ).one()
            product.reviews_count = count
            product.rating = Decimal(str(average or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
            self.db.flush()
            log.info("review added product=%s user=%s rating=%s", product_id, user_id, rating)
            return review
