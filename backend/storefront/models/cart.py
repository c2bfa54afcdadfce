from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from storefront.db import Base
from storefront.models.cart_item import CartItem  # noqa: F401


class CartSession(Base):
    __tablename__ = "cart_sessions"
    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(64), unique=True, index=True, nullable=False)  # opaque token
    user_id = Column(Integer, nullable=True, index=True)  # null for guest carts
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    items = relationship(
        "CartItem",
        back_populates="cart_session",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="CartItem.id",
    )

    def is_owned_by(self, token=None, user_id=None) -> bool:
        if self.user_id is not None:
            return user_id is not None and self.user_id == user_id
        return token is not None and token == self.session_id
