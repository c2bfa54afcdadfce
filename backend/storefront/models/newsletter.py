from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from storefront.db import Base


class NewsletterSubscriber(Base):
    __tablename__ = "newsletter"
    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
