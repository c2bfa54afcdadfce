from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text

from storefront.db import Base


class ContactSubmission(Base):
    __tablename__ = "user_contact"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, default="new", index=True)  # new, read, replied
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
