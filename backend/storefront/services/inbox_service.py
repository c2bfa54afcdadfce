from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.errors import Conflict, ValidationFailed
from storefront.models.contact import ContactSubmission
from storefront.models.newsletter import NewsletterSubscriber
from storefront.utils.transactions import smart_transaction


class InboxService:
    """Newsletter sign-ups and contact-form submissions."""

    def __init__(self, db: Session):
        self.db = db

    def subscribe(self, email: Optional[str]) -> NewsletterSubscriber:
        """Address syntax is checked by the request schema (EmailStr); stored lower-cased."""
        email = (email or "").strip().lower()
        if not email:
            raise ValidationFailed.for_fields([{"field": "email", "message": "Email is required"}])
        with smart_transaction(self.db):
            exists = self.db.execute(
                select(NewsletterSubscriber.id).where(NewsletterSubscriber.email == email)
            ).first()
            if exists:
                raise Conflict("Email is already subscribed")
            sub = NewsletterSubscriber(email=email)
            self.db.add(sub)
            try:
                self.db.flush()
            except IntegrityError as e:
                raise Conflict("Email is already subscribed") from e
            return sub

    def list_subscribers(self, page: int = 1, size: int = 20) -> Tuple[List[NewsletterSubscriber], int]:
        total = self.db.execute(select(func.count()).select_from(NewsletterSubscriber)).scalar_one()
        items = (
            self.db.execute(
                select(NewsletterSubscriber)
                .order_by(NewsletterSubscriber.created_at.desc(), NewsletterSubscriber.id.desc())
                .offset((page - 1) * size)
                .limit(size)
            )
            .scalars()
            .all()
        )
        return items, total

    def submit_contact(self, name, email, subject, message) -> ContactSubmission:
        errors = [
            {"field": field, "message": f"{field.capitalize()} is required"}
            for field, value in (("name", name), ("email", email), ("subject", subject), ("message", message))
            if not (value or "").strip()
        ]
        if errors:
            raise ValidationFailed("All fields are required", errors=errors)
        with smart_transaction(self.db):
            sub = ContactSubmission(
                name=name.strip(),
                email=email.strip(),
                subject=subject.strip(),
                message=message.strip(),
                status="new",
            )
            self.db.add(sub)
            self.db.flush()
            return sub

    def list_contacts(
        self, status: Optional[str] = None, page: int = 1, size: int = 20
    ) -> Tuple[List[ContactSubmission], int]:
        clauses = []
        if status and status != "all":
            clauses.append(ContactSubmission.status == status)
        total = self.db.execute(
            select(func.count()).select_from(ContactSubmission).where(*clauses)
        ).scalar_one()
        items = (
            self.db.execute(
                select(ContactSubmission)
                .where(*clauses)
                .order_by(ContactSubmission.created_at.desc(), ContactSubmission.id.desc())
                .offset((page - 1) * size)
                .limit(size)
            )
            .scalars()
            .all()
        )
        return items, total
