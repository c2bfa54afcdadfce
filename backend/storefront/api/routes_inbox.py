from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, EmailStr
from sqlalchemy.orm import Session

from storefront.api.deps import Caller, raise_http, require_admin
from storefront.db import get_db
from storefront.errors import StorefrontError
from storefront.services.inbox_service import InboxService

newsletter_router = APIRouter(prefix="/api/newsletter", tags=["newsletter"])
contact_router = APIRouter(prefix="/api/contact", tags=["contact"])


class SubscribeIn(BaseModel):
    email: EmailStr


class ContactIn(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    subject: Optional[str] = None
    message: Optional[str] = None


def _pagination(page: int, size: int, total: int) -> dict:
    return {
        "current_page": page,
        "total_pages": (total + size - 1) // size,
        "total_items": total,
        "items_per_page": size,
    }


@newsletter_router.post("/subscribe", summary="Subscribe to the newsletter", status_code=status.HTTP_201_CREATED)
def subscribe(payload: SubscribeIn, db: Session = Depends(get_db)):
    try:
        sub = InboxService(db).subscribe(payload.email)
    except StorefrontError as e:
        raise_http(e)
    return {"message": "Successfully subscribed to newsletter", "id": sub.id}


@newsletter_router.get("", summary="List subscribers (admin)")
def list_subscribers(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=200),
    caller: Caller = Depends(require_admin),
    db: Session = Depends(get_db),
):
    items, total = InboxService(db).list_subscribers(page=page, size=size)
    return {
        "subscribers": [
            {"id": s.id, "email": s.email, "subscribed_at": s.created_at} for s in items
        ],
        "pagination": _pagination(page, size, total),
    }


@contact_router.post("", summary="Submit the contact form", status_code=status.HTTP_201_CREATED)
def submit_contact(payload: ContactIn, db: Session = Depends(get_db)):
    try:
        sub = InboxService(db).submit_contact(
            payload.name, payload.email, payload.subject, payload.message
        )
    except StorefrontError as e:
        raise_http(e)
    return {"message": "Your message has been sent successfully", "id": sub.id}


@contact_router.get("", summary="List contact submissions (admin)")
def list_contacts(
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=200),
    caller: Caller = Depends(require_admin),
    db: Session = Depends(get_db),
):
    items, total = InboxService(db).list_contacts(status=status_filter, page=page, size=size)
    return {
        "contacts": [
            {
                "id": c.id,
                "name": c.name,
                "email": c.email,
                "subject": c.subject,
                "message": c.message,
                "status": c.status,
                "created_at": c.created_at,
            }
            for c in items
        ],
        "pagination": _pagination(page, size, total),
    }
