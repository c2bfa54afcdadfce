import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text

from storefront.api.deps import get_notifier
from storefront.db import engine
from storefront.services.notification_service import NotificationService

log = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", tags=["health"])
def health(request: Request, notifier: NotificationService = Depends(get_notifier)):
    db_ok = False
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            db_ok = True
    except Exception:
        log.warning("health: database unreachable", exc_info=True)
        db_ok = False

    mailer_ok = notifier.health_check()

    scheduler = getattr(request.app.state, "scheduler", None)
    scheduler_ok = scheduler is None or bool(scheduler.running)

    return {
        "status": "ok" if db_ok and mailer_ok and scheduler_ok else "degraded",
        "db": db_ok,
        "mailer": mailer_ok,
        "scheduler": scheduler_ok,
    }
