"""
Request-scoped collaborators shared by the routers.

Authentication happens upstream: the gateway verifies the token and forwards
the caller as X-User-Id / X-User-Role. Guests send no identity headers.
"""
from dataclasses import dataclass
from typing import NoReturn, Optional

from fastapi import Depends, Header, HTTPException, Request

from storefront.adapters.mailer import build_mailer
from storefront.config import settings
from storefront.errors import StorageUnavailable, StorefrontError
from storefront.services.notification_service import NotificationService

CART_COOKIE = "cart_session"


@dataclass(frozen=True)
class Caller:
    user_id: Optional[int] = None
    role: str = "guest"

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_admin(self) -> bool:
        return self.is_authenticated and self.role == "admin"


def get_caller(
    x_user_id: Optional[int] = Header(None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
) -> Caller:
    if x_user_id is None:
        return Caller()
    return Caller(user_id=x_user_id, role=(x_user_role or "customer").lower())


def require_user(caller: Caller = Depends(get_caller)) -> Caller:
    if not caller.is_authenticated:
        raise HTTPException(status_code=401, detail={"message": "Authentication required"})
    return caller


def require_admin(caller: Caller = Depends(require_user)) -> Caller:
    if not caller.is_admin:
        raise HTTPException(status_code=403, detail={"message": "Admin access required"})
    return caller


def get_cart_token(request: Request) -> Optional[str]:
    return request.headers.get("X-Cart-Session") or request.cookies.get(CART_COOKIE)


def get_notifier(request: Request) -> NotificationService:
    notifier = getattr(request.app.state, "notifier", None)
    if notifier is None:
        # lifespan did not run (e.g. a bare TestClient); deliver inline
        notifier = NotificationService(build_mailer(settings), admin_email=settings.ADMIN_EMAIL)
        request.app.state.notifier = notifier
    return notifier


def raise_http(e: StorefrontError) -> NoReturn:
    headers = {"Retry-After": "1"} if isinstance(e, StorageUnavailable) else None
    raise HTTPException(status_code=e.status_code, detail=e.to_detail(), headers=headers) from e
