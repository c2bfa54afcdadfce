import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from storefront.adapters.mailer import build_mailer
from storefront.api.health import router as health_router
from storefront.api.routes_cart import router as cart_router
from storefront.api.routes_catalogue import category_router, router as catalogue_router
from storefront.api.routes_inbox import contact_router, newsletter_router
from storefront.api.routes_order import router as order_router
from storefront.api.routes_wishlist import router as wishlist_router
from storefront.config import settings
from storefront.db import init_db
from storefront.errors import StorageUnavailable
from storefront.services.notification_service import NotificationService

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    init_db()

    # order notifications are delivered off the request path
    scheduler = BackgroundScheduler()
    scheduler.start()
    app.state.scheduler = scheduler
    app.state.notifier = NotificationService(
        build_mailer(settings),
        scheduler=scheduler if settings.NOTIFY_ASYNC else None,
        admin_email=settings.ADMIN_EMAIL,
    )
    log.info("storefront started (mailer=%s, async=%s)", settings.MAILER_BACKEND, settings.NOTIFY_ASYNC)

    try:
        yield
    finally:
        app.state.notifier.flush_pending()
        scheduler.shutdown(wait=True)


app = FastAPI(title="Storefront - Backend", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "header")]
        errors.append({"field": ".".join(loc) or "body", "message": err.get("msg", "Invalid value")})
    return JSONResponse(
        status_code=400,
        content={"detail": {"message": "Validation failed", "errors": errors}},
    )


@app.exception_handler(OperationalError)
async def storage_exception_handler(request: Request, exc: OperationalError):
    # reads run outside smart_transaction; lock waits and timeouts land here
    log.warning("storage unavailable on %s %s: %s", request.method, request.url.path, exc.orig)
    err = StorageUnavailable("Storage unavailable, please retry")
    return JSONResponse(
        status_code=err.status_code,
        content={"detail": err.to_detail()},
        headers={"Retry-After": "1"},
    )


app.include_router(health_router, prefix="/api", tags=["health"])

app.include_router(catalogue_router, prefix="/api/products", tags=["catalogue"])

app.include_router(category_router, tags=["catalogue"])

app.include_router(cart_router, tags=["cart"])

app.include_router(order_router, prefix="/api/orders", tags=["orders"])

app.include_router(wishlist_router, tags=["wishlist"])

app.include_router(newsletter_router, tags=["newsletter"])

app.include_router(contact_router, tags=["contact"])
