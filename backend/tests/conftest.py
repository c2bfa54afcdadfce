import itertools
import os
import tempfile
import uuid

# point the app at a throwaway database before anything imports storefront.config
_DB_PATH = os.path.join(tempfile.gettempdir(), f"storefront-test-{os.getpid()}.db")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_PATH}"
os.environ["MAILER_BACKEND"] = "mock"
os.environ["ADMIN_EMAIL"] = "admin@shop.test"

import pytest
from fastapi.testclient import TestClient

from storefront.adapters.mailer import MockMailerAdapter
from storefront.api.deps import get_notifier
from storefront.db import SessionLocal, engine, init_db
from storefront.main import app
from storefront.models.product import Product
from storefront.services.notification_service import NotificationService

_user_ids = itertools.count(1000)


@pytest.fixture(autouse=True, scope="session")
def setup_db():
    init_db(reset=True)
    yield
    engine.dispose()
    for suffix in ("", "-wal", "-shm"):
        try:
            os.remove(_DB_PATH + suffix)
        except OSError:
            pass


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def mailer():
    return MockMailerAdapter()


@pytest.fixture
def notifier(mailer):
    return NotificationService(mailer, admin_email="admin@shop.test")


@pytest.fixture
def client(notifier):
    app.dependency_overrides[get_notifier] = lambda: notifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_notifier, None)


@pytest.fixture
def user_id():
    return next(_user_ids)


def auth(user_id, role="customer"):
    return {"X-User-Id": str(user_id), "X-User-Role": role}


@pytest.fixture
def make_product():
    def _make(price_cents=500, stock=10, status="active", name=None, category="tea", badge=None):
        sku = f"SKU-{uuid.uuid4().hex[:10]}"
        with SessionLocal() as s:
            p = Product(
                sku=sku,
                name=name or f"Product {sku}",
                price_cents=price_cents,
                stock=stock,
                status=status,
                category=category,
                badge=badge,
            )
            s.add(p)
            s.commit()
            return p.id

    return _make


def stock_of(product_id):
    # fresh session so the read is not served from an older snapshot
    with SessionLocal() as s:
        return s.get(Product, product_id).stock


SHIPPING = {
    "first_name": "Ada",
    "last_name": "Lovelace",
    "email": "ada@example.com",
    "phone": "555-0100",
    "address": "1 Analytical Way",
    "city": "London",
    "state": "LDN",
    "zip_code": "N1 1AA",
}
