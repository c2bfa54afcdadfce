import pytest

from conftest import SHIPPING, auth
from storefront.db import SessionLocal
from storefront.errors import Conflict
from storefront.models.order import Order
from storefront.repositories.order_repo import OrderRepository
from storefront.utils.transactions import smart_transaction


def _header(user_id):
    return Order(
        user_id=user_id,
        status="pending",
        subtotal_cents=100,
        shipping_cents=0,
        tax_cents=0,
        total_cents=100,
        first_name=SHIPPING["first_name"],
        last_name=SHIPPING["last_name"],
        phone=SHIPPING["phone"],
        shipping_address=SHIPPING["address"],
        shipping_city=SHIPPING["city"],
        shipping_state=SHIPPING["state"],
        shipping_zip_code=SHIPPING["zip_code"],
        shipping_method="standard",
    )


def _existing_number(client, make_product, user_id):
    pid = make_product(stock=1)
    r = client.post(
        "/api/orders",
        json={"shipping_address": SHIPPING, "items": [{"product_id": pid, "quantity": 1}]},
        headers=auth(user_id),
    )
    return r.json()["order"]["orderNumber"]


def test_collision_draws_a_fresh_number(client, make_product, user_id):
    taken = _existing_number(client, make_product, user_id)
    numbers = iter([taken, "ORD-1-001"])

    with SessionLocal() as db:
        repo = OrderRepository(db)
        with smart_transaction(db):
            order = repo.insert_with_unique_number(_header(user_id), lambda: next(numbers), 3)
        assert order.order_number == "ORD-1-001"


def test_collision_exhaustion_is_conflict(client, make_product, user_id):
    taken = _existing_number(client, make_product, user_id)

    with SessionLocal() as db:
        repo = OrderRepository(db)
        with pytest.raises(Conflict):
            with smart_transaction(db):
                repo.insert_with_unique_number(_header(user_id), lambda: taken, 2)
