from sqlalchemy import func, select

from conftest import auth
from storefront.db import SessionLocal
from storefront.models.cart import CartSession
from storefront.repositories.cart_repo import CartRepository


def _guest_add(client, pid, qty, token=None):
    headers = {"X-Cart-Session": token} if token else {}
    return client.post("/api/cart/add", json={"product_id": pid, "quantity": qty}, headers=headers)


def test_guest_add_creates_session_and_is_additive(client, make_product):
    pid = make_product(price_cents=250, stock=10)

    r = _guest_add(client, pid, 2)
    assert r.status_code == 200
    token = r.json()["session_id"]
    assert token

    r = _guest_add(client, pid, 3, token)
    assert r.json()["quantity"] == 5

    cart = client.get("/api/cart", headers={"X-Cart-Session": token}).json()
    assert cart["item_count"] == 5
    assert cart["total_cents"] == 1250
    assert len(cart["items"]) == 1


def test_update_sets_quantity_exactly(client, make_product):
    pid = make_product(stock=10)
    r = _guest_add(client, pid, 4)
    token, item_id = r.json()["session_id"], r.json()["item_id"]

    r = client.put(f"/api/cart/update/{item_id}", json={"quantity": 2}, headers={"X-Cart-Session": token})
    assert r.status_code == 200
    assert r.json()["quantity"] == 2


def test_update_to_zero_removes_line(client, make_product):
    pid = make_product(stock=10)
    r = _guest_add(client, pid, 1)
    token, item_id = r.json()["session_id"], r.json()["item_id"]

    r = client.put(f"/api/cart/update/{item_id}", json={"quantity": 0}, headers={"X-Cart-Session": token})
    assert r.status_code == 200
    assert client.get("/api/cart", headers={"X-Cart-Session": token}).json()["items"] == []


def test_adding_beyond_stock_is_refused(client, make_product):
    pid = make_product(stock=3)
    token = _guest_add(client, pid, 2).json()["session_id"]

    r = _guest_add(client, pid, 2, token)
    assert r.status_code == 400
    assert "Only 3 available" in r.json()["detail"]["message"]


def test_other_session_cannot_touch_a_line(client, make_product):
    pid = make_product(stock=5)
    item_id = _guest_add(client, pid, 1).json()["item_id"]
    # a second browser: without the first guest's cookie
    client.cookies.clear()
    other = _guest_add(client, pid, 1).json()["session_id"]
    client.cookies.clear()

    r = client.put(f"/api/cart/update/{item_id}", json={"quantity": 3}, headers={"X-Cart-Session": other})
    assert r.status_code == 403
    r = client.delete(f"/api/cart/remove/{item_id}", headers={"X-Cart-Session": other})
    assert r.status_code == 403


def test_unknown_product_is_not_found(client):
    r = _guest_add(client, 987654, 1)
    assert r.status_code == 404


def test_merge_sums_quantities_and_is_idempotent(client, make_product, user_id):
    shared = make_product(stock=20)
    guest_only = make_product(stock=20)

    client.post("/api/cart/add", json={"product_id": shared, "quantity": 1}, headers=auth(user_id))
    token = _guest_add(client, shared, 2).json()["session_id"]
    _guest_add(client, guest_only, 4, token)

    r = client.post("/api/cart/merge", json={"session_id": token}, headers=auth(user_id))
    assert r.status_code == 200

    cart = client.get("/api/cart", headers=auth(user_id)).json()
    qty = {it["product_id"]: it["quantity"] for it in cart["items"]}
    assert qty == {shared: 3, guest_only: 4}

    # the guest session is gone; merging again changes nothing
    r = client.post("/api/cart/merge", json={"session_id": token}, headers=auth(user_id))
    assert r.status_code == 200
    again = client.get("/api/cart", headers=auth(user_id)).json()
    assert {it["product_id"]: it["quantity"] for it in again["items"]} == qty


def test_merge_requires_a_signed_in_caller(client):
    r = client.post("/api/cart/merge", json={"session_id": "abc"})
    assert r.status_code == 401


def test_clear_empties_the_cart(client, make_product, user_id):
    pid = make_product(stock=5)
    client.post("/api/cart/add", json={"product_id": pid, "quantity": 2}, headers=auth(user_id))

    r = client.delete("/api/cart/clear", headers=auth(user_id))
    assert r.status_code == 200
    assert client.get("/api/cart", headers=auth(user_id)).json()["item_count"] == 0


def test_inactive_products_drop_out_of_the_cart(client, make_product, db):
    from storefront.models.product import Product

    pid = make_product(price_cents=100, stock=5)
    token = _guest_add(client, pid, 1).json()["session_id"]
    db.get(Product, pid).status = "inactive"
    db.commit()

    cart = client.get("/api/cart", headers={"X-Cart-Session": token}).json()
    assert cart["items"] == []
    assert cart["total_cents"] == 0


def _session_count():
    with SessionLocal() as s:
        return s.execute(select(func.count()).select_from(CartSession)).scalar_one()


def test_refused_guest_add_leaves_no_session(client, make_product):
    pid = make_product(stock=1)
    before = _session_count()

    assert _guest_add(client, 987654, 1).status_code == 404
    assert _guest_add(client, pid, 2).status_code == 400

    assert _session_count() == before
    assert "cart_session" not in client.cookies


def test_refused_user_add_leaves_no_session(client, make_product, user_id):
    pid = make_product(stock=1)
    r = client.post("/api/cart/add", json={"product_id": pid, "quantity": 5}, headers=auth(user_id))
    assert r.status_code == 400

    with SessionLocal() as s:
        assert CartRepository(s).get_by_user(user_id) is None
