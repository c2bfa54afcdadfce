from conftest import SHIPPING, auth, stock_of


def _checkout(client, user_id, items, **extra):
    payload = {"shipping_address": dict(SHIPPING), "items": items}
    payload.update(extra)
    return client.post("/api/orders", json=payload, headers=auth(user_id))


def test_checkout_snapshots_prices_and_decrements_stock(client, make_product, user_id, mailer):
    pid = make_product(price_cents=500, stock=10)

    r = _checkout(client, user_id, [{"product_id": pid, "quantity": 3}])
    assert r.status_code == 201
    order = r.json()["order"]
    assert order["status"] == "pending"
    assert order["subtotalCents"] == 1500
    assert order["shippingCents"] == 0
    assert order["totalCents"] == 1500
    assert order["orderNumber"].startswith("ORD-")
    assert stock_of(pid) == 7

    detail = client.get(f"/api/orders/{order['orderId']}", headers=auth(user_id)).json()["order"]
    assert len(detail["lines"]) == 1
    line = detail["lines"][0]
    assert line["unit_price_cents"] == 500
    assert line["quantity"] == 3
    assert line["line_total_cents"] == 1500

    # inline notifier: admin and customer both got a confirmation
    recipients = sorted(m["to"] for m in mailer.outbox)
    assert recipients == ["ada@example.com", "admin@shop.test"]
    assert order["orderNumber"] in mailer.outbox[0]["subject"]


def test_total_is_subtotal_plus_shipping_plus_tax(client, make_product, user_id):
    a = make_product(price_cents=250, stock=5)
    b = make_product(price_cents=1999, stock=5)

    r = _checkout(
        client,
        user_id,
        [{"product_id": a, "quantity": 2}, {"product_id": b, "quantity": 1}],
        delivery_method="express",
    )
    assert r.status_code == 201
    order = r.json()["order"]
    assert order["subtotalCents"] == 2 * 250 + 1999
    assert order["shippingCents"] == 999
    assert order["totalCents"] == order["subtotalCents"] + order["shippingCents"] + order["taxCents"]


def test_repeated_product_lines_are_merged(client, make_product, user_id):
    pid = make_product(price_cents=100, stock=5)
    r = _checkout(
        client,
        user_id,
        [{"product_id": pid, "quantity": 1}, {"product_id": pid, "quantity": 2}],
    )
    assert r.status_code == 201
    detail = client.get(f"/api/orders/{r.json()['order']['orderId']}", headers=auth(user_id)).json()
    assert [l["quantity"] for l in detail["order"]["lines"]] == [3]
    assert stock_of(pid) == 2


def test_insufficient_stock_rolls_back_everything(client, make_product, user_id):
    plenty = make_product(price_cents=100, stock=10)
    scarce = make_product(price_cents=100, stock=1)

    r = _checkout(
        client,
        user_id,
        [{"product_id": plenty, "quantity": 2}, {"product_id": scarce, "quantity": 2}],
    )
    assert r.status_code == 400
    assert "Insufficient stock" in r.json()["detail"]["message"]
    assert stock_of(plenty) == 10
    assert stock_of(scarce) == 1

    orders = client.get("/api/orders", headers=auth(user_id)).json()
    assert orders["orders"] == []


def test_validation_reports_each_missing_field(client, user_id):
    shipping = dict(SHIPPING, first_name="  ", city="")
    r = client.post(
        "/api/orders",
        json={"shipping_address": shipping, "items": []},
        headers=auth(user_id),
    )
    assert r.status_code == 400
    detail = r.json()["detail"]
    assert detail["message"] == "Validation failed"
    fields = {e["field"] for e in detail["errors"]}
    assert {"shipping_address.first_name", "shipping_address.city", "items"} <= fields


def test_malformed_body_is_a_400(client, user_id):
    r = client.post("/api/orders", json={"items": "nope"}, headers=auth(user_id))
    assert r.status_code == 400
    assert r.json()["detail"]["message"] == "Validation failed"


def test_unknown_delivery_method_is_rejected(client, make_product, user_id):
    pid = make_product(stock=3)
    r = _checkout(client, user_id, [{"product_id": pid, "quantity": 1}], delivery_method="teleport")
    assert r.status_code == 400
    assert any(e["field"] == "delivery_method" for e in r.json()["detail"]["errors"])
    assert stock_of(pid) == 3


def test_inactive_product_cannot_be_ordered(client, make_product, user_id):
    pid = make_product(stock=3, status="inactive")
    r = _checkout(client, user_id, [{"product_id": pid, "quantity": 1}])
    assert r.status_code == 404


def test_checkout_requires_a_caller(client, make_product):
    pid = make_product()
    r = client.post(
        "/api/orders",
        json={"shipping_address": SHIPPING, "items": [{"product_id": pid, "quantity": 1}]},
    )
    assert r.status_code == 401


def test_payment_row_written_when_method_given(client, make_product, user_id):
    pid = make_product(price_cents=700, stock=2)
    r = _checkout(client, user_id, [{"product_id": pid, "quantity": 1}], payment_method="card")
    assert r.status_code == 201
    detail = client.get(f"/api/orders/{r.json()['order']['orderId']}", headers=auth(user_id)).json()
    payment = detail["order"]["payment"]
    assert payment["method"] == "card"
    assert payment["status"] == "pending"
    assert payment["amount_cents"] == 700


def test_checkout_clears_the_callers_cart(client, make_product, user_id):
    pid = make_product(stock=5)
    client.post("/api/cart/add", json={"product_id": pid, "quantity": 2}, headers=auth(user_id))
    assert client.get("/api/cart", headers=auth(user_id)).json()["item_count"] == 2

    r = _checkout(client, user_id, [{"product_id": pid, "quantity": 2}])
    assert r.status_code == 201
    assert client.get("/api/cart", headers=auth(user_id)).json()["item_count"] == 0


def test_failing_mailer_does_not_fail_the_order(client, make_product, user_id, mailer):
    mailer.fail = True
    pid = make_product(stock=2)
    r = _checkout(client, user_id, [{"product_id": pid, "quantity": 1}])
    assert r.status_code == 201
    assert stock_of(pid) == 1
    assert mailer.outbox == []


def test_other_users_order_is_not_found(client, make_product, user_id):
    pid = make_product(stock=2)
    order_id = _checkout(client, user_id, [{"product_id": pid, "quantity": 1}]).json()["order"]["orderId"]

    assert client.get(f"/api/orders/{order_id}", headers=auth(user_id + 50000)).status_code == 404
    admin = client.get(f"/api/orders/{order_id}", headers=auth(1, role="admin"))
    assert admin.status_code == 200


def test_list_orders_filters_by_status(client, make_product, user_id):
    pid = make_product(stock=5)
    first = _checkout(client, user_id, [{"product_id": pid, "quantity": 1}]).json()["order"]["orderId"]
    _checkout(client, user_id, [{"product_id": pid, "quantity": 1}])
    client.post(f"/api/orders/{first}/cancel", headers=auth(user_id))

    body = client.get("/api/orders", headers=auth(user_id)).json()
    assert body["pagination"]["total_items"] == 2
    cancelled = client.get("/api/orders?status=cancelled", headers=auth(user_id)).json()
    assert [o["id"] for o in cancelled["orders"]] == [first]
    assert cancelled["orders"][0]["item_count"] == 1


def test_order_lines_keep_their_snapshot_after_product_edit(client, make_product, user_id, db):
    from storefront.models.product import Product

    pid = make_product(price_cents=500, stock=5, name="Original Blend")
    order_id = _checkout(client, user_id, [{"product_id": pid, "quantity": 2}]).json()["order"]["orderId"]

    product = db.get(Product, pid)
    product.price_cents = 900
    product.name = "Renamed Blend"
    db.commit()

    detail = client.get(f"/api/orders/{order_id}", headers=auth(user_id)).json()["order"]
    line = detail["lines"][0]
    assert line["product_name"] == "Original Blend"
    assert line["unit_price_cents"] == 500
    assert line["line_total_cents"] == 1000
    assert detail["total_cents"] == 1000


def test_stock_matches_non_cancelled_orders(client, make_product, user_id):
    initial = 20
    pid = make_product(price_cents=100, stock=initial)
    placed = []
    for qty in (2, 3, 1, 4):
        r = _checkout(client, user_id, [{"product_id": pid, "quantity": qty}])
        assert r.status_code == 201
        placed.append((r.json()["order"]["orderId"], qty))

    cancelled = {placed[1][0], placed[3][0]}
    for order_id in cancelled:
        assert client.post(f"/api/orders/{order_id}/cancel", headers=auth(user_id)).status_code == 200
    # a refused second cancel must not move stock
    client.post(f"/api/orders/{placed[1][0]}/cancel", headers=auth(user_id))

    live = sum(qty for order_id, qty in placed if order_id not in cancelled)
    assert stock_of(pid) == initial - live


def test_malformed_shipping_email_is_rejected(client, make_product, user_id):
    pid = make_product(stock=2)
    shipping = dict(SHIPPING, email="ada@@example")
    r = client.post(
        "/api/orders",
        json={"shipping_address": shipping, "items": [{"product_id": pid, "quantity": 1}]},
        headers=auth(user_id),
    )
    assert r.status_code == 400
    assert any(e["field"] == "shipping_address.email" for e in r.json()["detail"]["errors"])
    assert stock_of(pid) == 2
