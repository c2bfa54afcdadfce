"""
Fire parallel checkouts for one product at a running server and report how
many succeeded. With stock N, at most N orders should be created no matter
how many workers race.

    python tools/concurrency_checkout.py --product-id 4 --workers 8
"""
import argparse
import concurrent.futures
import os

import requests

BASE = os.environ.get("STOREFRONT_BASE", "http://127.0.0.1:8000")

SHIPPING = {
    "first_name": "Load",
    "last_name": "Tester",
    "email": "load@example.com",
    "phone": "555-0100",
    "address": "1 Test Street",
    "city": "Testville",
    "state": "TS",
    "zip_code": "00000",
}


def product_stock(product_id):
    r = requests.get(f"{BASE}/api/products/{product_id}", timeout=10)
    r.raise_for_status()
    return r.json()["stock"]


def checkout_task(i, product_id, qty):
    payload = {"shipping_address": SHIPPING, "items": [{"product_id": product_id, "quantity": qty}]}
    headers = {"X-User-Id": str(90000 + i)}
    try:
        r = requests.post(f"{BASE}/api/orders", json=payload, headers=headers, timeout=20)
        return (i, r.status_code, r.text)
    except requests.RequestException as e:
        return (i, "ERR", str(e))


def run(workers, product_id, qty):
    before = product_stock(product_id)
    print(f"product={product_id} stock={before} workers={workers} qty={qty}")
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
        futures = [ex.submit(checkout_task, i, product_id, qty) for i in range(workers)]
        results = [f.result() for f in futures]

    for r in results:
        print(r)
    created = sum(1 for r in results if r[1] == 201)
    after = product_stock(product_id)
    print(f"created={created} stock_after={after}")
    if created * qty > before or after < 0:
        print("OVERSOLD")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Concurrent checkout tool.")
    parser.add_argument("--product-id", type=int, required=True)
    parser.add_argument("--qty", type=int, default=1)
    parser.add_argument("--workers", type=int, default=8)
    args = parser.parse_args()
    run(args.workers, args.product_id, args.qty)
