#!/usr/bin/env python3
"""
Seed the catalogue from a JSON file.

Accepts a list of products or an object with an "items" list. Prices may be
given as price_cents or as a decimal price; they are stored as integer cents.
A few demo products are always ensured so a fresh database has something to
sell.

Usage:
    python scripts/seed_products.py --file ../public/mock/catalogue.json
"""
import argparse
import json
import logging
import os
import sys
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

# allow running from backend/scripts
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from storefront.db import SessionLocal, init_db
from storefront.repositories.product_repo import ProductRepository
from storefront.utils.transactions import smart_transaction

log = logging.getLogger("seed_products")

DEFAULT_SOURCE = os.path.join(os.path.dirname(__file__), "..", "public", "mock", "catalogue.json")

DEMO_PRODUCTS = [
    {"sku": "TEA-100", "name": "Breakfast Tea 100g", "price_cents": 300, "stock": 50, "category": "tea"},
    {"sku": "COF-200", "name": "House Coffee 200g", "price_cents": 600, "stock": 30, "category": "coffee"},
    {"sku": "MUG-01", "name": "Stoneware Mug", "price_cents": 1250, "stock": 12, "category": "kitchen"},
    {"sku": "CHOC1234", "name": "Dark Chocolate", "price_cents": 500, "stock": 10, "category": "snacks", "badge": "bestseller"},
]


def _to_cents(value) -> int:
    try:
        return int((Decimal(str(value)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except (InvalidOperation, ValueError):
        return 0


def _normalize_entry(entry):
    sku = entry.get("sku") or entry.get("id") or entry.get("productId")
    if entry.get("price_cents") is not None:
        try:
            price_cents = int(entry["price_cents"])
        except (TypeError, ValueError):
            price_cents = 0
    else:
        price_cents = _to_cents(entry.get("price", entry.get("amount", 0)))

    try:
        stock = int(entry.get("stock", entry.get("quantity", 0)) or 0)
    except (TypeError, ValueError):
        stock = 0

    image = entry.get("image")
    if not image:
        imgs = entry.get("images") or entry.get("image_urls") or []
        image = imgs[0] if isinstance(imgs, (list, tuple)) and imgs else None

    active = entry.get("status", "active") == "active" and entry.get("active", True)
    return {
        "sku": str(sku) if sku is not None else None,
        "name": entry.get("name") or entry.get("title") or "",
        "price_cents": max(price_cents, 0),
        "stock": max(stock, 0),
        "description": entry.get("description") or "",
        "image": image,
        "category": entry.get("category"),
        "status": "active" if active else "inactive",
        "badge": entry.get("badge") or None,
    }


def load_entries(path):
    if not path:
        return []
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        source = data["items"] if isinstance(data.get("items"), list) else list(data.values())
    elif isinstance(data, list):
        source = data
    else:
        source = []
    return [_normalize_entry(e) for e in source if isinstance(e, dict)]


def seed(entries):
    skus = {e["sku"] for e in entries if e.get("sku")}
    entries = entries + [_normalize_entry(d) for d in DEMO_PRODUCTS if d["sku"] not in skus]

    init_db()
    db = SessionLocal()
    try:
        repo = ProductRepository(db)
        count = 0
        with smart_transaction(db):
            for entry in entries:
                if not entry.get("sku"):
                    continue
                repo.create_or_update(**entry)
                count += 1
        log.info("Seeded products: %d", count)
        return count
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    parser = argparse.ArgumentParser()
    parser.add_argument("--file", "-f", default=DEFAULT_SOURCE, help="Path to product json")
    args = parser.parse_args()
    path = args.file
    if not os.path.exists(path):
        if path != DEFAULT_SOURCE:
            log.error("File not found: %s", path)
            sys.exit(1)
        path = None
    seed(load_entries(path))
