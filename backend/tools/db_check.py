import sqlite3
import sys

DB = sys.argv[1] if len(sys.argv) > 1 else "dev.db"
ORDER_NUMBER = sys.argv[2] if len(sys.argv) > 2 else None
SKU = sys.argv[3] if len(sys.argv) > 3 else None

conn = sqlite3.connect(DB)
cur = conn.cursor()

print("=== Recent Orders ===")
if ORDER_NUMBER:
    cur.execute(
        "SELECT id, order_number, user_id, status, subtotal_cents, shipping_cents, tax_cents, total_cents, created_at"
        " FROM orders WHERE order_number=?",
        (ORDER_NUMBER,),
    )
else:
    cur.execute(
        "SELECT id, order_number, user_id, status, subtotal_cents, shipping_cents, tax_cents, total_cents, created_at"
        " FROM orders ORDER BY created_at DESC LIMIT 20"
    )
orders = cur.fetchall()
for r in orders:
    flag = "" if r[7] == r[4] + r[5] + r[6] else "  <-- total mismatch"
    print(r, flag)

if ORDER_NUMBER and orders:
    print(f"\n=== Lines for {ORDER_NUMBER} ===")
    cur.execute(
        "SELECT product_id, product_name, unit_price_cents, quantity, line_total_cents FROM order_items WHERE order_id=?",
        (orders[0][0],),
    )
    for r in cur.fetchall():
        print(r)

print("\n=== Stock ===")
if SKU:
    cur.execute("SELECT id, sku, name, status, stock FROM products WHERE sku=?", (SKU,))
else:
    cur.execute("SELECT id, sku, name, status, stock FROM products ORDER BY stock ASC LIMIT 20")
for r in cur.fetchall():
    print(r)

conn.close()
