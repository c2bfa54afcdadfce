import random
import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional


class UnknownShippingMethod(ValueError):
    pass


def shipping_cost_cents(method: Optional[str], rates: Dict[str, int], default: str = "standard") -> int:
    """Fixed tier per delivery method; no method means the default tier."""
    key = (method or default).strip().lower()
    if key not in rates:
        raise UnknownShippingMethod(method)
    return int(rates[key])


def tax_cents(subtotal_cents: int, rate: Decimal) -> int:
    if not rate:
        return 0
    return int((Decimal(subtotal_cents) * Decimal(rate)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def generate_order_number(now_ms: Optional[int] = None, suffix: Optional[int] = None) -> str:
    """ORD-<epoch millis>-<3 digit random suffix>; uniqueness rests on the DB index."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    if suffix is None:
        suffix = random.randint(0, 999)
    return f"ORD-{now_ms}-{suffix:03d}"


def format_cents(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    cents = abs(int(cents))
    return f"{sign}{cents // 100}.{cents % 100:02d}"
