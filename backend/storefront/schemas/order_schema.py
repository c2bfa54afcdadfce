from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class OrderLineOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    product_id: Optional[int] = None
    product_name: str
    unit_price_cents: int
    quantity: int
    line_total_cents: int


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    method: str
    amount_cents: int
    status: str
    transaction_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class OrderHeaderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    order_number: str
    user_id: int
    status: str
    subtotal_cents: int
    shipping_cents: int
    tax_cents: int
    total_cents: int
    shipping_method: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderOut(OrderHeaderOut):
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: str
    shipping_address: str
    shipping_city: str
    shipping_state: str
    shipping_zip_code: str
    delivery_notes: Optional[str] = None
    lines: List[OrderLineOut] = []
    payment: Optional[PaymentOut] = None
