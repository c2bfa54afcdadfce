# backend/storefront/schemas/product_schema.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    sku: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    price_cents: int
    original_price_cents: Optional[int] = None
    image: Optional[str] = None
    badge: Optional[str] = None
    stock: int
    status: str
    rating: Decimal
    reviews_count: int


class ReviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    product_id: int
    user_id: int
    rating: int
    review_text: Optional[str] = None
    created_at: Optional[datetime] = None


class ProductDetailOut(ProductOut):
    reviews: List[ReviewOut] = []


class CategoryOut(BaseModel):
    name: str
    product_count: int
