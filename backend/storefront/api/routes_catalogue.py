from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from storefront.api.deps import Caller, raise_http, require_user
from storefront.db import get_db
from storefront.errors import StorefrontError
from storefront.repositories.product_repo import ProductFilter, ProductRepository
from storefront.schemas.product_schema import CategoryOut, ProductDetailOut, ProductOut, ReviewOut
from storefront.services.review_service import ReviewService

router = APIRouter(tags=["catalogue"])
category_router = APIRouter(prefix="/api/categories", tags=["catalogue"])


class ReviewIn(BaseModel):
    rating: int
    review_text: Optional[str] = Field(None, max_length=5000)


@router.get("", summary="List products")
def list_products(
    q: Optional[str] = Query(None, description="search term"),
    category: Optional[str] = Query(None),
    min_price_cents: Optional[int] = Query(None, ge=0),
    max_price_cents: Optional[int] = Query(None, ge=0),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
):
    repo = ProductRepository(db)
    items, total = repo.list(
        ProductFilter(
            q=q,
            category=category,
            min_price_cents=min_price_cents,
            max_price_cents=max_price_cents,
            page=page,
            size=size,
        )
    )
    return {
        "items": [ProductOut.model_validate(p).model_dump() for p in items],
        "total": total,
        "page": page,
        "size": size,
    }


@router.get("/featured", summary="Featured products")
def featured_products(limit: int = Query(3, ge=1, le=20), db: Session = Depends(get_db)):
    items = ProductRepository(db).featured(limit=limit)
    return {"products": [ProductOut.model_validate(p).model_dump() for p in items]}


@router.get("/{product_id}", summary="Get product with its reviews")
def get_product(product_id: int, db: Session = Depends(get_db)):
    p = ProductRepository(db).get_active(product_id)
    if not p:
        raise HTTPException(status_code=404, detail={"message": "Product not found"})
    reviews = ReviewService(db).list_for_product(product_id)
    out = ProductDetailOut.model_validate(p)
    out.reviews = [ReviewOut.model_validate(r) for r in reviews]
    return out.model_dump()


@router.post("/{product_id}/reviews", summary="Review a product", status_code=status.HTTP_201_CREATED)
def add_review(
    product_id: int,
    payload: ReviewIn,
    caller: Caller = Depends(require_user),
    db: Session = Depends(get_db),
):
    svc = ReviewService(db)
    try:
        review = svc.add_review(product_id, caller.user_id, payload.rating, payload.review_text)
    except StorefrontError as e:
        raise_http(e)
    return {"message": "Review added successfully", "review": ReviewOut.model_validate(review).model_dump()}


@category_router.get("", summary="List categories with active product counts")
def list_categories(db: Session = Depends(get_db)):
    rows = ProductRepository(db).categories()
    return {
        "categories": [
            CategoryOut(name=name, product_count=count).model_dump() for name, count in rows
        ]
    }
