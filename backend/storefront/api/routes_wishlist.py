from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from storefront.api.deps import Caller, raise_http, require_user
from storefront.db import get_db
from storefront.errors import StorefrontError
from storefront.schemas.product_schema import ProductOut
from storefront.services.wishlist_service import WishlistService

router = APIRouter(prefix="/api/wishlist", tags=["wishlist"])


class WishlistAddIn(BaseModel):
    product_id: int = Field(..., ge=1)


@router.get("", summary="List wishlist")
def list_wishlist(caller: Caller = Depends(require_user), db: Session = Depends(get_db)):
    items = WishlistService(db).list(caller.user_id)
    return {
        "items": [
            {
                "id": it.id,
                "added_at": it.created_at,
                "product": ProductOut.model_validate(it.product).model_dump(),
            }
            for it in items
        ],
        "count": len(items),
    }


@router.get("/check/{product_id}", summary="Is a product on the wishlist")
def check_wishlist(product_id: int, caller: Caller = Depends(require_user), db: Session = Depends(get_db)):
    return {"in_wishlist": WishlistService(db).contains(caller.user_id, product_id)}


@router.post("/add", summary="Add to wishlist", status_code=status.HTTP_201_CREATED)
def add_to_wishlist(
    payload: WishlistAddIn, caller: Caller = Depends(require_user), db: Session = Depends(get_db)
):
    try:
        item = WishlistService(db).add(caller.user_id, payload.product_id)
    except StorefrontError as e:
        raise_http(e)
    return {"message": "Product added to wishlist", "id": item.id}


@router.delete("/clear", summary="Clear wishlist")
def clear_wishlist(caller: Caller = Depends(require_user), db: Session = Depends(get_db)):
    removed = WishlistService(db).clear(caller.user_id)
    return {"message": "Wishlist cleared", "removed": removed}


@router.delete("/remove/{product_id}", summary="Remove from wishlist")
def remove_from_wishlist(
    product_id: int, caller: Caller = Depends(require_user), db: Session = Depends(get_db)
):
    try:
        WishlistService(db).remove(caller.user_id, product_id)
    except StorefrontError as e:
        raise_http(e)
    return {"message": "Product removed from wishlist"}
