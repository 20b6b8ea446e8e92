# storefront/api/routers/cart.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_identity
from storefront.data.database import get_db
from storefront.domain.identity import Identity
from storefront.domain.schemas import CartItemIn, CartQuantityIn
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/api/cart", tags=["cart"])


def get_service(db: Session):
    return CartService(db)


@router.get("")
def get_cart(identity: Identity = Depends(get_identity), db: Session = Depends(get_db)):
    return {"success": True, "data": get_service(db).get_cart(identity)}


@router.get("/summary")
def get_summary(identity: Identity = Depends(get_identity), db: Session = Depends(get_db)):
    return {"success": True, "data": get_service(db).get_cart_summary(identity)}


@router.post("/items")
def add_item(
    payload: CartItemIn,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    item = get_service(db).add_to_cart(payload.product_id, payload.quantity, identity)
    return {"success": True, "message": "Product added to cart", "data": item}


@router.put("/items/{item_id}")
def update_item(
    item_id: int,
    payload: CartQuantityIn,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    item = get_service(db).update_quantity(item_id, payload.quantity, identity)
    if item is None:
        return {"success": True, "message": "Product removed from cart"}
    return {"success": True, "message": "Quantity updated", "data": item}


@router.delete("/items/{item_id}")
def remove_item(
    item_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    get_service(db).remove_from_cart(item_id, identity)
    return {"success": True, "message": "Product removed from cart"}


@router.delete("")
def clear_cart(identity: Identity = Depends(get_identity), db: Session = Depends(get_db)):
    get_service(db).clear_cart(identity)
    return {"success": True, "message": "Cart cleared"}
