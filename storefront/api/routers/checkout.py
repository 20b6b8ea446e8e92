# storefront/api/routers/checkout.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_identity, get_lock_service
from storefront.data.database import get_db
from storefront.domain.identity import Identity
from storefront.domain.schemas import CheckoutIn, CheckoutValidateIn
from storefront.services.lock_service import LockService
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/api/checkout", tags=["checkout"])


@router.post("/validate")
def validate_checkout(
    payload: CheckoutValidateIn,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    data = OrderService(db).validate_checkout(payload, identity)
    return {"success": True, "message": "Checkout data is valid", "data": data}


@router.post("/create-order", status_code=201)
def create_order(
    payload: CheckoutIn,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    locks: LockService = Depends(get_lock_service),
):
    """
    Turns the caller's cart into an order.
    Stock is re-checked, the cart is cleared on success.
    """
    order = OrderService(db, lock_service=locks).create_order(payload, identity)
    return {"success": True, "message": "Order created successfully", "data": order}


@router.get("/order/{order_number}")
def get_order(
    order_number: str,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": OrderService(db).get_by_order_number(order_number, identity)}


@router.get("/orders")
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": OrderService(db).list_orders(identity, page, limit)}


@router.get("/shipping-options")
def shipping_options():
    return {"success": True, "data": OrderService.shipping_options()}


@router.get("/payment-methods")
def payment_methods():
    return {"success": True, "data": OrderService.payment_methods()}
