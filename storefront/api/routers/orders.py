# storefront/api/routers/orders.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_identity
from storefront.data.database import get_db
from storefront.domain.identity import Identity
from storefront.domain.schemas import CancelOrderIn
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/api/orders", tags=["orders"])


def get_service(db: Session):
    return OrderService(db)


@router.get("")
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: str | None = None,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": get_service(db).list_orders(identity, page, limit, status)}


@router.get("/summary/stats")
def order_summary(identity: Identity = Depends(get_identity), db: Session = Depends(get_db)):
    return {"success": True, "data": get_service(db).get_summary(identity)}


@router.get("/{order_number}")
def get_order(
    order_number: str,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": get_service(db).get_by_order_number(order_number, identity)}


@router.post("/{order_id}/cancel")
def cancel_order(
    order_id: int,
    payload: CancelOrderIn | None = None,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    reason = payload.reason if payload else None
    order = get_service(db).cancel_order(order_id, identity, reason)
    return {"success": True, "message": "Order cancelled successfully", "data": order}


@router.get("/{order_id}/tracking")
def tracking(
    order_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": get_service(db).get_tracking(order_id, identity)}
