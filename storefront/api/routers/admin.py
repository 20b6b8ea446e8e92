# storefront/api/routers/admin.py
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_admin_user
from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.schemas import (
    OrderStatusIn,
    PaymentStatusIn,
    ProductIn,
    ProductUpdateIn,
    RoleIn,
    ShipOrderIn,
    StockIn,
)
from storefront.services.admin_service import AdminService

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(get_admin_user)])


def get_service(db: Session):
    return AdminService(db)


# orders

@router.get("/orders")
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: str | None = None,
    payment_status: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    search: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
):
    data = get_service(db).list_orders(
        page, limit, status, payment_status, start_date, end_date, search, sort_by, sort_order
    )
    return {"success": True, "data": data["orders"], "pagination": data["pagination"]}


@router.get("/orders/stats")
def order_stats(period: str = "30d", db: Session = Depends(get_db)):
    return {"success": True, "data": get_service(db).order_stats(period)}


@router.get("/orders/ready-to-ship")
def ready_to_ship(db: Session = Depends(get_db)):
    return {"success": True, "data": get_service(db).ready_to_ship()}


@router.get("/orders/pending-payment")
def pending_payment(db: Session = Depends(get_db)):
    return {"success": True, "data": get_service(db).pending_payment()}


@router.get("/orders/{order_id}")
def get_order(order_id: int, db: Session = Depends(get_db)):
    return {"success": True, "data": get_service(db).get_order(order_id)}


@router.put("/orders/{order_id}/status")
def update_order_status(order_id: int, payload: OrderStatusIn, db: Session = Depends(get_db)):
    data = get_service(db).update_order_status(order_id, payload.status, payload.notes)
    return {"success": True, "message": "Order status updated", "data": data}


@router.put("/orders/{order_id}/payment-status")
def update_payment_status(order_id: int, payload: PaymentStatusIn, db: Session = Depends(get_db)):
    data = get_service(db).update_payment_status(order_id, payload.payment_status, payload.payment_id)
    return {"success": True, "message": "Payment status updated", "data": data}


@router.post("/orders/{order_id}/ship")
def ship_order(order_id: int, payload: ShipOrderIn, db: Session = Depends(get_db)):
    data = get_service(db).ship_order(order_id, payload)
    return {"success": True, "message": "Order marked as shipped", "data": data}


# products

@router.get("/products")
def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: str | None = None,
    brand: str | None = None,
    search: str | None = None,
    in_stock: bool | None = None,
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
):
    data = get_service(db).list_products(page, limit, category, brand, search, in_stock, sort_by, sort_order)
    return {"success": True, "data": data["products"], "pagination": data["pagination"]}


@router.post("/products", status_code=201)
def create_product(payload: ProductIn, db: Session = Depends(get_db)):
    return {"success": True, "message": "Product created", "data": get_service(db).create_product(payload)}


@router.put("/products/{product_id}")
def update_product(product_id: int, payload: ProductUpdateIn, db: Session = Depends(get_db)):
    return {"success": True, "message": "Product updated", "data": get_service(db).update_product(product_id, payload)}


@router.put("/products/{product_id}/stock")
def update_stock(product_id: int, payload: StockIn, db: Session = Depends(get_db)):
    return {"success": True, "message": "Stock updated", "data": get_service(db).update_stock(product_id, payload.stock)}


@router.delete("/products/{product_id}")
def delete_product(product_id: int, db: Session = Depends(get_db)):
    get_service(db).delete_product(product_id)
    return {"success": True, "message": "Product deleted"}


# users

@router.get("/users")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: str | None = None,
    role: str | None = None,
    is_active: bool | None = None,
    db: Session = Depends(get_db),
):
    data = get_service(db).list_users(page, limit, search, role, is_active)
    return {"success": True, "data": data["users"], "pagination": data["pagination"]}


@router.put("/users/{user_id}/role")
def update_user_role(
    user_id: int,
    payload: RoleIn,
    admin: UserModel = Depends(get_admin_user),
    db: Session = Depends(get_db),
):
    data = get_service(db).update_user_role(user_id, payload.role, admin.id)
    return {"success": True, "message": "User role updated", "data": data}


# dashboard

@router.get("/dashboard")
def dashboard(db: Session = Depends(get_db)):
    return {"success": True, "data": get_service(db).dashboard()}
