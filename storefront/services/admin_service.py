# storefront/services/admin_service.py
from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import Dict, Any, List

from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel
from storefront.domain.errors import InvalidTransition, NotFound, ValidationError
from storefront.domain.schemas import ProductIn, ProductUpdateIn, ShipOrderIn
from storefront.domain.states import USER_ROLES
from storefront.repos.order_repo import OrderRepo
from storefront.repos.payment_repo import PaymentRepo
from storefront.repos.product_repo import ProductRepo
from storefront.repos.user_repo import UserRepo
from storefront.services.auth_service import user_to_dict
from storefront.services.order_service import OrderService, order_to_dict, payment_attempt_to_dict
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

PERIODS = {
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
    "1y": timedelta(days=365),
}

LOW_STOCK_THRESHOLD = 10


def admin_product_to_dict(product: ProductModel) -> Dict[str, Any]:
    return {
        "id": product.id,
        "title": product.title,
        "description": product.description,
        "brand": product.brand,
        "category": product.category,
        "image": product.image,
        "price": product.price,
        "original_price": product.original_price,
        "stock": product.stock,
        "is_active": product.is_active,
        "is_featured": product.is_featured,
        "created_at": product.created_at,
        "updated_at": product.updated_at,
    }


def _pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    return {"page": page, "limit": limit, "total": total, "pages": -(-total // limit) if limit else 0}


def order_stats(orders) -> Dict[str, Any]:
    revenue = sum((o.total for o in orders), Decimal("0.00"))
    by_status: Dict[str, int] = {}
    by_payment: Dict[str, int] = {}
    for o in orders:
        by_status[o.status] = by_status.get(o.status, 0) + 1
        by_payment[o.payment_status] = by_payment.get(o.payment_status, 0) + 1

    return {
        "total_orders": len(orders),
        "total_revenue": revenue,
        "orders_by_status": by_status,
        "orders_by_payment_status": by_payment,
        "average_order_value": (revenue / len(orders)).quantize(Decimal("0.01")) if orders else Decimal("0.00"),
    }


class AdminService:
    """Back-office views and commands. Callers are already checked for the admin role."""

    def __init__(self, db: Session):
        self.orders = OrderService(db)
        self.order_repo = OrderRepo(db)
        self.payments = PaymentRepo(db)
        self.products = ProductRepo(db)
        self.users = UserRepo(db)

    # orders

    def list_orders(
        self,
        page: int = 1,
        limit: int = 20,
        status: str | None = None,
        payment_status: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        search: str | None = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Dict[str, Any]:
        rows, total = self.order_repo.search(
            limit=limit,
            offset=(page - 1) * limit,
            status=status,
            payment_status=payment_status,
            start_date=start_date,
            end_date=end_date,
            search=search,
            sort_by=sort_by,
            ascending=sort_order == "asc",
        )
        return {
            "orders": [order_to_dict(o, with_items=False) for o in rows],
            "pagination": _pagination(page, limit, total),
        }

    def get_order(self, order_id: int) -> Dict[str, Any]:
        order = self.order_repo.get_order(order_id)
        if not order:
            raise NotFound("Order not found")

        data = order_to_dict(order)
        data["payments"] = [payment_attempt_to_dict(a) for a in self.payments.list_for_order(order.id)]
        return data

    def update_order_status(self, order_id: int, status: str, notes: str | None = None) -> Dict[str, Any]:
        result = self.orders.update_status(order_id, status, notes)
        logger.info(f"[ADMIN] order {order_id} status set to {status}")
        return result

    def update_payment_status(self, order_id: int, payment_status: str, payment_ref: str | None = None) -> Dict[str, Any]:
        result = self.orders.update_payment_status(order_id, payment_status, payment_ref)
        logger.info(f"[ADMIN] order {order_id} payment status set to {payment_status}")
        return result

    def order_stats(self, period: str = "30d") -> Dict[str, Any]:
        since = datetime.now(timezone.utc) - PERIODS.get(period, PERIODS["30d"])
        stats = order_stats(self.order_repo.created_since(since))
        stats["period"] = period if period in PERIODS else "30d"
        return stats

    def ready_to_ship(self) -> List[Dict[str, Any]]:
        orders = self.order_repo.list_by_state(status="confirmed", payment_status="paid")
        result = []
        for o in orders:
            data = order_to_dict(o)
            data["items_count"] = len(o.items)
            result.append(data)
        return result

    def ship_order(self, order_id: int, payload: ShipOrderIn) -> Dict[str, Any]:
        order = self.order_repo.get_order(order_id)
        if not order:
            raise NotFound("Order not found")

        if order.status != "confirmed" or order.payment_status != "paid":
            raise InvalidTransition("The order must be confirmed and paid to be shipped")

        now = datetime.now(timezone.utc)
        data = {
            "status": "shipped",
            "tracking_number": payload.tracking_number,
            "shipping_company": payload.shipping_company,
            "shipped_at": now,
            "updated_at": now,
        }
        if payload.notes:
            data["admin_notes"] = payload.notes

        updated = self.order_repo.update_order(order, data)
        logger.info(f"[ADMIN] order {order_id} shipped (tracking {payload.tracking_number})")
        return order_to_dict(updated)

    def pending_payment(self) -> List[Dict[str, Any]]:
        result = []
        for o in self.order_repo.list_by_state(payment_status="pending"):
            data = order_to_dict(o, with_items=False)
            data["payments"] = [payment_attempt_to_dict(a) for a in self.payments.list_for_order(o.id)]
            result.append(data)
        return result

    # products

    def list_products(
        self,
        page: int = 1,
        limit: int = 20,
        category: str | None = None,
        brand: str | None = None,
        search: str | None = None,
        in_stock: bool | None = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Dict[str, Any]:
        rows, total = self.products.search(
            limit=limit,
            offset=(page - 1) * limit,
            category=category,
            brand=brand,
            search=search,
            in_stock=in_stock,
            sort_by=sort_by,
            ascending=sort_order == "asc",
        )
        return {
            "products": [admin_product_to_dict(p) for p in rows],
            "pagination": _pagination(page, limit, total),
        }

    def create_product(self, payload: ProductIn) -> Dict[str, Any]:
        product = self.products.create(ProductModel(**payload.model_dump()))
        logger.info(f"[ADMIN] product {product.id} created")
        return admin_product_to_dict(product)

    def update_product(self, product_id: int, payload: ProductUpdateIn) -> Dict[str, Any]:
        product = self.products.get(product_id)
        if not product:
            raise NotFound("Product not found")

        data = payload.model_dump(exclude_unset=True)
        if not data:
            raise ValidationError("No valid fields to update")
        data["updated_at"] = datetime.now(timezone.utc)

        updated = self.products.update(product, data)
        logger.info(f"[ADMIN] product {product_id} updated: {sorted(k for k in data if k != 'updated_at')}")
        return admin_product_to_dict(updated)

    def update_stock(self, product_id: int, stock: int) -> Dict[str, Any]:
        product = self.products.get(product_id)
        if not product:
            raise NotFound("Product not found")

        previous = product.stock
        updated = self.products.update(product, {"stock": stock, "updated_at": datetime.now(timezone.utc)})
        logger.info(f"[ADMIN] product {product_id} stock {previous} -> {stock}")
        return admin_product_to_dict(updated)

    def delete_product(self, product_id: int) -> None:
        product = self.products.get(product_id)
        if not product:
            raise NotFound("Product not found")

        self.products.delete(product)
        logger.info(f"[ADMIN] product {product_id} deleted")

    # users

    def list_users(
        self,
        page: int = 1,
        limit: int = 20,
        search: str | None = None,
        role: str | None = None,
        is_active: bool | None = None,
    ) -> Dict[str, Any]:
        rows, total = self.users.search(
            limit=limit,
            offset=(page - 1) * limit,
            search=search,
            role=role,
            is_active=is_active,
        )
        return {
            "users": [user_to_dict(u) for u in rows],
            "pagination": _pagination(page, limit, total),
        }

    def update_user_role(self, user_id: int, role: str, acting_user_id: int) -> Dict[str, Any]:
        if role not in USER_ROLES:
            raise ValidationError("Invalid role")

        if user_id == acting_user_id and role != "admin":
            raise ValidationError("You cannot remove your own admin role")

        user = self.users.get_user(user_id)
        if not user:
            raise NotFound("User not found")

        updated = self.users.update_user(user, {"role": role, "updated_at": datetime.now(timezone.utc)})
        logger.info(f"[ADMIN] user {user_id} role set to {role} by user {acting_user_id}")
        return {"id": updated.id, "email": updated.email, "role": updated.role}

    # dashboard

    def dashboard(self) -> Dict[str, Any]:
        since = datetime.now(timezone.utc) - timedelta(days=30)

        new_users = self.users.created_since(since)
        by_role: Dict[str, int] = {}
        for u in new_users:
            by_role[u.role] = by_role.get(u.role, 0) + 1

        products = self.products.list_all()
        by_category: Dict[str, int] = {}
        for p in products:
            by_category[p.category] = by_category.get(p.category, 0) + 1

        return {
            "orders": order_stats(self.order_repo.created_since(since)),
            "users": {
                "new_this_month": len(new_users),
                "active": sum(1 for u in new_users if u.is_active),
                "by_role": by_role,
            },
            "products": {
                "total": len(products),
                "active": sum(1 for p in products if p.is_active),
                "out_of_stock": sum(1 for p in products if p.stock == 0),
                "low_stock": sum(1 for p in products if 0 < p.stock <= LOW_STOCK_THRESHOLD),
                "by_category": by_category,
            },
        }
