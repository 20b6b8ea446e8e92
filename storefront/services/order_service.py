# storefront/services/order_service.py
import secrets
import time
from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import Dict, Any, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel, OrderItemModel
from storefront.domain.errors import (
    DomainError,
    EmptyCart,
    InsufficientStock,
    InvalidIdentity,
    InvalidTransition,
    NotFound,
    ProductUnavailable,
    ValidationError,
)
from storefront.domain.identity import Identity
from storefront.domain.schemas import CheckoutIn, CheckoutValidateIn
from storefront.domain.states import ORDER_STATUSES, PAYMENT_STATUSES, CANCELLABLE_STATUSES
from storefront.repos.order_repo import OrderRepo
from storefront.repos.payment_repo import PaymentRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services.cart_service import CartService, line_subtotal, line_discount
from storefront.services.lock_service import LockService
from storefront.utils.settings import CURRENCY
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


SHIPPING_OPTIONS = [
    {
        "id": "standard",
        "name": "Standard shipping",
        "description": "Delivery in 5 to 7 business days",
        "price": Decimal("15.00"),
        "estimated_days": "5-7",
    },
    {
        "id": "express",
        "name": "Express shipping",
        "description": "Delivery in 2 to 3 business days",
        "price": Decimal("25.00"),
        "estimated_days": "2-3",
    },
    {
        "id": "same_day",
        "name": "Same day delivery",
        "description": "Delivery on the same day (metro area only)",
        "price": Decimal("35.00"),
        "estimated_days": "0",
    },
]

PAYMENT_METHOD_OPTIONS = [
    {
        "id": "credit_card",
        "name": "Credit card",
        "description": "Visa, Mastercard, Elo, American Express",
        "installments": True,
        "max_installments": 12,
    },
    {
        "id": "debit_card",
        "name": "Debit card",
        "description": "Visa, Mastercard, Elo",
        "installments": False,
    },
    {
        "id": "pix",
        "name": "PIX",
        "description": "Instant payment",
        "installments": False,
        "discount": 5,
    },
    {
        "id": "boleto",
        "name": "Boleto",
        "description": "Due in 3 business days",
        "installments": False,
    },
]


def generate_order_number() -> str:
    """VK<epoch ms><6 random digits>"""
    return f"VK{int(time.time() * 1000)}{secrets.randbelow(1_000_000):06d}"


def order_item_to_dict(item: OrderItemModel) -> Dict[str, Any]:
    return {
        "id": item.id,
        "order_id": item.order_id,
        "product_id": item.product_id,
        "quantity": item.quantity,
        "unit_price": item.unit_price,
        "total_price": item.total_price,
        "product_title": item.product_title,
        "product_image": item.product_image,
        "product_brand": item.product_brand,
    }


def payment_attempt_to_dict(attempt) -> Dict[str, Any] | None:
    if attempt is None:
        return None
    return {
        "transaction_id": attempt.transaction_id,
        "order_id": attempt.order_id,
        "payment_method": attempt.method,
        "status": attempt.status,
        "payment_data": attempt.raw_response or {},
        "expires_at": attempt.expires_at,
        "created_at": attempt.created_at,
        "updated_at": attempt.updated_at,
    }


def order_to_dict(order: OrderModel, with_items: bool = True) -> Dict[str, Any]:
    data = {
        "id": order.id,
        "order_number": order.order_number,
        "user_id": order.user_id,
        "session_id": order.session_id,
        "status": order.status,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "payment_id": order.payment_id,
        "subtotal": order.subtotal,
        "discount": order.discount,
        "shipping": order.shipping,
        "tax": order.tax,
        "total": order.total,
        "currency": order.currency,
        "shipping_address": order.shipping_address or {},
        "billing_address": order.billing_address or {},
        "customer_name": order.customer_name,
        "customer_email": order.customer_email,
        "customer_phone": order.customer_phone,
        "notes": order.notes,
        "admin_notes": order.admin_notes,
        "tracking_number": order.tracking_number,
        "shipping_company": order.shipping_company,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
        "shipped_at": order.shipped_at,
        "delivered_at": order.delivered_at,
    }
    if with_items:
        data["items"] = [order_item_to_dict(i) for i in order.items]
    return data


class OrderService:
    """
    Order domain: checkout (cart -> order), status transitions and
    customer-facing queries.
    """

    def __init__(self, db: Session, lock_service: LockService | None = None):
        self.db = db
        self.repo = OrderRepo(db)
        self.products = ProductRepo(db)
        self.payments = PaymentRepo(db)
        self.cart = CartService(db)
        self.lock_service = lock_service

    # checkout

    @staticmethod
    def shipping_options() -> List[Dict[str, Any]]:
        return SHIPPING_OPTIONS

    @staticmethod
    def payment_methods() -> List[Dict[str, Any]]:
        return PAYMENT_METHOD_OPTIONS

    def _check_stock(self, items) -> List[str]:
        """Re-reads live stock for each line. Returns a list of problems."""
        problems = []
        for item in items:
            product = self.products.get_fresh(item.product_id)
            if product is None:
                problems.append(f"Product {item.product_id} not found")
            elif not product.is_active:
                problems.append(f"{product.title} is no longer available")
            elif product.stock < item.quantity:
                problems.append(f"Insufficient stock for {product.title}. Available: {product.stock}")
        return problems

    def validate_checkout(self, payload: CheckoutValidateIn, identity: Identity | None) -> Dict[str, Any]:
        if identity is None:
            raise InvalidIdentity()

        items = self.cart.repo.list_items(identity)
        if not items:
            raise EmptyCart()

        problems = self._check_stock(items)
        if problems:
            raise DomainError("Inventory problems", errors=problems)

        summary = self.cart.get_cart_summary(identity)
        return {
            "validated_data": payload.model_dump(mode="json"),
            "cart_summary": summary,
            "totals": {
                "subtotal": summary["subtotal"],
                "discount": summary["total_discount"],
                "shipping": payload.shipping,
                "tax": payload.tax,
                "total": summary["subtotal"] + payload.shipping + payload.tax,
            },
        }

    def create_order(self, payload: CheckoutIn, identity: Identity | None) -> Dict[str, Any]:
        if identity is None:
            raise InvalidIdentity()

        if self.lock_service is None:
            return self._create_order(payload, identity)

        with self.lock_service.checkout_lock(identity.key):
            return self._create_order(payload, identity)

    def _create_order(self, payload: CheckoutIn, identity: Identity) -> Dict[str, Any]:
        """
        1. load cart, 2. re-validate live stock, 3. totals, 4. order number,
        5. persist order + items (items failure deletes the order),
        7. best-effort stock decrement, 8. clear cart.
        Steps 1-3 have no side effects.
        """
        items = self.cart.repo.list_items(identity)
        if not items:
            raise EmptyCart()

        for item in items:
            product = self.products.get_fresh(item.product_id)
            if product is None:
                raise ProductUnavailable(f"Product {item.product_id} not found")
            if not product.is_active:
                raise ProductUnavailable(f"Product {product.title} is no longer available")
            if product.stock < item.quantity:
                raise InsufficientStock(
                    f"Insufficient stock for {product.title}. Available stock: {product.stock}"
                )

        subtotal = line_subtotal(items)
        discount = line_discount(items)
        shipping = Decimal(payload.shipping)
        tax = Decimal(payload.tax)
        total = subtotal + shipping + tax

        shipping_address = payload.shipping_address.model_dump()
        billing_address = (payload.billing_address or payload.shipping_address).model_dump()

        order = self.repo.create_order(
            OrderModel(
                order_number=generate_order_number(),
                status="pending",
                payment_status="pending",
                payment_method=payload.payment_method,
                subtotal=subtotal,
                discount=discount,
                shipping=shipping,
                tax=tax,
                total=total,
                currency=CURRENCY,
                shipping_address=shipping_address,
                billing_address=billing_address,
                customer_name=payload.customer_name,
                customer_email=payload.customer_email,
                customer_phone=payload.customer_phone,
                notes=payload.notes,
                **identity.owner_fields(),
            )
        )
        logger.info(f"Order {order.order_number} (id {order.id}) created for {identity.key}")

        order_items = [
            OrderItemModel(
                order_id=order.id,
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.price,
                total_price=item.price * item.quantity,
                product_title=item.product.title if item.product else "Unnamed product",
                product_image=item.product.image if item.product else None,
                product_brand=item.product.brand if item.product else None,
            )
            for item in items
        ]

        try:
            self.repo.add_items(order_items)
        except Exception:
            logger.exception(f"Failed to persist items of order {order.id}, deleting the order")
            self.repo.rollback()
            self.repo.delete_order(order.id)
            raise

        # best-effort: the order stands even if a decrement fails
        for item in items:
            try:
                rows = self.products.decrement_stock(item.product_id, item.quantity)
                if rows == 0:
                    logger.warning(
                        f"Stock of product {item.product_id} no longer covers {item.quantity} "
                        f"units for order {order.order_number}; stock left unchanged"
                    )
            except SQLAlchemyError:
                self.repo.rollback()
                logger.exception(
                    f"Failed to decrement stock of product {item.product_id} for order {order.order_number}"
                )

        self.cart.clear_cart(identity)

        return order_to_dict(self.repo.get_order(order.id))

    # status transitions

    def update_status(self, order_id: int, new_status: str, notes: str | None = None) -> Dict[str, Any]:
        """No state-graph enforcement here; callers only invoke legal transitions."""
        if new_status not in ORDER_STATUSES:
            raise ValidationError("Invalid order status")

        order = self.repo.get_order(order_id)
        if not order:
            raise NotFound("Order not found")

        now = datetime.now(timezone.utc)
        data = {"status": new_status, "updated_at": now}
        if new_status == "shipped":
            data["shipped_at"] = now
        elif new_status == "delivered":
            data["delivered_at"] = now
        if notes:
            data["admin_notes"] = notes

        updated = self.repo.update_order(order, data)
        logger.info(f"Order {order_id} status -> {new_status}")
        return order_to_dict(updated)

    def update_payment_status(self, order_id: int, payment_status: str, payment_ref: str | None = None) -> Dict[str, Any]:
        if payment_status not in PAYMENT_STATUSES:
            raise ValidationError("Invalid payment status")

        order = self.repo.get_order(order_id)
        if not order:
            raise NotFound("Order not found")

        data = {"payment_status": payment_status, "updated_at": datetime.now(timezone.utc)}
        if payment_ref:
            data["payment_id"] = payment_ref
        if payment_status == "paid":
            data["status"] = "confirmed"

        updated = self.repo.update_order(order, data)
        logger.info(f"Order {order_id} payment status -> {payment_status}")
        return order_to_dict(updated)

    def cancel_order(self, order_id: int, identity: Identity, reason: str | None = None) -> Dict[str, Any]:
        order = self.repo.get_for_identity(order_id, identity)
        if not order:
            raise NotFound("Order not found")

        if order.status not in CANCELLABLE_STATUSES:
            raise InvalidTransition("This order cannot be cancelled in its current status")

        was_paid = order.payment_status == "paid"
        notes = f"Cancelled by customer. Reason: {reason or 'not specified'}"
        result = self.update_status(order_id, "cancelled", notes)

        if was_paid:
            # bookkeeping only, no money moves
            result = self.update_payment_status(order_id, "refunded")

        return result

    # queries

    def get_order(self, order_id: int, identity: Identity) -> Dict[str, Any]:
        order = self.repo.get_for_identity(order_id, identity)
        if not order:
            raise NotFound("Order not found")
        return order_to_dict(order)

    def get_by_order_number(self, order_number: str, identity: Identity) -> Dict[str, Any]:
        order = self.repo.get_by_number(order_number, identity)
        if not order:
            raise NotFound("Order not found")

        data = order_to_dict(order)
        data["payment_details"] = payment_attempt_to_dict(self.payments.latest_for_order(order.id))
        return data

    def list_orders(self, identity: Identity, page: int = 1, limit: int = 10, status: str | None = None) -> Dict[str, Any]:
        offset = (page - 1) * limit
        orders, total = self.repo.list_for_identity(identity, limit, offset, status)
        return {
            "orders": [order_to_dict(o) for o in orders],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": -(-total // limit) if limit else 0,
            },
        }

    def get_tracking(self, order_id: int, identity: Identity) -> Dict[str, Any]:
        order = self.repo.get_for_identity(order_id, identity)
        if not order:
            raise NotFound("Order not found")

        timeline = [{
            "status": "pending",
            "title": "Order placed",
            "description": "Your order was received and is being processed",
            "date": order.created_at,
            "completed": True,
        }]

        if order.payment_status == "paid":
            timeline.append({
                "status": "paid",
                "title": "Payment confirmed",
                "description": "The payment for your order was confirmed",
                "date": order.updated_at,
                "completed": True,
            })

        if order.status == "confirmed":
            timeline.append({
                "status": "confirmed",
                "title": "Order confirmed",
                "description": "Your order is being prepared for shipping",
                "date": order.updated_at,
                "completed": True,
            })

        if order.status in ("shipped", "delivered"):
            description = "Your order was shipped"
            if order.tracking_number:
                description = f"Your order was shipped. Tracking code: {order.tracking_number}"
            timeline.append({
                "status": "shipped",
                "title": "Order shipped",
                "description": description,
                "date": order.shipped_at,
                "completed": True,
                "tracking_number": order.tracking_number,
                "shipping_company": order.shipping_company,
            })

        if order.status == "delivered":
            timeline.append({
                "status": "delivered",
                "title": "Order delivered",
                "description": "Your order was delivered",
                "date": order.delivered_at,
                "completed": True,
            })

        if order.status == "cancelled":
            timeline.append({
                "status": "cancelled",
                "title": "Order cancelled",
                "description": "Your order was cancelled",
                "date": order.updated_at,
                "completed": True,
                "is_final": True,
            })

        # next step
        if order.status == "pending" and order.payment_status == "pending":
            timeline.append({
                "status": "pending_payment",
                "title": "Awaiting payment",
                "description": "Complete the payment to continue with your order",
                "date": None,
                "completed": False,
            })
        elif order.status == "confirmed":
            timeline.append({
                "status": "preparing",
                "title": "Preparing shipment",
                "description": "Your order is being prepared for shipping",
                "date": None,
                "completed": False,
            })
        elif order.status == "shipped":
            timeline.append({
                "status": "in_transit",
                "title": "In transit",
                "description": "Your order is on its way",
                "date": None,
                "completed": False,
            })

        estimated_delivery = None
        if order.status == "shipped" and not order.delivered_at:
            estimated_delivery = datetime.now(timezone.utc) + timedelta(days=5)

        return {
            "order_number": order.order_number,
            "current_status": order.status,
            "payment_status": order.payment_status,
            "timeline": timeline,
            "estimated_delivery": estimated_delivery,
        }

    def get_summary(self, identity: Identity) -> Dict[str, Any]:
        orders = self.repo.all_for_identity(identity)

        by_status: Dict[str, int] = {}
        for order in orders:
            by_status[order.status] = by_status.get(order.status, 0) + 1

        return {
            "total_orders": len(orders),
            "total_spent": sum((o.total for o in orders), Decimal("0.00")),
            "orders_by_status": by_status,
            "recent_orders": [order_to_dict(o, with_items=False) for o in orders[:3]],
        }
