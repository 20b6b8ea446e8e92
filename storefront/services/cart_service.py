# storefront/services/cart_service.py
from decimal import Decimal
from typing import Dict, Any, List

from sqlalchemy.orm import Session

from storefront.data.models.cart_item import CartItemModel
from storefront.domain.errors import InsufficientStock, InvalidIdentity, NotFound, ValidationError
from storefront.domain.identity import Identity, SessionIdentity
from storefront.repos.cart_repo import CartRepo
from storefront.repos.product_repo import ProductRepo
from storefront.utils.settings import CART_ORPHAN_FALLBACK
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

ZERO = Decimal("0.00")


def product_to_dict(product) -> Dict[str, Any] | None:
    if product is None:
        return None
    return {
        "id": product.id,
        "title": product.title,
        "brand": product.brand,
        "category": product.category,
        "price": product.price,
        "original_price": product.original_price,
        "image": product.image,
        "stock": product.stock,
        "is_active": product.is_active,
    }


def cart_item_to_dict(item: CartItemModel) -> Dict[str, Any]:
    return {
        "id": item.id,
        "user_id": item.user_id,
        "session_id": item.session_id,
        "product_id": item.product_id,
        "quantity": item.quantity,
        "price": item.price,
        "created_at": item.created_at,
        "updated_at": item.updated_at,
        "product": product_to_dict(item.product),
    }


def line_subtotal(items: List[CartItemModel]) -> Decimal:
    return sum((i.price * i.quantity for i in items), ZERO)


def line_discount(items: List[CartItemModel]) -> Decimal:
    """Σ (original_price - current_price) × qty over items whose product has an original price."""
    return sum(
        (
            (i.product.original_price - i.product.price) * i.quantity
            for i in items
            if i.product is not None and i.product.original_price is not None
        ),
        ZERO,
    )


class CartService:
    """
    Cart use cases scoped to the caller identity.
    Commands (add, update, remove, clear, migrate) and queries (get, summary).
    """

    def __init__(self, db: Session, orphan_fallback: bool = CART_ORPHAN_FALLBACK):
        self.repo = CartRepo(db)
        self.products = ProductRepo(db)
        self.orphan_fallback = orphan_fallback

    # queries

    def get_items(self, identity: Identity | None) -> List[CartItemModel]:
        if identity is None:
            raise InvalidIdentity()

        items = self.repo.list_items(identity)

        if not items and self.orphan_fallback and isinstance(identity, SessionIdentity):
            # rows moved to a user on login, still addressed by the session
            # they came from; never rows of any other session
            items = self.repo.list_migrated_from(identity.session_id)
            if items:
                logger.info(f"Serving {len(items)} migrated cart rows for session {identity.session_id}")

        return items

    def get_cart(self, identity: Identity | None) -> List[Dict[str, Any]]:
        return [cart_item_to_dict(i) for i in self.get_items(identity)]

    def get_cart_summary(self, identity: Identity | None) -> Dict[str, Any]:
        items = self.get_items(identity)
        subtotal = line_subtotal(items)

        # discount is informational, total is not reduced here
        return {
            "items": [cart_item_to_dict(i) for i in items],
            "item_count": len(items),
            "total_quantity": sum(i.quantity for i in items),
            "subtotal": subtotal,
            "total_discount": line_discount(items),
            "total": subtotal,
        }

    # commands

    def add_to_cart(self, product_id: int, quantity: int, identity: Identity | None) -> Dict[str, Any]:
        if identity is None:
            raise InvalidIdentity()
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")

        product = self.products.get_active(product_id)
        if not product:
            raise NotFound("Product not found or unavailable")

        if product.stock < quantity:
            raise InsufficientStock("Insufficient stock")

        existing = self.repo.get_item_by_product(identity, product_id)

        if existing:
            new_quantity = existing.quantity + quantity
            if product.stock < new_quantity:
                raise InsufficientStock("Insufficient stock for the requested quantity")

            logger.info(
                f"Product {product_id} already in cart of {identity.key}, "
                f"quantity {existing.quantity} -> {new_quantity}"
            )
            existing.quantity = new_quantity
            existing.price = product.price
            item = self.repo.save(existing)
        else:
            logger.info(f"Adding product {product_id} to cart of {identity.key}")
            item = self.repo.save(
                CartItemModel(
                    product_id=product_id,
                    quantity=quantity,
                    price=product.price,
                    **identity.owner_fields(),
                )
            )

        return cart_item_to_dict(item)

    def update_quantity(self, item_id: int, quantity: int, identity: Identity | None) -> Dict[str, Any] | None:
        """Returns the updated line, or None when the line was removed."""
        if identity is None:
            raise InvalidIdentity()

        if quantity <= 0:
            self.remove_from_cart(item_id, identity)
            return None

        item = self.repo.get_item(item_id, identity)
        if not item:
            raise NotFound("Cart item not found")

        if item.product is None or item.product.stock < quantity:
            raise InsufficientStock("Insufficient stock")

        item.quantity = quantity
        return cart_item_to_dict(self.repo.save(item))

    def remove_from_cart(self, item_id: int, identity: Identity | None) -> int:
        if identity is None:
            raise InvalidIdentity()

        removed = self.repo.delete_item(item_id, identity)
        logger.info(f"Removed cart item {item_id} of {identity.key} (rows: {removed})")
        return removed

    def clear_cart(self, identity: Identity | None) -> int:
        if identity is None:
            raise InvalidIdentity()

        removed = self.repo.clear(identity)
        logger.info(f"Cleared cart of {identity.key} (rows: {removed})")
        return removed

    def migrate_session_cart(self, session_id: str, user_id: int) -> int:
        """Moves every row owned by the session to the user. No merge with rows the user already has."""
        moved = self.repo.reassign_session(session_id, user_id)
        logger.info(f"Migrated {moved} cart rows from session {session_id} to user {user_id}")
        return moved
