# storefront/repos/cart_repo.py
from datetime import datetime, timezone
from typing import List

from sqlalchemy import select, update, delete
from sqlalchemy.orm import Session

from storefront.data.models.cart_item import CartItemModel
from storefront.domain.identity import Identity


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def list_items(self, identity: Identity) -> List[CartItemModel]:
        stmt = (
            select(CartItemModel)
            .where(identity.filter_for(CartItemModel))
            .order_by(CartItemModel.created_at.desc(), CartItemModel.id.desc())
        )
        return list(self.db.execute(stmt).unique().scalars().all())

    def list_migrated_from(self, session_id: str) -> List[CartItemModel]:
        stmt = (
            select(CartItemModel)
            .where(
                CartItemModel.user_id.is_not(None),
                CartItemModel.session_id.is_(None),
                CartItemModel.origin_session_id == session_id,
            )
            .order_by(CartItemModel.created_at.desc(), CartItemModel.id.desc())
        )
        return list(self.db.execute(stmt).unique().scalars().all())

    def get_item(self, item_id: int, identity: Identity) -> CartItemModel | None:
        stmt = select(CartItemModel).where(
            CartItemModel.id == item_id,
            identity.filter_for(CartItemModel),
        )
        return self.db.execute(stmt).unique().scalar_one_or_none()

    def get_item_by_product(self, identity: Identity, product_id: int) -> CartItemModel | None:
        stmt = select(CartItemModel).where(
            CartItemModel.product_id == product_id,
            identity.filter_for(CartItemModel),
        )
        return self.db.execute(stmt).unique().scalar_one_or_none()

    def save(self, item: CartItemModel) -> CartItemModel:
        self.db.add(item)
        self.db.commit()
        self.db.refresh(item)
        return item

    def delete_item(self, item_id: int, identity: Identity) -> int:
        result = self.db.execute(
            delete(CartItemModel).where(
                CartItemModel.id == item_id,
                identity.filter_for(CartItemModel),
            )
        )
        self.db.commit()
        return result.rowcount

    def clear(self, identity: Identity) -> int:
        result = self.db.execute(
            delete(CartItemModel).where(identity.filter_for(CartItemModel))
        )
        self.db.commit()
        return result.rowcount

    def reassign_session(self, session_id: str, user_id: int) -> int:
        result = self.db.execute(
            update(CartItemModel)
            .where(CartItemModel.session_id == session_id)
            .values(
                user_id=user_id,
                session_id=None,
                origin_session_id=session_id,
                updated_at=datetime.now(timezone.utc),
            )
        )
        self.db.commit()
        return result.rowcount
