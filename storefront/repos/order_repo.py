# storefront/repos/order_repo.py
from datetime import datetime
from typing import List, Tuple

from sqlalchemy import select, delete, func, or_
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.order import OrderModel, OrderItemModel
from storefront.domain.identity import Identity

SORTABLE = {"created_at", "updated_at", "total", "status", "payment_status", "order_number"}


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        return order

    def add_items(self, items: List[OrderItemModel]) -> List[OrderItemModel]:
        self.db.add_all(items)
        self.db.commit()
        for item in items:
            self.db.refresh(item)
        return items

    def delete_order(self, order_id: int) -> None:
        self.db.execute(delete(OrderItemModel).where(OrderItemModel.order_id == order_id))
        self.db.execute(delete(OrderModel).where(OrderModel.id == order_id))
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def get_for_identity(self, order_id: int, identity: Identity) -> OrderModel | None:
        stmt = (
            select(OrderModel)
            .options(selectinload(OrderModel.items))
            .where(OrderModel.id == order_id, identity.filter_for(OrderModel))
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_number(self, order_number: str, identity: Identity) -> OrderModel | None:
        stmt = (
            select(OrderModel)
            .options(selectinload(OrderModel.items))
            .where(OrderModel.order_number == order_number, identity.filter_for(OrderModel))
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_for_identity(
        self,
        identity: Identity,
        limit: int,
        offset: int,
        status: str | None = None,
    ) -> Tuple[List[OrderModel], int]:
        stmt = select(OrderModel).where(identity.filter_for(OrderModel))
        if status:
            stmt = stmt.where(OrderModel.status == status)

        total = self.db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        rows = self.db.execute(
            stmt.options(selectinload(OrderModel.items))
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            .limit(limit)
            .offset(offset)
        ).scalars().all()
        return list(rows), total

    def all_for_identity(self, identity: Identity) -> List[OrderModel]:
        stmt = (
            select(OrderModel)
            .where(identity.filter_for(OrderModel))
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def update_order(self, order: OrderModel, data: dict) -> OrderModel:
        for key, value in data.items():
            setattr(order, key, value)
        self.db.commit()
        self.db.refresh(order)
        return order

    # admin

    def search(
        self,
        limit: int,
        offset: int,
        status: str | None = None,
        payment_status: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        search: str | None = None,
        sort_by: str = "created_at",
        ascending: bool = False,
    ) -> Tuple[List[OrderModel], int]:
        stmt = select(OrderModel)
        if status:
            stmt = stmt.where(OrderModel.status == status)
        if payment_status:
            stmt = stmt.where(OrderModel.payment_status == payment_status)
        if start_date:
            stmt = stmt.where(OrderModel.created_at >= start_date)
        if end_date:
            stmt = stmt.where(OrderModel.created_at <= end_date)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    OrderModel.order_number.ilike(pattern),
                    OrderModel.customer_email.ilike(pattern),
                    OrderModel.customer_name.ilike(pattern),
                )
            )

        total = self.db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()

        column = getattr(OrderModel, sort_by if sort_by in SORTABLE else "created_at")
        stmt = stmt.order_by(column.asc() if ascending else column.desc(), OrderModel.id.desc())
        rows = self.db.execute(stmt.limit(limit).offset(offset)).scalars().all()
        return list(rows), total

    def created_since(self, since: datetime) -> List[OrderModel]:
        stmt = select(OrderModel).where(OrderModel.created_at >= since)
        return list(self.db.execute(stmt).scalars().all())

    def list_by_state(self, status: str | None = None, payment_status: str | None = None) -> List[OrderModel]:
        stmt = select(OrderModel).options(selectinload(OrderModel.items))
        if status:
            stmt = stmt.where(OrderModel.status == status)
        if payment_status:
            stmt = stmt.where(OrderModel.payment_status == payment_status)
        stmt = stmt.order_by(OrderModel.created_at.asc(), OrderModel.id.asc())
        return list(self.db.execute(stmt).scalars().all())
