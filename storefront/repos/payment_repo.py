# storefront/repos/payment_repo.py
from datetime import datetime
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.data.models.payment import PaymentAttemptModel


class PaymentRepo:
    def __init__(self, db: Session):
        self.db = db

    def create(self, attempt: PaymentAttemptModel) -> PaymentAttemptModel:
        self.db.add(attempt)
        self.db.commit()
        self.db.refresh(attempt)
        return attempt

    def get_by_transaction(self, transaction_id: str) -> PaymentAttemptModel | None:
        stmt = select(PaymentAttemptModel).where(PaymentAttemptModel.transaction_id == transaction_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def latest_for_order(self, order_id: int) -> PaymentAttemptModel | None:
        stmt = (
            select(PaymentAttemptModel)
            .where(PaymentAttemptModel.order_id == order_id)
            .order_by(PaymentAttemptModel.created_at.desc(), PaymentAttemptModel.id.desc())
            .limit(1)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_for_order(self, order_id: int) -> List[PaymentAttemptModel]:
        stmt = (
            select(PaymentAttemptModel)
            .where(PaymentAttemptModel.order_id == order_id)
            .order_by(PaymentAttemptModel.created_at.desc(), PaymentAttemptModel.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def update(self, attempt: PaymentAttemptModel, data: dict) -> PaymentAttemptModel:
        for key, value in data.items():
            setattr(attempt, key, value)
        self.db.commit()
        self.db.refresh(attempt)
        return attempt

    def list_expired_pending(self, now: datetime) -> List[PaymentAttemptModel]:
        stmt = select(PaymentAttemptModel).where(
            PaymentAttemptModel.status == "pending",
            PaymentAttemptModel.expires_at.is_not(None),
            PaymentAttemptModel.expires_at < now,
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_by_method(self, method: str) -> List[PaymentAttemptModel]:
        stmt = (
            select(PaymentAttemptModel)
            .where(PaymentAttemptModel.method == method)
            .order_by(PaymentAttemptModel.created_at.desc(), PaymentAttemptModel.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())
