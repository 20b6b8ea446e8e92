from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, JSON

from storefront.data.database import Base


def _now():
    return datetime.now(timezone.utc)


class PaymentAttemptModel(Base):
    __tablename__ = "payment_attempts"

    id = Column(Integer, primary_key=True)
    transaction_id = Column(String(100), unique=True, index=True, nullable=False)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    method = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default="pending")  # pending, approved, failed
    raw_response = Column(JSON, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)
