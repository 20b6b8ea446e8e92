# storefront/tasks/expire.py
from datetime import datetime, timezone

from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal
from storefront.data.models.order import OrderModel
from storefront.domain.states import ATTEMPT_FAILED
from storefront.repos.payment_repo import PaymentRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def expire_payments(db) -> int:
    """
    Marks PIX/boleto attempts past their expiry as failed, and their orders'
    payment status as failed when it is still pending.
    """
    now = datetime.now(timezone.utc)
    repo = PaymentRepo(db)

    attempts = repo.list_expired_pending(now)
    logger.info(f"Found {len(attempts)} payment attempts to expire")

    for attempt in attempts:
        raw = dict(attempt.raw_response or {})
        raw.update({"status": ATTEMPT_FAILED, "expired_at": now.isoformat()})
        attempt.status = ATTEMPT_FAILED
        attempt.raw_response = raw
        db.add(attempt)

        order = db.get(OrderModel, attempt.order_id)
        if order is not None and order.payment_status == "pending" and order.payment_id == attempt.transaction_id:
            order.payment_status = "failed"
            order.updated_at = now
            db.add(order)

    db.commit()
    return len(attempts)


@celery_app.task(name="storefront.tasks.expire.expire_payments_task")
def expire_payments_task():
    logger.info("Expire payments task started")

    db = SessionLocal()
    try:
        return expire_payments(db)
    finally:
        db.close()
