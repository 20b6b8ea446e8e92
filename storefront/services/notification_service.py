# storefront/services/notification_service.py
from requests import RequestException

from storefront.celery_worker import celery_app
from storefront.services.email_client import EmailClient
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Outbound notifications. Sending happens in Celery; callers never wait
    for delivery and never fail because of it.
    """

    @staticmethod
    def send_password_reset(email: str, token: str) -> bool:
        try:
            send_password_reset_email_task.delay(email, token)
        except Exception:
            logger.exception(f"Could not enqueue password reset e-mail for {email}")
            return False
        return True


@celery_app.task(name="storefront.services.notification_service.send_password_reset_email_task")
def send_password_reset_email_task(email: str, token: str):
    client = EmailClient()
    if not client.is_configured():
        logger.warning(f"EmailJS is not configured, password reset e-mail to {email} not sent")
        return {"email": email, "status": "skipped"}

    try:
        status = client.send_password_reset(email, token)
    except RequestException as e:
        logger.error(f"Password reset e-mail to {email} failed: {e}")
        return {"email": email, "status": "failed"}

    logger.info(f"Password reset e-mail sent to {email} (HTTP {status})")
    return {"email": email, "status": "sent"}
