# storefront/services/email_client.py
import requests

from storefront.utils.retry import http_retry
from storefront.utils.settings import (
    EMAILJS_API_URL,
    EMAILJS_SERVICE_ID,
    EMAILJS_TEMPLATE_ID,
    EMAILJS_PUBLIC_KEY,
    EMAILJS_PRIVATE_KEY,
    FRONTEND_URL,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class EmailClient:
    """Thin client for the EmailJS REST API."""

    def __init__(
        self,
        api_url: str | None = None,
        service_id: str | None = EMAILJS_SERVICE_ID,
        template_id: str | None = EMAILJS_TEMPLATE_ID,
        public_key: str | None = EMAILJS_PUBLIC_KEY,
        private_key: str | None = EMAILJS_PRIVATE_KEY,
        timeout: int = 5,
    ):
        self.api_url = api_url or EMAILJS_API_URL
        self.service_id = service_id
        self.template_id = template_id
        self.public_key = public_key
        self.private_key = private_key
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.service_id and self.template_id and self.public_key)

    @http_retry()
    def send(self, template_params: dict) -> int:
        payload = {
            "service_id": self.service_id,
            "template_id": self.template_id,
            "user_id": self.public_key,
            "template_params": template_params,
        }
        if self.private_key:
            payload["accessToken"] = self.private_key

        logger.info(f"EmailClient POST {self.api_url}")
        resp = requests.post(self.api_url, json=payload, timeout=self.timeout)
        resp.raise_for_status()
        return resp.status_code

    def send_password_reset(self, email: str, token: str, frontend_url: str = FRONTEND_URL) -> int:
        link = f"{frontend_url.rstrip('/')}/reset-password/{token}"
        return self.send({"email": email, "to_email": email, "link": link})
