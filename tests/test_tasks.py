import random
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import requests

from storefront.data.models.order import OrderModel
from storefront.data.models.payment import PaymentAttemptModel
from storefront.domain.identity import SessionIdentity
from storefront.domain.schemas import CheckoutIn
from storefront.services.email_client import EmailClient
from storefront.services.notification_service import send_password_reset_email_task
from storefront.services.order_service import OrderService
from storefront.services.payment_service import PaymentService, PaymentSimulator
from storefront.tasks.expire import expire_payments

SESSION = SessionIdentity("session_1_tasks")


@pytest.fixture()
def pix_payment(db, make_product, add_cart_row, checkout_data):
    product = make_product(price=Decimal("80.00"))
    add_cart_row(product, 1, session_id=SESSION.session_id)
    order = OrderService(db).create_order(CheckoutIn(**checkout_data()), SESSION)
    simulator = PaymentSimulator(failure_rate=0.0, rng=random.Random(1))
    result = PaymentService(db, simulator).process_payment(order["id"], "pix", None, SESSION)
    return order["id"], result["payment_result"]["transaction_id"]


def _attempt(db, transaction_id):
    db.expire_all()
    return db.query(PaymentAttemptModel).filter_by(transaction_id=transaction_id).one()


class TestExpirePayments:
    def test_nothing_to_expire(self, db, pix_payment):
        assert expire_payments(db) == 0

    def test_expired_pix_fails_order(self, db, pix_payment):
        order_id, tx = pix_payment
        attempt = _attempt(db, tx)
        attempt.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        db.commit()

        assert expire_payments(db) == 1

        attempt = _attempt(db, tx)
        assert attempt.status == "failed"
        assert "expired_at" in attempt.raw_response
        assert db.get(OrderModel, order_id).payment_status == "failed"

    def test_paid_order_is_left_alone(self, db, pix_payment):
        order_id, tx = pix_payment
        attempt = _attempt(db, tx)
        order = db.get(OrderModel, order_id)
        order.payment_status = "paid"
        attempt.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        db.commit()

        expire_payments(db)

        db.expire_all()
        assert db.get(OrderModel, order_id).payment_status == "paid"


class TestEmail:
    def test_send_posts_to_emailjs(self):
        client = EmailClient(api_url="https://mail.test/send", service_id="svc", template_id="tpl", public_key="pk")
        response = MagicMock(status_code=200)

        with patch("storefront.services.email_client.requests.post", return_value=response) as post:
            assert client.send_password_reset("ana@example.com", "tok", frontend_url="https://shop.test/") == 200

        payload = post.call_args.kwargs["json"]
        assert payload["service_id"] == "svc"
        assert payload["template_params"]["link"] == "https://shop.test/reset-password/tok"
        assert "accessToken" not in payload

    def test_send_retries_then_raises(self, monkeypatch):
        client = EmailClient(api_url="https://mail.test/send", service_id="svc", template_id="tpl", public_key="pk")
        monkeypatch.setattr(EmailClient.send.retry, "sleep", lambda s: None)

        with patch(
            "storefront.services.email_client.requests.post",
            side_effect=requests.ConnectionError("down"),
        ) as post:
            with pytest.raises(requests.ConnectionError):
                client.send({"email": "ana@example.com"})

        assert post.call_count == 3

    def test_task_skips_when_not_configured(self):
        with patch.object(EmailClient, "is_configured", return_value=False):
            assert send_password_reset_email_task("ana@example.com", "tok") == {
                "email": "ana@example.com",
                "status": "skipped",
            }

    def test_task_reports_failure(self):
        with patch.object(EmailClient, "is_configured", return_value=True), patch.object(
            EmailClient, "send_password_reset", side_effect=requests.HTTPError("500")
        ):
            result = send_password_reset_email_task("ana@example.com", "tok")

        assert result["status"] == "failed"
