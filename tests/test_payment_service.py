import random
from decimal import Decimal

import pytest

from storefront.domain.errors import NotFound, OrderAlreadyProcessed, PaymentDeclined
from storefront.domain.identity import SessionIdentity
from storefront.domain.schemas import CardData, CheckoutIn
from storefront.repos.order_repo import OrderRepo
from storefront.repos.payment_repo import PaymentRepo
from storefront.services.order_service import OrderService
from storefront.services.payment_service import PaymentService, PaymentSimulator

SESSION = SessionIdentity("session_1_pay")

CARD = CardData(cardNumber="4111111111111111", expiryDate="12/30", cvv="123", cardName="ANA SOUZA", installments=3)


@pytest.fixture()
def order(db, make_product, add_cart_row, checkout_data):
    product = make_product(price=Decimal("150.00"))
    add_cart_row(product, 1, session_id=SESSION.session_id)
    return OrderService(db).create_order(CheckoutIn(**checkout_data()), SESSION)


def approving():
    return PaymentSimulator(failure_rate=0.0, rng=random.Random(1))


def declining():
    return PaymentSimulator(failure_rate=1.0, rng=random.Random(1))


class TestSimulator:
    def test_card_approved(self):
        result = approving().card("credit_card", CARD, Decimal("10.00"))

        assert result["status"] == "approved"
        assert result["transaction_id"].startswith("TXN_")
        assert result["last_four_digits"] == "1111"
        assert len(result["authorization_code"]) == 8
        assert result["installments"] == 3

    def test_card_declined(self):
        with pytest.raises(PaymentDeclined) as exc:
            declining().card("debit_card", CARD, Decimal("10.00"))

        assert exc.value.error_code == "PAYMENT_FAILED"

    def test_pix_pending(self):
        result = approving().pix("VK1", Decimal("10.00"))

        assert result["status"] == "pending"
        assert result["qr_code"].startswith("PIX_QR_VK1_")
        assert result["pix_key"].endswith("@voke.com.br")
        assert "expires_at" in result

    def test_boleto_barcode_carries_amount(self):
        result = approving().boleto(Decimal("150.00"))

        assert result["status"] == "pending"
        assert result["barcode"].endswith("00015000")
        assert result["download_url"] == f"/api/payments/boleto/{result['boleto_number']}/download"


class TestProcessPayment:
    def test_card_marks_order_paid(self, db, order):
        data = PaymentService(db, approving()).process_payment(order["id"], "credit_card", CARD, SESSION)

        assert data["order_status"] == "confirmed"
        stored = OrderRepo(db).get_order(order["id"])
        assert stored.payment_status == "paid"
        assert stored.payment_id == data["payment_result"]["transaction_id"]

    def test_pix_stays_pending(self, db, order):
        data = PaymentService(db, approving()).process_payment(order["id"], "pix", None, SESSION)

        stored = OrderRepo(db).get_order(order["id"])
        assert data["order_status"] == "pending"
        assert stored.payment_status == "pending"
        attempt = PaymentRepo(db).get_by_transaction(data["payment_result"]["transaction_id"])
        assert attempt.status == "pending"
        assert attempt.expires_at is not None

    def test_decline_records_failed_attempt(self, db, order):
        with pytest.raises(PaymentDeclined):
            PaymentService(db, declining()).process_payment(order["id"], "credit_card", CARD, SESSION)

        db.expire_all()
        assert OrderRepo(db).get_order(order["id"]).payment_status == "failed"
        [attempt] = PaymentRepo(db).list_for_order(order["id"])
        assert attempt.status == "failed"

    def test_rejects_already_processed(self, db, order):
        svc = PaymentService(db, approving())
        svc.process_payment(order["id"], "credit_card", CARD, SESSION)

        with pytest.raises(OrderAlreadyProcessed):
            svc.process_payment(order["id"], "credit_card", CARD, SESSION)

    def test_order_of_other_identity(self, db, order):
        with pytest.raises(NotFound):
            PaymentService(db, approving()).process_payment(
                order["id"], "pix", None, SessionIdentity("session_other")
            )


class TestConfirmPayment:
    def test_confirm_pix(self, db, order):
        svc = PaymentService(db, approving())
        tx = svc.process_payment(order["id"], "pix", None, SESSION)["payment_result"]["transaction_id"]

        confirmed = svc.confirm_payment(tx, "pix")

        assert confirmed["status"] == "approved"
        assert "paid_at" in confirmed["payment_data"]
        stored = OrderRepo(db).get_order(order["id"])
        assert stored.payment_status == "paid"
        assert stored.status == "confirmed"

    def test_confirm_twice(self, db, order):
        svc = PaymentService(db, approving())
        tx = svc.process_payment(order["id"], "boleto", None, SESSION)["payment_result"]["transaction_id"]
        svc.confirm_payment(tx, "boleto")

        with pytest.raises(OrderAlreadyProcessed):
            svc.confirm_payment(tx, "boleto")

    def test_confirm_unknown(self, db):
        with pytest.raises(NotFound):
            PaymentService(db).confirm_payment("PIX_missing", "pix")

    def test_boleto_download(self, db, order):
        svc = PaymentService(db, approving())
        result = svc.process_payment(order["id"], "boleto", None, SESSION)["payment_result"]

        boleto = svc.boleto_download(result["boleto_number"])

        assert boleto["barcode"] == result["barcode"]
        assert boleto["status"] == "pending"

        with pytest.raises(NotFound):
            svc.boleto_download("000")
