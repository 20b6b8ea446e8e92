# storefront/services/payment_service.py
import random
import secrets
import string
import time
from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import Dict, Any

from sqlalchemy.orm import Session

from storefront.data.models.payment import PaymentAttemptModel
from storefront.domain.errors import NotFound, OrderAlreadyProcessed, PaymentDeclined, ValidationError
from storefront.domain.identity import Identity
from storefront.domain.schemas import CardData
from storefront.domain.states import ATTEMPT_APPROVED, ATTEMPT_FAILED, ATTEMPT_PENDING, CARD_METHODS
from storefront.repos.payment_repo import PaymentRepo
from storefront.services.order_service import OrderService, payment_attempt_to_dict
from storefront.utils.settings import (
    BOLETO_DUE_DAYS,
    CARD_FAILURE_RATE,
    CURRENCY,
    PIX_EXPIRY_SECONDS,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

BENEFICIARY = "VOKE TECH LTDA"


def _token(length: int = 9) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def transaction_id(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{_token()}"


class PaymentSimulator:
    """
    Fake gateway. Cards resolve immediately (approved or declined with
    `failure_rate` probability), PIX and boleto start pending and are
    confirmed later through `PaymentService.confirm_payment`.
    """

    def __init__(self, failure_rate: float = CARD_FAILURE_RATE, rng: random.Random | None = None):
        self.failure_rate = failure_rate
        self.rng = rng or random.Random()

    def card(self, method: str, card: CardData | None, amount: Decimal) -> Dict[str, Any]:
        if self.rng.random() < self.failure_rate:
            raise PaymentDeclined()

        number = card.card_number if card else None
        result = {
            "transaction_id": transaction_id("TXN"),
            "status": ATTEMPT_APPROVED,
            "authorization_code": _token(8).upper(),
            "payment_method": method,
            "last_four_digits": number[-4:] if number else None,
            "amount": str(amount),
            "currency": CURRENCY,
            "processed_at": datetime.now(timezone.utc).isoformat(),
        }
        if card and card.installments:
            result["installments"] = card.installments
        return result

    def pix(self, order_number: str, amount: Decimal) -> Dict[str, Any]:
        now_ms = int(time.time() * 1000)
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=PIX_EXPIRY_SECONDS)
        return {
            "transaction_id": transaction_id("PIX"),
            "status": ATTEMPT_PENDING,
            "qr_code": f"PIX_QR_{order_number}_{now_ms}",
            "pix_key": f"pix.key.{now_ms}@voke.com.br",
            "amount": str(amount),
            "currency": CURRENCY,
            "expires_at": expires_at.isoformat(),
            "instructions": "Scan the QR code or use the PIX key to pay",
        }

    def boleto(self, amount: Decimal) -> Dict[str, Any]:
        boleto_number = f"{int(time.time() * 1000)}{self.rng.randrange(10 ** 8):08d}"
        cents = int(amount * 100)
        due_date = datetime.now(timezone.utc) + timedelta(days=BOLETO_DUE_DAYS)
        return {
            "transaction_id": transaction_id("BOLETO"),
            "status": ATTEMPT_PENDING,
            "boleto_number": boleto_number,
            "barcode": f"34191.09008 61207.954112 06009.584104 1 89370000{cents:08d}",
            "due_date": due_date.isoformat(),
            "amount": str(amount),
            "currency": CURRENCY,
            "download_url": f"/api/payments/boleto/{boleto_number}/download",
            "instructions": "Pay the boleto at any bank, lottery outlet or internet banking",
        }


class PaymentService:
    def __init__(self, db: Session, simulator: PaymentSimulator | None = None):
        self.repo = PaymentRepo(db)
        self.orders = OrderService(db)
        self.simulator = simulator or PaymentSimulator()

    def process_payment(
        self,
        order_id: int,
        method: str,
        payment_data: CardData | None,
        identity: Identity,
    ) -> Dict[str, Any]:
        order = self.orders.repo.get_for_identity(order_id, identity)
        if not order:
            raise NotFound("Order not found")

        if order.payment_status != "pending":
            raise OrderAlreadyProcessed()

        try:
            if method in CARD_METHODS:
                result = self.simulator.card(method, payment_data, order.total)
            elif method == "pix":
                result = self.simulator.pix(order.order_number, order.total)
            elif method == "boleto":
                result = self.simulator.boleto(order.total)
            else:
                raise ValidationError("Unsupported payment method")
        except PaymentDeclined as e:
            declined_id = transaction_id("TXN")
            self.repo.create(
                PaymentAttemptModel(
                    transaction_id=declined_id,
                    order_id=order.id,
                    method=method,
                    status=ATTEMPT_FAILED,
                    raw_response={"status": ATTEMPT_FAILED, "message": e.message},
                )
            )
            self.orders.update_payment_status(order.id, "failed")
            logger.warning(f"Payment {declined_id} for order {order.order_number} declined")
            raise

        expires_at = None
        if method == "pix":
            expires_at = datetime.fromisoformat(result["expires_at"])
        elif method == "boleto":
            expires_at = datetime.fromisoformat(result["due_date"])

        self.repo.create(
            PaymentAttemptModel(
                transaction_id=result["transaction_id"],
                order_id=order.id,
                method=method,
                status=result["status"],
                raw_response=result,
                expires_at=expires_at,
            )
        )

        payment_status = "paid" if result["status"] == ATTEMPT_APPROVED else "pending"
        updated = self.orders.update_payment_status(order.id, payment_status, result["transaction_id"])
        logger.info(
            f"Payment {result['transaction_id']} ({method}) for order {order.order_number}: {result['status']}"
        )

        return {
            "payment_result": result,
            "order_status": updated["status"],
        }

    def confirm_payment(self, transaction_id: str, method: str) -> Dict[str, Any]:
        """Simulated provider callback for PIX / boleto."""
        attempt = self.repo.get_by_transaction(transaction_id)
        if not attempt or attempt.method != method:
            raise NotFound("Payment not found")

        if attempt.status != ATTEMPT_PENDING:
            raise OrderAlreadyProcessed("This payment has already been processed")

        raw = dict(attempt.raw_response or {})
        raw.update({
            "transaction_id": transaction_id,
            "status": ATTEMPT_APPROVED,
            "paid_at": datetime.now(timezone.utc).isoformat(),
        })
        attempt = self.repo.update(attempt, {"status": ATTEMPT_APPROVED, "raw_response": raw})

        self.orders.update_payment_status(attempt.order_id, "paid", transaction_id)
        logger.info(f"Payment {transaction_id} ({method}) confirmed")
        return payment_attempt_to_dict(attempt)

    def get_payment_status(self, transaction_id: str) -> Dict[str, Any]:
        attempt = self.repo.get_by_transaction(transaction_id)
        if not attempt:
            raise NotFound("Payment not found")
        return payment_attempt_to_dict(attempt)

    def boleto_download(self, boleto_number: str) -> Dict[str, Any]:
        attempt = next(
            (
                a for a in self.repo.list_by_method("boleto")
                if (a.raw_response or {}).get("boleto_number") == boleto_number
            ),
            None,
        )
        if not attempt:
            raise NotFound("Boleto not found")

        raw = attempt.raw_response
        return {
            "number": boleto_number,
            "beneficiary": BENEFICIARY,
            "amount": raw.get("amount"),
            "currency": raw.get("currency"),
            "due_date": raw.get("due_date"),
            "barcode": raw.get("barcode"),
            "status": attempt.status,
            "instructions": "Pay preferably at Banco do Brasil branches",
        }
