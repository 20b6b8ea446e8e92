# storefront/api/routers/payments.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_identity
from storefront.data.database import get_db
from storefront.domain.identity import Identity
from storefront.domain.schemas import PaymentIn
from storefront.services.payment_service import PaymentService, PaymentSimulator

router = APIRouter(prefix="/api/payments", tags=["payments"])


def get_simulator() -> PaymentSimulator:
    return PaymentSimulator()


def get_service(db: Session, simulator: PaymentSimulator | None = None):
    return PaymentService(db, simulator)


@router.post("/process")
def process_payment(
    payload: PaymentIn,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    simulator: PaymentSimulator = Depends(get_simulator),
):
    data = get_service(db, simulator).process_payment(
        payload.order_id, payload.payment_method, payload.payment_data, identity
    )
    return {"success": True, "message": "Payment processed successfully", "data": data}


@router.post("/pix/{transaction_id}/confirm")
def confirm_pix(transaction_id: str, db: Session = Depends(get_db)):
    data = get_service(db).confirm_payment(transaction_id, "pix")
    return {"success": True, "message": "PIX payment confirmed", "data": data}


@router.post("/boleto/{transaction_id}/confirm")
def confirm_boleto(transaction_id: str, db: Session = Depends(get_db)):
    data = get_service(db).confirm_payment(transaction_id, "boleto")
    return {"success": True, "message": "Boleto payment confirmed", "data": data}


@router.get("/status/{transaction_id}")
def payment_status(transaction_id: str, db: Session = Depends(get_db)):
    return {"success": True, "data": get_service(db).get_payment_status(transaction_id)}


@router.get("/boleto/{boleto_number}/download")
def download_boleto(boleto_number: str, db: Session = Depends(get_db)):
    return {"success": True, "message": "Boleto generated", "data": get_service(db).boleto_download(boleto_number)}
