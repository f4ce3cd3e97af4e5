from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..crud.payments import (
    delete_payment,
    list_payments,
    list_payments_for_invoice,
    record_payment,
    require_payment,
)
from ..db.session import get_db
from ..deps.auth import AuthContext, require_api_or_jwt
from ..deps.feed import get_change_feed
from ..schemas.payment import PaymentCreate, PaymentOut, PaymentStatisticsRow
from ..services.changes import ChangeFeed
from ..services.reporting import payment_statistics

router = APIRouter(prefix="/api/v1/payments", tags=["payments"], dependencies=[Depends(require_api_or_jwt)])


@router.get("", response_model=list[PaymentOut])
def api_list_payments(limit: int = 100, offset: int = 0, db: Session = Depends(get_db)):
    return list_payments(db, limit=limit, offset=offset)


@router.post("", response_model=PaymentOut, status_code=201)
def api_record_payment(
    payload: PaymentCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_api_or_jwt),
    feed: ChangeFeed = Depends(get_change_feed),
):
    return record_payment(db, payload.model_dump(), actor=auth.subject, feed=feed)


@router.get("/invoice/{invoice_id}", response_model=list[PaymentOut])
def api_invoice_payments(invoice_id: int, db: Session = Depends(get_db)):
    return list_payments_for_invoice(db, invoice_id)


@router.get("/statistics/summary", response_model=list[PaymentStatisticsRow])
def api_payment_statistics(db: Session = Depends(get_db)):
    return payment_statistics(db)


@router.delete("/{payment_id}")
def api_delete_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_api_or_jwt),
    feed: ChangeFeed = Depends(get_change_feed),
):
    delete_payment(db, require_payment(db, payment_id), actor=auth.subject, feed=feed)
    return {"status": "deleted", "payment_id": payment_id}
