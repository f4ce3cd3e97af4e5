from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..crud.invoices import create_invoice, delete_invoice, list_invoices, require_invoice, update_invoice_status
from ..db.session import get_db
from ..deps.auth import AuthContext, require_api_or_jwt
from ..deps.feed import get_change_feed
from ..models.invoice import InvoiceStatus
from ..schemas.invoice import InvoiceCreate, InvoiceOut, InvoiceStatusUpdate
from ..services.changes import ChangeFeed

router = APIRouter(prefix="/api/v1/invoices", tags=["invoices"], dependencies=[Depends(require_api_or_jwt)])


@router.get("", response_model=list[InvoiceOut])
def api_list_invoices(
    status: Optional[InvoiceStatus] = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    return list_invoices(db, status=status, limit=limit, offset=offset)


@router.get("/{invoice_id}", response_model=InvoiceOut)
def api_get_invoice(invoice_id: int, db: Session = Depends(get_db)):
    return require_invoice(db, invoice_id)


@router.post("", response_model=InvoiceOut, status_code=201)
def api_create_invoice(
    payload: InvoiceCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_api_or_jwt),
    feed: ChangeFeed = Depends(get_change_feed),
):
    return create_invoice(db, payload.model_dump(), actor=auth.subject, feed=feed)


@router.patch("/{invoice_id}/status", response_model=InvoiceOut)
def api_update_invoice_status(
    invoice_id: int,
    payload: InvoiceStatusUpdate,
    db: Session = Depends(get_db),
    feed: ChangeFeed = Depends(get_change_feed),
):
    invoice = require_invoice(db, invoice_id)
    return update_invoice_status(db, invoice, payload.status, feed=feed)


@router.delete("/{invoice_id}")
def api_delete_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_api_or_jwt),
    feed: ChangeFeed = Depends(get_change_feed),
):
    delete_invoice(db, invoice_id, actor=auth.subject, feed=feed)
    return {"status": "deleted", "invoice_id": invoice_id}
