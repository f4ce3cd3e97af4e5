from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..crud.audit import list_entries
from ..db.session import get_db
from ..deps.auth import require_api_or_jwt
from ..models.audit import AuditEntryType
from ..schemas.audit import AuditEntryOut
from ..schemas.report import DashboardOverview, InventorySummaryRow, PaymentSummaryRow, SalesSummaryRow
from ..services.reporting import dashboard_overview, inventory_summary, payment_summary, sales_summary

router = APIRouter(prefix="/api/v1/reports", tags=["reports"], dependencies=[Depends(require_api_or_jwt)])


@router.get("/sales/summary", response_model=list[SalesSummaryRow])
def api_sales_summary(
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    db: Session = Depends(get_db),
):
    return sales_summary(db, start=start_date, end=end_date)


@router.get("/inventory/summary", response_model=list[InventorySummaryRow])
def api_inventory_summary(db: Session = Depends(get_db)):
    return inventory_summary(db)


@router.get("/payments/summary", response_model=list[PaymentSummaryRow])
def api_payment_summary(db: Session = Depends(get_db)):
    return payment_summary(db)


@router.get("/audit/logs", response_model=list[AuditEntryOut])
def api_audit_logs(
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    entry_type: Optional[AuditEntryType] = None,
    db: Session = Depends(get_db),
):
    return list_entries(db, limit=limit, offset=offset, entry_type=entry_type)


@router.get("/dashboard/overview", response_model=DashboardOverview)
def api_dashboard_overview(db: Session = Depends(get_db)):
    return dashboard_overview(db)
