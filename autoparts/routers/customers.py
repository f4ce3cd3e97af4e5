from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db.session import get_db
from ..deps.auth import require_api_or_jwt
from ..schemas.report import CustomerHistoryRow, CustomerOut, CustomerStatistics
from ..services.customers import customer_history, customer_statistics, list_customers

router = APIRouter(prefix="/api/v1/customers", tags=["customers"], dependencies=[Depends(require_api_or_jwt)])


@router.get("", response_model=list[CustomerOut])
def api_list_customers(db: Session = Depends(get_db)):
    return list_customers(db)


@router.get("/{customer_name}/history", response_model=list[CustomerHistoryRow])
def api_customer_history(customer_name: str, db: Session = Depends(get_db)):
    return customer_history(db, customer_name)


@router.get("/{customer_name}/statistics", response_model=CustomerStatistics)
def api_customer_statistics(customer_name: str, db: Session = Depends(get_db)):
    return customer_statistics(db, customer_name)
