import os
import sys
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from autoparts.db.session import Base
from autoparts.core.errors import NotFound
from autoparts.crud.invoices import create_invoice
from autoparts.crud.parts import create_part
from autoparts.crud.payments import record_payment
from autoparts.services.customers import customer_history, customer_statistics, list_customers
from autoparts.services.reporting import (
    dashboard_overview,
    inventory_summary,
    payment_statistics,
    payment_summary,
    sales_summary,
)

# Ensure models are registered so metadata tables are created
from autoparts import models  # noqa: F401


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def shop(db_session):
    pads = create_part(
        db_session,
        {"part_name": "Brake Pad", "part_number": "BP-1", "cost": "100", "quantity": 10, "category": "Brakes", "min_stock_level": 2},
    )
    filters = create_part(
        db_session,
        {"part_name": "Oil Filter", "part_number": "OF-7", "cost": "50", "quantity": 1, "category": "Filters", "min_stock_level": 5},
    )
    ravi = create_invoice(
        db_session,
        {"customer_name": "Ravi", "items": [{"part_id": pads.id, "quantity": 3}], "tax_rate": "18"},
    )
    asha = create_invoice(
        db_session,
        {"customer_name": "Asha", "customer_phone": "555-0101", "items": [{"part_id": filters.id, "quantity": 1}], "tax_rate": "0"},
    )
    record_payment(db_session, {"invoice_id": ravi.id, "payer_name": "Ravi", "amount": "100", "payment_method": "card"})
    record_payment(db_session, {"invoice_id": asha.id, "payer_name": "Asha", "amount": "50"})
    return {"ravi": ravi, "asha": asha}


def test_dashboard_overview(db_session, shop):
    overview = dashboard_overview(db_session)

    assert overview["total_parts"] == 2
    assert overview["low_stock_items"] == 1
    assert overview["inventory_value"] == Decimal("700.00")
    assert overview["total_invoices"] == 2
    assert overview["total_paid"] == Decimal("50.00")
    assert overview["total_pending"] == Decimal("0.00")
    assert overview["total_outstanding"] == Decimal("254.00")
    assert overview["total_payments"] == 2
    assert overview["payments_received"] == Decimal("150.00")


def test_sales_summary_groups_by_day(db_session, shop):
    rows = sales_summary(db_session)

    assert len(rows) == 1
    assert rows[0]["invoice_count"] == 2
    assert rows[0]["total_revenue"] == Decimal("404.00")
    assert rows[0]["average_invoice"] == Decimal("202.00")
    assert rows[0]["paid_invoices"] == 1
    assert sales_summary(db_session, start="2999-01-01", end="2999-12-31") == []


def test_inventory_and_payment_summaries(db_session, shop):
    inventory = inventory_summary(db_session)
    assert [row["category"] for row in inventory] == ["Brakes", "Filters"]
    assert inventory[0]["total_value"] == Decimal("700.00")
    assert inventory[1]["low_stock_items"] == 1

    payments = payment_summary(db_session)
    assert [row["payment_method"] for row in payments] == ["card", "cash"]
    assert payments[0]["total_amount"] == Decimal("100.00")

    stats = payment_statistics(db_session)
    assert {row["payment_method"] for row in stats} == {"card", "cash"}
    assert sum(row["total_payments"] for row in stats) == 2


def test_customer_views(db_session, shop):
    assert [c["customer_name"] for c in list_customers(db_session)] == ["Asha", "Ravi"]

    history = customer_history(db_session, "Ravi")
    assert len(history) == 1
    assert history[0]["invoice_number"] == "INV-000001"
    assert history[0]["item_count"] == 1
    assert history[0]["total_items"] == 3

    stats = customer_statistics(db_session, "Ravi")
    assert stats["total_invoices"] == 1
    assert stats["total_spent"] == Decimal("354.00")

    with pytest.raises(NotFound):
        customer_statistics(db_session, "Nobody")
