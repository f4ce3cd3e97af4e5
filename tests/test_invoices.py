import logging
import os
import sys
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from autoparts.db.session import Base
from autoparts.core.errors import InsufficientStock, NotFound, TransactionFailure, ValidationError
from autoparts.crud.audit import count_entries, list_entries
from autoparts.crud.invoices import (
    create_invoice,
    delete_invoice,
    derive_status,
    format_invoice_number,
    list_invoices,
    require_invoice,
    update_invoice_status,
)
from autoparts.crud.parts import create_part, get_part
from autoparts.crud.payments import record_payment
from autoparts.models import Invoice, InvoiceLineItem, InvoiceStatus

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


def _part(db, number, quantity=10, cost="100", name=None):
    return create_part(
        db,
        {"part_name": name or f"Part {number}", "part_number": number, "cost": cost, "quantity": quantity},
    )


def _count(db, model):
    return db.execute(select(func.count(model.id))).scalar()


def test_invoice_totals_and_stock_round_trip(db_session):
    part = _part(db_session, "BP-1", quantity=10)

    invoice = create_invoice(
        db_session,
        {
            "customer_name": "Ravi Kumar",
            "items": [{"part_id": part.id, "quantity": 3, "unit_price": "100"}],
            "tax_rate": "18",
        },
        actor="counter-1",
    )

    assert invoice.invoice_number == "INV-000001"
    assert invoice.subtotal == Decimal("300.00")
    assert invoice.tax_amount == Decimal("54.00")
    assert invoice.grand_total == Decimal("354.00")
    assert invoice.status == InvoiceStatus.PENDING
    assert invoice.paid_amount == Decimal("0.00")
    assert invoice.created_by == "counter-1"
    assert get_part(db_session, part.id).quantity == 7

    sale = list_entries(db_session, limit=1)[0]
    assert sale.entry_type == "sell"
    assert sale.quantity_before == 10
    assert sale.quantity_after == 7
    assert sale.note == "invoice INV-000001"

    delete_invoice(db_session, invoice.id)

    assert get_part(db_session, part.id).quantity == 10
    assert _count(db_session, Invoice) == 0
    assert _count(db_session, InvoiceLineItem) == 0
    restock = list_entries(db_session, limit=1)[0]
    assert restock.entry_type == "buy"
    assert restock.delta == 3


def test_line_items_snapshot_part_and_default_to_cost(db_session):
    part = _part(db_session, "OF-7", cost="45.50", name="Oil Filter")

    invoice = create_invoice(db_session, {"customer_name": "Asha", "items": [{"part_id": part.id, "quantity": 2}]})
    item = invoice.items[0]

    assert item.part_name == "Oil Filter"
    assert item.part_number == "OF-7"
    assert item.unit_price == Decimal("45.50")
    assert item.line_total == Decimal("91.00")
    assert invoice.grand_total == invoice.subtotal + invoice.tax_amount


def test_insufficient_stock_writes_nothing(db_session):
    a = _part(db_session, "A-1", quantity=10)
    b = _part(db_session, "B-1", quantity=5)
    c = _part(db_session, "C-1", quantity=1)
    entries_before = count_entries(db_session)

    with pytest.raises(InsufficientStock) as excinfo:
        create_invoice(
            db_session,
            {
                "customer_name": "Ravi",
                "items": [
                    {"part_id": a.id, "quantity": 2},
                    {"part_id": b.id, "quantity": 1},
                    {"part_id": c.id, "quantity": 5},
                ],
            },
        )

    assert excinfo.value.available == 1
    assert excinfo.value.requested == 5
    assert [get_part(db_session, p).quantity for p in (a.id, b.id, c.id)] == [10, 5, 1]
    assert _count(db_session, Invoice) == 0
    assert _count(db_session, InvoiceLineItem) == 0
    assert count_entries(db_session) == entries_before


def test_commit_failure_rolls_back_the_whole_invoice(db_session, monkeypatch):
    part = _part(db_session, "BP-1", quantity=5)
    entries_before = count_entries(db_session)

    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "commit", failing_commit)
    with pytest.raises(TransactionFailure):
        create_invoice(db_session, {"customer_name": "Ravi", "items": [{"part_id": part.id, "quantity": 2}]})
    monkeypatch.undo()

    assert get_part(db_session, part.id).quantity == 5
    assert _count(db_session, Invoice) == 0
    assert _count(db_session, InvoiceLineItem) == 0
    assert count_entries(db_session) == entries_before


def test_sale_and_payment_commit_when_audit_write_fails(db_session, monkeypatch, caplog):
    part = _part(db_session, "BP-1", quantity=5, cost="5")
    entries_before = count_entries(db_session)

    def broken_trim(db, limit):
        raise OperationalError("DELETE FROM audit_entries", {}, Exception("database is locked"))

    monkeypatch.setattr("autoparts.crud.audit._trim", broken_trim)
    with caplog.at_level(logging.ERROR, logger="autoparts.crud.audit"):
        invoice = create_invoice(db_session, {"customer_name": "Ravi", "items": [{"part_id": part.id, "quantity": 2}]})
        record_payment(db_session, {"invoice_id": invoice.id, "payer_name": "Ravi", "amount": "10"})

    assert get_part(db_session, part.id).quantity == 3
    settled = require_invoice(db_session, invoice.id)
    assert settled.status == "paid"
    assert settled.paid_amount == Decimal("10.00")
    assert settled.invoice_number == "INV-000001"
    assert count_entries(db_session) == entries_before
    failures = [r for r in caplog.records if r.getMessage() == "audit.append_failed"]
    assert len(failures) == 2


def test_invoice_validation(db_session):
    part = _part(db_session, "BP-1")

    with pytest.raises(ValidationError, match="customer_name"):
        create_invoice(db_session, {"customer_name": " ", "items": [{"part_id": part.id, "quantity": 1}]})
    with pytest.raises(ValidationError, match="at least one line item"):
        create_invoice(db_session, {"customer_name": "Ravi", "items": []})
    with pytest.raises(ValidationError, match="quantity"):
        create_invoice(db_session, {"customer_name": "Ravi", "items": [{"part_id": part.id, "quantity": 0}]})
    with pytest.raises(NotFound):
        create_invoice(db_session, {"customer_name": "Ravi", "items": [{"part_id": 999, "quantity": 1}]})

    assert get_part(db_session, part.id).quantity == 10


def test_invoice_numbers_are_not_reused(db_session):
    part = _part(db_session, "BP-1", quantity=10)
    first = create_invoice(db_session, {"customer_name": "A", "items": [{"part_id": part.id, "quantity": 1}]})
    delete_invoice(db_session, first.id)

    second = create_invoice(db_session, {"customer_name": "B", "items": [{"part_id": part.id, "quantity": 1}]})

    assert second.invoice_number == "INV-000002"
    assert format_invoice_number(42) == "INV-000042"


def test_status_override_and_filtering(db_session):
    part = _part(db_session, "BP-1")
    first = create_invoice(db_session, {"customer_name": "A", "items": [{"part_id": part.id, "quantity": 1}]})
    create_invoice(db_session, {"customer_name": "B", "items": [{"part_id": part.id, "quantity": 1}]})

    updated = update_invoice_status(db_session, first, "paid")

    assert updated.status == "paid"
    assert updated.paid_amount == Decimal("0.00")
    assert [inv.id for inv in list_invoices(db_session, status="paid")] == [first.id]
    assert len(list_invoices(db_session, status=InvoiceStatus.PENDING)) == 1
    with pytest.raises(ValidationError):
        update_invoice_status(db_session, first, "void")


def test_delete_missing_invoice_raises_not_found(db_session):
    with pytest.raises(NotFound):
        delete_invoice(db_session, 404)
    with pytest.raises(NotFound):
        require_invoice(db_session, 404)


def test_derive_status():
    assert derive_status(Decimal("0"), Decimal("354")) == InvoiceStatus.PENDING
    assert derive_status(Decimal("100"), Decimal("354")) == InvoiceStatus.PARTIAL
    assert derive_status(Decimal("354"), Decimal("354")) == InvoiceStatus.PAID
    assert derive_status(Decimal("400"), Decimal("354")) == InvoiceStatus.PAID
