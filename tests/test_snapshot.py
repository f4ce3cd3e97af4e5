import json
import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from autoparts.db.session import Base
from autoparts.crud.invoices import create_invoice
from autoparts.crud.parts import create_part
from autoparts.crud.payments import record_payment
from autoparts.services.snapshot import SNAPSHOT_KEYS, build_snapshot, load_snapshot, write_snapshot

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


def test_snapshot_is_rebuilt_from_the_database(db_session, tmp_path):
    part = create_part(db_session, {"part_name": "Brake Pad", "part_number": "BP-1", "cost": "100", "quantity": 4})
    invoice = create_invoice(db_session, {"customer_name": "Ravi", "items": [{"part_id": part.id, "quantity": 1}]})
    record_payment(db_session, {"invoice_id": invoice.id, "payer_name": "Ravi", "amount": "100"})

    snapshot = build_snapshot(db_session)

    assert snapshot.inventory[0].quantity == 3
    assert snapshot.invoices[0].status == "paid"
    assert len(snapshot.invoices[0].items) == 1
    assert len(snapshot.payments) == 1
    assert [t.entry_type for t in snapshot.transactions] == ["buy", "sell", "payment"]

    counts = write_snapshot(snapshot, tmp_path)
    assert counts == {"inventory": 1, "invoices": 1, "payments": 1, "transactions": 3}
    for key in SNAPSHOT_KEYS:
        assert (tmp_path / f"{key}.json").exists()

    loaded = load_snapshot(tmp_path)
    assert loaded["invoices"][0]["invoice_number"] == "INV-000001"
    assert loaded["inventory"][0]["part_number"] == "BP-1"


def test_missing_or_corrupt_blobs_load_empty(tmp_path):
    (tmp_path / "inventory.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "payments.json").write_text(json.dumps({"unexpected": "object"}), encoding="utf-8")

    loaded = load_snapshot(tmp_path)

    assert loaded == {key: [] for key in SNAPSHOT_KEYS}
