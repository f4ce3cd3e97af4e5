import logging
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
from autoparts.core.config import settings
from autoparts.crud.audit import append_entry, count_entries, list_entries
from autoparts.models import AuditEntryType, Part

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


def test_log_keeps_only_the_newest_entries(db_session):
    assert settings.AUDIT_LOG_LIMIT == 1000

    for n in range(1050):
        append_entry(db_session, entry_type=AuditEntryType.BUY, subject_type="part", subject_id=1, note=f"entry {n}")
    db_session.commit()

    assert count_entries(db_session) == 1000
    entries = list_entries(db_session, limit=1000)
    assert entries[0].note == "entry 1049"
    assert entries[-1].note == "entry 50"


def test_explicit_limit_and_type_filter(db_session):
    for n in range(5):
        append_entry(db_session, entry_type="sell", subject_type="part", note=f"sale {n}", limit=3)
    append_entry(db_session, entry_type="payment", subject_type="invoice", subject_id=7, limit=3)
    db_session.commit()

    assert count_entries(db_session) == 3
    assert [e.note for e in list_entries(db_session, entry_type="sell")] == ["sale 4", "sale 3"]
    assert [e.subject_id for e in list_entries(db_session, entry_type=AuditEntryType.PAYMENT)] == [7]


def test_entries_roll_back_with_the_caller(db_session):
    part = Part(part_name="Brake Pad", part_number="BP-1", quantity=3, created_at="2024-01-01T00:00:00Z")
    db_session.add(part)
    db_session.flush()
    append_entry(db_session, entry_type="buy", subject_type="part", subject_id=part.id, note="discarded")
    db_session.rollback()

    assert count_entries(db_session) == 0


def test_unknown_entry_type_is_logged_not_raised(db_session, caplog):
    with caplog.at_level(logging.ERROR, logger="autoparts.crud.audit"):
        assert append_entry(db_session, entry_type="refund", subject_type="part") is None
    db_session.commit()

    assert count_entries(db_session) == 0
    assert any(record.getMessage() == "audit.append_failed" for record in caplog.records)
