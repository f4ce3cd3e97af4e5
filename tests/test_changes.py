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
from autoparts.core.errors import InsufficientStock
from autoparts.crud.invoices import create_invoice
from autoparts.crud.parts import create_part
from autoparts.crud.audit import list_entries
from autoparts.crud.payments import delete_payment, record_payment
from autoparts.services.changes import TOPICS, Change, ChangeFeed, change

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
def recorded():
    feed = ChangeFeed()
    seen = []
    for topic in TOPICS:
        feed.subscribe(topic, lambda payload, topic=topic: seen.append(topic))
    return feed, seen


def test_subscribe_and_unsubscribe():
    feed = ChangeFeed()
    received = []
    unsubscribe = feed.subscribe("inventory", received.append)

    feed.publish("inventory", 1)
    unsubscribe()
    feed.publish("inventory", 2)
    unsubscribe()

    assert received == [1]
    assert feed.listener_count("inventory") == 0


def test_unknown_topic_is_ignored():
    feed = ChangeFeed()
    unsubscribe = feed.subscribe("weather", lambda payload: None)

    unsubscribe()
    feed.publish("weather", "rain")
    assert feed.listener_count("weather") == 0


def test_failing_listener_does_not_stop_others(caplog):
    feed = ChangeFeed()
    received = []

    def broken(payload):
        raise RuntimeError("boom")

    feed.subscribe("payments", broken)
    feed.subscribe("payments", received.append)
    with caplog.at_level(logging.ERROR, logger="autoparts.services.changes"):
        feed.publish("payments", "p-1")

    assert received == ["p-1"]
    assert any(record.getMessage() == "change_feed.listener_failed" for record in caplog.records)


def test_ledger_publishes_after_commit(db_session, recorded):
    feed, seen = recorded
    part = create_part(db_session, {"part_name": "Brake Pad", "part_number": "BP-1", "quantity": 5}, feed=feed)
    assert seen == ["inventory", "transactions"]

    seen.clear()
    invoice = create_invoice(db_session, {"customer_name": "Ravi", "items": [{"part_id": part.id, "quantity": 1}]}, feed=feed)
    assert seen == ["inventory", "invoices", "transactions"]

    seen.clear()
    record_payment(db_session, {"invoice_id": invoice.id, "payer_name": "Ravi", "amount": "1"}, feed=feed)
    assert seen == ["payments", "transactions", "invoices"]


def test_failed_sale_publishes_nothing(db_session, recorded):
    feed, seen = recorded
    part = create_part(db_session, {"part_name": "Brake Pad", "part_number": "BP-1", "quantity": 1})

    with pytest.raises(InsufficientStock):
        create_invoice(db_session, {"customer_name": "Ravi", "items": [{"part_id": part.id, "quantity": 2}]}, feed=feed)

    assert seen == []


def test_change_drops_missing_and_repeated_ids():
    assert change("sold", 3, None, 3, 1) == Change("sold", (3, 1))
    assert change("appended", None).ids == ()


def test_each_topic_carries_its_own_ids(db_session):
    feed = ChangeFeed()
    received = {topic: [] for topic in TOPICS}
    for topic in TOPICS:
        feed.subscribe(topic, received[topic].append)

    part = create_part(db_session, {"part_name": "Brake Pad", "part_number": "BP-1", "quantity": 5}, feed=feed)
    invoice = create_invoice(db_session, {"customer_name": "Ravi", "items": [{"part_id": part.id, "quantity": 2}]}, feed=feed)
    payment = record_payment(db_session, {"invoice_id": invoice.id, "payer_name": "Ravi", "amount": "1"}, feed=feed)
    payment_id = payment.id
    delete_payment(db_session, payment, feed=feed)

    assert received["inventory"] == [Change("created", (part.id,)), Change("sold", (part.id,))]
    assert received["invoices"] == [
        Change("created", (invoice.id,)),
        Change("recomputed", (invoice.id,)),
        Change("recomputed", (invoice.id,)),
    ]
    assert received["payments"] == [Change("recorded", (payment_id,)), Change("deleted", (payment_id,))]
    audit_ids = [entry.id for entry in reversed(list_entries(db_session))]
    assert [c.ids for c in received["transactions"]] == [(entry_id,) for entry_id in audit_ids]
