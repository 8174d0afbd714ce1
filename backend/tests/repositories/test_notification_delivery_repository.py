from __future__ import annotations

from app.models.event_outbox import NotificationDelivery
from app.repositories.notification_delivery_repository import NotificationDeliveryRepository


def test_record_delivery_inserts_row(db):
    repo = NotificationDeliveryRepository(db)

    row = repo.record_delivery("session.booked", "session.booked:s1:a1", payload={"a": 1})

    assert row.attempt_count == 1
    assert row.payload == {"a": 1}
    fetched = repo.get_by_idempotency_key("session.booked:s1:a1")
    assert fetched is not None
    assert fetched.id == row.id


def test_duplicate_delivery_bumps_attempt_count(db):
    repo = NotificationDeliveryRepository(db)
    first = repo.record_delivery("session.booked", "dup-key", payload={"n": 1})

    second = repo.record_delivery("session.booked", "dup-key", payload={"n": 2})

    assert second.id == first.id
    assert second.attempt_count == 2
    assert second.payload == {"n": 2}
    assert db.query(NotificationDelivery).count() == 1


def test_unknown_key_returns_none(db):
    assert NotificationDeliveryRepository(db).get_by_idempotency_key("missing") is None
