"""Tests for BookingScheduler.create_session against a real (SQLite) database."""

from datetime import date, datetime, time, timezone
from decimal import Decimal

import pytest

from app.core.enums import ActorRole
from app.core.exceptions import (
    BookingConflictException,
    ForbiddenException,
    InsufficientStateException,
    NotFoundException,
    ValidationException,
)
from app.core.permissions import Actor
from app.models.account import Account
from app.models.consultation_session import ConsultationSession, PaymentStatus, SessionStatus
from app.models.ledger_entry import LedgerEntryStatus, LedgerEntryType, PaymentMethod
from app.repositories.event_outbox_repository import EventOutboxRepository
from app.repositories.ledger_repository import LedgerRepository
from app.services.booking_scheduler import BookingScheduler

NOW = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)
NEXT_MONDAY = date(2030, 1, 14)


@pytest.fixture
def scheduler(db):
    return BookingScheduler(db, commission_rate=Decimal("0.20"))


def _book(scheduler, actor, expert, at="10:00", duration=60, **kwargs):
    return scheduler.create_session(
        actor, expert.id, NEXT_MONDAY, at, duration, now=NOW, **kwargs
    )


class TestCreateSession:
    def test_books_pending_session_with_commission_snapshot(self, db, scheduler, expert, client_actor):
        result = _book(scheduler, client_actor, expert, duration=30)

        session = result.session
        assert session.status == SessionStatus.PENDING.value
        assert session.payment_status == PaymentStatus.PENDING.value
        assert session.price == Decimal("50.00")
        assert session.platform_commission == Decimal("10.00")
        assert session.expert_commission == Decimal("40.00")
        assert session.commission_rate == Decimal("0.20")
        assert session.scheduled_time == time(10, 0)
        assert session.end_time == time(10, 30)
        assert session.timezone == "UTC"
        assert result.amount_due == Decimal("50.00")
        assert result.requires_payment

    def test_records_pending_card_payment(self, db, scheduler, expert, client_actor):
        result = _book(scheduler, client_actor, expert)

        entries = LedgerRepository(db).list_for_session(result.session.id)
        assert len(entries) == 1
        entry = entries[0]
        assert entry.entry_type == LedgerEntryType.PAYMENT.value
        assert entry.status == LedgerEntryStatus.PENDING.value
        assert entry.payment_method == PaymentMethod.CARD.value
        assert entry.amount == Decimal("100.00")
        assert entry.platform_fee == Decimal("20.00")
        assert entry.expert_earnings == Decimal("80.00")

    def test_notifies_expert_and_client(self, db, scheduler, expert, client_actor):
        result = _book(scheduler, client_actor, expert)

        events = EventOutboxRepository(db).list_for_aggregate(result.session.id)
        by_type = {event.event_type: event for event in events}
        assert set(by_type) == {"session.requested", "session.booked"}
        assert by_type["session.requested"].payload["recipient_id"] == expert.account_id
        assert by_type["session.booked"].payload["recipient_id"] == client_actor.id

    def test_same_slot_twice_conflicts(self, db, scheduler, expert, client_actor, make_account):
        _book(scheduler, client_actor, expert)
        other = make_account(role="client")

        with pytest.raises(BookingConflictException) as exc_info:
            _book(scheduler, Actor(id=other.id, role=ActorRole.CLIENT), expert)

        assert exc_info.value.code == "BOOKING_CONFLICT"
        assert db.query(ConsultationSession).count() == 1

    def test_unique_index_rejects_race_past_precheck(
        self, db, scheduler, expert, client_actor, make_account, monkeypatch
    ):
        """Two bookings that both pass the pre-checks: storage decides."""
        _book(scheduler, client_actor, expert)
        other = make_account(role="client")
        monkeypatch.setattr(scheduler.session_repository, "find_active_at", lambda *a: None)
        monkeypatch.setattr(scheduler.session_repository, "get_booked_intervals", lambda *a: [])

        with pytest.raises(BookingConflictException):
            _book(scheduler, Actor(id=other.id, role=ActorRole.CLIENT), expert)

        assert db.query(ConsultationSession).count() == 1

    def test_overlapping_start_conflicts(self, db, make_expert, client_actor, make_account):
        expert = make_expert(slot_duration=30)
        scheduler = BookingScheduler(db)
        _book(scheduler, client_actor, expert, at="10:00", duration=60)
        other = make_account(role="client")

        with pytest.raises(BookingConflictException, match="overlaps"):
            _book(scheduler, Actor(id=other.id, role=ActorRole.CLIENT), expert, at="10:30")

    def test_cancelled_slot_can_be_rebooked(self, db, scheduler, expert, client_actor):
        first = _book(scheduler, client_actor, expert).session
        first.status = SessionStatus.CANCELLED.value
        db.commit()

        second = _book(scheduler, client_actor, expert).session

        assert second.id != first.id
        assert second.status == SessionStatus.PENDING.value

    def test_outside_availability(self, scheduler, expert, client_actor):
        with pytest.raises(ValidationException, match="outside"):
            _book(scheduler, client_actor, expert, at="18:00")

    def test_misaligned_start(self, scheduler, expert, client_actor):
        with pytest.raises(ValidationException):
            _book(scheduler, client_actor, expert, at="10:15")

    def test_break_blocks_booking(self, db, make_expert, client_actor):
        expert = make_expert(break_times=[{"start": "12:00", "end": "13:00", "days": [1]}])

        with pytest.raises(ValidationException):
            _book(BookingScheduler(db), client_actor, expert, at="12:00")

    @pytest.mark.parametrize("value", ["25:00", "9:00", "noon", ""])
    def test_malformed_time(self, scheduler, expert, client_actor, value):
        with pytest.raises(ValidationException):
            _book(scheduler, client_actor, expert, at=value)

    @pytest.mark.parametrize("duration", [0, 45, 180])
    def test_unsupported_duration(self, scheduler, expert, client_actor, duration):
        with pytest.raises(ValidationException, match="Duration"):
            _book(scheduler, client_actor, expert, duration=duration)

    def test_session_must_end_same_day(self, db, make_expert, client_actor):
        expert = make_expert(availability={"Monday": [{"start": "00:00", "end": "23:59"}]})

        with pytest.raises(ValidationException, match="same day|day it starts"):
            _book(BookingScheduler(db), client_actor, expert, at="23:30", duration=60)

    def test_past_slot(self, scheduler, expert, client_actor):
        with pytest.raises(ValidationException, match="past"):
            scheduler.create_session(
                client_actor, expert.id, date(2030, 1, 7), "07:00", 60, now=NOW
            )

    def test_unknown_expert(self, scheduler, client_actor):
        with pytest.raises(NotFoundException):
            scheduler.create_session(client_actor, "missing", NEXT_MONDAY, "10:00", 60, now=NOW)

    def test_unapproved_expert(self, db, make_expert, client_actor):
        expert = make_expert(is_approved=False)

        with pytest.raises(InsufficientStateException) as exc_info:
            _book(BookingScheduler(db), client_actor, expert)

        assert exc_info.value.status_code == 422

    def test_expert_not_accepting_clients(self, db, make_expert, client_actor):
        expert = make_expert(is_accepting_clients=False)

        with pytest.raises(InsufficientStateException):
            _book(BookingScheduler(db), client_actor, expert)

    def test_experts_cannot_book(self, scheduler, expert, expert_actor):
        with pytest.raises(ForbiddenException):
            _book(scheduler, expert_actor, expert)

    def test_client_account_must_exist(self, scheduler, expert):
        with pytest.raises(NotFoundException):
            _book(scheduler, Actor(id="ghost", role=ActorRole.CLIENT), expert)

    def test_expert_timezone_is_snapshotted(self, db, make_expert, client_actor):
        expert = make_expert(timezone_name="America/New_York")

        session = _book(BookingScheduler(db), client_actor, expert).session

        assert session.timezone == "America/New_York"
        assert session.start_instant() == datetime(2030, 1, 14, 15, 0, tzinfo=timezone.utc)


class TestCredits:
    def test_partial_credit_cover(self, db, scheduler, expert, make_account):
        client = make_account(role="client", credit_balance=Decimal("30.00"))
        actor = Actor(id=client.id, role=ActorRole.CLIENT)

        result = _book(scheduler, actor, expert, duration=30, use_credits=True)

        assert result.session.user_credits_used == Decimal("30.00")
        assert result.amount_due == Decimal("20.00")
        assert result.session.payment_status == PaymentStatus.PENDING.value
        db.expire_all()
        assert db.get(Account, client.id).credit_balance == Decimal("0.00")
        entry = LedgerRepository(db).list_for_session(result.session.id)[0]
        assert entry.payment_method == PaymentMethod.MIXED.value
        assert entry.credits_applied == Decimal("30.00")

    def test_full_credit_cover_confirms_immediately(self, db, scheduler, expert, make_account):
        client = make_account(role="client", credit_balance=Decimal("80.00"))
        actor = Actor(id=client.id, role=ActorRole.CLIENT)

        result = _book(scheduler, actor, expert, duration=30, use_credits=True)

        assert result.amount_due == Decimal("0.00")
        assert not result.requires_payment
        assert result.session.payment_status == PaymentStatus.PAID.value
        assert result.session.status == SessionStatus.CONFIRMED.value
        assert result.session.confirmed_at is not None
        db.expire_all()
        assert db.get(Account, client.id).credit_balance == Decimal("30.00")
        entry = LedgerRepository(db).list_for_session(result.session.id)[0]
        assert entry.status == LedgerEntryStatus.COMPLETED.value
        assert entry.payment_method == PaymentMethod.CREDITS.value
        events = EventOutboxRepository(db).list_for_aggregate(result.session.id)
        confirmed = [e for e in events if e.event_type == "session.confirmed"]
        assert {e.payload["recipient_id"] for e in confirmed} == {client.id, expert.account_id}

    def test_credits_untouched_without_flag(self, db, scheduler, expert, make_account):
        client = make_account(role="client", credit_balance=Decimal("80.00"))
        actor = Actor(id=client.id, role=ActorRole.CLIENT)

        result = _book(scheduler, actor, expert, duration=30)

        assert result.session.user_credits_used == Decimal("0.00")
        db.expire_all()
        assert db.get(Account, client.id).credit_balance == Decimal("80.00")

    def test_conflict_does_not_spend_credits(self, db, scheduler, expert, client_actor, make_account):
        _book(scheduler, client_actor, expert)
        client = make_account(role="client", credit_balance=Decimal("50.00"))
        actor = Actor(id=client.id, role=ActorRole.CLIENT)

        with pytest.raises(BookingConflictException):
            _book(scheduler, actor, expert, use_credits=True)

        db.expire_all()
        assert db.get(Account, client.id).credit_balance == Decimal("50.00")
