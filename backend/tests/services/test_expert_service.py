from datetime import date, datetime, time, timezone
from decimal import Decimal

import pytest

from app.core.enums import ActorRole
from app.core.exceptions import ForbiddenException, NotFoundException, ValidationException
from app.core.permissions import Actor
from app.services.availability_calculator import AvailabilityService
from app.services.booking_scheduler import BookingScheduler
from app.services.expert_service import ExpertService

NOW = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)
TUESDAY = date(2030, 1, 15)


@pytest.fixture
def service(db):
    return ExpertService(db)


class TestUpdateSchedule:
    def test_replaces_weekly_schedule(self, db, service, expert, expert_actor):
        updated = service.update_schedule(
            expert_actor,
            expert.id,
            {"Tuesday": [{"start": "13:00", "end": "15:00"}]},
            break_times=[{"start": "14:00", "end": "14:30", "days": [2]}],
            slot_duration=30,
            timezone_name="Europe/Berlin",
        )

        assert updated.availability == {"Tuesday": [{"start": "13:00", "end": "15:00"}]}
        assert updated.break_times == [{"start": "14:00", "end": "14:30", "days": [2]}]
        assert updated.slot_duration == 30
        assert updated.timezone == "Europe/Berlin"

        slots = AvailabilityService(db).get_available_slots(expert.id, TUESDAY, 30, now=NOW)
        assert [slot.start for slot in slots] == [time(13, 0), time(13, 30), time(14, 30)]

    def test_omitted_fields_keep_stored_values(self, service, make_expert):
        expert = make_expert(
            break_times=[{"start": "12:00", "end": "13:00", "days": [1]}], slot_duration=30
        )
        actor = Actor(id=expert.account_id, role=ActorRole.EXPERT)

        updated = service.update_schedule(
            actor, expert.id, {"Friday": [{"start": "09:00", "end": "10:00"}]}
        )

        assert updated.slot_duration == 30
        assert updated.break_times == [{"start": "12:00", "end": "13:00", "days": [1]}]

    def test_admin_may_edit_any_schedule(self, service, expert, admin_actor):
        updated = service.update_schedule(admin_actor, expert.id, {})

        assert updated.availability == {}

    def test_other_expert_is_forbidden(self, service, expert, make_expert, expert_actor):
        other = make_expert()

        with pytest.raises(ForbiddenException):
            service.update_schedule(expert_actor, other.id, {})

    def test_clients_are_forbidden(self, service, expert, client_actor):
        with pytest.raises(ForbiddenException):
            service.update_schedule(client_actor, expert.id, {})

    def test_invalid_slot_duration(self, service, expert, expert_actor):
        with pytest.raises(ValidationException, match="Slot duration"):
            service.update_schedule(expert_actor, expert.id, {}, slot_duration=45)

    def test_unknown_timezone(self, service, expert, expert_actor):
        with pytest.raises(ValidationException, match="timezone"):
            service.update_schedule(expert_actor, expert.id, {}, timezone_name="Mars/Base")

    def test_invalid_schedule_leaves_stored_one(self, db, service, expert, expert_actor):
        before = dict(expert.availability)

        with pytest.raises(ValidationException):
            service.update_schedule(
                expert_actor, expert.id, {"Monday": [{"start": "17:00", "end": "09:00"}]}
            )

        db.expire_all()
        assert service.get_expert(expert.id).availability == before


class TestGetExpert:
    def test_unknown_expert(self, service):
        with pytest.raises(NotFoundException):
            service.get_expert("missing")


class TestAvailabilityService:
    def test_slots_exclude_booked_sessions(self, db, expert, client_actor):
        BookingScheduler(db, commission_rate=Decimal("0.20")).create_session(
            client_actor, expert.id, date(2030, 1, 14), "10:00", 60, now=NOW
        )

        slots = AvailabilityService(db).get_available_slots(expert.id, date(2030, 1, 14), 60, now=NOW)

        starts = [slot.start for slot in slots]
        assert time(10, 0) not in starts
        assert time(9, 0) in starts
        assert len(starts) == 7

    def test_slots_reject_unsupported_duration(self, db, expert):
        with pytest.raises(ValidationException):
            AvailabilityService(db).get_available_slots(expert.id, date(2030, 1, 14), 45, now=NOW)

    def test_dates_in_month(self, db, expert):
        dates = AvailabilityService(db).get_available_dates(expert.id, 2030, 1, now=NOW)

        # Mondays and Wednesdays from the 7th onwards.
        assert dates == [
            date(2030, 1, d) for d in (7, 9, 14, 16, 21, 23, 28, 30)
        ]

    def test_dates_reject_bad_month(self, db, expert):
        with pytest.raises(ValidationException):
            AvailabilityService(db).get_available_dates(expert.id, 2030, 13, now=NOW)

    def test_unknown_expert(self, db):
        with pytest.raises(NotFoundException):
            AvailabilityService(db).get_available_slots("missing", date(2030, 1, 14), 60, now=NOW)
