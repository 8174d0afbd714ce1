from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from app.core.enums import ActorRole
from app.core.exceptions import ForbiddenException, NotFoundException, ValidationException
from app.core.permissions import Actor
from app.services.booking_scheduler import BookingScheduler
from app.services.session_lifecycle import SessionLifecycle
from app.services.session_query_service import SessionQueryService

NOW = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(db):
    return SessionQueryService(db)


@pytest.fixture
def sessions(db, client_actor, expert):
    """Three bookings for the default client: two Monday, one Wednesday."""
    scheduler = BookingScheduler(db, commission_rate=Decimal("0.20"))
    bookings = [
        (date(2030, 1, 14), "11:00"),
        (date(2030, 1, 14), "10:00"),
        (date(2030, 1, 16), "09:00"),
    ]
    return [
        scheduler.create_session(client_actor, expert.id, day, at, 60, now=NOW).session
        for day, at in bookings
    ]


class TestListSessions:
    def test_client_sees_own_sessions_newest_first(self, service, sessions, client_actor):
        page = service.list_sessions(client_actor)

        assert page.total == 3
        assert [s.id for s in page.items] == [sessions[2].id, sessions[0].id, sessions[1].id]
        assert not page.has_next

    def test_other_client_sees_nothing(self, service, sessions, make_account):
        other = make_account(role="client")

        page = service.list_sessions(Actor(id=other.id, role=ActorRole.CLIENT))

        assert page.total == 0
        assert page.items == []

    def test_expert_sees_sessions_booked_with_them(self, service, sessions, expert_actor):
        assert service.list_sessions(expert_actor).total == 3

    def test_expert_without_profile_sees_nothing(self, service, sessions, make_account):
        account = make_account(role="expert")

        page = service.list_sessions(Actor(id=account.id, role=ActorRole.EXPERT))

        assert page.total == 0

    def test_admin_sees_everything(self, service, sessions, admin_actor):
        assert service.list_sessions(admin_actor).total == 3

    def test_status_filter(self, service, sessions, client_actor):
        SessionLifecycle(service.db).cancel_session(client_actor, sessions[0].id, now=NOW)

        cancelled = service.list_sessions(client_actor, status="cancelled")
        pending = service.list_sessions(client_actor, status="pending")

        assert [s.id for s in cancelled.items] == [sessions[0].id]
        assert pending.total == 2

    def test_unknown_status(self, service, client_actor):
        with pytest.raises(ValidationException):
            service.list_sessions(client_actor, status="archived")

    def test_pagination(self, service, sessions, client_actor):
        first = service.list_sessions(client_actor, page=1, per_page=2)
        second = service.list_sessions(client_actor, page=2, per_page=2)

        assert len(first.items) == 2
        assert first.has_next
        assert len(second.items) == 1
        assert not second.has_next

    @pytest.mark.parametrize("page, per_page", [(0, 10), (1, 0), (1, 1000)])
    def test_invalid_paging(self, service, client_actor, page, per_page):
        with pytest.raises(ValidationException):
            service.list_sessions(client_actor, page=page, per_page=per_page)


class TestUpcoming:
    def test_soonest_first(self, service, sessions, client_actor):
        upcoming = service.get_upcoming_sessions(client_actor, now=NOW)

        assert [s.id for s in upcoming] == [sessions[1].id, sessions[0].id, sessions[2].id]

    def test_limit(self, service, sessions, client_actor):
        assert len(service.get_upcoming_sessions(client_actor, limit=1, now=NOW)) == 1

    def test_started_sessions_are_excluded(self, service, sessions, client_actor):
        now = datetime(2030, 1, 14, 10, 30, tzinfo=timezone.utc)

        upcoming = service.get_upcoming_sessions(client_actor, now=now)

        assert [s.id for s in upcoming] == [sessions[0].id, sessions[2].id]

    def test_cancelled_sessions_are_excluded(self, service, sessions, client_actor):
        SessionLifecycle(service.db).cancel_session(client_actor, sessions[1].id, now=NOW)

        upcoming = service.get_upcoming_sessions(client_actor, now=NOW)

        assert sessions[1].id not in {s.id for s in upcoming}


class TestGetSession:
    def test_participants_can_view(self, service, sessions, client_actor, expert_actor):
        assert service.get_session(client_actor, sessions[0].id).id == sessions[0].id
        assert service.get_session(expert_actor, sessions[0].id).id == sessions[0].id

    def test_strangers_cannot_view(self, service, sessions, make_account):
        other = make_account(role="client")

        with pytest.raises(ForbiddenException):
            service.get_session(Actor(id=other.id, role=ActorRole.CLIENT), sessions[0].id)

    def test_unknown_session(self, service, admin_actor):
        with pytest.raises(NotFoundException):
            service.get_session(admin_actor, "missing")
