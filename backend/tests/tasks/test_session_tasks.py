from __future__ import annotations

from decimal import Decimal

import pytest

from app.models.expert import Expert
from app.tasks.session_tasks import (
    complete_elapsed_sessions,
    reconcile_expert_statistics,
    send_session_reminders,
)


@pytest.fixture(autouse=True)
def task_sessions(session_factory, monkeypatch):
    monkeypatch.setattr("app.tasks.session_tasks.SessionLocal", session_factory)


def test_jobs_with_no_sessions(expert):
    assert complete_elapsed_sessions() == 0
    assert send_session_reminders() == 0
    assert reconcile_expert_statistics() == 0


def test_reconcile_task_corrects_drift(db, expert):
    expert.total_sessions = 3
    expert.total_earnings = Decimal("120.00")
    db.commit()

    assert reconcile_expert_statistics() == 1

    db.expire_all()
    refreshed = db.get(Expert, expert.id)
    assert refreshed.total_sessions == 0
    assert refreshed.total_earnings == Decimal("0.00")
