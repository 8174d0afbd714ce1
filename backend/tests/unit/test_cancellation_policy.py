"""Unit tests for the lead-time based refund policy."""

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

import pytest

from app.models.consultation_session import ConsultationSession, PaymentStatus
from app.services import cancellation_policy


def _session(**overrides) -> ConsultationSession:
    values = dict(
        scheduled_date=date(2030, 1, 14),
        scheduled_time=time(10, 0),
        duration_minutes=60,
        timezone="UTC",
        price=Decimal("200.00"),
        user_credits_used=Decimal("0.00"),
        payment_status=PaymentStatus.PAID.value,
    )
    values.update(overrides)
    return ConsultationSession(**values)


START = datetime(2030, 1, 14, 10, 0, tzinfo=timezone.utc)


@pytest.mark.unit
class TestRefundFraction:
    @pytest.mark.parametrize(
        "hours, expected",
        [
            (48, Decimal("1")),
            (24, Decimal("1")),
            (23.99, Decimal("0.5")),
            (12, Decimal("0.5")),
            (11.99, Decimal("0")),
            (0, Decimal("0")),
            (-3, Decimal("0")),
        ],
    )
    def test_thresholds_are_inclusive(self, hours, expected):
        assert cancellation_policy.refund_fraction(hours) == expected

    def test_thresholds_can_be_overridden(self):
        fraction = cancellation_policy.refund_fraction(
            10, full_refund_hours=48, partial_refund_hours=6, partial_fraction=Decimal("0.25")
        )

        assert fraction == Decimal("0.25")


@pytest.mark.unit
class TestEvaluate:
    @pytest.mark.parametrize(
        "hours_before, refund",
        [(30, Decimal("200.00")), (18, Decimal("100.00")), (6, Decimal("0.00"))],
    )
    def test_paid_session_refunds(self, hours_before, refund):
        decision = cancellation_policy.evaluate(
            _session(), now=START - timedelta(hours=hours_before)
        )

        assert decision.refund_amount == refund
        assert decision.hours_until_session == pytest.approx(hours_before)

    def test_lead_time_uses_time_of_day(self):
        """A 22:00 session cancelled at 00:00 the same day is still 22 hours away."""
        session = _session(scheduled_time=time(22, 0))

        decision = cancellation_policy.evaluate(
            session, now=datetime(2030, 1, 14, 0, 0, tzinfo=timezone.utc)
        )

        assert decision.hours_until_session == pytest.approx(22)
        assert decision.fraction == Decimal("0.5")

    def test_lead_time_uses_expert_timezone(self):
        session = _session(timezone="America/New_York")
        # 10:00 in New York in January is 15:00 UTC.
        now = datetime(2030, 1, 13, 15, 0, tzinfo=timezone.utc)

        decision = cancellation_policy.evaluate(session, now=now)

        assert decision.hours_until_session == pytest.approx(24)
        assert decision.fraction == Decimal("1")

    @pytest.mark.parametrize(
        "hours_before, refund",
        [(30, Decimal("200.00")), (18, Decimal("100.00")), (6, Decimal("0.00"))],
    )
    def test_uncaptured_session_refunds_on_price(self, hours_before, refund):
        session = _session(payment_status=PaymentStatus.PENDING.value)

        decision = cancellation_policy.evaluate(
            session, now=START - timedelta(hours=hours_before)
        )

        assert decision.refund_amount == refund

    def test_captured_only_refunds_credits_before_payment(self):
        session = _session(
            payment_status=PaymentStatus.PENDING.value, user_credits_used=Decimal("30.00")
        )

        decision = cancellation_policy.evaluate(
            session, now=START - timedelta(hours=18), captured_only=True
        )

        assert decision.refund_amount == Decimal("15.00")

    def test_captured_only_without_credits_refunds_nothing(self):
        session = _session(payment_status=PaymentStatus.PENDING.value)

        decision = cancellation_policy.evaluate(
            session, now=START - timedelta(hours=48), captured_only=True
        )

        assert decision.fraction == Decimal("1")
        assert decision.refund_amount == Decimal("0.00")

    def test_captured_only_refunds_price_once_paid(self):
        decision = cancellation_policy.evaluate(
            _session(), now=START - timedelta(hours=30), captured_only=True
        )

        assert decision.refund_amount == Decimal("200.00")

    def test_captured_only_follows_setting(self, monkeypatch):
        monkeypatch.setattr(
            cancellation_policy.settings, "refund_captured_payments_only", True
        )
        session = _session(payment_status=PaymentStatus.PENDING.value)

        assert cancellation_policy.refundable_amount(session) == Decimal("0.00")
