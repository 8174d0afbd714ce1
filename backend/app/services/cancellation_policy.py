# backend/app/services/cancellation_policy.py
"""
Cancellation refund policy.

Maps lead time before a session to the fraction of its price returned to
the client as account credit (see ``refundable_amount`` for the base):

    >= full_refund_hours (24h)      -> 1.0
    >= partial_refund_hours (12h)   -> partial_refund_fraction (0.5)
    otherwise                       -> 0.0

Lead time is measured from the cancellation instant to the session's start
instant, built from its scheduled date, time and timezone together.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from ..core.config import settings
from ..models.consultation_session import ConsultationSession, PaymentStatus
from .commission import to_money

FULL_REFUND = Decimal("1")
NO_REFUND = Decimal("0")


@dataclass(frozen=True)
class RefundDecision:
    hours_until_session: float
    fraction: Decimal
    refund_amount: Decimal


def refund_fraction(
    hours_until_session: float,
    *,
    full_refund_hours: Optional[int] = None,
    partial_refund_hours: Optional[int] = None,
    partial_fraction: Optional[Decimal] = None,
) -> Decimal:
    """Refund fraction for the given lead time; thresholds are inclusive."""
    full_hours = settings.full_refund_hours if full_refund_hours is None else full_refund_hours
    partial_hours = (
        settings.partial_refund_hours if partial_refund_hours is None else partial_refund_hours
    )
    fraction = settings.partial_refund_fraction if partial_fraction is None else partial_fraction

    if hours_until_session >= full_hours:
        return FULL_REFUND
    if hours_until_session >= partial_hours:
        return Decimal(str(fraction))
    return NO_REFUND


def hours_until(start: datetime, now: Optional[datetime] = None) -> float:
    """Signed hours from ``now`` until ``start``; negative once it has begun."""
    current = now or datetime.now(timezone.utc)
    return (start - current).total_seconds() / 3600.0


def refundable_amount(
    session: ConsultationSession, captured_only: Optional[bool] = None
) -> Decimal:
    """
    Base that the refund fraction is applied to.

    The session price by default. With ``captured_only`` (or the
    ``refund_captured_payments_only`` setting) only what the client has
    actually paid counts: the full price once payment is captured, before
    that only the credits applied at booking.
    """
    guarded = settings.refund_captured_payments_only if captured_only is None else captured_only
    if not guarded or session.payment_status == PaymentStatus.PAID.value:
        return to_money(session.price)
    return to_money(session.user_credits_used or 0)


def evaluate(
    session: ConsultationSession,
    now: Optional[datetime] = None,
    captured_only: Optional[bool] = None,
) -> RefundDecision:
    """Refund owed if ``session`` is cancelled at ``now``."""
    lead = hours_until(session.start_instant(), now)
    fraction = refund_fraction(lead)
    return RefundDecision(
        hours_until_session=lead,
        fraction=fraction,
        refund_amount=to_money(refundable_amount(session, captured_only) * fraction),
    )
