# backend/app/services/commission.py
"""
Revenue split between the platform and the expert.

The rate is read from settings at booking time and the resulting split is
snapshotted on the session. Aggregates must use that snapshot, never the
current rate.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from ..core.config import settings

CENTS = Decimal("0.01")

Number = Union[Decimal, int, float, str]


def to_money(value: Number) -> Decimal:
    """Quantize to cents, half-up."""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CommissionSplit:
    price: Decimal
    rate: Decimal
    platform_share: Decimal
    expert_share: Decimal


def split(price: Number, rate: Optional[Number] = None) -> CommissionSplit:
    """
    Split ``price`` into platform and expert shares.

    ``platform_share`` is ``price * rate`` rounded to cents and the expert
    receives the remainder, so the two always sum to ``price`` exactly.
    """
    amount = to_money(price)
    effective_rate = Decimal(str(settings.platform_commission_rate if rate is None else rate))
    if effective_rate < 0 or effective_rate > 1:
        raise ValueError(f"Commission rate {effective_rate} outside [0, 1]")
    if amount < 0:
        raise ValueError("Price cannot be negative")
    platform_share = to_money(amount * effective_rate)
    return CommissionSplit(
        price=amount,
        rate=effective_rate,
        platform_share=platform_share,
        expert_share=amount - platform_share,
    )


def session_price(hourly_rate: Number, duration_minutes: int) -> Decimal:
    """Hourly rate prorated to the session length."""
    return to_money(Decimal(str(hourly_rate)) * Decimal(duration_minutes) / Decimal(60))
