# backend/app/schemas/session.py
"""
Consultation session schemas.

Times travel as HH:MM strings and are parsed by the services, so malformed
values surface as domain validation errors rather than schema errors.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from pydantic import Field, field_serializer, field_validator

from ._strict_base import StrictModel, StrictRequestModel


class SessionCreate(StrictRequestModel):
    """Client booking request."""

    expert_id: str = Field(..., min_length=1, description="Expert to book")
    scheduled_date: date = Field(..., description="Local date in the expert's timezone")
    scheduled_time: str = Field(..., description="Local start time, HH:MM")
    duration_minutes: int = Field(..., description="One of 30, 60, 90, 120")
    use_credits: bool = Field(default=False, description="Apply the account credit balance")
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("notes")
    @classmethod
    def clean_notes(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class SessionCancel(StrictRequestModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class SessionRate(StrictRequestModel):
    rating: int = Field(..., description="Whole stars, 1 to 5")
    review: Optional[str] = Field(default=None, max_length=2000)


class SessionRefund(StrictRequestModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class SessionUpdate(StrictRequestModel):
    """Expert-editable details; omitted fields stay unchanged, "" clears."""

    meeting_link: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=1000)


class SessionResponse(StrictModel):
    id: str
    client_id: str
    expert_id: str
    scheduled_date: date
    scheduled_time: time
    end_time: time
    duration_minutes: int
    timezone: str
    status: str
    payment_status: str

    price: Decimal
    currency: str
    commission_rate: Decimal
    platform_commission: Decimal
    expert_commission: Decimal
    user_credits_used: Decimal
    amount_due: Decimal

    notes: Optional[str] = None
    meeting_link: Optional[str] = None
    rating: Optional[int] = None
    review: Optional[str] = None
    cancel_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    refund_amount: Optional[Decimal] = None
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @field_serializer("scheduled_time", "end_time")
    def _hhmm(self, value: time) -> str:
        return value.strftime("%H:%M")

    @field_serializer(
        "price",
        "commission_rate",
        "platform_commission",
        "expert_commission",
        "user_credits_used",
        "amount_due",
        "refund_amount",
    )
    def _decimal(self, value: Optional[Decimal]) -> Optional[str]:
        return None if value is None else str(value)


class SessionCreateResponse(StrictModel):
    session: SessionResponse
    amount_due: str
    requires_payment: bool


class CancellationResponse(StrictModel):
    session: SessionResponse
    refund_amount: str
    refund_fraction: str
    hours_until_session: float
