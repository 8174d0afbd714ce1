# backend/app/models/expert.py
"""
Expert model.

Holds the recurring weekly schedule an expert offers, the rules that carve
breaks out of it, the bookability flags, and the running statistics that
session lifecycle transitions keep up to date.

Schedule layout:
    availability = {"Monday": [{"start": "09:00", "end": "12:00"}], ...}
    break_times = [{"start": "12:00", "end": "13:00", "days": [1, 2, 3]}]

Break days use Sunday=0 .. Saturday=6.
"""

from decimal import Decimal
import logging
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
import ulid

from ..database import Base

logger = logging.getLogger(__name__)

ALLOWED_SLOT_DURATIONS = (15, 30, 60)
DEFAULT_SLOT_DURATION = 60


class Expert(Base):
    """Bookable expert profile with schedule and aggregate statistics."""

    __tablename__ = "experts"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    account_id = Column(String(26), ForeignKey("accounts.id"), nullable=False, unique=True)
    headline = Column(String(200), nullable=True)

    hourly_rate = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")

    availability = Column(
        JSONB(astext_type=Text()).with_variant(JSON(), "sqlite"),
        nullable=False,
        default=dict,
    )
    break_times = Column(
        JSONB(astext_type=Text()).with_variant(JSON(), "sqlite"),
        nullable=False,
        default=list,
    )
    slot_duration = Column(Integer, nullable=False, default=DEFAULT_SLOT_DURATION)
    timezone = Column(String(64), nullable=False, default="UTC")

    is_approved = Column(Boolean, nullable=False, default=False)
    is_accepting_clients = Column(Boolean, nullable=False, default=True)

    # Running statistics, mutated only by session lifecycle transitions
    total_sessions = Column(Integer, nullable=False, default=0)
    completed_sessions = Column(Integer, nullable=False, default=0)
    cancelled_sessions = Column(Integer, nullable=False, default=0)
    total_earnings = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    rating = Column(Float, nullable=False, default=0.0)
    review_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    account = relationship("Account", back_populates="expert_profile")
    sessions = relationship("ConsultationSession", back_populates="expert")

    __table_args__ = (
        CheckConstraint("hourly_rate > 0", name="ck_experts_hourly_rate_positive"),
        CheckConstraint("slot_duration IN (15, 30, 60)", name="ck_experts_slot_duration"),
        CheckConstraint("rating >= 0 AND rating <= 5", name="ck_experts_rating_range"),
    )

    @property
    def display_name(self) -> Optional[str]:
        return self.account.display_name if self.account is not None else None

    def __repr__(self) -> str:
        return f"<Expert {self.id} rating={self.rating} reviews={self.review_count}>"
