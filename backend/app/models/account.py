# backend/app/models/account.py
"""
Account model.

An account is the identity behind a client or an expert. Clients hold a
platform credit balance that can be applied to bookings and receives
cancellation refunds.
"""

from decimal import Decimal
import logging

from sqlalchemy import CheckConstraint, Column, DateTime, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base

logger = logging.getLogger(__name__)


class Account(Base):
    """A platform user holding a credit balance."""

    __tablename__ = "accounts"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), nullable=False, unique=True)
    display_name = Column(String(120), nullable=False)
    role = Column(String(20), nullable=False, default="client")
    credit_balance = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    timezone = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    expert_profile = relationship("Expert", back_populates="account", uselist=False)

    __table_args__ = (
        CheckConstraint("credit_balance >= 0", name="ck_accounts_credit_balance_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Account {self.id} {self.role} credits={self.credit_balance}>"
