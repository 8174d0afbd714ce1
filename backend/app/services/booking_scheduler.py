# backend/app/services/booking_scheduler.py
"""
Booking Scheduler.

Creates consultation sessions:
1. Validate the caller, the expert's bookability and the requested slot
2. Price the session and snapshot the commission split
3. Apply the client's credit balance when asked
4. Persist the session and its payment ledger entry in one transaction;
   a session fully covered by credits is confirmed right away
5. After commit, notify the expert and send the client a confirmation

The unique index over active (expert, date, time) triples is the real
double-booking guard; the pre-checks here only produce friendlier errors.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal
import logging
from typing import List, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import Capability
from ..core.exceptions import (
    BookingConflictException,
    ConflictException,
    InsufficientStateException,
    NotFoundException,
    ValidationException,
)
from ..core.permissions import Actor, authorize
from ..core.timezone_utils import local_to_utc, now_in_timezone
from ..events.publisher import EventPublisher
from ..events.session_events import (
    SessionBooked,
    SessionConfirmed,
    SessionEvent,
    SessionRequested,
)
from ..models.account import Account
from ..models.consultation_session import (
    ALLOWED_DURATIONS,
    ConsultationSession,
    PaymentStatus,
    SessionStatus,
)
from ..models.expert import Expert
from ..models.ledger_entry import LedgerEntryStatus, LedgerEntryType, PaymentMethod
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..utils.time_helpers import minutes_to_time, string_to_time, time_to_minutes, time_to_string
from . import commission
from .availability_calculator import slots_for_expert
from .base import BaseService

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "This time slot is already booked"
SLOT_UNAVAILABLE_MESSAGE = "The requested time is outside the expert's availability"
PAST_SLOT_MESSAGE = "Cannot book a session that starts in the past"

CREDIT_DEBIT_ATTEMPTS = 3
ZERO = Decimal("0.00")


@dataclass(frozen=True)
class BookingResult:
    """A newly created session and what the client still has to pay."""

    session: ConsultationSession
    amount_due: Decimal

    @property
    def requires_payment(self) -> bool:
        return self.amount_due > 0


class BookingScheduler(BaseService):
    """Creates sessions while keeping each expert's active slots unique."""

    def __init__(
        self,
        db: Session,
        commission_rate: Optional[Decimal] = None,
        event_publisher: Optional[EventPublisher] = None,
    ):
        super().__init__(db)
        self.commission_rate = (
            settings.platform_commission_rate if commission_rate is None else commission_rate
        )
        self.expert_repository = RepositoryFactory.create_expert_repository(db)
        self.session_repository = RepositoryFactory.create_session_repository(db)
        self.account_repository = RepositoryFactory.create_account_repository(db)
        self.ledger_repository = RepositoryFactory.create_ledger_repository(db)
        self.event_publisher = event_publisher or EventPublisher(db)

    @BaseService.measure_operation("create_session")
    def create_session(
        self,
        actor: Actor,
        expert_id: str,
        scheduled_date: date,
        scheduled_time: Union[time, str],
        duration_minutes: int,
        use_credits: bool = False,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> BookingResult:
        """
        Book a session for the calling client.

        Raises:
            ForbiddenException: Caller may not book sessions
            ValidationException: Malformed time, unsupported duration, past slot
            NotFoundException: Unknown expert or client account
            InsufficientStateException: Expert not approved or not accepting clients
            BookingConflictException: Slot already taken
        """
        authorize(actor, Capability.BOOK_SESSION)
        self.log_operation(
            "create_session",
            client_id=actor.id,
            expert_id=expert_id,
            scheduled_date=str(scheduled_date),
            scheduled_time=str(scheduled_time),
            duration_minutes=duration_minutes,
        )

        start = self._parse_start(scheduled_time)
        self._validate_duration(start, duration_minutes)

        expert = self._get_bookable_expert(expert_id)
        client = self.account_repository.get_by_id(actor.id, load_relationships=False)
        if client is None:
            raise NotFoundException("Client account not found", details={"client_id": actor.id})

        self._validate_slot(expert, scheduled_date, start, duration_minutes, now)

        price = commission.session_price(expert.hourly_rate, duration_minutes)
        split = commission.split(price, self.commission_rate)
        end = minutes_to_time(time_to_minutes(start) + duration_minutes)

        with self.transaction():
            credits_used = self._apply_credits(client.id, price) if use_credits else ZERO
            amount_due = price - credits_used
            session = ConsultationSession(
                client_id=client.id,
                expert_id=expert.id,
                scheduled_date=scheduled_date,
                scheduled_time=start,
                end_time=end,
                duration_minutes=duration_minutes,
                timezone=expert.timezone,
                price=price,
                currency=expert.currency,
                commission_rate=split.rate,
                platform_commission=split.platform_share,
                expert_commission=split.expert_share,
                user_credits_used=credits_used,
                amount_due=amount_due,
                status=SessionStatus.PENDING.value,
                payment_status=(
                    PaymentStatus.PAID.value if amount_due == 0 else PaymentStatus.PENDING.value
                ),
                notes=notes,
            )
            try:
                self.session_repository.add(session)
            except IntegrityError as exc:
                prometheus_metrics.record_booking_conflict("constraint")
                raise BookingConflictException(
                    SLOT_TAKEN_MESSAGE,
                    details=self._conflict_details(expert.id, scheduled_date, start),
                ) from exc
            if amount_due == 0:
                # Covered by credits: no payment callback will follow.
                session.mark_confirmed()

            self.ledger_repository.create(
                session_id=session.id,
                account_id=client.id,
                expert_id=expert.id,
                entry_type=LedgerEntryType.PAYMENT.value,
                status=(
                    LedgerEntryStatus.COMPLETED.value
                    if amount_due == 0
                    else LedgerEntryStatus.PENDING.value
                ),
                payment_method=self._payment_method(credits_used, amount_due).value,
                amount=price,
                currency=expert.currency,
                platform_fee=split.platform_share,
                expert_earnings=split.expert_share,
                credits_applied=credits_used,
                description=f"Session on {scheduled_date.isoformat()} at {time_to_string(start)}",
            )

        prometheus_metrics.record_session_transition("created")
        if session.status == SessionStatus.CONFIRMED.value:
            prometheus_metrics.record_session_transition("confirmed")
        self.logger.info(
            f"Session {session.id} booked with expert {expert.id} "
            f"price={price} credits_used={credits_used} amount_due={amount_due}"
        )

        self._handle_post_booking_tasks(session, client, expert, amount_due)
        return BookingResult(session=session, amount_due=amount_due)

    # ----------------------------------------------------------------- checks
    @staticmethod
    def _parse_start(scheduled_time: Union[time, str]) -> time:
        if isinstance(scheduled_time, time):
            return scheduled_time.replace(second=0, microsecond=0, tzinfo=None)
        try:
            return string_to_time(scheduled_time)
        except ValueError as exc:
            raise ValidationException(
                str(exc), details={"scheduled_time": scheduled_time}
            ) from exc

    @staticmethod
    def _validate_duration(start: time, duration_minutes: int) -> None:
        if duration_minutes not in ALLOWED_DURATIONS:
            raise ValidationException(
                f"Duration must be one of {list(ALLOWED_DURATIONS)} minutes",
                details={"duration_minutes": duration_minutes},
            )
        if time_to_minutes(start) + duration_minutes >= 24 * 60:
            raise ValidationException(
                "Session must end on the day it starts",
                details={"scheduled_time": time_to_string(start)},
            )

    def _get_bookable_expert(self, expert_id: str) -> Expert:
        expert = self.expert_repository.get_by_id(expert_id)
        if expert is None:
            raise NotFoundException("Expert not found", details={"expert_id": expert_id})
        if not expert.is_approved:
            raise InsufficientStateException(
                "Expert is not approved for bookings", details={"expert_id": expert_id}
            )
        if not expert.is_accepting_clients:
            raise InsufficientStateException(
                "Expert is not accepting new clients", details={"expert_id": expert_id}
            )
        return expert

    def _validate_slot(
        self,
        expert: Expert,
        scheduled_date: date,
        start: time,
        duration_minutes: int,
        now: Optional[datetime],
    ) -> None:
        current = now or datetime.now(timezone.utc)
        if local_to_utc(scheduled_date, start, expert.timezone) <= current:
            raise ValidationException(
                PAST_SLOT_MESSAGE,
                details={"scheduled_date": scheduled_date.isoformat()},
            )

        if self.session_repository.find_active_at(expert.id, scheduled_date, start) is not None:
            prometheus_metrics.record_booking_conflict("precheck")
            raise BookingConflictException(
                SLOT_TAKEN_MESSAGE,
                details=self._conflict_details(expert.id, scheduled_date, start),
            )

        booked = self.session_repository.get_booked_intervals(expert.id, scheduled_date)
        local_now = now_in_timezone(expert.timezone, current)
        offered = slots_for_expert(expert, scheduled_date, duration_minutes, booked, now=local_now)
        if any(slot.start == start for slot in offered):
            return

        open_slots = slots_for_expert(expert, scheduled_date, duration_minutes, (), now=local_now)
        if any(slot.start == start for slot in open_slots):
            prometheus_metrics.record_booking_conflict("precheck")
            raise BookingConflictException(
                "The requested time overlaps an existing session",
                details=self._conflict_details(expert.id, scheduled_date, start),
            )
        raise ValidationException(
            SLOT_UNAVAILABLE_MESSAGE,
            details={
                "scheduled_date": scheduled_date.isoformat(),
                "scheduled_time": time_to_string(start),
                "duration_minutes": duration_minutes,
            },
        )

    @staticmethod
    def _conflict_details(expert_id: str, scheduled_date: date, start: time) -> dict:
        return {
            "expert_id": expert_id,
            "scheduled_date": scheduled_date.isoformat(),
            "scheduled_time": time_to_string(start),
        }

    # ---------------------------------------------------------------- credits
    def _apply_credits(self, client_id: str, price: Decimal) -> Decimal:
        """Debit min(balance, price) atomically and return the amount used."""
        for _ in range(CREDIT_DEBIT_ATTEMPTS):
            balance = self.account_repository.get_credit_balance(client_id) or ZERO
            to_use = commission.to_money(min(balance, price))
            if to_use <= 0:
                return ZERO
            if self.account_repository.debit_credits(client_id, to_use):
                return to_use
            self.logger.info(f"Credit balance for {client_id} changed concurrently; retrying")
        raise ConflictException(
            "Credit balance changed while booking; please retry",
            code="CREDIT_BALANCE_CHANGED",
            details={"client_id": client_id},
        )

    @staticmethod
    def _payment_method(credits_used: Decimal, amount_due: Decimal) -> PaymentMethod:
        if credits_used > 0 and amount_due > 0:
            return PaymentMethod.MIXED
        if credits_used > 0:
            return PaymentMethod.CREDITS
        return PaymentMethod.CARD

    # ------------------------------------------------------------ side effects
    def _handle_post_booking_tasks(
        self,
        session: ConsultationSession,
        client: Account,
        expert: Expert,
        amount_due: Decimal,
    ) -> None:
        """Queue notifications; failures are logged by the publisher, never raised."""
        scheduled_date = session.scheduled_date.isoformat()
        scheduled_time = time_to_string(session.scheduled_time)
        expert_name = expert.account.display_name if expert.account else "your expert"
        events: List[SessionEvent] = [
            SessionRequested(
                session_id=session.id,
                recipient_id=expert.account_id,
                client_name=client.display_name,
                scheduled_date=scheduled_date,
                scheduled_time=scheduled_time,
                duration_minutes=session.duration_minutes,
            ),
            SessionBooked(
                session_id=session.id,
                recipient_id=client.id,
                expert_name=expert_name,
                scheduled_date=scheduled_date,
                scheduled_time=scheduled_time,
                price=str(session.price),
                amount_due=str(amount_due),
                currency=session.currency,
            ),
        ]
        if session.status == SessionStatus.CONFIRMED.value:
            events.extend(
                [
                    SessionConfirmed(
                        session_id=session.id,
                        recipient_id=client.id,
                        counterpart_name=expert_name,
                        scheduled_date=scheduled_date,
                        scheduled_time=scheduled_time,
                    ),
                    SessionConfirmed(
                        session_id=session.id,
                        recipient_id=expert.account_id,
                        counterpart_name=client.display_name,
                        scheduled_date=scheduled_date,
                        scheduled_time=scheduled_time,
                    ),
                ]
            )
        self.event_publisher.publish_all(events)
