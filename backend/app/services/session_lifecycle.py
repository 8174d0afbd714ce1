# backend/app/services/session_lifecycle.py
"""
Session Lifecycle Service.

Drives sessions through pending -> confirmed -> completed, plus the
cancelled and refunded exits, and keeps expert statistics consistent with
those transitions. Expert rows are locked before their counters change so
concurrent completions or ratings for the same expert never lose updates.

Also hosts the periodic jobs: auto-completing elapsed sessions, sending
pre-session reminders, and reconciling expert statistics from history.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import ActorRole, Capability
from ..core.exceptions import InvalidStateException, NotFoundException, ValidationException
from ..core.permissions import Actor, authorize
from ..events.publisher import EventPublisher
from ..events.session_events import (
    SessionCancelled,
    SessionCompleted,
    SessionConfirmed,
    SessionEvent,
    SessionPaymentFailed,
    SessionRefunded,
    SessionReminder,
    SessionReviewed,
)
from ..models.consultation_session import (
    CancelledBy,
    ConsultationSession,
    PaymentStatus,
    SessionStatus,
    can_transition,
)
from ..models.expert import Expert
from ..models.ledger_entry import LedgerEntryStatus, LedgerEntryType, PaymentMethod
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..utils.time_helpers import time_to_string
from . import cancellation_policy
from .base import BaseService
from .commission import to_money
from .ratings_math import online_mean

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5
ZERO = Decimal("0.00")

_CANCELLED_BY_ROLE = {
    ActorRole.CLIENT: CancelledBy.CLIENT,
    ActorRole.EXPERT: CancelledBy.EXPERT,
    ActorRole.ADMIN: CancelledBy.ADMIN,
    ActorRole.SYSTEM: CancelledBy.ADMIN,
}


@dataclass(frozen=True)
class CancellationResult:
    session: ConsultationSession
    refund_amount: Decimal
    refund_fraction: Decimal
    hours_until_session: float


class SessionLifecycle(BaseService):
    """State transitions for booked sessions."""

    def __init__(self, db: Session, event_publisher: Optional[EventPublisher] = None):
        super().__init__(db)
        self.session_repository = RepositoryFactory.create_session_repository(db)
        self.expert_repository = RepositoryFactory.create_expert_repository(db)
        self.account_repository = RepositoryFactory.create_account_repository(db)
        self.ledger_repository = RepositoryFactory.create_ledger_repository(db)
        self.event_publisher = event_publisher or EventPublisher(db)

    # ---------------------------------------------------------------- helpers
    def _get_session(self, session_id: str, for_update: bool = False) -> ConsultationSession:
        if for_update:
            session = self.session_repository.get_for_update(session_id)
        else:
            session = self.session_repository.get_by_id(session_id)
        if session is None:
            raise NotFoundException("Session not found", details={"session_id": session_id})
        return session

    def _lock_expert(self, expert_id: str) -> Expert:
        expert = self.expert_repository.get_for_update(expert_id)
        if expert is None:
            raise NotFoundException("Expert not found", details={"expert_id": expert_id})
        return expert

    @staticmethod
    def _require_transition(session: ConsultationSession, target: SessionStatus) -> None:
        if not can_transition(session.status, target):
            raise InvalidStateException(
                f"Cannot move a {session.status} session to {target.value}",
                current_status=session.status,
                details={"session_id": session.id, "target_status": target.value},
            )

    @staticmethod
    def _expert_name(session: ConsultationSession) -> str:
        if session.expert is not None and session.expert.account is not None:
            return session.expert.account.display_name
        return "your expert"

    @staticmethod
    def _client_name(session: ConsultationSession) -> str:
        return session.client.display_name if session.client is not None else "your client"

    def _publish(self, events: List[SessionEvent]) -> None:
        self.event_publisher.publish_all(events)

    # ---------------------------------------------------------------- payment
    @BaseService.measure_operation("confirm_session")
    def confirm_session(self, actor: Actor, session_id: str) -> ConsultationSession:
        """
        Payment succeeded: pending -> confirmed.

        Repeated success reports for an already confirmed session are no-ops.
        """
        authorize(actor, Capability.REPORT_PAYMENT)
        self.log_operation("confirm_session", session_id=session_id)

        with self.transaction():
            session = self._get_session(session_id, for_update=True)
            if session.status == SessionStatus.CONFIRMED.value:
                self.logger.info(f"Session {session_id} already confirmed; ignoring")
                return session
            self._require_transition(session, SessionStatus.CONFIRMED)

            session.mark_confirmed()
            pending = self.ledger_repository.get_pending_payment(session.id)
            if pending is not None:
                self.ledger_repository.settle(pending, LedgerEntryStatus.COMPLETED)

        prometheus_metrics.record_session_transition("confirmed")

        scheduled_date = session.scheduled_date.isoformat()
        scheduled_time = time_to_string(session.scheduled_time)
        self._publish(
            [
                SessionConfirmed(
                    session_id=session.id,
                    recipient_id=session.client_id,
                    counterpart_name=self._expert_name(session),
                    scheduled_date=scheduled_date,
                    scheduled_time=scheduled_time,
                ),
                SessionConfirmed(
                    session_id=session.id,
                    recipient_id=session.expert.account_id,
                    counterpart_name=self._client_name(session),
                    scheduled_date=scheduled_date,
                    scheduled_time=scheduled_time,
                ),
            ]
        )
        return session

    @BaseService.measure_operation("mark_payment_failed")
    def mark_payment_failed(self, actor: Actor, session_id: str) -> ConsultationSession:
        """Payment failed: the session stays pending so the client can retry."""
        authorize(actor, Capability.REPORT_PAYMENT)
        self.log_operation("mark_payment_failed", session_id=session_id)

        with self.transaction():
            session = self._get_session(session_id, for_update=True)
            if session.status != SessionStatus.PENDING.value:
                raise InvalidStateException(
                    "Only pending sessions can have a failed payment",
                    current_status=session.status,
                    details={"session_id": session_id},
                )
            if session.payment_status == PaymentStatus.FAILED.value:
                return session
            session.payment_status = PaymentStatus.FAILED.value
            session.payment_failed_at = datetime.now(timezone.utc)

        self.logger.warning(f"Payment failed for session {session_id}")
        self._publish(
            [
                SessionPaymentFailed(
                    session_id=session.id,
                    recipient_id=session.client_id,
                    scheduled_date=session.scheduled_date.isoformat(),
                    scheduled_time=time_to_string(session.scheduled_time),
                )
            ]
        )
        return session

    # ---------------------------------------------------------------- details
    @BaseService.measure_operation("update_session_details")
    def update_session_details(
        self,
        actor: Actor,
        session_id: str,
        meeting_link: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> ConsultationSession:
        """
        Expert (or admin) sets the meeting link or notes of an active session.

        Fields passed as None are left unchanged; an empty string clears them.

        Raises:
            ValidationException: Nothing to update, or a link that is not http(s)
            InvalidStateException: Session already completed, cancelled or refunded
        """
        if meeting_link is None and notes is None:
            raise ValidationException("Provide a meeting link or notes to update")
        if meeting_link and not meeting_link.startswith(("https://", "http://")):
            raise ValidationException(
                "Meeting link must be an http(s) URL", details={"meeting_link": meeting_link}
            )

        session = self._get_session(session_id)
        owner = session.expert.account_id if session.expert is not None else None
        authorize(actor, Capability.UPDATE_SESSION, {owner})
        self.log_operation("update_session_details", session_id=session_id, actor_id=actor.id)

        with self.transaction():
            session = self._get_session(session_id, for_update=True)
            if not session.is_active:
                raise InvalidStateException(
                    "Only pending or confirmed sessions can be updated",
                    current_status=session.status,
                    details={"session_id": session_id},
                )
            if meeting_link is not None:
                session.meeting_link = meeting_link or None
            if notes is not None:
                session.notes = notes or None

        return session

    # ------------------------------------------------------------- completion
    def _complete(self, session: ConsultationSession) -> None:
        """Mark completed and fold the session into the expert's statistics."""
        if session.status != SessionStatus.CONFIRMED.value:
            raise InvalidStateException(
                "Only confirmed sessions can be completed",
                current_status=session.status,
                details={"session_id": session.id},
            )
        session.mark_completed()

        expert = self._lock_expert(session.expert_id)
        expert.total_sessions = (expert.total_sessions or 0) + 1
        expert.completed_sessions = (expert.completed_sessions or 0) + 1
        expert.total_earnings = to_money(
            Decimal(expert.total_earnings or 0) + Decimal(session.expert_commission)
        )

    def _completion_event(self, session: ConsultationSession) -> SessionCompleted:
        return SessionCompleted(
            session_id=session.id,
            recipient_id=session.client_id,
            expert_name=self._expert_name(session),
            scheduled_date=session.scheduled_date.isoformat(),
        )

    @BaseService.measure_operation("complete_session")
    def complete_session(self, actor: Actor, session_id: str) -> ConsultationSession:
        """Expert (or a privileged caller) marks a confirmed session as done."""
        session = self._get_session(session_id)
        authorize(actor, Capability.COMPLETE_SESSION, {session.expert.account_id})
        self.log_operation("complete_session", session_id=session_id, actor_id=actor.id)

        with self.transaction():
            session = self._get_session(session_id, for_update=True)
            self._complete(session)

        prometheus_metrics.record_session_transition("completed")
        self._publish([self._completion_event(session)])
        return session

    # ----------------------------------------------------------- cancellation
    @BaseService.measure_operation("cancel_session")
    def cancel_session(
        self,
        actor: Actor,
        session_id: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> CancellationResult:
        """
        Cancel an active session and return credit per the refund policy.

        The refund is added to the client's credit balance and recorded as a
        refund ledger entry. Only client cancellations count against the
        expert's cancellation statistic.
        """
        session = self._get_session(session_id)
        authorize(actor, Capability.CANCEL_SESSION, session.participant_ids())
        self.log_operation("cancel_session", session_id=session_id, actor_id=actor.id)

        with self.transaction():
            session = self._get_session(session_id, for_update=True)
            self._require_transition(session, SessionStatus.CANCELLED)

            decision = cancellation_policy.evaluate(session, now)
            cancelled_by = self._cancelled_by(actor, session)
            session.mark_cancelled(
                cancelled_by=cancelled_by,
                cancelled_by_id=actor.id,
                reason=reason,
                refund_amount=decision.refund_amount,
                at=now,
            )

            if decision.refund_amount > 0:
                self.account_repository.credit(session.client_id, decision.refund_amount)
                self.ledger_repository.create(
                    session_id=session.id,
                    account_id=session.client_id,
                    expert_id=session.expert_id,
                    entry_type=LedgerEntryType.REFUND.value,
                    status=LedgerEntryStatus.COMPLETED.value,
                    payment_method=PaymentMethod.ACCOUNT_CREDIT.value,
                    amount=decision.refund_amount,
                    currency=session.currency,
                    platform_fee=session.platform_commission,
                    expert_earnings=session.expert_commission,
                    credits_applied=ZERO,
                    description=f"Cancellation refund ({decision.fraction * 100:.0f}%)",
                )

            # An unpaid payment attempt will never be captured now.
            pending = self.ledger_repository.get_pending_payment(session.id)
            if pending is not None:
                self.ledger_repository.settle(pending, LedgerEntryStatus.FAILED)

            if cancelled_by == CancelledBy.CLIENT:
                expert = self._lock_expert(session.expert_id)
                expert.cancelled_sessions = (expert.cancelled_sessions or 0) + 1

        prometheus_metrics.record_session_transition("cancelled")
        self.logger.info(
            f"Session {session_id} cancelled by {cancelled_by.value} "
            f"lead={decision.hours_until_session:.1f}h refund={decision.refund_amount}"
        )

        self._publish(self._cancellation_events(session, cancelled_by, actor, decision))
        return CancellationResult(
            session=session,
            refund_amount=decision.refund_amount,
            refund_fraction=decision.fraction,
            hours_until_session=decision.hours_until_session,
        )

    @staticmethod
    def _cancelled_by(actor: Actor, session: ConsultationSession) -> CancelledBy:
        if actor.id == session.client_id:
            return CancelledBy.CLIENT
        if session.expert is not None and actor.id == session.expert.account_id:
            return CancelledBy.EXPERT
        return _CANCELLED_BY_ROLE[actor.role]

    def _cancellation_events(
        self,
        session: ConsultationSession,
        cancelled_by: CancelledBy,
        actor: Actor,
        decision: cancellation_policy.RefundDecision,
    ) -> List[SessionEvent]:
        if cancelled_by == CancelledBy.CLIENT:
            recipients = [(session.expert.account_id, self._client_name(session))]
        elif cancelled_by == CancelledBy.EXPERT:
            recipients = [(session.client_id, self._expert_name(session))]
        else:
            recipients = [
                (session.client_id, "Support"),
                (session.expert.account_id, "Support"),
            ]
        return [
            SessionCancelled(
                session_id=session.id,
                recipient_id=recipient_id,
                cancelled_by=cancelled_by.value,
                cancelled_by_name=name,
                scheduled_date=session.scheduled_date.isoformat(),
                scheduled_time=time_to_string(session.scheduled_time),
                reason=session.cancel_reason,
                refund_amount=str(decision.refund_amount),
            )
            for recipient_id, name in recipients
        ]

    # ----------------------------------------------------------------- rating
    @BaseService.measure_operation("rate_session")
    def rate_session(
        self,
        actor: Actor,
        session_id: str,
        rating: int,
        review: Optional[str] = None,
    ) -> ConsultationSession:
        """Client rates a completed session once; the expert's mean is updated."""
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise ValidationException("Rating must be a whole number", details={"rating": rating})
        if not MIN_RATING <= rating <= MAX_RATING:
            raise ValidationException(
                f"Rating must be between {MIN_RATING} and {MAX_RATING}",
                details={"rating": rating},
            )

        session = self._get_session(session_id)
        authorize(actor, Capability.RATE_SESSION, {session.client_id})
        self.log_operation("rate_session", session_id=session_id, rating=rating)

        with self.transaction():
            session = self._get_session(session_id, for_update=True)
            if session.status != SessionStatus.COMPLETED.value:
                raise InvalidStateException(
                    "Only completed sessions can be rated",
                    current_status=session.status,
                    details={"session_id": session_id},
                )
            if session.rating is not None:
                raise InvalidStateException(
                    "Session has already been rated",
                    current_status=session.status,
                    details={"session_id": session_id, "rating": session.rating},
                )

            session.rating = rating
            session.review = review
            session.reviewed_at = datetime.now(timezone.utc)

            expert = self._lock_expert(session.expert_id)
            count = expert.review_count or 0
            expert.rating = online_mean(expert.rating or 0.0, count, rating)
            expert.review_count = count + 1

        prometheus_metrics.record_session_transition("rated")
        self._publish(
            [
                SessionReviewed(
                    session_id=session.id,
                    recipient_id=session.expert.account_id,
                    client_name=self._client_name(session),
                    rating=rating,
                )
            ]
        )
        return session

    # ----------------------------------------------------------------- refund
    @BaseService.measure_operation("refund_session")
    def refund_session(
        self, actor: Actor, session_id: str, reason: Optional[str] = None
    ) -> ConsultationSession:
        """
        Administrative full refund of an active session.

        Credits applied at booking go back to the balance; a captured card
        payment is recorded for reversal by the payment provider.
        """
        authorize(actor, Capability.REFUND_SESSION)
        self.log_operation("refund_session", session_id=session_id, actor_id=actor.id)

        with self.transaction():
            session = self._get_session(session_id, for_update=True)
            self._require_transition(session, SessionStatus.REFUNDED)

            credits_used = to_money(session.user_credits_used or 0)
            card_paid = (
                to_money(session.amount_due)
                if session.payment_status == PaymentStatus.PAID.value
                else ZERO
            )
            total = credits_used + card_paid

            if credits_used > 0:
                self.account_repository.credit(session.client_id, credits_used)
            pending = self.ledger_repository.get_pending_payment(session.id)
            if pending is not None:
                self.ledger_repository.settle(pending, LedgerEntryStatus.FAILED)
            if total > 0:
                if credits_used > 0 and card_paid > 0:
                    method = PaymentMethod.MIXED
                elif credits_used > 0:
                    method = PaymentMethod.CREDITS
                else:
                    method = PaymentMethod.CARD
                self.ledger_repository.create(
                    session_id=session.id,
                    account_id=session.client_id,
                    expert_id=session.expert_id,
                    entry_type=LedgerEntryType.REFUND.value,
                    status=LedgerEntryStatus.COMPLETED.value,
                    payment_method=method.value,
                    amount=total,
                    currency=session.currency,
                    platform_fee=session.platform_commission,
                    expert_earnings=session.expert_commission,
                    credits_applied=credits_used,
                    description=reason or "Administrative refund",
                )
            session.mark_refunded(total)
            if reason:
                session.cancel_reason = reason

        prometheus_metrics.record_session_transition("refunded")
        self._publish(
            [
                SessionRefunded(
                    session_id=session.id,
                    recipient_id=session.client_id,
                    refund_amount=str(total),
                    currency=session.currency,
                )
            ]
        )
        return session

    # ------------------------------------------------------------------- jobs
    def complete_elapsed_sessions(self, now: Optional[datetime] = None) -> int:
        """Complete confirmed sessions whose end has passed. Returns how many."""
        current = now or datetime.now(timezone.utc)
        # Local dates can run a day ahead of UTC.
        candidates = self.session_repository.find_confirmed_through(
            current.date() + timedelta(days=1)
        )
        completed = 0
        for candidate in candidates:
            if candidate.end_instant() > current:
                continue
            try:
                with self.transaction():
                    session = self._get_session(candidate.id, for_update=True)
                    self._complete(session)
            except InvalidStateException:
                self.logger.info(f"Session {candidate.id} changed state before auto-complete")
                continue
            completed += 1
            prometheus_metrics.record_session_transition("completed")
            self._publish([self._completion_event(session)])

        if completed:
            self.logger.info(f"Auto-completed {completed} elapsed sessions")
        return completed

    def send_due_reminders(
        self, now: Optional[datetime] = None, lead_hours: Optional[int] = None
    ) -> int:
        """Remind both parties of active sessions starting within the lead window."""
        current = now or datetime.now(timezone.utc)
        lead = settings.reminder_lead_hours if lead_hours is None else lead_hours
        horizon = current + timedelta(hours=lead)
        candidates = self.session_repository.find_reminder_candidates(
            current.date() - timedelta(days=1), horizon.date() + timedelta(days=1)
        )

        sent = 0
        for session in candidates:
            start = session.start_instant()
            if not current < start <= horizon:
                continue
            with self.transaction():
                claimed = self.session_repository.claim_reminder(session.id)
            if not claimed:
                continue
            sent += 1
            scheduled_date = session.scheduled_date.isoformat()
            scheduled_time = time_to_string(session.scheduled_time)
            self._publish(
                [
                    SessionReminder(
                        session_id=session.id,
                        recipient_id=session.client_id,
                        counterpart_name=self._expert_name(session),
                        scheduled_date=scheduled_date,
                        scheduled_time=scheduled_time,
                        lead_hours=lead,
                    ),
                    SessionReminder(
                        session_id=session.id,
                        recipient_id=session.expert.account_id,
                        counterpart_name=self._client_name(session),
                        scheduled_date=scheduled_date,
                        scheduled_time=scheduled_time,
                        lead_hours=lead,
                    ),
                ]
            )

        if sent:
            self.logger.info(f"Sent reminders for {sent} sessions")
        return sent

    def reconcile_expert_statistics(self) -> int:
        """
        Recompute every expert's counters from session history.

        Returns the number of experts whose stored values were corrected.
        """
        expert_ids = self.expert_repository.list_ids()
        completed = self.session_repository.completed_totals_by_expert(expert_ids)
        ratings = self.session_repository.rating_totals_by_expert(expert_ids)
        cancellations = self.session_repository.client_cancellation_counts_by_expert(expert_ids)

        corrected = 0
        for expert_id in expert_ids:
            completed_count, earnings = completed.get(expert_id, (0, ZERO))
            review_count, mean = ratings.get(expert_id, (0, 0.0))
            cancelled = cancellations.get(expert_id, 0)
            with self.transaction():
                expert = self._lock_expert(expert_id)
                expected = {
                    "total_sessions": completed_count,
                    "completed_sessions": completed_count,
                    "cancelled_sessions": cancelled,
                    "total_earnings": earnings,
                    "review_count": review_count,
                }
                drift = {
                    field: value
                    for field, value in expected.items()
                    if getattr(expert, field) != value
                }
                if abs((expert.rating or 0.0) - mean) > 1e-9:
                    drift["rating"] = mean
                for field, value in drift.items():
                    setattr(expert, field, value)
            if drift:
                corrected += 1
                self.logger.warning(
                    f"Reconciled statistics for expert {expert_id}: {sorted(drift)}"
                )
        return corrected
