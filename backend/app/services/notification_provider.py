# backend/app/services/notification_provider.py
"""
Delivery end of the notification pipeline.

Stands in for the email/in-app channel that tells clients and experts about
their sessions. Each send is recorded in ``notification_delivery`` under the
outbox idempotency key, so a retried outbox row reaches a recipient once.

``NOTIFICATION_PROVIDER_RAISE_ON`` makes sends fail transiently: a
comma-separated list of event types, idempotency key fragments, or ``*``.
"""

import json
import logging
import os
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from app.database import SessionLocal
from app.repositories.notification_delivery_repository import NotificationDeliveryRepository

logger = logging.getLogger(__name__)


class NotificationProviderTemporaryError(RuntimeError):
    """The channel is unavailable; the outbox row should be retried."""


def _should_raise(event_type: str, idempotency_key: str) -> bool:
    raw = os.getenv("NOTIFICATION_PROVIDER_RAISE_ON", "")
    tokens = {token.strip() for token in raw.split(",") if token.strip()}
    if not tokens:
        return False
    if "*" in tokens or event_type in tokens:
        return True
    # Short fragments would match almost every key.
    return any(len(token) > 4 and token in idempotency_key for token in tokens)


class NotificationProvider:
    """
    Sends one rendered notification and records the delivery.

    Usage:
        NotificationProvider().send(
            event_type="session.cancelled", payload={...}, idempotency_key="..."
        )
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None) -> None:
        self._session_factory = session_factory or SessionLocal

    def send(
        self,
        event_type: str,
        payload: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> int:
        """Deliver and return how many times this key has now been sent."""
        if not idempotency_key:
            raise ValueError("idempotency_key is required for notification dispatch")
        if _should_raise(event_type, idempotency_key):
            logger.warning("Simulating provider failure for %s (%s)", event_type, idempotency_key)
            raise NotificationProviderTemporaryError(
                f"Simulated transient failure for {event_type}"
            )

        payload = payload or {}
        logger.info(
            "Sending %s to %s: %s",
            event_type,
            payload.get("recipient_id"),
            json.dumps(payload, sort_keys=True, default=str)[:500],
        )

        session = self._session_factory()
        try:
            record = NotificationDeliveryRepository(session).record_delivery(
                event_type, idempotency_key, payload
            )
            attempts = record.attempt_count
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

        if attempts > 1:
            logger.info("Duplicate send for %s suppressed downstream (%s)", idempotency_key, attempts)
        return attempts
