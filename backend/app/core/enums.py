# backend/app/core/enums.py
"""
Core enums for the scheduling engine.

Roles and capabilities form closed sets; authorization is evaluated
against them in ``app.core.permissions``.
"""

from enum import Enum


class ActorRole(str, Enum):
    """Roles an authenticated caller can hold."""

    CLIENT = "client"
    EXPERT = "expert"
    ADMIN = "admin"
    SYSTEM = "system"


class Capability(str, Enum):
    """Operations gated by authorization."""

    VIEW_AVAILABILITY = "view_availability"
    MANAGE_AVAILABILITY = "manage_availability"
    BOOK_SESSION = "book_session"
    VIEW_SESSION = "view_session"
    LIST_SESSIONS = "list_sessions"
    UPDATE_SESSION = "update_session"
    COMPLETE_SESSION = "complete_session"
    CANCEL_SESSION = "cancel_session"
    RATE_SESSION = "rate_session"
    REFUND_SESSION = "refund_session"
    REPORT_PAYMENT = "report_payment"
