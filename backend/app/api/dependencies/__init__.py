# backend/app/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import get_current_actor
from .database import get_db
from .services import (
    get_availability_service,
    get_booking_scheduler,
    get_expert_service,
    get_session_lifecycle,
    get_session_query_service,
)

__all__ = [
    # Auth
    "get_current_actor",
    # Database
    "get_db",
    # Services
    "get_availability_service",
    "get_booking_scheduler",
    "get_expert_service",
    "get_session_lifecycle",
    "get_session_query_service",
]
