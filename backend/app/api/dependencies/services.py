# backend/app/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.availability_calculator import AvailabilityService
from ...services.booking_scheduler import BookingScheduler
from ...services.expert_service import ExpertService
from ...services.session_lifecycle import SessionLifecycle
from ...services.session_query_service import SessionQueryService
from .database import get_db

logger = logging.getLogger(__name__)


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    """Get availability service instance."""
    return AvailabilityService(db)


def get_booking_scheduler(db: Session = Depends(get_db)) -> BookingScheduler:
    """
    Get booking scheduler instance.

    Args:
        db: Database session

    Returns:
        BookingScheduler using the configured commission rate
    """
    return BookingScheduler(db)


def get_session_lifecycle(db: Session = Depends(get_db)) -> SessionLifecycle:
    return SessionLifecycle(db)


def get_session_query_service(db: Session = Depends(get_db)) -> SessionQueryService:
    return SessionQueryService(db)


def get_expert_service(db: Session = Depends(get_db)) -> ExpertService:
    """Get expert service instance."""
    return ExpertService(db)
