# backend/app/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import (
    get_current_user,
    require_admin,
    require_client,
    require_roles,
    require_trainer,
    require_trainer_or_admin,
)
from .database import get_db
from .services import (
    get_availability_service,
    get_booking_service,
    get_payment_gateways,
    get_payment_service,
    get_subscription_service,
    get_training_session_service,
)

__all__ = [
    # Auth
    "get_current_user",
    "require_admin",
    "require_client",
    "require_roles",
    "require_trainer",
    "require_trainer_or_admin",
    # Database
    "get_db",
    # Services
    "get_availability_service",
    "get_booking_service",
    "get_payment_gateways",
    "get_payment_service",
    "get_subscription_service",
    "get_training_session_service",
]
