# backend/app/repositories/__init__.py
"""
Repository Pattern Implementation for the trainer booking platform.

This package provides the repository layer for data access,
separating business logic from database queries.

Usage:
    from app.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_training_session_repository(db)
    sessions = repository.list_active_for_trainer_on_date(trainer_id, session_date)
"""

from .base_repository import BaseRepository
from .factory import RepositoryFactory
from .payment_repository import PaymentRepository
from .session_booking_repository import SessionBookingRepository
from .subscription_repository import SubscriptionRepository
from .trainer_availability_repository import TrainerAvailabilityRepository
from .training_session_repository import TrainingSessionRepository
from .user_repository import UserRepository
from .webhook_event_repository import WebhookEventRepository

__all__ = [
    "BaseRepository",
    "PaymentRepository",
    "RepositoryFactory",
    "SessionBookingRepository",
    "SubscriptionRepository",
    "TrainerAvailabilityRepository",
    "TrainingSessionRepository",
    "UserRepository",
    "WebhookEventRepository",
]
