# backend/app/repositories/factory.py
"""
Repository Factory for the trainer booking platform.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from sqlalchemy.orm import Session

from .payment_repository import PaymentRepository
from .session_booking_repository import SessionBookingRepository
from .subscription_repository import SubscriptionRepository
from .trainer_availability_repository import TrainerAvailabilityRepository
from .training_session_repository import TrainingSessionRepository
from .user_repository import UserRepository
from .webhook_event_repository import WebhookEventRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation so services share one construction path
    and tests can swap implementations in one place.
    """

    @staticmethod
    def create_user_repository(db: Session) -> UserRepository:
        return UserRepository(db)

    @staticmethod
    def create_availability_repository(db: Session) -> TrainerAvailabilityRepository:
        return TrainerAvailabilityRepository(db)

    @staticmethod
    def create_training_session_repository(db: Session) -> TrainingSessionRepository:
        return TrainingSessionRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> SessionBookingRepository:
        return SessionBookingRepository(db)

    @staticmethod
    def create_payment_repository(db: Session) -> PaymentRepository:
        return PaymentRepository(db)

    @staticmethod
    def create_subscription_repository(db: Session) -> SubscriptionRepository:
        return SubscriptionRepository(db)

    @staticmethod
    def create_webhook_event_repository(db: Session) -> WebhookEventRepository:
        return WebhookEventRepository(db)
