"""
Database models for the trainer booking platform.

Importing this package registers every table on ``Base.metadata``.
"""

from .payment import Payment
from .session_booking import SessionBooking
from .subscription import Subscription
from .trainer_availability import TrainerAvailability
from .training_session import TrainingSession
from .user import User
from .webhook_event import WebhookEvent

__all__ = [
    "Payment",
    "SessionBooking",
    "Subscription",
    "TrainerAvailability",
    "TrainingSession",
    "User",
    "WebhookEvent",
]
