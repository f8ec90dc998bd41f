# backend/app/core/enums.py
"""
Core enums for the trainer booking platform.

Values are stored as plain strings in the database, so every enum
subclasses ``str`` and compares equal to its stored value.
"""

from enum import Enum


class RoleName(str, Enum):
    """Roles carried in the access token ``role`` claim."""

    TRAINER = "TRAINER"
    CLIENT = "CLIENT"
    ADMIN = "ADMIN"


class SessionType(str, Enum):
    PERSONAL = "PERSONAL"
    GROUP = "GROUP"
    ONLINE = "ONLINE"


class SessionStatus(str, Enum):
    """Training session lifecycle. Everything except SCHEDULED is terminal."""

    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class CancelledBy(str, Enum):
    """Which side cancelled a booking."""

    CLIENT = "CLIENT"
    TRAINER = "TRAINER"
    SYSTEM = "SYSTEM"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    DISPUTED = "DISPUTED"


class PaymentProvider(str, Enum):
    STRIPE = "STRIPE"
    LIQPAY = "LIQPAY"


class PaymentType(str, Enum):
    SESSION = "SESSION"
    SUBSCRIPTION = "SUBSCRIPTION"


class SubscriptionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    CANCELED = "canceled"
    FAILED = "failed"


class WebhookStatus(str, Enum):
    """Ledger states for inbound gateway events."""

    PROCESSING = "processing"
    PROCESSED = "processed"
    IGNORED = "ignored"
    FAILED = "failed"
