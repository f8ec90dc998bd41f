# backend/app/models/user.py
"""
User model for the trainer booking platform.

Trainers, clients and admins share one table and are told apart by
``role``. Registration and profile management live outside this service;
the booking core only reads users and mirrors a trainer's subscription
state onto the row.
"""

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.sql import func
import ulid

from ..core.enums import RoleName
from ..database import Base


class User(Base):
    """
    Account record referenced by sessions, bookings and payments.

    Attributes:
        id: ULID primary key
        email: Unique email address
        full_name: Display name
        role: TRAINER, CLIENT or ADMIN
        is_active: Inactive users cannot authenticate or be booked
        stripe_account_id: Connect account receiving trainer payouts (trainers only)
        stripe_customer_id: Stripe customer used for client charges
        subscription_plan: Plan id of the trainer's current subscription
        subscription_status: Mirrors the latest subscription status
    """

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String(100), nullable=False, default="")
    role = Column(String(20), nullable=False, default=RoleName.CLIENT.value, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    stripe_account_id = Column(String(255), nullable=True)
    stripe_customer_id = Column(String(255), nullable=True)
    subscription_plan = Column(String(50), nullable=True)
    subscription_status = Column(String(20), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def is_trainer(self) -> bool:
        return self.role == RoleName.TRAINER.value

    @property
    def is_client(self) -> bool:
        return self.role == RoleName.CLIENT.value

    @property
    def is_admin(self) -> bool:
        return self.role == RoleName.ADMIN.value

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"
