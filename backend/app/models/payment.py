"""
Payment records for session and subscription charges.

One table serves both gateways. ``external_reference`` is the gateway
correlation id (Stripe PaymentIntent id or LiqPay order id) and is unique
per provider so callbacks resolve to exactly one row.
"""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from app.core.enums import PaymentStatus, PaymentType
from app.database import Base

if TYPE_CHECKING:
    from app.models.training_session import TrainingSession


class Payment(Base):
    """A charge requested from Stripe or LiqPay."""

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    session_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("training_sessions.id"), nullable=True, index=True
    )
    subscription_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("subscriptions.id"), nullable=True
    )
    client_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("users.id"), nullable=True, index=True
    )
    trainer_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id"), nullable=False, index=True
    )

    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default=PaymentType.SESSION.value)

    # List price of the session in its own currency
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    # What the gateway was asked to collect
    charged_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    charged_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    exchange_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 6), nullable=True)
    exchange_rate_as_of: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    exchange_rate_source: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    platform_fee: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, comment="Platform fee in list currency"
    )

    external_reference: Mapped[str] = mapped_column(String(255), nullable=False)
    gateway_transaction_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.PENDING.value
    )
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    refund_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    refund_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    session: Mapped[Optional["TrainingSession"]] = relationship("TrainingSession")

    __table_args__ = (
        UniqueConstraint(
            "provider", "external_reference", name="uq_payments_provider_external_reference"
        ),
        Index("ix_payments_status", "status"),
        Index("ix_payments_gateway_transaction_id", "gateway_transaction_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id}, provider={self.provider}, "
            f"ref={self.external_reference}, status={self.status})>"
        )
