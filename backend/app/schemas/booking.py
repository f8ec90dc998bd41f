"""Session booking schemas."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from .base import ORMResponse, StrictRequestModel


class BookSessionRequest(StrictRequestModel):
    message: Optional[str] = Field(default=None, max_length=1000, description="Note to the trainer")


class ConfirmBookingRequest(StrictRequestModel):
    response: Optional[str] = Field(
        default=None, max_length=1000, description="Trainer's reply to the client"
    )


class CancelBookingRequest(StrictRequestModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class BookingResponse(ORMResponse):
    id: str
    session_id: str
    client_id: str
    message: Optional[str] = None
    status: str
    confirmed_at: Optional[datetime] = None
    confirmed_by: Optional[str] = None
    trainer_response: Optional[str] = None
    cancelled_by: Optional[str] = None
    cancellation_date: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
