"""Training session schemas."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import Field

from ..core.enums import SessionStatus, SessionType
from .base import Money, ORMResponse, StrictModel, StrictRequestModel
from .booking import BookingResponse


class SessionCreate(StrictRequestModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    session_date: date
    start_time: str = Field(..., max_length=5, description="HH:MM, 24-hour")
    end_time: str = Field(..., max_length=5, description="HH:MM, 24-hour")
    session_type: SessionType = SessionType.PERSONAL
    client_id: Optional[str] = Field(default=None, description="Pre-assign a client")
    location: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = Field(default=None, max_length=2000)
    price: Optional[Money] = Field(default=None, description="0 to 10000 in the session currency")
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    workout_plan_id: Optional[str] = None


class SessionUpdate(StrictRequestModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    session_date: Optional[date] = None
    start_time: Optional[str] = Field(default=None, max_length=5)
    end_time: Optional[str] = Field(default=None, max_length=5)
    session_type: Optional[SessionType] = None
    status: Optional[SessionStatus] = None
    location: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = Field(default=None, max_length=2000)
    price: Optional[Money] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    workout_plan_id: Optional[str] = None


class SessionResponse(ORMResponse):
    id: str
    trainer_id: str
    client_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    session_date: date
    start_time: str
    end_time: str
    duration: int
    session_type: str
    status: str
    location: Optional[str] = None
    notes: Optional[str] = None
    price: Optional[Money] = None
    currency: str
    workout_plan_id: Optional[str] = None
    booking: Optional[BookingResponse] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SessionListResponse(StrictModel):
    items: List[SessionResponse]
    total: int


class SessionStatsResponse(StrictModel):
    total: int = 0
    completed: int = 0
    cancelled: int = 0
    scheduled: int = 0
    no_show: int = 0
    pending_bookings: int = 0
    confirmed_bookings: int = 0
