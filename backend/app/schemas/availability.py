"""Availability and slot discovery schemas."""

import datetime as dt
from datetime import date, datetime
from typing import List, Optional

from pydantic import Field

from .base import ORMResponse, StrictModel, StrictRequestModel


class AvailabilityCreate(StrictRequestModel):
    """Declare an open (or blocked) window, weekly or for one date."""

    day_of_week: Optional[int] = Field(
        default=None, ge=0, le=6, description="0 = Sunday ... 6 = Saturday"
    )
    specific_date: Optional[date] = Field(
        default=None, description="Pin the window to one calendar date"
    )
    start_time: str = Field(..., max_length=5, description="HH:MM, 24-hour")
    end_time: str = Field(..., max_length=5, description="HH:MM, 24-hour")
    is_recurring: bool = Field(default=True, description="Repeat weekly on day_of_week")
    is_available: bool = Field(default=True, description="False marks the window as blocked")


class AvailabilityUpdate(StrictRequestModel):
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    specific_date: Optional[date] = None
    start_time: Optional[str] = Field(default=None, max_length=5)
    end_time: Optional[str] = Field(default=None, max_length=5)
    is_recurring: Optional[bool] = None
    is_available: Optional[bool] = None


class AvailabilityResponse(ORMResponse):
    id: str
    trainer_id: str
    day_of_week: int
    specific_date: Optional[date] = None
    start_time: str
    end_time: str
    is_recurring: bool
    is_available: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TimeRange(StrictModel):
    start_time: str
    end_time: str


class ConflictingSession(StrictModel):
    id: str
    title: str
    start_time: str
    end_time: str
    status: str


class AvailabilityWindow(StrictModel):
    """One open window on the requested date and what is already scheduled inside it."""

    availability_id: str
    start_time: str
    end_time: str
    is_recurring: bool
    is_booked: bool = Field(..., description="True when a session overlaps the window")
    conflicting_sessions: List[ConflictingSession] = Field(default_factory=list)
    free_ranges: List[TimeRange] = Field(default_factory=list)


class AvailableSlotsResponse(StrictModel):
    trainer_id: str
    date: date
    day_of_week: int
    slots: List[TimeRange] = Field(
        default_factory=list, description="Free time on the date after sessions are removed"
    )
    windows: List[AvailabilityWindow] = Field(default_factory=list)


class TrainerSummary(StrictModel):
    id: str
    full_name: str
    email: str
    subscription_plan: Optional[str] = None


class TrainerSearchResult(StrictModel):
    trainer: TrainerSummary
    availability: List[AvailabilityResponse] = Field(default_factory=list)


class TrainerSearchResponse(StrictModel):
    date: Optional[dt.date] = None
    trainers: List[TrainerSearchResult] = Field(default_factory=list)
