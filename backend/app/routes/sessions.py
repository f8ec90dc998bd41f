# backend/app/routes/sessions.py
"""
Training session routes.

Availability windows, sessions and bookings under /sessions.
All business logic delegated to the availability, session and booking services.

Endpoints:
    POST /availability - Declare an availability window (trainer)
    GET /my-availability - List own availability, optionally for one date (trainer)
    PATCH /availability/{availability_id} - Update a window (trainer)
    DELETE /availability/{availability_id} - Delete a window (trainer)
    GET /my-sessions - Sessions of the caller as trainer or client
    GET /stats - Session and booking counts by status
    GET /available-slots/{trainer_id} - Free time of a trainer on a date
    GET /trainers/search - Active trainers with their availability
    GET /bookings/{booking_id} - Booking details
    POST /bookings/{booking_id}/confirm - Confirm a pending booking (trainer)
    POST /bookings/{booking_id}/cancel - Cancel a booking
    POST / - Create a session (trainer)
    GET /{session_id} - Session details
    PATCH /{session_id} - Update a session (trainer)
    DELETE /{session_id} - Delete a session (trainer)
    POST /{session_id}/book - Book a session (client)
"""

import asyncio
from datetime import date
import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ..api.dependencies import (
    get_availability_service,
    get_booking_service,
    get_current_user,
    get_training_session_service,
    require_client,
    require_trainer,
)
from ..core.enums import SessionStatus
from ..core.exceptions import DomainException
from ..models.user import User
from ..schemas.availability import (
    AvailabilityCreate,
    AvailabilityResponse,
    AvailabilityUpdate,
    AvailableSlotsResponse,
    TrainerSearchResponse,
)
from ..schemas.booking import (
    BookingResponse,
    BookSessionRequest,
    CancelBookingRequest,
    ConfirmBookingRequest,
)
from ..schemas.training_session import (
    SessionCreate,
    SessionListResponse,
    SessionResponse,
    SessionStatsResponse,
    SessionUpdate,
)
from ..services.availability_service import AvailabilityService
from ..services.booking_service import BookingService
from ..services.training_session_service import TrainingSessionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sessions"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


# ============================================================================
# SECTION 1: Availability
# ============================================================================


@router.post(
    "/availability",
    response_model=AvailabilityResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_availability(
    payload: AvailabilityCreate,
    current_user: User = Depends(require_trainer),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResponse:
    try:
        availability = await asyncio.to_thread(
            availability_service.create_availability, current_user, payload
        )
        return AvailabilityResponse.model_validate(availability)
    except DomainException as exc:
        handle_domain_exception(exc)


@router.get("/my-availability", response_model=List[AvailabilityResponse])
async def get_my_availability(
    on_date: Optional[date] = Query(
        None, alias="date", description="Only windows applying to this date"
    ),
    current_user: User = Depends(require_trainer),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> List[AvailabilityResponse]:
    """List the caller's availability windows."""
    try:
        windows = await asyncio.to_thread(
            availability_service.list_availability, current_user.id, on_date
        )
        return [AvailabilityResponse.model_validate(window) for window in windows]
    except DomainException as exc:
        handle_domain_exception(exc)


@router.patch("/availability/{availability_id}", response_model=AvailabilityResponse)
async def update_availability(
    payload: AvailabilityUpdate,
    availability_id: str,
    current_user: User = Depends(require_trainer),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResponse:
    try:
        availability = await asyncio.to_thread(
            availability_service.update_availability, current_user, availability_id, payload
        )
        return AvailabilityResponse.model_validate(availability)
    except DomainException as exc:
        handle_domain_exception(exc)


@router.delete(
    "/availability/{availability_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def delete_availability(
    availability_id: str,
    current_user: User = Depends(require_trainer),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> Response:
    try:
        await asyncio.to_thread(
            availability_service.delete_availability, current_user, availability_id
        )
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except DomainException as exc:
        handle_domain_exception(exc)


# ============================================================================
# SECTION 2: Static session routes (no session id)
# ============================================================================


@router.get("/my-sessions", response_model=SessionListResponse)
async def get_my_sessions(
    status_filter: Optional[SessionStatus] = Query(None, alias="status"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    session_service: TrainingSessionService = Depends(get_training_session_service),
) -> SessionListResponse:
    """Sessions the caller trains, or sessions assigned to the calling client."""
    try:
        sessions = await asyncio.to_thread(
            session_service.list_sessions,
            current_user,
            status=status_filter,
            date_from=date_from,
            date_to=date_to,
            limit=limit,
            offset=offset,
        )
        items = [SessionResponse.model_validate(session) for session in sessions]
        return SessionListResponse(items=items, total=len(items))
    except DomainException as exc:
        handle_domain_exception(exc)


@router.get("/stats", response_model=SessionStatsResponse)
async def get_session_stats(
    current_user: User = Depends(get_current_user),
    session_service: TrainingSessionService = Depends(get_training_session_service),
) -> SessionStatsResponse:
    try:
        return await asyncio.to_thread(session_service.get_session_stats, current_user)
    except DomainException as exc:
        handle_domain_exception(exc)


@router.get("/available-slots/{trainer_id}", response_model=AvailableSlotsResponse)
async def get_available_slots(
    trainer_id: str,
    on_date: date = Query(..., alias="date"),
    current_user: User = Depends(get_current_user),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailableSlotsResponse:
    """Open windows of ``trainer_id`` on a date minus blocked time and booked sessions."""
    try:
        return await asyncio.to_thread(
            availability_service.get_available_slots, trainer_id, on_date
        )
    except DomainException as exc:
        handle_domain_exception(exc)


@router.get("/trainers/search", response_model=TrainerSearchResponse)
async def search_trainers(
    on_date: Optional[date] = Query(None, alias="date"),
    q: Optional[str] = Query(None, max_length=100),
    limit: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> TrainerSearchResponse:
    try:
        return await asyncio.to_thread(
            availability_service.search_trainers, on_date, q, limit
        )
    except DomainException as exc:
        handle_domain_exception(exc)


# ============================================================================
# SECTION 3: Bookings
# ============================================================================


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    current_user: User = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.get_booking, current_user, booking_id)
        return BookingResponse.model_validate(booking)
    except DomainException as exc:
        handle_domain_exception(exc)


@router.post("/bookings/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking(
    booking_id: str,
    payload: Optional[ConfirmBookingRequest] = None,
    current_user: User = Depends(require_trainer),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.confirm_booking,
            current_user,
            booking_id,
            payload.response if payload else None,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as exc:
        handle_domain_exception(exc)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str,
    payload: Optional[CancelBookingRequest] = None,
    current_user: User = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.cancel_booking,
            current_user,
            booking_id,
            payload.reason if payload else None,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as exc:
        handle_domain_exception(exc)


# ============================================================================
# SECTION 4: Session routes (with session id)
# ============================================================================


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: SessionCreate,
    current_user: User = Depends(require_trainer),
    session_service: TrainingSessionService = Depends(get_training_session_service),
) -> SessionResponse:
    try:
        session = await asyncio.to_thread(session_service.create_session, current_user, payload)
        return SessionResponse.model_validate(session)
    except DomainException as exc:
        handle_domain_exception(exc)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    current_user: User = Depends(get_current_user),
    session_service: TrainingSessionService = Depends(get_training_session_service),
) -> SessionResponse:
    try:
        session = await asyncio.to_thread(session_service.get_session, current_user, session_id)
        return SessionResponse.model_validate(session)
    except DomainException as exc:
        handle_domain_exception(exc)


@router.patch("/{session_id}", response_model=SessionResponse)
async def update_session(
    session_id: str,
    payload: SessionUpdate,
    current_user: User = Depends(require_trainer),
    session_service: TrainingSessionService = Depends(get_training_session_service),
) -> SessionResponse:
    try:
        session = await asyncio.to_thread(
            session_service.update_session, current_user, session_id, payload
        )
        return SessionResponse.model_validate(session)
    except DomainException as exc:
        handle_domain_exception(exc)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def delete_session(
    session_id: str,
    current_user: User = Depends(require_trainer),
    session_service: TrainingSessionService = Depends(get_training_session_service),
) -> Response:
    try:
        await asyncio.to_thread(session_service.delete_session, current_user, session_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except DomainException as exc:
        handle_domain_exception(exc)


@router.post(
    "/{session_id}/book",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def book_session(
    session_id: str,
    payload: Optional[BookSessionRequest] = None,
    current_user: User = Depends(require_client),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Request a scheduled session; the booking starts PENDING."""
    try:
        booking = await asyncio.to_thread(
            booking_service.book_session,
            current_user,
            session_id,
            payload.message if payload else None,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as exc:
        handle_domain_exception(exc)
