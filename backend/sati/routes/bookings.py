# backend/sati/routes/bookings.py
"""
Booking routes for the SATI platform.

Router Endpoints:
    POST / - Admit a booking request
    GET / - List bookings with combinable filters
    GET /{booking_id} - Booking details
    PATCH /{booking_id}/status - Change a booking's status (owner or admin)
    POST /{booking_id}/penalize - Discount the booking's payment (admin)
"""

import asyncio
from datetime import date
import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from ..api.dependencies import get_booking_service, get_current_user, require_admin
from ..core.exceptions import DomainException
from ..errors import handle_domain_exception
from ..models.user import User
from ..repositories.booking_repository import BookingFilters
from ..schemas.booking import BookingResponse, BookingStatusUpdate, PenalizeRequest
from ..schemas.payment import PaymentAdjustmentResponse, PaymentResponse
from ..services.booking_service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bookings"])


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: Any = Body(None),
    current_user: User = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """
    Admit a booking request.

    The raw body is handed to the admission engine, which reports malformed
    requests as 400 together with every other admission failure.
    """
    try:
        booking = await asyncio.to_thread(booking_service.create_booking, current_user, payload)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("", response_model=List[BookingResponse])
async def list_bookings(
    user_id: Optional[str] = Query(None),
    room_id: Optional[str] = Query(None),
    booking_date: Optional[date] = Query(None, alias="date"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[BookingResponse]:
    filters = BookingFilters(
        user_id=user_id,
        room_id=room_id,
        booking_date=booking_date,
        start_date=start_date,
        end_date=end_date,
        status=status_filter,
    )
    try:
        bookings = await asyncio.to_thread(booking_service.list_bookings, filters)
        return [BookingResponse.model_validate(b) for b in bookings]
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.get_booking, booking_id)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: str,
    update: BookingStatusUpdate,
    current_user: User = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Move a booking to confirmed, cancelled or completed."""
    try:
        booking = await asyncio.to_thread(
            booking_service.update_status, current_user, booking_id, update.status
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/penalize", response_model=PaymentAdjustmentResponse)
async def penalize_booking(
    booking_id: str,
    request: PenalizeRequest,
    current_user: User = Depends(require_admin),
    booking_service: BookingService = Depends(get_booking_service),
) -> PaymentAdjustmentResponse:
    try:
        payment = await asyncio.to_thread(
            booking_service.penalize, current_user, booking_id, request.percentage
        )
    except DomainException as e:
        handle_domain_exception(e)
    return PaymentAdjustmentResponse(
        message=f"Penalización del {request.percentage:g}% aplicada correctamente.",
        payment=PaymentResponse.model_validate(payment),
    )
