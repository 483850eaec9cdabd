# backend/sati/routes/rooms.py
"""Room catalog routes: public reads, admin writes."""

import asyncio
from datetime import date
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from ..api.dependencies import get_room_service, require_admin
from ..core.exceptions import DomainException
from ..core.timezone_utils import business_now
from ..errors import handle_domain_exception
from ..models.user import User
from ..schemas.booking import BookingResponse
from ..schemas.room import RoomAvailability, RoomCreate, RoomResponse, RoomUpdate
from ..services.room_service import RoomService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["rooms"])


@router.get("", response_model=List[RoomResponse])
async def list_rooms(
    include_inactive: bool = Query(False),
    room_service: RoomService = Depends(get_room_service),
) -> List[RoomResponse]:
    rooms = await asyncio.to_thread(room_service.list_rooms, not include_inactive)
    return [RoomResponse.model_validate(r) for r in rooms]


@router.post("", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    request: RoomCreate,
    current_user: User = Depends(require_admin),
    room_service: RoomService = Depends(get_room_service),
) -> RoomResponse:
    try:
        room = await asyncio.to_thread(room_service.create_room, current_user, request)
        return RoomResponse.model_validate(room)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{room_id}", response_model=RoomResponse)
async def update_room(
    room_id: str,
    request: RoomUpdate,
    current_user: User = Depends(require_admin),
    room_service: RoomService = Depends(get_room_service),
) -> RoomResponse:
    """Update a room; setting is_active=false cancels its future bookings."""
    try:
        room = await asyncio.to_thread(room_service.update_room, current_user, room_id, request)
        return RoomResponse.model_validate(room)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{room_id}", response_model=RoomResponse)
async def get_room(
    room_id: str,
    room_service: RoomService = Depends(get_room_service),
) -> RoomResponse:
    try:
        room = await asyncio.to_thread(room_service.get_room, room_id)
        return RoomResponse.model_validate(room)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{room_id}/availability", response_model=RoomAvailability)
async def get_room_availability(
    room_id: str,
    day: Optional[date] = Query(None, alias="date"),
    room_service: RoomService = Depends(get_room_service),
) -> RoomAvailability:
    """Booked slots for one day (default: today in the business time zone)."""
    target = day or business_now().date()
    try:
        bookings = await asyncio.to_thread(room_service.get_day_bookings, room_id, target)
    except DomainException as e:
        handle_domain_exception(e)
    return RoomAvailability(
        room_id=room_id,
        booking_date=target,
        bookings=[BookingResponse.model_validate(b) for b in bookings],
    )


@router.get("/{room_id}/future-bookings", response_model=List[BookingResponse])
async def get_future_bookings(
    room_id: str,
    room_service: RoomService = Depends(get_room_service),
) -> List[BookingResponse]:
    try:
        bookings = await asyncio.to_thread(room_service.get_future_bookings, room_id)
        return [BookingResponse.model_validate(b) for b in bookings]
    except DomainException as e:
        handle_domain_exception(e)
