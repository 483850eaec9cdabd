# backend/sati/services/booking_service.py
"""
Booking Service for the SATI platform.

Handles the booking admission pipeline and the booking lifecycle:
- Admitting booking requests against the configured policies
- Creating the payment obligation that accompanies every booking
- Status transitions with the cancellation-notice rule
- Penalizations applied to a booking's payment
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError
import pytz
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ..core.constants import (
    ADVANCE_BOOKING_DAYS,
    CANCELLATION_HOURS_NOTICE,
    MAX_ACTIVE_BOOKINGS,
    MAX_BOOKING_DURATION_HOURS,
    PAYMENT_CONCEPT_MAX_CHARS,
)
from ..core.exceptions import (
    BookingConflictException,
    BusinessRuleException,
    DocumentationRequiredException,
    DomainException,
    DurationTooLongException,
    ForbiddenException,
    InsufficientAdvanceNoticeException,
    InsufficientNoticeException,
    InvalidBookingRequestException,
    NotFoundException,
    PastDateException,
    QuotaExceededException,
    RepositoryException,
    ResourceNotFoundException,
    UnpaidBalanceException,
    ValidationException,
)
from ..core.timezone_utils import (
    booking_instant,
    business_now,
    days_between,
    get_business_timezone,
    hours_between,
)
from ..models.booking import Booking, BookingStatus
from ..models.payment import Payment, PaymentStatus
from ..models.room import Room
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.booking_repository import BookingFilters
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import BookingCreate
from .audit_log_service import AuditLogService
from .base import BaseService
from .cache_service import TTLCache, account_summary_key
from .config_service import ConfigService
from .notification_service import NotificationService
from .payment_service import PaymentService

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
BOOKING_PAYMENT_METHOD = "booking"
GENERIC_CONFLICT_MESSAGE = "Room is already booked for this time"
VALID_STATUSES = frozenset(status.value for status in BookingStatus)

BookingRequest = Union[BookingCreate, Mapping[str, Any]]


def booking_amount(price_minor_units: int, hours: int) -> Decimal:
    """Charge in major units for a room priced per hour in minor units."""
    return (Decimal(price_minor_units) * hours / Decimal(100)).quantize(
        CENT, rounding=ROUND_HALF_UP
    )


def _validation_errors(exc: ValidationError) -> List[Dict[str, Any]]:
    return [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Every policy value is read through ConfigService on each call so an admin
    change applies to the very next request.
    """

    @staticmethod
    def _is_deadlock_error(exc: BaseException) -> bool:
        orig = getattr(exc, "orig", None)
        pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        if pgcode in ("40P01", "40001", "55P03"):
            return True
        message = str(exc).lower()
        return any(
            marker in message
            for marker in ("deadlock detected", "could not obtain lock", "database is locked")
        )

    def __init__(
        self,
        db: Optional[Session],
        cache: Optional[TTLCache] = None,
        *,
        booking_repository: Any = None,
        room_repository: Any = None,
        user_repository: Any = None,
        payment_repository: Any = None,
        config_service: Optional[ConfigService] = None,
        payment_service: Optional[PaymentService] = None,
        notification_service: Optional[NotificationService] = None,
        audit_service: Optional[AuditLogService] = None,
        clock: Callable[[], datetime] = business_now,
    ):
        """
        Initialize booking service.

        Args:
            db: Database session, or None when every repository is injected
            cache: Shared account-summary cache
            clock: Returns the current naive wall-clock time in the business zone
        """
        super().__init__(db, cache)
        self.repository = booking_repository or RepositoryFactory.create_booking_repository(db)
        self.room_repository = room_repository or RepositoryFactory.create_room_repository(db)
        self.user_repository = user_repository or RepositoryFactory.create_user_repository(db)
        self.payment_repository = payment_repository or RepositoryFactory.create_payment_repository(
            db
        )
        self.config_service = config_service or ConfigService(db)
        self.audit = audit_service or AuditLogService(db)
        self.payment_service = payment_service or PaymentService(
            db,
            cache,
            payment_repository=self.payment_repository,
            user_repository=self.user_repository,
            booking_repository=self.repository,
            audit_service=self.audit,
        )
        self.notification_service = notification_service or NotificationService()
        self._clock = clock

    # ------------------------------------------------------------------ #
    # Admission
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("create_booking")
    def create_booking(self, actor: Optional[User], request: BookingRequest) -> Booking:
        """
        Admit a booking request and create its payment obligation.

        Checks run in a fixed order and the first failure is raised:
        documentation, request shape, room, past date, advance notice, quota,
        duration, overlap, unpaid balance.

        Args:
            actor: The requesting user
            request: BookingCreate or a raw mapping validated into one

        Returns:
            The confirmed booking

        Raises:
            DocumentationRequiredException: Actor unknown or not approved
            InvalidBookingRequestException: Malformed request
            ResourceNotFoundException: Room missing or deactivated
            PolicyViolationException: Past date, advance notice, quota, duration
            BookingConflictException: Overlap with a non-cancelled booking
            UnpaidBalanceException: Too many pending payments
        """
        try:
            booking, user, room = self._admit(actor, request)
        except DomainException as exc:
            prometheus_metrics.inc_booking_admission(exc.code)
            self.logger.info(f"Booking rejected ({exc.code}): {exc.message}")
            raise

        prometheus_metrics.inc_booking_admission("admitted")
        self.invalidate_cache(account_summary_key(user.id))
        self.log_operation(
            "create_booking",
            booking_id=booking.id,
            user_id=user.id,
            room_id=room.id,
            date=booking.booking_date.isoformat(),
        )
        self.notification_service.send_booking_confirmation(booking, user, room)
        return booking

    def _admit(self, actor: Optional[User], request: BookingRequest) -> tuple[Booking, User, Room]:
        user = self._check_identity(actor)
        data = self._parse_request(request)

        try:
            with self.repository.transaction():
                room = self.room_repository.lock_for_update(data.room_id)
                if room is None or not room.is_active:
                    raise ResourceNotFoundException(data.room_id)

                duration = self._check_policies(user, data)
                self._check_overlap(data)
                self._check_unpaid_balance(user)

                booking = self.repository.create(
                    room_id=room.id,
                    user_id=user.id,
                    booking_date=data.booking_date,
                    start_time=data.start_time,
                    end_time=data.end_time,
                    status=BookingStatus.CONFIRMED.value,
                    notes=data.notes,
                )
                self.payment_repository.create_payment_record(
                    user_id=user.id,
                    amount=booking_amount(room.price, duration),
                    concept=self._payment_concept(room, user, data),
                    booking_id=booking.id,
                    status=PaymentStatus.PENDING.value,
                    method=BOOKING_PAYMENT_METHOD,
                )
        except IntegrityError as exc:
            raise BookingConflictException(
                GENERIC_CONFLICT_MESSAGE, details=self._conflict_details(data)
            ) from exc
        except OperationalError as exc:
            if self._is_deadlock_error(exc):
                raise BookingConflictException(
                    GENERIC_CONFLICT_MESSAGE, details=self._conflict_details(data)
                ) from exc
            raise
        except RepositoryException as exc:
            cause = exc.__cause__
            if isinstance(cause, IntegrityError) or (
                cause is not None and self._is_deadlock_error(cause)
            ):
                raise BookingConflictException(
                    GENERIC_CONFLICT_MESSAGE, details=self._conflict_details(data)
                ) from exc
            raise

        return booking, user, room

    def _check_identity(self, actor: Optional[User]) -> User:
        if actor is None:
            raise DocumentationRequiredException()
        user = self.user_repository.get_by_id(actor.id)
        if user is None:
            raise DocumentationRequiredException()
        if not user.is_admin and not user.has_approved_documentation:
            raise DocumentationRequiredException()
        return user

    @staticmethod
    def _parse_request(request: BookingRequest) -> BookingCreate:
        if isinstance(request, BookingCreate):
            return request
        if not isinstance(request, Mapping):
            raise InvalidBookingRequestException()
        try:
            return BookingCreate.model_validate(dict(request))
        except ValidationError as exc:
            raise InvalidBookingRequestException(errors=_validation_errors(exc)) from exc

    def _check_policies(self, user: User, data: BookingCreate) -> int:
        """Date, advance-notice, quota and duration checks; returns the duration in hours."""
        now = self._clock()
        instant = booking_instant(data.booking_date, data.start_time)
        if instant < now:
            raise PastDateException()

        advance_days = self.config_service.get_int(ADVANCE_BOOKING_DAYS)
        if days_between(now, instant) < advance_days:
            raise InsufficientAdvanceNoticeException(advance_days)

        max_active = self.config_service.get_int(MAX_ACTIVE_BOOKINGS)
        if self.repository.count_active_for_user(user.id) >= max_active:
            raise QuotaExceededException(max_active)

        max_hours = self.config_service.get_int(MAX_BOOKING_DURATION_HOURS)
        duration = data.end_time.hour - data.start_time.hour
        if duration > max_hours:
            raise DurationTooLongException(max_hours)
        return duration

    def _check_overlap(self, data: BookingCreate) -> None:
        conflicts = self.repository.find_conflicting(
            data.room_id, data.booking_date, data.start_time, data.end_time
        )
        if conflicts:
            details = self._conflict_details(data)
            details["conflicting_booking_ids"] = [booking.id for booking in conflicts]
            raise BookingConflictException(GENERIC_CONFLICT_MESSAGE, details=details)

    def _check_unpaid_balance(self, user: User) -> None:
        # The unpaid threshold shares the active-bookings knob.
        max_active = self.config_service.get_int(MAX_ACTIVE_BOOKINGS)
        pending = self.payment_repository.count_by_user_and_status(
            user.id, PaymentStatus.PENDING.value
        )
        if pending > max_active:
            raise UnpaidBalanceException(pending)

    @staticmethod
    def _conflict_details(data: BookingCreate) -> Dict[str, Any]:
        return {
            "room_id": data.room_id,
            "date": data.booking_date.isoformat(),
            "start_time": data.start_time.strftime("%H:%M"),
            "end_time": data.end_time.strftime("%H:%M"),
        }

    @staticmethod
    def _payment_concept(room: Room, user: User, data: BookingCreate) -> str:
        local = get_business_timezone().localize(
            booking_instant(data.booking_date, data.start_time)
        )
        utc_instant = local.astimezone(pytz.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")
        concept = f"Renta de {room.name} por {user.full_name} el {utc_instant}"
        return concept[:PAYMENT_CONCEPT_MAX_CHARS]

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def get_booking(self, booking_id: str) -> Booking:
        booking = self.repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        return booking

    @BaseService.measure_operation("list_bookings")
    def list_bookings(self, filters: BookingFilters) -> List[Booking]:
        if filters.status and filters.status not in VALID_STATUSES:
            raise ValidationException("Estado de reserva inválido", code="INVALID_STATUS")
        return self.repository.find_bookings(filters)

    @BaseService.measure_operation("update_booking_status")
    def update_status(self, actor: User, booking_id: str, new_status: Optional[str]) -> Booking:
        """
        Transition a booking to a new status.

        Only the owner or an admin may transition. Non-admin cancellations
        must leave at least ``cancellation_hours_notice`` hours before the
        start. Cancelled and completed bookings are final for non-admins;
        admin overrides of a final status are recorded in the system log.

        Raises:
            ValidationException: Unknown status
            NotFoundException: Booking not found
            ForbiddenException: Actor is neither owner nor admin
            BusinessRuleException: Non-admin re-transition of a final status
            InsufficientNoticeException: Non-admin cancellation too close to start
            BookingConflictException: Re-activation would overlap another booking
        """
        if not new_status or new_status not in VALID_STATUSES:
            raise ValidationException("Estado de reserva inválido", code="INVALID_STATUS")

        booking = self.repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Reserva no encontrada", code="BOOKING_NOT_FOUND")
        if booking.user_id != actor.id and not actor.is_admin:
            raise ForbiddenException("No autorizado a modificar esta reserva")

        previous = booking.status
        override = booking.is_terminal and new_status != previous
        if override and not actor.is_admin:
            raise BusinessRuleException(
                "La reserva ya no puede modificarse",
                code="BOOKING_FINAL_STATUS",
                details={"status": previous},
            )

        if new_status == BookingStatus.CANCELLED.value and not actor.is_admin:
            notice = self.config_service.get_int(CANCELLATION_HOURS_NOTICE)
            hours_left = hours_between(self._clock(), booking.starts_at)
            if hours_left < notice:
                raise InsufficientNoticeException(notice, hours_left)

        with self.repository.transaction():
            if previous == BookingStatus.CANCELLED.value and new_status != previous:
                self.room_repository.lock_for_update(booking.room_id)
                conflicts = self.repository.find_conflicting(
                    booking.room_id,
                    booking.booking_date,
                    booking.start_time,
                    booking.end_time,
                    exclude_booking_id=booking.id,
                )
                if conflicts:
                    raise BookingConflictException(
                        GENERIC_CONFLICT_MESSAGE,
                        details={"conflicting_booking_ids": [b.id for b in conflicts]},
                    )
            self.repository.update(
                booking.id, status=new_status, updated_at=datetime.now(timezone.utc)
            )

        if override:
            self.logger.warning(
                f"Admin {actor.id} moved final booking {booking.id}: {previous} -> {new_status}"
            )
            self.audit.warn(
                f"Override de estado final en reserva {booking.id}: {previous} -> {new_status}",
                user_id=actor.id,
                endpoint=f"/api/bookings/{booking.id}/status",
            )
        self.log_operation(
            "update_booking_status",
            booking_id=booking.id,
            previous=previous,
            new=new_status,
            actor_id=actor.id,
        )
        return booking

    @BaseService.measure_operation("penalize_booking")
    def penalize(self, actor: User, booking_id: str, percentage: Any) -> Payment:
        """
        Apply a percentage discount to the payment tied to a booking.

        Raises:
            ForbiddenException: Actor is not an admin
            ValidationException: Percentage outside [0, 100]
            NotFoundException: No payment is tied to the booking
        """
        if not actor.is_admin:
            raise ForbiddenException("Solo administradores pueden aplicar penalizaciones")
        PaymentService.parse_percentage(percentage)
        payment = self.payment_repository.get_by_booking_id(booking_id)
        if payment is None:
            raise NotFoundException(
                "No se encontró el pago asociado a esta reserva", code="PAYMENT_NOT_FOUND"
            )
        return self.payment_service.discount(payment.id, percentage)

    @BaseService.measure_operation("complete_past_bookings")
    def complete_past_bookings(self, now: Optional[datetime] = None) -> int:
        """Mark confirmed bookings whose end has passed as completed."""
        reference = now or self._clock()
        with self.repository.transaction():
            finished = self.repository.get_confirmed_ended_before(reference)
            for booking in finished:
                booking.complete()
        if finished:
            self.logger.info(f"Completed {len(finished)} past bookings")
        return len(finished)

    def bookings_for_day(self, room_id: str, day: date) -> List[Booking]:
        return self.repository.find_bookings(BookingFilters(room_id=room_id, booking_date=day))
