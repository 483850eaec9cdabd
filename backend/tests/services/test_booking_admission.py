"""
Tests for the BookingService admission pipeline (in-memory storage).

The clock is frozen at Monday 2026-03-02 09:00 business time.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
import threading
from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from sati.core.constants import (
    ADVANCE_BOOKING_DAYS,
    MAX_ACTIVE_BOOKINGS,
    MAX_BOOKING_DURATION_HOURS,
)
from sati.core.exceptions import (
    BookingConflictException,
    DocumentationRequiredException,
    DurationTooLongException,
    InsufficientAdvanceNoticeException,
    InvalidBookingRequestException,
    PastDateException,
    QuotaExceededException,
    ResourceNotFoundException,
    UnpaidBalanceException,
)
from sati.models.booking import BookingStatus
from sati.models.payment import PaymentStatus
from sati.models.user import DocumentationStatus, RoleName
from tests.helpers.services import set_config


def _request(room, day="2026-03-10", start="10:00", end="12:00", **extra):
    payload = {"room_id": room.id, "date": day, "start_time": start, "end_time": end}
    payload.update(extra)
    return payload


class TestHappyPath:
    def test_creates_confirmed_booking_and_pending_payment(self, services, repos, member, room):
        booking = services.bookings.create_booking(member, _request(room))

        assert booking.status == BookingStatus.CONFIRMED.value
        assert booking.booking_date == date(2026, 3, 10)
        assert booking.start_time == time(10, 0)
        assert booking.end_time == time(12, 0)

        payment = repos.payments.get_by_booking_id(booking.id)
        assert payment is not None
        assert payment.user_id == member.id
        assert payment.status == PaymentStatus.PENDING.value
        assert payment.method == "booking"
        assert f"{payment.amount:.2f}" == "200.00"

    def test_payment_concept_names_room_user_and_utc_start(self, services, repos, member, room):
        booking = services.bookings.create_booking(member, _request(room))

        concept = repos.payments.get_by_booking_id(booking.id).concept
        assert concept.startswith("Renta de Consultorio 1 por Ana López el ")
        # 10:00 in Mexico City is 16:00 UTC
        assert concept.endswith("2026-03-10T16:00:00.000Z")

    def test_sends_confirmation_after_commit(self, services, member, room, notifier):
        booking = services.bookings.create_booking(member, _request(room))

        notifier.send_booking_confirmation.assert_called_once()
        sent_booking, sent_user, sent_room = notifier.send_booking_confirmation.call_args.args
        assert sent_booking.id == booking.id
        assert sent_user.id == member.id
        assert sent_room.id == room.id

    def test_notification_failure_does_not_undo_booking(
        self, services, repos, member, room, notifier
    ):
        notifier.send_booking_confirmation.return_value = False

        booking = services.bookings.create_booking(member, _request(room))

        assert repos.bookings.get_by_id(booking.id) is not None

    def test_admin_books_without_documentation(self, services, admin, room):
        booking = services.bookings.create_booking(admin, _request(room))
        assert booking.user_id == admin.id

    def test_invalidates_account_summary(self, services, member, room):
        before = services.account.get_summary(member)
        assert before["pending_charges"] == "0.00"

        services.bookings.create_booking(member, _request(room))

        after = services.account.get_summary(member)
        assert after["pending_charges"] == "200.00"


class TestRejections:
    def test_undocumented_user_is_rejected(self, services, repos, room):
        user = repos.users.create(
            email="nuevo@example.com",
            full_name="Nuevo",
            role=RoleName.STANDARD.value,
            documentation_status=DocumentationStatus.PENDING.value,
        )
        with pytest.raises(DocumentationRequiredException) as exc_info:
            services.bookings.create_booking(user, _request(room))

        assert exc_info.value.status_code == 403
        assert exc_info.value.details["documentation_required"] is True

    def test_malformed_request(self, services, member, room):
        with pytest.raises(InvalidBookingRequestException) as exc_info:
            services.bookings.create_booking(member, _request(room, start="12:00", end="10:00"))
        assert exc_info.value.status_code == 400

    @pytest.mark.parametrize(
        "overrides",
        [
            {"date": "10/03/2026"},
            {"start_time": "9am"},
            {"date": "2026-03-10T10:00:00"},
            {"room_id": ""},
        ],
    )
    def test_invalid_fields(self, services, member, room, overrides):
        payload = _request(room)
        payload.update(overrides)
        with pytest.raises(InvalidBookingRequestException):
            services.bookings.create_booking(member, payload)

    def test_unknown_room(self, services, member, room):
        payload = _request(room)
        payload["room_id"] = "01HZZZZZZZZZZZZZZZZZZZZZZZ"
        with pytest.raises(ResourceNotFoundException) as exc_info:
            services.bookings.create_booking(member, payload)
        assert exc_info.value.status_code == 404

    def test_inactive_room_is_not_bookable(self, services, repos, member, room):
        repos.rooms.update(room.id, is_active=False)
        with pytest.raises(ResourceNotFoundException):
            services.bookings.create_booking(member, _request(room))

    def test_past_date(self, services, member, room):
        with pytest.raises(PastDateException) as exc_info:
            services.bookings.create_booking(member, _request(room, day="2026-03-01"))
        assert exc_info.value.status_code == 400

    def test_earlier_today_is_past(self, services, member, room):
        with pytest.raises(PastDateException):
            services.bookings.create_booking(
                member, _request(room, day="2026-03-02", start="08:00", end="09:00")
            )

    def test_quota(self, services, repos, member, room):
        set_config(repos, MAX_ACTIVE_BOOKINGS, 2)
        services.bookings.create_booking(member, _request(room, start="08:00", end="09:00"))
        services.bookings.create_booking(member, _request(room, start="09:00", end="10:00"))

        with pytest.raises(QuotaExceededException) as exc_info:
            services.bookings.create_booking(member, _request(room, start="10:00", end="11:00"))
        assert exc_info.value.details["max_active_bookings"] == 2

    def test_cancelled_bookings_do_not_count_toward_quota(self, services, repos, member, room):
        set_config(repos, MAX_ACTIVE_BOOKINGS, 1)
        first = services.bookings.create_booking(member, _request(room, start="08:00", end="09:00"))
        first.cancel()

        booking = services.bookings.create_booking(
            member, _request(room, start="10:00", end="11:00")
        )
        assert booking.status == BookingStatus.CONFIRMED.value

    def test_duration(self, services, member, room):
        with pytest.raises(DurationTooLongException) as exc_info:
            services.bookings.create_booking(member, _request(room, start="09:00", end="14:00"))
        assert exc_info.value.details["max_booking_duration_hours"] == 4

    def test_duration_limit_is_inclusive(self, services, repos, member, room):
        set_config(repos, MAX_BOOKING_DURATION_HOURS, 2)
        booking = services.bookings.create_booking(member, _request(room))
        assert booking.duration_hours == 2

    def test_conflict(self, services, repos, member, second_member, room):
        existing = services.bookings.create_booking(member, _request(room))
        payments_before = repos.payments.count()

        with pytest.raises(BookingConflictException) as exc_info:
            services.bookings.create_booking(
                second_member, _request(room, start="11:00", end="13:00")
            )

        assert exc_info.value.status_code == 409
        assert exc_info.value.message == "Room is already booked for this time"
        assert exc_info.value.details["conflicting_booking_ids"] == [existing.id]
        assert repos.payments.count() == payments_before
        assert repos.bookings.count() == 1

    def test_touching_intervals_are_admitted(self, services, member, second_member, room):
        services.bookings.create_booking(member, _request(room))
        booking = services.bookings.create_booking(
            second_member, _request(room, start="12:00", end="13:00")
        )
        assert booking.status == BookingStatus.CONFIRMED.value

    def test_cancelled_booking_frees_the_slot(self, services, member, second_member, room):
        existing = services.bookings.create_booking(member, _request(room))
        existing.cancel()

        booking = services.bookings.create_booking(second_member, _request(room))
        assert booking.status == BookingStatus.CONFIRMED.value

    def test_other_room_does_not_conflict(self, services, repos, member, second_member, room):
        other = repos.rooms.create(name="Consultorio 2", description="", price=5000)
        services.bookings.create_booking(member, _request(room))

        booking = services.bookings.create_booking(second_member, _request(other))
        assert booking.room_id == other.id

    def test_unpaid_balance(self, services, repos, member, room):
        set_config(repos, MAX_ACTIVE_BOOKINGS, 2)
        for _ in range(3):
            repos.payments.create_payment_record(
                user_id=member.id, amount=Decimal("50.00"), concept="Cargo previo"
            )

        with pytest.raises(UnpaidBalanceException) as exc_info:
            services.bookings.create_booking(member, _request(room))
        assert exc_info.value.message == "Tiene pagos pendientes"
        assert exc_info.value.status_code == 409

    def test_pending_count_equal_to_limit_is_admitted(self, services, repos, member, room):
        set_config(repos, MAX_ACTIVE_BOOKINGS, 2)
        for _ in range(2):
            repos.payments.create_payment_record(
                user_id=member.id, amount=Decimal("50.00"), concept="Cargo previo"
            )

        booking = services.bookings.create_booking(member, _request(room))
        assert booking.status == BookingStatus.CONFIRMED.value


class TestCheckOrder:
    def test_documentation_before_request_shape(self, services, repos, room):
        user = repos.users.create(
            email="nuevo@example.com",
            full_name="Nuevo",
            role=RoleName.STANDARD.value,
            documentation_status=DocumentationStatus.NONE.value,
        )
        with pytest.raises(DocumentationRequiredException):
            services.bookings.create_booking(user, {"room_id": room.id})

    def test_past_date_before_conflict(self, services, repos, member, second_member, room, clock):
        services.bookings.create_booking(member, _request(room, day="2026-03-03"))
        clock.now = datetime(2026, 3, 4, 9, 0)

        with pytest.raises(PastDateException):
            services.bookings.create_booking(second_member, _request(room, day="2026-03-03"))

    def test_duration_before_conflict(self, services, member, second_member, room):
        services.bookings.create_booking(member, _request(room))
        with pytest.raises(DurationTooLongException):
            services.bookings.create_booking(
                second_member, _request(room, start="08:00", end="13:00")
            )

    def test_conflict_before_unpaid_balance(self, services, repos, member, second_member, room):
        services.bookings.create_booking(member, _request(room))
        for _ in range(9):
            repos.payments.create_payment_record(
                user_id=second_member.id, amount=Decimal("10.00"), concept="Cargo previo"
            )

        with pytest.raises(BookingConflictException):
            services.bookings.create_booking(second_member, _request(room))


class TestAdvanceNotice:
    def test_rejects_inside_window(self, services, repos, member, room):
        set_config(repos, ADVANCE_BOOKING_DAYS, 3)
        with pytest.raises(InsufficientAdvanceNoticeException) as exc_info:
            services.bookings.create_booking(member, _request(room, day="2026-03-04"))
        assert exc_info.value.details["required_days"] == 3

    def test_admits_outside_window(self, services, repos, member, room):
        set_config(repos, ADVANCE_BOOKING_DAYS, 3)
        booking = services.bookings.create_booking(member, _request(room, day="2026-03-06"))
        assert booking.status == BookingStatus.CONFIRMED.value

    def test_raising_the_setting_never_admits_a_rejected_request(
        self, services, repos, member, room
    ):
        payload = _request(room, day="2026-03-05")
        outcomes = []
        for days in range(0, 7):
            set_config(repos, ADVANCE_BOOKING_DAYS, days)
            try:
                booking = services.bookings.create_booking(member, payload)
            except InsufficientAdvanceNoticeException:
                outcomes.append(False)
            else:
                outcomes.append(True)
                booking.cancel()

        first_rejection = outcomes.index(False)
        assert all(outcomes[:first_rejection])
        assert not any(outcomes[first_rejection:])

    def test_setting_change_applies_to_next_attempt(self, services, repos, member, room):
        services.bookings.create_booking(member, _request(room, day="2026-03-03"))
        set_config(repos, ADVANCE_BOOKING_DAYS, 5)

        with pytest.raises(InsufficientAdvanceNoticeException):
            services.bookings.create_booking(
                member, _request(room, day="2026-03-03", start="14:00", end="15:00")
            )


class TestRaceClosure:
    def test_concurrent_requests_for_one_slot_admit_exactly_one(
        self, services, member, second_member, room
    ):
        barrier = threading.Barrier(2)
        results = []
        lock = threading.Lock()

        def attempt(user):
            barrier.wait()
            try:
                booking = services.bookings.create_booking(user, _request(room))
                outcome = ("admitted", booking.id)
            except BookingConflictException as exc:
                outcome = ("conflict", exc.code)
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=attempt, args=(u,)) for u in (member, second_member)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert sorted(kind for kind, _ in results) == ["admitted", "conflict"]

    def test_integrity_error_on_insert_maps_to_conflict(self, services, repos, member, room):
        error = IntegrityError("INSERT INTO bookings", {}, Exception("exclusion constraint"))
        with patch.object(repos.bookings, "create", side_effect=error):
            with pytest.raises(BookingConflictException):
                services.bookings.create_booking(member, _request(room))
        assert repos.payments.count() == 0

    def test_deadlock_maps_to_conflict(self, services, repos, member, room):
        error = OperationalError("SELECT", {}, Exception("deadlock detected"))
        with patch.object(repos.rooms, "lock_for_update", side_effect=error):
            with pytest.raises(BookingConflictException):
                services.bookings.create_booking(member, _request(room))

    def test_other_operational_errors_propagate(self, services, repos, member, room):
        error = OperationalError("SELECT", {}, Exception("disk I/O error"))
        with patch.object(repos.rooms, "lock_for_update", side_effect=error):
            with pytest.raises(OperationalError):
                services.bookings.create_booking(member, _request(room))

    def test_failed_payment_insert_rolls_back_booking(self, services, repos, member, room):
        with patch.object(
            repos.payments, "create_payment_record", side_effect=RuntimeError("boom")
        ):
            with pytest.raises(RuntimeError):
                services.bookings.create_booking(member, _request(room))
        assert repos.bookings.count() == 0


def test_amount_uses_whole_hours(services, repos, member, room):
    repos.rooms.update(room.id, price=12345)
    booking = services.bookings.create_booking(member, _request(room, start="10:00", end="13:00"))

    payment = repos.payments.get_by_booking_id(booking.id)
    assert payment.amount == Decimal("370.35")


def test_booking_on_tomorrow_uses_business_clock(services, member, room, clock):
    clock.now = clock.now + timedelta(hours=14)  # 23:00 Monday
    booking = services.bookings.create_booking(member, _request(room, day="2026-03-03"))
    assert booking.booking_date == date(2026, 3, 3)
