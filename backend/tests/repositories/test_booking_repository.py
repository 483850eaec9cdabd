"""
Tests for BookingRepository against SQLite.
"""

from datetime import date, datetime, time

import pytest

from sati.models.booking import Booking, BookingStatus
from sati.repositories.booking_repository import BookingFilters, BookingRepository

DAY = date(2026, 3, 10)


@pytest.fixture
def repository(db):
    return BookingRepository(db)


def _booking(db, user, room, start, end, day=DAY, status=BookingStatus.CONFIRMED.value):
    booking = Booking(
        room_id=room.id,
        user_id=user.id,
        booking_date=day,
        start_time=time(start),
        end_time=time(end),
        status=status,
    )
    db.add(booking)
    db.commit()
    return booking


class TestFindConflicting:
    def test_overlap_is_found(self, db, repository, test_user, test_room):
        existing = _booking(db, test_user, test_room, 10, 12)

        conflicts = repository.find_conflicting(test_room.id, DAY, time(11), time(13))

        assert [b.id for b in conflicts] == [existing.id]

    def test_touching_intervals_do_not_conflict(self, db, repository, test_user, test_room):
        _booking(db, test_user, test_room, 10, 12)

        assert not repository.check_time_conflict(test_room.id, DAY, time(12), time(13))
        assert not repository.check_time_conflict(test_room.id, DAY, time(8), time(10))

    def test_cancelled_bookings_are_ignored(self, db, repository, test_user, test_room):
        _booking(db, test_user, test_room, 10, 12, status=BookingStatus.CANCELLED.value)

        assert not repository.check_time_conflict(test_room.id, DAY, time(10), time(12))

    def test_completed_bookings_still_conflict(self, db, repository, test_user, test_room):
        _booking(db, test_user, test_room, 10, 12, status=BookingStatus.COMPLETED.value)

        assert repository.check_time_conflict(test_room.id, DAY, time(11), time(12))

    def test_exclude_booking(self, db, repository, test_user, test_room):
        existing = _booking(db, test_user, test_room, 10, 12)

        assert not repository.check_time_conflict(
            test_room.id, DAY, time(10), time(12), exclude_booking_id=existing.id
        )

    def test_other_day_does_not_conflict(self, db, repository, test_user, test_room):
        _booking(db, test_user, test_room, 10, 12, day=date(2026, 3, 11))

        assert not repository.check_time_conflict(test_room.id, DAY, time(10), time(12))


def test_count_active_for_user(db, repository, test_user, test_room):
    _booking(db, test_user, test_room, 8, 9)
    _booking(db, test_user, test_room, 9, 10)
    _booking(db, test_user, test_room, 10, 11, status=BookingStatus.CANCELLED.value)

    assert repository.count_active_for_user(test_user.id) == 2


def test_find_bookings_combines_filters(db, repository, test_user, other_user, test_room):
    _booking(db, test_user, test_room, 14, 15)
    _booking(db, test_user, test_room, 9, 10)
    _booking(db, other_user, test_room, 11, 12)
    _booking(db, test_user, test_room, 9, 10, day=date(2026, 3, 20))

    same_day = repository.find_bookings(BookingFilters(user_id=test_user.id, booking_date=DAY))
    ranged = repository.find_bookings(
        BookingFilters(start_date=date(2026, 3, 1), end_date=date(2026, 3, 15))
    )

    assert [b.start_time.hour for b in same_day] == [9, 14]
    assert len(ranged) == 3


def test_time_based_selections(db, repository, test_user, test_room):
    earlier = _booking(db, test_user, test_room, 8, 9)
    later = _booking(db, test_user, test_room, 13, 14)
    now = datetime(2026, 3, 10, 10, 0)

    assert [b.id for b in repository.get_future_confirmed_for_room(test_room.id, now)] == [
        later.id
    ]
    assert [b.id for b in repository.get_confirmed_ended_before(now)] == [earlier.id]
