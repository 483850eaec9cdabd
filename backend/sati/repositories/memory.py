# backend/sati/repositories/memory.py
"""
In-memory repositories.

They implement the same methods as the SQLAlchemy repositories over plain
dictionaries of transient model instances, so services can be exercised
without a database. All repositories built on one ``InMemoryStore`` share its
tables and its transaction: ``transaction()`` holds a re-entrant lock for the
duration of the block and restores a snapshot if the block raises.
"""

from collections import defaultdict
from contextlib import contextmanager
from datetime import date, datetime, time, timezone
from decimal import Decimal
import threading
from typing import Any, Callable, Dict, Generic, Iterator, List, Optional, Sequence, Tuple, Type

from sqlalchemy.exc import IntegrityError

from ..core.exceptions import RepositoryException
from ..core.ulid_helper import generate_ulid
from ..models.booking import Booking, BookingStatus, intervals_overlap
from ..models.payment import Payment, PaymentEvent, PaymentStatus
from ..models.room import Room
from ..models.system_config import SystemConfig
from ..models.system_log import SystemLog
from ..models.user import User
from .base_repository import IRepository, T
from .booking_repository import BookingFilters
from .payment_repository import PaymentFilters
from .system_log_repository import LogFilters

_MIN_DATETIME = datetime.min.replace(tzinfo=timezone.utc)


def _column_keys(model: Type[Any]) -> List[str]:
    return [column.key for column in model.__table__.columns]


def _apply_column_defaults(model: Type[Any], values: Dict[str, Any]) -> None:
    """Fill in the Python-side column defaults a flush would have applied."""
    for column in model.__table__.columns:
        if column.key in values or column.default is None:
            continue
        default = column.default
        if default.is_callable:
            values[column.key] = default.arg(None)
        elif default.is_scalar:
            values[column.key] = default.arg


def _integrity_error(table: str, field: str) -> IntegrityError:
    return IntegrityError(
        f"INSERT INTO {table}",
        {},
        Exception(f"UNIQUE constraint failed: {table}.{field}"),
    )


class InMemoryStore:
    """Shared tables plus a snapshotting transaction for the in-memory repositories."""

    def __init__(self) -> None:
        self.tables: Dict[str, Dict[str, Any]] = defaultdict(dict)
        self._lock = threading.RLock()
        self._depth = 0

    @contextmanager
    def transaction(self) -> Iterator["InMemoryStore"]:
        with self._lock:
            outermost = self._depth == 0
            snapshot = self._snapshot() if outermost else None
            self._depth += 1
            try:
                yield self
            except Exception:
                if snapshot is not None:
                    self._restore(snapshot)
                raise
            finally:
                self._depth -= 1

    def _snapshot(self) -> Dict[str, Dict[str, Tuple[Any, Dict[str, Any]]]]:
        return {
            name: {
                key: (obj, {attr: getattr(obj, attr) for attr in _column_keys(type(obj))})
                for key, obj in rows.items()
            }
            for name, rows in self.tables.items()
        }

    def _restore(self, snapshot: Dict[str, Dict[str, Tuple[Any, Dict[str, Any]]]]) -> None:
        self.tables.clear()
        for name, rows in snapshot.items():
            restored = {}
            for key, (obj, state) in rows.items():
                for attr, value in state.items():
                    setattr(obj, attr, value)
                restored[key] = obj
            self.tables[name] = restored


class InMemoryRepository(IRepository[T], Generic[T]):
    """Dictionary-backed counterpart of BaseRepository."""

    unique_fields: Tuple[str, ...] = ()

    def __init__(self, store: InMemoryStore, model: Type[T]):
        self.store = store
        self.model = model
        self.table_name: str = model.__tablename__  # type: ignore[attr-defined]

    @property
    def rows(self) -> Dict[str, T]:
        return self.store.tables[self.table_name]

    def transaction(self) -> Any:
        return self.store.transaction()

    def get_by_id(self, id: str) -> Optional[T]:
        return self.rows.get(id)

    def get_all(self, skip: int = 0, limit: int = 100) -> List[T]:
        return list(self.rows.values())[skip : skip + limit]

    def _check_unique(self, values: Dict[str, Any]) -> None:
        for field in self.unique_fields:
            value = values.get(field)
            if value is None:
                continue
            if any(getattr(row, field) == value for row in self.rows.values()):
                raise _integrity_error(self.table_name, field)

    def create(self, **kwargs: Any) -> T:
        values = dict(kwargs)
        values.setdefault("id", generate_ulid())
        _apply_column_defaults(self.model, values)
        try:
            self._check_unique(values)
        except IntegrityError as exc:
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        entity = self.model(**values)
        self.rows[values["id"]] = entity
        return entity

    def update(self, id: str, **kwargs: Any) -> Optional[T]:
        entity = self.get_by_id(id)
        if entity is None:
            return None
        for key, value in kwargs.items():
            if hasattr(entity, key):
                setattr(entity, key, value)
        return entity

    def _matches(self, row: Any, criteria: Dict[str, Any]) -> bool:
        return all(getattr(row, key) == value for key, value in criteria.items())

    def count(self, **kwargs: Any) -> int:
        return len(self.find_by(**kwargs))

    def find_by(self, **kwargs: Any) -> List[T]:
        return [row for row in self.rows.values() if self._matches(row, kwargs)]

    def find_one_by(self, **kwargs: Any) -> Optional[T]:
        for row in self.rows.values():
            if self._matches(row, kwargs):
                return row
        return None

    def _select(self, predicate: Callable[[Any], bool]) -> List[T]:
        return [row for row in self.rows.values() if predicate(row)]


class InMemoryUserRepository(InMemoryRepository[User]):
    unique_fields = ("email",)

    def __init__(self, store: InMemoryStore):
        super().__init__(store, User)

    def get_by_email(self, email: str) -> Optional[User]:
        return self.find_one_by(email=email.strip().lower())


class InMemoryRoomRepository(InMemoryRepository[Room]):
    def __init__(self, store: InMemoryStore):
        super().__init__(store, Room)

    def list_rooms(self, active_only: bool = False) -> List[Room]:
        rooms = self._select(lambda room: room.is_active or not active_only)
        return sorted(rooms, key=lambda room: room.name)

    def lock_for_update(self, room_id: str) -> Optional[Room]:
        # The store transaction already serializes writers.
        return self.get_by_id(room_id)


class InMemoryBookingRepository(InMemoryRepository[Booking]):
    def __init__(self, store: InMemoryStore):
        super().__init__(store, Booking)

    def create(self, **kwargs: Any) -> Booking:
        try:
            return super().create(**kwargs)
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise exc.__cause__
            raise

    def find_conflicting(
        self,
        room_id: str,
        booking_date: date,
        start_time: time,
        end_time: time,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        return self._select(
            lambda b: b.room_id == room_id
            and b.booking_date == booking_date
            and b.status != BookingStatus.CANCELLED.value
            and b.id != exclude_booking_id
            and intervals_overlap(b.start_time, b.end_time, start_time, end_time)
        )

    def check_time_conflict(
        self,
        room_id: str,
        booking_date: date,
        start_time: time,
        end_time: time,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        return bool(
            self.find_conflicting(room_id, booking_date, start_time, end_time, exclude_booking_id)
        )

    def count_active_for_user(self, user_id: str) -> int:
        return self.count(user_id=user_id, status=BookingStatus.CONFIRMED.value)

    def find_bookings(self, filters: BookingFilters) -> List[Booking]:
        def keep(b: Booking) -> bool:
            if filters.user_id and b.user_id != filters.user_id:
                return False
            if filters.room_id and b.room_id != filters.room_id:
                return False
            if filters.booking_date and b.booking_date != filters.booking_date:
                return False
            if filters.start_date and filters.end_date:
                if not filters.start_date <= b.booking_date <= filters.end_date:
                    return False
            if filters.status and b.status != filters.status:
                return False
            return True

        return sorted(self._select(keep), key=lambda b: (b.booking_date, b.start_time))

    def get_future_confirmed_for_room(self, room_id: str, now: datetime) -> List[Booking]:
        return self._select(
            lambda b: b.room_id == room_id
            and b.status == BookingStatus.CONFIRMED.value
            and b.starts_at >= now
        )

    def get_confirmed_ended_before(self, now: datetime) -> List[Booking]:
        return self._select(
            lambda b: b.status == BookingStatus.CONFIRMED.value and b.ends_at <= now
        )


class InMemoryPaymentRepository(InMemoryRepository[Payment]):
    unique_fields = ("payment_intent_id", "idempotency_key")

    def __init__(self, store: InMemoryStore):
        super().__init__(store, Payment)

    def _newest_first(self, payments: List[Payment]) -> List[Payment]:
        return sorted(payments, key=lambda p: (p.created_at or _MIN_DATETIME, p.id), reverse=True)

    def create_payment_record(
        self,
        *,
        user_id: str,
        amount: Decimal,
        concept: str,
        booking_id: Optional[str] = None,
        currency: str = "mxn",
        status: str = PaymentStatus.PENDING.value,
        method: Optional[str] = None,
        payment_intent_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Payment:
        return self.create(
            user_id=user_id,
            amount=amount,
            concept=concept,
            booking_id=booking_id,
            currency=currency,
            status=status,
            method=method,
            payment_intent_id=payment_intent_id,
            idempotency_key=idempotency_key,
        )

    def get_by_intent_id(self, payment_intent_id: str) -> Optional[Payment]:
        return self.find_one_by(payment_intent_id=payment_intent_id)

    def get_by_idempotency_key(self, idempotency_key: str) -> Optional[Payment]:
        return self.find_one_by(idempotency_key=idempotency_key)

    def get_by_booking_id(self, booking_id: str) -> Optional[Payment]:
        matches = self.find_by(booking_id=booking_id)
        return self._newest_first(matches)[-1] if matches else None

    def update_status_by_intent_id(
        self, payment_intent_id: str, status: str, **extra: Any
    ) -> Optional[Payment]:
        payment = self.get_by_intent_id(payment_intent_id)
        if payment:
            payment.status = status
            for key, value in extra.items():
                setattr(payment, key, value)
        return payment

    def count_by_user_and_status(self, user_id: str, status: str) -> int:
        return self.count(user_id=user_id, status=status)

    def has_status(self, user_id: str, status: str) -> bool:
        return self.find_one_by(user_id=user_id, status=status) is not None

    def get_last_succeeded_for_user(self, user_id: str) -> Optional[Payment]:
        matches = self.find_by(user_id=user_id, status=PaymentStatus.SUCCEEDED.value)
        return self._newest_first(matches)[0] if matches else None

    def sum_amount(self, user_id: str, statuses: Sequence[str]) -> Decimal:
        total = sum(
            (
                Decimal(str(p.amount))
                for p in self._select(lambda p: p.user_id == user_id and p.status in statuses)
            ),
            Decimal("0"),
        )
        return total.quantize(Decimal("0.01"))

    def get_recent_for_user(self, user_id: str, limit: int = 10) -> List[Payment]:
        return self._newest_first(self.find_by(user_id=user_id))[:limit]

    def list_payments(
        self, filters: PaymentFilters, page: int = 1, page_size: int = 20
    ) -> Tuple[List[Tuple[Payment, Optional[str], Optional[str]]], int]:
        def keep(p: Payment) -> bool:
            if filters.user_id and p.user_id != filters.user_id:
                return False
            if filters.statuses and p.status not in filters.statuses:
                return False
            if filters.date_from and p.created_at < filters.date_from:
                return False
            if filters.date_to and p.created_at > filters.date_to:
                return False
            return True

        matches = self._newest_first(self._select(keep))
        users = self.store.tables[User.__tablename__]
        offset = max(0, (page - 1) * page_size)
        rows = []
        for payment in matches[offset : offset + page_size]:
            user = users.get(payment.user_id)
            rows.append(
                (payment, user.full_name if user else None, user.email if user else None)
            )
        return rows, len(matches)


class InMemoryPaymentEventRepository(InMemoryRepository[PaymentEvent]):
    unique_fields = ("event_id",)

    def __init__(self, store: InMemoryStore):
        super().__init__(store, PaymentEvent)

    def record_event(
        self,
        *,
        event_id: str,
        event_type: str,
        payment_intent_id: Optional[str] = None,
        payload: Optional[str] = None,
    ) -> PaymentEvent:
        return self.create(
            event_id=event_id,
            type=event_type,
            payment_intent_id=payment_intent_id,
            payload=payload,
        )

    def has_event(self, event_id: str) -> bool:
        return self.find_one_by(event_id=event_id) is not None

    def count_for_event(self, event_id: str) -> int:
        return self.count(event_id=event_id)


class InMemorySystemConfigRepository(InMemoryRepository[SystemConfig]):
    unique_fields = ("key",)

    def __init__(self, store: InMemoryStore):
        super().__init__(store, SystemConfig)

    def get_by_key(self, key: str) -> Optional[SystemConfig]:
        return self.find_one_by(key=key)

    def get_all(self, skip: int = 0, limit: int = 100) -> List[SystemConfig]:
        return sorted(self.rows.values(), key=lambda c: c.key)[skip : skip + limit]

    def create(self, **kwargs: Any) -> SystemConfig:
        kwargs.setdefault("description", "")
        return super().create(**kwargs)

    def update_value(
        self, key: str, value: str, updated_by: Optional[str] = None
    ) -> Optional[SystemConfig]:
        record = self.get_by_key(key)
        if record is None:
            return None
        record.value = value
        record.updated_by = updated_by
        record.updated_at = datetime.now(timezone.utc)
        return record


class InMemorySystemLogRepository(InMemoryRepository[SystemLog]):
    def __init__(self, store: InMemoryStore):
        super().__init__(store, SystemLog)

    def list_recent(self, limit: int = 50, severity: Optional[str] = None) -> List[SystemLog]:
        logs = self._select(lambda log: severity is None or log.severity == severity)
        return sorted(logs, key=lambda log: log.created_at, reverse=True)[:limit]

    def list_logs(
        self, filters: LogFilters, page: int = 1, page_size: int = 20
    ) -> Tuple[List[SystemLog], int]:
        def keep(log: SystemLog) -> bool:
            if filters.severity and log.severity != filters.severity:
                return False
            if filters.endpoint and filters.endpoint.lower() not in (log.endpoint or "").lower():
                return False
            if filters.user_id and log.user_id != filters.user_id:
                return False
            if filters.date_from and log.created_at < filters.date_from:
                return False
            if filters.date_to and log.created_at > filters.date_to:
                return False
            return True

        matches = sorted(
            self._select(keep), key=lambda log: (log.created_at, log.id), reverse=True
        )
        offset = max(0, (page - 1) * page_size)
        return matches[offset : offset + page_size], len(matches)


class InMemoryRepositories:
    """One store with every repository built on it."""

    def __init__(self) -> None:
        self.store = InMemoryStore()
        self.users = InMemoryUserRepository(self.store)
        self.rooms = InMemoryRoomRepository(self.store)
        self.bookings = InMemoryBookingRepository(self.store)
        self.payments = InMemoryPaymentRepository(self.store)
        self.payment_events = InMemoryPaymentEventRepository(self.store)
        self.configs = InMemorySystemConfigRepository(self.store)
        self.logs = InMemorySystemLogRepository(self.store)
