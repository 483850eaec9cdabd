# backend/sati/services/payment_service.py
"""
Payment Service for the SATI platform.

Card payments go through Stripe PaymentIntents. The local ledger mirrors each
intent's status; webhook deliveries are applied at most once thanks to the
unique event id recorded in the same transaction as their side effects.
"""

import csv
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
import io
import json
import logging
import math
import time
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import stripe

from ..core.config import settings
from ..core.constants import (
    ALLOWED_CURRENCIES,
    PAYMENT_CONCEPT_MAX_CHARS,
    PAYMENT_EVENT_PAYLOAD_MAX_CHARS,
)
from ..core.exceptions import (
    ForbiddenException,
    NotFoundException,
    PaymentGatewayException,
    RepositoryException,
    ServiceException,
    ValidationException,
    WebhookSignatureException,
)
from ..core.timezone_utils import utc_now
from ..models.payment import Payment, PaymentStatus
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..repositories.payment_repository import PaymentFilters
from .audit_log_service import AuditLogService
from .base import BaseService
from .cache_service import TTLCache, account_summary_key
from .reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
DEFAULT_CONCEPT = "Pago"
REFUND_EVENT_TYPES = frozenset({"charge.refunded", "charge.refund.updated"})
WEBHOOK_ENDPOINT = "/api/payments/webhook"
MAX_PAGE_SIZE = 100

CSV_COLUMNS = [
    "id",
    "created_at",
    "payment_date",
    "user_id",
    "user_full_name",
    "email",
    "amount",
    "currency",
    "status",
    "method",
    "concept",
    "payment_intent_id",
]
_FORMULA_PREFIXES = ("=", "+", "-", "@")


def to_cents(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value(rounding=ROUND_HALF_UP))


def csv_safe(value: Any) -> str:
    """Render a cell so spreadsheet applications never evaluate it as a formula."""
    if value is None:
        return ""
    text = value.isoformat() if isinstance(value, datetime) else str(value)
    if text and text[0] in _FORMULA_PREFIXES:
        text = f"'{text}"
    return text


def payments_to_csv(rows: List[Mapping[str, Any]]) -> str:
    output = io.StringIO(newline="")
    writer = csv.writer(output, lineterminator="\r\n")
    writer.writerow(CSV_COLUMNS)
    for row in rows:
        writer.writerow([csv_safe(row.get(column)) for column in CSV_COLUMNS])
    return output.getvalue()


def _field(obj: Any, key: str) -> Any:
    """Read a field from a Stripe object or a plain mapping."""
    if obj is None:
        return None
    try:
        return obj[key]
    except (KeyError, TypeError, AttributeError):
        return getattr(obj, key, None)


def _metadata_value(obj: Any, key: str) -> Optional[str]:
    value = _field(_field(obj, "metadata"), key)
    return str(value) if value else None


@dataclass
class PaymentPage:
    data: List[Dict[str, Any]]
    total: int
    page: int
    page_size: int


class PaymentService(BaseService):
    """Stripe-backed payment operations and the local payment ledger."""

    def __init__(
        self,
        db: Optional[Session],
        cache: Optional[TTLCache] = None,
        *,
        payment_repository: Any = None,
        payment_event_repository: Any = None,
        user_repository: Any = None,
        booking_repository: Any = None,
        reconciliation_service: Optional[ReconciliationService] = None,
        audit_service: Optional[AuditLogService] = None,
    ):
        super().__init__(db, cache)
        self.payment_repository = payment_repository or RepositoryFactory.create_payment_repository(
            db
        )
        self.payment_event_repository = (
            payment_event_repository or RepositoryFactory.create_payment_event_repository(db)
        )
        self.user_repository = user_repository or RepositoryFactory.create_user_repository(db)
        self.booking_repository = booking_repository or RepositoryFactory.create_booking_repository(
            db
        )
        self.reconciliation = reconciliation_service or ReconciliationService(
            db,
            cache,
            user_repository=self.user_repository,
            payment_repository=self.payment_repository,
        )
        self.audit = audit_service or AuditLogService(db)

        self.stripe_configured = settings.stripe_configured
        if self.stripe_configured:
            stripe.api_key = settings.stripe_secret_key.get_secret_value()
        self.logger = logging.getLogger(__name__)

    def _check_stripe_configured(self) -> None:
        if not self.stripe_configured:
            raise ServiceException(
                "Stripe no configurado en el servidor", code="GATEWAY_NOT_CONFIGURED"
            )

    # ------------------------------------------------------------------ #
    # Validation helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def parse_amount(value: Any) -> Decimal:
        """Positive amount in major units, rounded to cents."""
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationException("Monto inválido", code="INVALID_AMOUNT")
        if value is None or isinstance(value, bool) or not amount.is_finite() or amount <= 0:
            raise ValidationException("Monto inválido", code="INVALID_AMOUNT")
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)

    @staticmethod
    def normalize_currency(value: Optional[str]) -> str:
        currency = (value or settings.stripe_currency).strip().lower()
        if currency not in ALLOWED_CURRENCIES:
            raise ValidationException(
                "Moneda no permitida",
                code="INVALID_CURRENCY",
                details={"allowed": sorted(ALLOWED_CURRENCIES)},
            )
        return currency

    @staticmethod
    def parse_percentage(value: Any) -> Decimal:
        if value is None or isinstance(value, bool):
            raise ValidationException("Porcentaje inválido", code="INVALID_PERCENTAGE")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValidationException("Porcentaje inválido", code="INVALID_PERCENTAGE")
        if math.isnan(number) or number < 0 or number > 100:
            raise ValidationException("Porcentaje inválido", code="INVALID_PERCENTAGE")
        return Decimal(str(value))

    def _invalidate_user(self, user_id: Optional[str]) -> None:
        if user_id:
            self.invalidate_cache(account_summary_key(user_id))

    # ------------------------------------------------------------------ #
    # Intents
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("create_intent")
    def create_intent(
        self,
        actor: User,
        *,
        amount: Any,
        currency: Optional[str] = None,
        concept: Optional[str] = None,
        booking_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create (or replay) a PaymentIntent and record it in the ledger.

        Replaying with the same idempotency key returns the same intent from
        Stripe, and no second ledger row is written for it.

        Raises:
            ValidationException: Invalid amount or currency
            PaymentGatewayException: Stripe rejected the call
        """
        self._check_stripe_configured()
        amount_value = self.parse_amount(amount)
        currency_value = self.normalize_currency(currency)
        concept_value = (concept or DEFAULT_CONCEPT).strip()[:PAYMENT_CONCEPT_MAX_CHARS]

        if booking_id:
            booking = self.booking_repository.get_by_id(booking_id)
            if booking is None:
                raise NotFoundException("Reserva no encontrada", code="BOOKING_NOT_FOUND")
            if booking.user_id != actor.id and not actor.is_admin:
                raise ForbiddenException("No autorizado a pagar esta reserva")

        key = idempotency_key or (
            f"pi_{actor.id}_{booking_id or 'na'}_{amount_value}_{int(time.time() * 1000)}"
        )

        try:
            intent = stripe.PaymentIntent.create(
                amount=to_cents(amount_value),
                currency=currency_value,
                automatic_payment_methods={"enabled": True},
                metadata={
                    "user_id": actor.id,
                    "booking_id": booking_id or "",
                    "concept": concept_value,
                },
                idempotency_key=key,
            )
        except stripe.StripeError as e:
            self.logger.error(f"Stripe error creating payment intent: {str(e)}")
            self.audit.error(
                f"Error de Stripe creando intent: {e}",
                user_id=actor.id,
                endpoint="/api/payments/create-intent",
            )
            raise PaymentGatewayException(
                f"Failed to create payment intent: {str(e)}", code="GATEWAY_ERROR"
            ) from e

        try:
            with self.payment_repository.transaction():
                if self.payment_repository.get_by_intent_id(intent.id) is None:
                    self.payment_repository.create_payment_record(
                        user_id=actor.id,
                        amount=amount_value,
                        concept=concept_value,
                        booking_id=booking_id,
                        currency=currency_value,
                        status=intent.status,
                        method="stripe",
                        payment_intent_id=intent.id,
                        idempotency_key=key,
                    )
                else:
                    self.logger.info(f"Intent {intent.id} already recorded; replay")
        except RepositoryException as exc:
            # A concurrent replay inserted the same intent first.
            if not isinstance(exc.__cause__, IntegrityError):
                raise
            self.logger.info(f"Intent {intent.id} recorded concurrently; replay")

        self._invalidate_user(actor.id)
        self.log_operation("create_intent", user_id=actor.id, payment_intent_id=intent.id)
        return {
            "client_secret": intent.client_secret,
            "payment_intent_id": intent.id,
            "status": intent.status,
            "amount": intent.amount,
            "currency": intent.currency,
            "idempotency_key": key,
        }

    @BaseService.measure_operation("get_intent")
    def get_intent(self, actor: User, intent_id: str) -> Dict[str, Any]:
        """Poll Stripe for an intent and mirror its status locally."""
        self._check_stripe_configured()
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id)
        except stripe.StripeError as e:
            self.logger.error(f"Stripe error retrieving intent {intent_id}: {str(e)}")
            raise PaymentGatewayException(
                f"Failed to retrieve payment intent: {str(e)}", code="GATEWAY_ERROR"
            ) from e

        local = self.payment_repository.get_by_intent_id(intent_id)
        owner_id = local.user_id if local else _metadata_value(intent, "user_id")
        if owner_id != actor.id and not actor.is_admin:
            raise ForbiddenException("No autorizado a consultar este pago")

        self._mirror_intent_status(intent_id, intent.status, owner_id)
        return {
            "id": intent_id,
            "status": intent.status,
            "amount": intent.amount,
            "currency": intent.currency,
            "client_secret": intent.client_secret,
        }

    def _mirror_intent_status(
        self, intent_id: str, status: str, owner_id: Optional[str]
    ) -> Optional[Payment]:
        with self.payment_repository.transaction():
            payment = self._apply_intent_status(intent_id, status, owner_id)
        self._invalidate_user(payment.user_id if payment else owner_id)
        return payment

    def _apply_intent_status(
        self, intent_id: str, status: str, owner_id: Optional[str]
    ) -> Optional[Payment]:
        """Runs inside the caller's transaction."""
        extra: Dict[str, Any] = {}
        if status == PaymentStatus.SUCCEEDED.value:
            extra["payment_date"] = utc_now()
        payment = self.payment_repository.update_status_by_intent_id(intent_id, status, **extra)
        if status == PaymentStatus.SUCCEEDED.value:
            user_id = owner_id or (payment.user_id if payment else None)
            if user_id:
                self.reconciliation.mark_paid(user_id)
        return payment

    # ------------------------------------------------------------------ #
    # Webhooks
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("handle_webhook")
    def handle_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify a Stripe webhook delivery and apply it.

        Raises:
            WebhookSignatureException: Missing or mismatching signature
            ServiceException: Webhook secret not configured
        """
        secret = settings.webhook_secret
        if not secret:
            raise ServiceException("Stripe no configurado", code="GATEWAY_NOT_CONFIGURED")
        if not signature:
            self.audit.warn("Webhook sin stripe-signature", endpoint=WEBHOOK_ENDPOINT)
            raise WebhookSignatureException("No signature")

        try:
            event = stripe.Webhook.construct_event(payload, signature, secret)
        except stripe.SignatureVerificationError as e:
            self.logger.warning(f"Invalid webhook signature: {str(e)}")
            self.audit.warn(f"Firma de webhook inválida: {e}", endpoint=WEBHOOK_ENDPOINT)
            raise WebhookSignatureException("Invalid signature")
        except ValueError as e:
            self.logger.warning(f"Invalid webhook payload: {str(e)}")
            raise ValidationException("Invalid webhook payload", code="INVALID_PAYLOAD")

        return self.apply_event(event)

    def apply_event(self, event: Any) -> Dict[str, Any]:
        """
        Apply an already-verified event exactly once.

        The PaymentEvent row is inserted first; a unique violation on event_id
        means another delivery already applied it. The insert and the side
        effects commit together, so a failed side effect leaves the event
        unrecorded and the gateway's retry applies it again.
        """
        event_id = str(_field(event, "id"))
        event_type = str(_field(event, "type"))
        obj = _field(_field(event, "data"), "object")

        if event_type.startswith("payment_intent."):
            intent_id = _field(obj, "id")
        else:
            intent_id = _field(obj, "payment_intent")
        snapshot = obj.to_dict() if hasattr(obj, "to_dict") else obj
        payload = json.dumps(snapshot, default=str)[:PAYMENT_EVENT_PAYLOAD_MAX_CHARS]

        touched_user: Optional[str] = None
        duplicate = False
        result = "ignored"
        with self.payment_event_repository.transaction():
            try:
                self.payment_event_repository.record_event(
                    event_id=event_id,
                    event_type=event_type,
                    payment_intent_id=str(intent_id) if intent_id else None,
                    payload=payload,
                )
            except RepositoryException as exc:
                if not isinstance(exc.__cause__, IntegrityError):
                    raise
                duplicate = True

            if not duplicate:
                result, touched_user = self._dispatch_event(event_type, obj, intent_id)

        if duplicate:
            self.logger.info(f"Duplicate webhook event {event_id} ({event_type}) ignored")
            prometheus_metrics.inc_webhook_event(event_type, "duplicate")
            return {"received": True, "duplicate": True}

        self._invalidate_user(touched_user)
        prometheus_metrics.inc_webhook_event(event_type, result)
        self.log_operation("webhook_event", event_id=event_id, event_type=event_type, result=result)
        return {"received": True, "duplicate": False}

    def _dispatch_event(
        self, event_type: str, obj: Any, intent_id: Optional[str]
    ) -> Tuple[str, Optional[str]]:
        if event_type.startswith("payment_intent."):
            if not intent_id:
                return "ignored", None
            owner_id = _metadata_value(obj, "user_id")
            status = str(_field(obj, "status"))
            payment = self._apply_intent_status(str(intent_id), status, owner_id)
            return "applied", payment.user_id if payment else owner_id

        if event_type in REFUND_EVENT_TYPES:
            if not intent_id:
                return "ignored", None
            payment = self.payment_repository.update_status_by_intent_id(
                str(intent_id), PaymentStatus.REFUNDED.value
            )
            return "applied", payment.user_id if payment else None

        self.logger.info(f"Unhandled webhook event type: {event_type}")
        return "ignored", None

    # ------------------------------------------------------------------ #
    # Ledger administration
    # ------------------------------------------------------------------ #

    def get_payment(self, payment_id: str) -> Payment:
        payment = self.payment_repository.get_by_id(payment_id)
        if payment is None:
            raise NotFoundException("Pago no encontrado", code="PAYMENT_NOT_FOUND")
        return payment

    @BaseService.measure_operation("discount_payment")
    def discount(self, payment_id: str, percentage: Any) -> Payment:
        """
        Reduce a payment's amount by a percentage in [0, 100].

        Raises:
            ValidationException: Percentage missing or out of range
            NotFoundException: Payment not found
        """
        pct = self.parse_percentage(percentage)
        with self.payment_repository.transaction():
            payment = self.payment_repository.get_by_id(payment_id)
            if payment is None:
                raise NotFoundException("Pago no encontrado", code="PAYMENT_NOT_FOUND")
            current = Decimal(str(payment.amount))
            new_amount = (current * (Decimal(1) - pct / Decimal(100))).quantize(
                CENT, rounding=ROUND_HALF_UP
            )
            self.payment_repository.update(payment.id, amount=new_amount)

        self._invalidate_user(payment.user_id)
        self.log_operation(
            "discount_payment",
            payment_id=payment.id,
            percentage=str(pct),
            previous_amount=f"{current:.2f}",
            new_amount=f"{new_amount:.2f}",
        )
        return payment

    @BaseService.measure_operation("create_manual_payment")
    def create_manual_payment(
        self,
        *,
        user_id: str,
        amount: Any,
        concept: str,
        booking_id: Optional[str] = None,
        currency: Optional[str] = None,
        method: str = "cash",
        status: str = PaymentStatus.PAID.value,
    ) -> Payment:
        """Record a payment made outside the card gateway."""
        amount_value = self.parse_amount(amount)
        currency_value = self.normalize_currency(currency)
        if status not in {s.value for s in PaymentStatus}:
            raise ValidationException("Estado de pago inválido", code="INVALID_PAYMENT_STATUS")
        if self.user_repository.get_by_id(user_id) is None:
            raise NotFoundException("Usuario inexistente", code="USER_NOT_FOUND")
        if booking_id and self.booking_repository.get_by_id(booking_id) is None:
            raise NotFoundException("Reserva no encontrada", code="BOOKING_NOT_FOUND")

        with self.payment_repository.transaction():
            payment = self.payment_repository.create_payment_record(
                user_id=user_id,
                amount=amount_value,
                concept=concept.strip()[:PAYMENT_CONCEPT_MAX_CHARS],
                booking_id=booking_id,
                currency=currency_value,
                status=status,
                method=method,
            )
            if status in (PaymentStatus.PAID.value, PaymentStatus.SUCCEEDED.value):
                payment.payment_date = utc_now()

        self._invalidate_user(user_id)
        self.log_operation("create_manual_payment", payment_id=payment.id, user_id=user_id)
        return payment

    @staticmethod
    def serialize_row(
        payment: Payment, full_name: Optional[str], email: Optional[str]
    ) -> Dict[str, Any]:
        return {
            "id": payment.id,
            "created_at": payment.created_at,
            "payment_date": payment.payment_date,
            "user_id": payment.user_id,
            "user_full_name": full_name,
            "email": email,
            "amount": f"{Decimal(str(payment.amount)):.2f}",
            "currency": payment.currency,
            "status": payment.status,
            "method": payment.method,
            "concept": str(payment.concept or "")[:PAYMENT_CONCEPT_MAX_CHARS],
            "payment_intent_id": payment.payment_intent_id,
        }

    @BaseService.measure_operation("list_payments")
    def list_payments(
        self, filters: PaymentFilters, page: int = 1, page_size: int = 20
    ) -> PaymentPage:
        if filters.date_from and filters.date_to and filters.date_from > filters.date_to:
            raise ValidationException(
                "dateFrom no puede ser mayor que dateTo", code="INVALID_DATE_RANGE"
            )
        page = max(1, page)
        page_size = min(MAX_PAGE_SIZE, max(1, page_size))
        rows, total = self.payment_repository.list_payments(filters, page, page_size)
        return PaymentPage(
            data=[self.serialize_row(*row) for row in rows],
            total=total,
            page=page,
            page_size=page_size,
        )
