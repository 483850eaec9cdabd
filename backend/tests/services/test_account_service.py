"""
Tests for the account summary and payment history views.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from sati.core.exceptions import ForbiddenException, ValidationException
from sati.models.payment import PaymentStatus
from sati.models.system_log import LogSeverity
from sati.services.account_service import (
    NO_MOVEMENTS_MESSAGE,
    NO_PAYMENTS_MESSAGE,
    resolve_status_alias,
)
from sati.services.cache_service import TTLCache
from tests.helpers.services import build_services


def _payment(repos, user, status, amount="100.00", concept="Renta de sala"):
    return repos.payments.create_payment_record(
        user_id=user.id, amount=Decimal(amount), concept=concept, status=status
    )


class TestSummary:
    def test_empty_account(self, services, member):
        summary = services.account.get_summary(member)

        assert summary["balance"] == "0.00"
        assert summary["total_paid"] == "0.00"
        assert summary["has_movements"] is False
        assert summary["recent_movements"] == []
        assert summary["message"] == NO_MOVEMENTS_MESSAGE
        assert summary["upcoming_payments"] == {"next_payment_date": None}

    def test_totals_by_status(self, services, repos, member):
        _payment(repos, member, PaymentStatus.SUCCEEDED.value, "300.00")
        _payment(repos, member, PaymentStatus.PAID.value, "50.00")
        _payment(repos, member, PaymentStatus.PENDING.value, "120.00")
        _payment(repos, member, PaymentStatus.REQUIRES_PAYMENT_METHOD.value, "30.00")
        _payment(repos, member, PaymentStatus.REFUNDED.value, "999.00")

        summary = services.account.get_summary(member)

        assert summary["total_paid"] == "350.00"
        assert summary["pending_charges"] == "150.00"
        assert summary["balance"] == "150.00"
        assert summary["has_movements"] is True
        assert summary["message"] is None

    def test_next_payment_date_after_last_succeeded(self, services, repos, member):
        payment = _payment(repos, member, PaymentStatus.SUCCEEDED.value)
        payment.created_at = datetime(2026, 2, 1, tzinfo=timezone.utc)

        summary = services.account.get_summary(member)

        expected = datetime(2026, 2, 1, tzinfo=timezone.utc) + timedelta(days=30)
        assert summary["upcoming_payments"]["next_payment_date"] == expected

    def test_recent_movements_are_capped_and_truncated(self, services, repos, member):
        for _ in range(12):
            _payment(repos, member, PaymentStatus.PENDING.value, concept="x" * 300)

        movements = services.account.get_summary(member)["recent_movements"]

        assert len(movements) == 10
        assert all(len(m["concept"]) == 200 for m in movements)

    def test_summary_is_cached_until_invalidated(self, repos, clock, member):
        ticks = [0.0]
        cache = TTLCache(ttl_seconds=60, clock=lambda: ticks[0])
        services = build_services(repos, clock=clock, cache=cache)

        assert services.account.get_summary(member)["pending_charges"] == "0.00"
        _payment(repos, member, PaymentStatus.PENDING.value)

        # Direct ledger writes bypass invalidation, so the cached view is served
        assert services.account.get_summary(member)["pending_charges"] == "0.00"

        ticks[0] = 61.0
        assert services.account.get_summary(member)["pending_charges"] == "100.00"

    def test_other_users_summary_is_forbidden(self, services, repos, member, admin):
        with pytest.raises(ForbiddenException) as exc_info:
            services.account.get_summary(admin, member.id)

        assert exc_info.value.message == "Acceso denegado"
        warnings = repos.logs.list_recent(severity=LogSeverity.WARN.value)
        assert len(warnings) == 1
        assert warnings[0].user_id == admin.id


class TestHistory:
    def test_filters_by_spanish_alias(self, services, repos, member):
        _payment(repos, member, PaymentStatus.SUCCEEDED.value)
        _payment(repos, member, PaymentStatus.PAID.value)
        _payment(repos, member, PaymentStatus.FAILED.value)

        result = services.account.get_history(member, status="exitoso")

        assert result["total"] == 2
        assert {row["status"] for row in result["data"]} == {"succeeded", "paid"}

    def test_only_own_payments(self, services, repos, member, second_member):
        _payment(repos, member, PaymentStatus.PENDING.value)
        _payment(repos, second_member, PaymentStatus.PENDING.value)

        result = services.account.get_history(member)

        assert result["total"] == 1
        assert result["data"][0]["user_id"] == member.id

    def test_empty_history_message(self, services, member):
        result = services.account.get_history(member)

        assert result["total"] == 0
        assert result["message"] == NO_PAYMENTS_MESSAGE

    def test_limit_is_capped(self, services, member):
        assert services.account.get_history(member, limit=1000)["page_size"] == 100

    def test_pagination(self, services, repos, member):
        for _ in range(5):
            _payment(repos, member, PaymentStatus.PENDING.value)

        page = services.account.get_history(member, page=2, limit=2)

        assert page["total"] == 5
        assert page["page"] == 2
        assert len(page["data"]) == 2

    def test_other_user_history_is_forbidden(self, services, member, second_member):
        with pytest.raises(ForbiddenException):
            services.account.get_history(member, user_id=second_member.id)

    def test_unknown_status(self, services, member):
        with pytest.raises(ValidationException):
            services.account.get_history(member, status="perdido")


@pytest.mark.parametrize(
    "alias,expected",
    [
        ("exitoso", ["succeeded", "paid"]),
        ("FALLIDO", ["canceled", "failed"]),
        (" reembolsado ", ["refunded"]),
        ("pending", ["pending"]),
        (None, None),
        ("", None),
    ],
)
def test_resolve_status_alias(alias, expected):
    assert resolve_status_alias(alias) == expected
