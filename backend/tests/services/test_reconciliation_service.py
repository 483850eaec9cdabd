"""
Tests for payment standing reconciliation and the subscription view.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from sati.core.exceptions import NotFoundException
from sati.models.payment import PaymentStatus
from sati.models.user import PaymentStanding
from sati.services.cache_service import account_summary_key


def _payment(repos, user, status, concept="Suscripción - Básico", amount="500.00"):
    return repos.payments.create_payment_record(
        user_id=user.id, amount=Decimal(amount), concept=concept, status=status
    )


class TestComputeStatus:
    def test_no_payments_is_inactive(self, services, member):
        assert services.reconciliation.compute_status(member) == PaymentStanding.INACTIVE

    def test_pending_payment(self, services, repos, member):
        _payment(repos, member, PaymentStatus.PENDING.value)
        assert services.reconciliation.compute_status(member) == PaymentStanding.PENDING

    def test_succeeded_payment_is_active(self, services, repos, member):
        _payment(repos, member, PaymentStatus.SUCCEEDED.value)
        _payment(repos, member, PaymentStatus.PENDING.value)
        assert services.reconciliation.compute_status(member) == PaymentStanding.ACTIVE

    def test_only_succeeded_counts_as_paid(self, services, repos, member):
        _payment(repos, member, PaymentStatus.PAID.value)
        assert services.reconciliation.compute_status(member) == PaymentStanding.INACTIVE

    def test_expired_subscription_is_inactive(self, services, repos, member, clock):
        _payment(repos, member, PaymentStatus.SUCCEEDED.value)
        repos.users.update(member.id, subscription_end_date=clock.utc() - timedelta(days=1))

        assert services.reconciliation.compute_status(member) == PaymentStanding.INACTIVE

    def test_subscription_end_in_future_is_active(self, services, repos, member, clock):
        _payment(repos, member, PaymentStatus.SUCCEEDED.value)
        repos.users.update(member.id, subscription_end_date=clock.utc() + timedelta(days=3))

        assert services.reconciliation.compute_status(member) == PaymentStanding.ACTIVE

    def test_naive_end_date_is_read_as_utc(self, services, repos, member, clock):
        _payment(repos, member, PaymentStatus.SUCCEEDED.value)
        naive_past = (clock.utc() - timedelta(hours=1)).replace(tzinfo=None)
        repos.users.update(member.id, subscription_end_date=naive_past)

        assert services.reconciliation.compute_status(member) == PaymentStanding.INACTIVE


class TestReconcileUser:
    def test_persists_changed_hint(self, services, repos, member):
        repos.users.update(member.id, payment_status=PaymentStanding.ACTIVE.value)

        status = services.reconciliation.reconcile_user(member)

        assert status == PaymentStanding.INACTIVE
        assert repos.users.get_by_id(member.id).payment_status == "inactive"

    def test_unchanged_hint_is_left_alone(self, services, repos, member):
        _payment(repos, member, PaymentStatus.PENDING.value)
        repos.users.update(member.id, payment_status=PaymentStanding.PENDING.value)

        assert services.reconciliation.reconcile_user(member) == PaymentStanding.PENDING

    def test_effective_status_for_unknown_user(self, services):
        with pytest.raises(NotFoundException):
            services.reconciliation.get_effective_status("01HZZZZZZZZZZZZZZZZZZZZZZZ")


class TestSubscription:
    def test_mark_paid_clears_end_date(self, services, repos, member, clock):
        repos.users.update(member.id, subscription_end_date=clock.utc())

        services.reconciliation.mark_paid(member.id)

        assert member.payment_status == PaymentStanding.ACTIVE.value
        assert member.last_payment_date == clock.utc()
        assert member.subscription_end_date is None

    def test_mark_paid_for_unknown_user(self, services):
        assert services.reconciliation.mark_paid("01HZZZZZZZZZZZZZZZZZZZZZZZ") is None

    def test_cancel_subscription(self, services, member, clock):
        services.cache.get(account_summary_key(member.id), lambda: {"stale": True})

        updated = services.reconciliation.cancel_subscription(member)

        assert updated.payment_status == PaymentStanding.INACTIVE.value
        assert updated.subscription_end_date == clock.utc() + timedelta(days=30)
        assert account_summary_key(member.id) not in services.cache

    def test_summary_extracts_plan_name(self, services, repos, member):
        _payment(repos, member, PaymentStatus.SUCCEEDED.value, concept="Suscripcion - Plan Pro")

        summary = services.reconciliation.subscription_summary(member)

        assert summary["payment_status"] == "active"
        assert summary["plan"] == {"name": "Plan Pro", "price": "500.00"}
        assert summary["next_payment_date"] is not None

    def test_summary_without_plan_pattern_uses_concept(self, services, repos, member):
        _payment(repos, member, PaymentStatus.SUCCEEDED.value, concept="Pago mensual")

        summary = services.reconciliation.subscription_summary(member)

        assert summary["plan"]["name"] == "Pago mensual"

    def test_summary_without_payments(self, services, member):
        summary = services.reconciliation.subscription_summary(member)

        assert summary["payment_status"] == "inactive"
        assert summary["plan"] is None
        assert summary["next_payment_date"] is None

    def test_next_payment_follows_last_payment_date(self, services, repos, member):
        _payment(repos, member, PaymentStatus.SUCCEEDED.value)
        paid_at = datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc)
        repos.users.update(member.id, last_payment_date=paid_at)

        summary = services.reconciliation.subscription_summary(member)

        assert summary["last_payment_date"] == paid_at
        assert summary["next_payment_date"] == paid_at + timedelta(days=30)
