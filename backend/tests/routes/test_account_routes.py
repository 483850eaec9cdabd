"""
HTTP tests for /api/account.
"""

from decimal import Decimal

from sati.models.payment import Payment
from sati.models.system_log import SystemLog


def _add_payment(db, user, status, amount):
    db.add(Payment(user_id=user.id, amount=Decimal(amount), concept="Renta", status=status))
    db.commit()


def test_summary(client, db, auth_headers, test_user):
    _add_payment(db, test_user, "succeeded", "300.00")
    _add_payment(db, test_user, "pending", "120.00")

    response = client.get("/api/account/summary", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["total_paid"] == "300.00"
    assert body["pending_charges"] == "120.00"
    assert len(body["recent_movements"]) == 2


def test_summary_requires_session(client):
    assert client.get("/api/account/summary").status_code == 401


def test_summary_for_other_user_is_forbidden(client, db, auth_headers, other_user):
    response = client.get(
        "/api/account/summary", params={"userId": other_user.id}, headers=auth_headers
    )

    assert response.status_code == 403
    assert response.json()["detail"] == "Acceso denegado"
    assert db.query(SystemLog).filter(SystemLog.severity == "WARN").count() == 1


def test_history_with_alias(client, db, auth_headers, test_user, other_user):
    _add_payment(db, test_user, "succeeded", "100.00")
    _add_payment(db, test_user, "failed", "100.00")
    _add_payment(db, other_user, "succeeded", "100.00")

    body = client.get(
        "/api/account/history", params={"status": "exitoso"}, headers=auth_headers
    ).json()

    assert body["total"] == 1
    assert body["data"][0]["status"] == "succeeded"


def test_history_for_other_user_is_forbidden(client, auth_headers, other_user):
    response = client.get(
        "/api/account/history", params={"userId": other_user.id}, headers=auth_headers
    )

    assert response.status_code == 403
