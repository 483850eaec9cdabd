"""
HTTP tests for /api/bookings.
"""

from datetime import timedelta

import pytest

from sati.core.config import settings
from sati.core.timezone_utils import business_now
from sati.models.payment import Payment
from sati.services.session_service import SessionService


def future_day(days: int = 10) -> str:
    return (business_now().date() + timedelta(days=days)).isoformat()


def booking_payload(room, day=None, start="10:00", end="12:00"):
    return {
        "room_id": room.id,
        "date": day or future_day(),
        "start_time": start,
        "end_time": end,
    }


def test_create_booking(client, db, auth_headers, test_room, test_user):
    response = client.post("/api/bookings", json=booking_payload(test_room), headers=auth_headers)

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "confirmed"
    assert body["date"] == future_day()
    assert body["start_time"] == "10:00"
    assert body["user_id"] == test_user.id

    payment = db.query(Payment).filter(Payment.booking_id == body["id"]).one()
    assert payment.status == "pending"
    assert float(payment.amount) == 200.0


def test_create_booking_requires_session(client, test_room):
    response = client.post("/api/bookings", json=booking_payload(test_room))

    assert response.status_code == 401
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.json()["code"] == "NOT_AUTHENTICATED"


def test_create_booking_with_cookie(client, db, test_room, test_user):
    session = SessionService(db).create_session(test_user)
    client.cookies.set(settings.session_cookie_name, session.id)

    response = client.post("/api/bookings", json=booking_payload(test_room))

    assert response.status_code == 201


def test_malformed_booking_is_400(client, auth_headers, test_room):
    payload = booking_payload(test_room, start="12:00", end="10:00")

    response = client.post("/api/bookings", json=payload, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_REQUEST"


@pytest.mark.parametrize("body", [[1, 2], "reserva", 42, None])
def test_non_object_body_is_400(client, auth_headers, body):
    response = client.post("/api/bookings", json=body, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_REQUEST"


def test_undocumented_user_with_non_object_body_is_403(client, undocumented_headers):
    response = client.post("/api/bookings", json=[1, 2], headers=undocumented_headers)

    assert response.status_code == 403
    assert response.json()["code"] == "DOCUMENTATION_REQUIRED"


def test_undocumented_user_is_403(client, undocumented_headers, test_room):
    response = client.post(
        "/api/bookings", json=booking_payload(test_room), headers=undocumented_headers
    )

    assert response.status_code == 403
    assert response.json()["code"] == "DOCUMENTATION_REQUIRED"


def test_conflict_is_409(client, auth_headers, other_auth_headers, test_room):
    first = client.post("/api/bookings", json=booking_payload(test_room), headers=auth_headers)
    assert first.status_code == 201

    response = client.post(
        "/api/bookings",
        json=booking_payload(test_room, start="11:00", end="13:00"),
        headers=other_auth_headers,
    )

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "RESOURCE_CONFLICT"
    assert body["detail"] == "Room is already booked for this time"
    assert body["errors"]["conflicting_booking_ids"] == [first.json()["id"]]


def test_touching_booking_is_admitted(client, auth_headers, other_auth_headers, test_room):
    client.post("/api/bookings", json=booking_payload(test_room), headers=auth_headers)

    response = client.post(
        "/api/bookings",
        json=booking_payload(test_room, start="12:00", end="13:00"),
        headers=other_auth_headers,
    )

    assert response.status_code == 201


def test_past_date_is_400(client, auth_headers, test_room):
    payload = booking_payload(test_room, day=future_day(-2))

    response = client.post("/api/bookings", json=payload, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["code"] == "PAST_DATE"


def test_list_bookings_filters(client, auth_headers, test_room):
    client.post("/api/bookings", json=booking_payload(test_room), headers=auth_headers)
    client.post(
        "/api/bookings",
        json=booking_payload(test_room, day=future_day(11), start="09:00", end="10:00"),
        headers=auth_headers,
    )

    all_rows = client.get("/api/bookings").json()
    one_day = client.get("/api/bookings", params={"date": future_day(11)}).json()
    confirmed = client.get("/api/bookings", params={"status": "confirmed"}).json()

    assert len(all_rows) == 2
    assert [b["start_time"] for b in one_day] == ["09:00"]
    assert len(confirmed) == 2


def test_list_bookings_rejects_unknown_status(client):
    response = client.get("/api/bookings", params={"status": "archived"})

    assert response.status_code == 400


def test_get_booking(client, auth_headers, test_room):
    created = client.post(
        "/api/bookings", json=booking_payload(test_room), headers=auth_headers
    ).json()

    assert client.get(f"/api/bookings/{created['id']}").json()["id"] == created["id"]
    assert client.get("/api/bookings/01HZZZZZZZZZZZZZZZZZZZZZZZ").status_code == 404


def test_cancel_booking(client, auth_headers, test_room):
    created = client.post(
        "/api/bookings", json=booking_payload(test_room), headers=auth_headers
    ).json()

    response = client.patch(
        f"/api/bookings/{created['id']}/status",
        json={"status": "cancelled"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    reopen = client.patch(
        f"/api/bookings/{created['id']}/status",
        json={"status": "confirmed"},
        headers=auth_headers,
    )
    assert reopen.status_code == 422
    assert reopen.json()["code"] == "BOOKING_FINAL_STATUS"


def test_stranger_cannot_change_status(client, auth_headers, other_auth_headers, test_room):
    created = client.post(
        "/api/bookings", json=booking_payload(test_room), headers=auth_headers
    ).json()

    response = client.patch(
        f"/api/bookings/{created['id']}/status",
        json={"status": "cancelled"},
        headers=other_auth_headers,
    )

    assert response.status_code == 403


def test_penalize(client, auth_headers, admin_headers, test_room):
    created = client.post(
        "/api/bookings", json=booking_payload(test_room), headers=auth_headers
    ).json()

    response = client.post(
        f"/api/bookings/{created['id']}/penalize", json={"percentage": 25}, headers=admin_headers
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Penalización del 25% aplicada correctamente."
    assert float(body["payment"]["amount"]) == 150.0

    summary = client.get("/api/account/summary", headers=auth_headers).json()
    assert summary["pending_charges"] == "150.00"


def test_penalize_requires_admin(client, auth_headers, test_room):
    created = client.post(
        "/api/bookings", json=booking_payload(test_room), headers=auth_headers
    ).json()

    response = client.post(
        f"/api/bookings/{created['id']}/penalize", json={"percentage": 25}, headers=auth_headers
    )

    assert response.status_code == 403
    assert response.json()["code"] == "ADMIN_REQUIRED"


def test_penalize_out_of_range(client, auth_headers, admin_headers, test_room):
    created = client.post(
        "/api/bookings", json=booking_payload(test_room), headers=auth_headers
    ).json()

    response = client.post(
        f"/api/bookings/{created['id']}/penalize", json={"percentage": 120}, headers=admin_headers
    )

    assert response.status_code == 400
