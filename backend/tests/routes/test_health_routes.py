"""
Tests for the health probe and the Prometheus endpoint.
"""

from sati.core.constants import BRAND_NAME


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] == "ok"
    assert body["service"] == BRAND_NAME


def test_metrics_exposes_booking_admissions(client, auth_headers, test_room):
    client.post(
        "/api/bookings",
        json={"room_id": test_room.id, "date": "2000-01-01", "start_time": "10:00",
              "end_time": "11:00"},
        headers=auth_headers,
    )

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "sati_booking_admissions_total" in response.text
    assert "sati_http_requests_total" in response.text
