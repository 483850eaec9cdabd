"""
HTTP tests for /api/auth session revocation.
"""

from sati.services.session_service import SessionService


def test_logout_revokes_session(client, auth_headers):
    response = client.post("/api/auth/logout", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["message"] == "Sesión cerrada"
    assert client.get("/api/account/summary", headers=auth_headers).status_code == 401


def test_logout_all_revokes_every_session(client, db, test_user, auth_headers):
    second = SessionService(db).create_session(test_user)

    response = client.post("/api/auth/logout-all", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["message"] == "Se cerraron 2 sesiones"
    second_headers = {"X-Session-Id": second.id}
    assert client.get("/api/account/summary", headers=second_headers).status_code == 401


def test_logout_requires_session(client):
    response = client.post("/api/auth/logout")

    assert response.status_code == 401
    assert response.json()["code"] == "NOT_AUTHENTICATED"
