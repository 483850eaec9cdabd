"""
Tests for booking confirmation email delivery.
"""

from datetime import date, time
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest

from sati.core.exceptions import ServiceException
from sati.services.email_service import EmailService
from sati.services.notification_service import NotificationService


@pytest.fixture
def booking_context():
    booking = SimpleNamespace(
        id="01HBOOKING",
        booking_date=date(2026, 3, 10),
        start_time=time(10, 0),
        end_time=time(12, 0),
    )
    user = SimpleNamespace(full_name="Ana <López>", email="ana@example.com")
    room = SimpleNamespace(name="Consultorio 1")
    return booking, user, room


def test_confirmation_email_content(booking_context):
    email_service = Mock()
    notifier = NotificationService(email_service)

    assert notifier.send_booking_confirmation(*booking_context) is True

    to_email, subject, body = email_service.send_email.call_args.args
    assert to_email == "ana@example.com"
    assert "2026-03-10" in subject
    assert "de 10:00 a 12:00" in body
    assert "Ana &lt;López&gt;" in body


def test_provider_failure_is_swallowed(booking_context):
    email_service = Mock()
    email_service.send_email.side_effect = ServiceException("Failed to send email: boom")

    assert NotificationService(email_service).send_booking_confirmation(*booking_context) is False


def test_missing_api_key_is_swallowed(booking_context):
    with patch("sati.services.email_service.settings.resend_api_key", ""):
        assert NotificationService().send_booking_confirmation(*booking_context) is False


class TestEmailService:
    def test_requires_api_key(self):
        with pytest.raises(ServiceException):
            EmailService(api_key="")

    def test_sends_html_and_text(self):
        with patch("resend.Emails.send", return_value={"id": "email-1"}) as send:
            result = EmailService(api_key="re_key").send_email(
                "ana@example.com", "Asunto", "<p>Hola &amp; bienvenida</p><p>SATI</p>"
            )

        assert result == {"id": "email-1"}
        payload = send.call_args.args[0]
        assert payload["to"] == "ana@example.com"
        assert payload["text"] == "Hola & bienvenida\nSATI"

    def test_provider_error_is_wrapped(self):
        with patch("resend.Emails.send", side_effect=RuntimeError("boom")):
            with pytest.raises(ServiceException):
                EmailService(api_key="re_key").send_email("a@b.mx", "s", "<p>x</p>")
