"""
Booking notifications.

Delivery is best-effort: every failure, including a missing email provider
configuration, is logged and swallowed so it never affects the booking.
"""

from html import escape
import logging
from typing import Optional

from ..core.constants import BRAND_NAME
from ..models.booking import Booking
from ..models.room import Room
from ..models.user import User
from .email_service import EmailService

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, email_service: Optional[EmailService] = None):
        self._email_service = email_service

    def _get_email_service(self) -> EmailService:
        if self._email_service is None:
            self._email_service = EmailService()
        return self._email_service

    def send_booking_confirmation(self, booking: Booking, user: User, room: Room) -> bool:
        """Returns True when the provider accepted the message."""
        try:
            start = booking.start_time.strftime("%H:%M")
            end = booking.end_time.strftime("%H:%M")
            day = booking.booking_date.isoformat()
            subject = f"{BRAND_NAME}: reserva confirmada para el {day}"
            body = (
                f"<p>Hola {escape(user.full_name)},</p>"
                f"<p>Tu reserva de <strong>{escape(room.name)}</strong> el {day} "
                f"de {start} a {end} está confirmada.</p>"
                f"<p>{BRAND_NAME}</p>"
            )
            self._get_email_service().send_email(user.email, subject, body)
            return True
        except Exception as e:
            logger.warning(f"Booking confirmation email for {booking.id} not sent: {e}")
            return False
