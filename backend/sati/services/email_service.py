# backend/sati/services/email_service.py
"""
Email Service for the SATI platform.

Sends transactional email through the Resend API.
"""

import html
import logging
import re
from typing import Any, Dict, Optional

import resend

from ..core.config import settings
from ..core.exceptions import ServiceException
from .base import BaseService

logger = logging.getLogger(__name__)


class EmailService(BaseService):
    """Thin wrapper over resend.Emails.send with metrics and logging."""

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None):
        super().__init__(None)
        key = api_key if api_key is not None else settings.resend_api_key
        if not key:
            raise ServiceException("Resend API key not configured")
        resend.api_key = key
        self.from_email = from_email or settings.from_email

    @staticmethod
    def _html_to_text(html_content: str) -> str:
        text = re.sub(r"<br\s*/?>|</p>", "\n", html_content, flags=re.IGNORECASE)
        text = re.sub(r"<[^>]+>", "", text)
        return html.unescape(text).strip()

    @BaseService.measure_operation("send_email")
    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send an email using Resend.

        Raises:
            ServiceException: If the provider call fails
        """
        email_data = {
            "from": self.from_email,
            "to": to_email,
            "subject": subject,
            "html": html_content,
            "text": text_content or self._html_to_text(html_content),
        }
        try:
            response = resend.Emails.send(email_data)
        except Exception as e:
            self.logger.error(f"Failed to send email to {to_email}: {e}")
            raise ServiceException(f"Failed to send email: {e}") from e

        self.log_operation("email_sent", to_email=to_email, subject=subject)
        return response
