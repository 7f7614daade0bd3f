"""
Email Delivery Service

Sends "your report is ready" emails through the Brevo transactional API.
Single attempt: a rejected send raises and is not retried here.
"""
import html
from typing import Optional

import aiohttp

from pulse.config import get_settings
from pulse.models.base import SessionLocal
from pulse.models.report import ReportType, User
from pulse.utils.logger import log

settings = get_settings()

BREVO_API_URL = "https://api.brevo.com/v3/smtp/email"


class EmailDeliveryError(Exception):
    """Brevo answered with a non-2xx status"""


class EmailService:
    """Service for transactional report emails"""

    def __init__(self, session_factory=SessionLocal, api_key: Optional[str] = None,
                 sender_email: Optional[str] = None, sender_name: Optional[str] = None):
        self.session_factory = session_factory
        self.api_key = api_key if api_key is not None else settings.brevo_api_key
        self.sender_email = sender_email if sender_email is not None else settings.brevo_sender_email
        self.sender_name = sender_name or settings.brevo_sender_name

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.sender_email)

    async def send_report_ready_email(self, user_id: str, report_id: str, report_type: ReportType) -> bool:
        """
        Notify the user that a report PDF is available

        Returns:
            True when Brevo accepted the email, False when the send was skipped
        """
        if not self.configured:
            log.info(f"Brevo not configured, skipping report email for report {report_id}")
            return False

        recipient = self._recipient(user_id)
        if recipient is None:
            log.info(f"User {user_id} has no email address, skipping report email for report {report_id}")
            return False

        payload = self.build_report_ready_payload(recipient[0], recipient[1], report_id, report_type)

        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=30)) as session:
            async with session.post(
                BREVO_API_URL,
                json=payload,
                headers={"api-key": self.api_key, "accept": "application/json"}
            ) as response:
                if response.status >= 300:
                    body = await response.text()
                    raise EmailDeliveryError(f"Brevo send failed with HTTP {response.status}: {body[:200]}")

        log.info(f"Report email sent for report {report_id} to user {user_id}")
        return True

    def build_report_ready_payload(self, email: str, name: Optional[str], report_id: str,
                                   report_type: ReportType) -> dict:
        """Brevo transactional email body; user-supplied text is HTML-escaped"""
        label = "weekly" if ReportType(report_type) == ReportType.WEEKLY else "monthly"
        download_url = f"{settings.frontend_url.rstrip('/')}/reports?highlight={report_id}"
        return {
            "sender": {"email": self.sender_email, "name": self.sender_name},
            "to": [{"email": email, "name": name or email}],
            "subject": f"Your {label} Pulse report is ready",
            "htmlContent": (
                f"<p>Hi {html.escape(name or 'there')},</p>"
                f"<p>Your {label} Pulse Analytics report has been generated.</p>"
                f"<p><a href=\"{html.escape(download_url)}\">Open your reports</a></p>"
            ),
        }

    def _recipient(self, user_id: str):
        """(email, name) for the user, or None"""
        db = self.session_factory()
        try:
            user = db.query(User).filter(User.id == user_id).first()
            if not user or not user.email:
                return None
            return user.email, user.name
        finally:
            db.close()
