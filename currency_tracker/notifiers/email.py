"""
Email SMTP notifier.
"""

import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from .base import Notification, Notifier, NotificationResult

SUBJECT_PREFIX = "Currency Tracker"
TIME_FORMAT = "%Y-%m-%d %H:%M"

# Same accents as the Discord embeds
ACCENT_THRESHOLD = "#FFA500"
ACCENT_DAILY = "#3498DB"


class EmailNotifier(Notifier):
    """Sends rate notifications by email over SMTP with STARTTLS."""

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int,
        smtp_user: str,
        smtp_password: str,
        from_address: str,
        to_addresses: list[str],
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_address = from_address
        self.to_addresses = to_addresses

    def send(self, notification: Notification) -> NotificationResult:
        try:
            self._deliver(self._create_message(notification))
        except smtplib.SMTPAuthenticationError as e:
            return NotificationResult(
                success=False, channel="email", error=f"Authentication failed: {e}"
            )
        except Exception as e:
            return NotificationResult(success=False, channel="email", error=f"SMTP error: {e}")
        return NotificationResult(success=True, channel="email")

    def _deliver(self, message: MIMEMultipart) -> None:
        with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
            server.starttls()
            server.login(self.smtp_user, self.smtp_password)
            server.send_message(message)

    def _create_message(self, notification: Notification) -> MIMEMultipart:
        """Plain-text and HTML alternatives of one rate notification."""
        message = MIMEMultipart("alternative")
        message["Subject"] = f"{SUBJECT_PREFIX}: {notification.title}"
        message["From"] = self.from_address
        message["To"] = ", ".join(self.to_addresses)

        message.attach(MIMEText(self._create_text_body(notification), "plain"))
        message.attach(MIMEText(self._create_html_body(notification), "html"))
        return message

    def _create_text_body(self, notification: Notification) -> str:
        sent_at = notification.created_at.strftime(TIME_FORMAT)
        return f"{notification.title}\n\n{notification.body}\n\nSent {sent_at}\n"

    def _create_html_body(self, notification: Notification) -> str:
        accent = ACCENT_DAILY if notification.recurring else ACCENT_THRESHOLD
        sent_at = notification.created_at.strftime(TIME_FORMAT)
        return (
            "<!DOCTYPE html>\n<html>\n<body style=\"font-family: Arial, sans-serif;\">\n"
            f"  <div style=\"border-left: 4px solid {accent}; padding: 12px;\">\n"
            f"    <h2 style=\"color: {accent}; margin: 0;\">{notification.title}</h2>\n"
            f"    <p style=\"font-size: 18px;\">{notification.body}</p>\n"
            f"    <p style=\"color: #888; font-size: 12px;\">Sent {sent_at}</p>\n"
            "  </div>\n</body>\n</html>\n"
        )
