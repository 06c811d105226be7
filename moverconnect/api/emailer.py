from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from .settings import settings

logger = logging.getLogger(__name__)


def smtp_configured() -> bool:
    return bool(settings.SMTP_USERNAME and settings.SMTP_PASSWORD)


def send_email(to_email: str, subject: str, body: str, is_html: bool = False) -> bool:
    """Send an email using SMTP. If SMTP is not configured, logs the email."""
    to_email = (to_email or "").strip()
    if not to_email:
        raise ValueError("Missing recipient email")

    if not smtp_configured():
        logger.info("[DEV] Email to %s: %s\n%s", to_email, subject, body)
        return True

    msg = MIMEMultipart()
    msg["From"] = settings.EMAIL_FROM
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.attach(MIMEText(body, "html" if is_html else "plain"))

    try:
        with smtplib.SMTP(settings.SMTP_SERVER, settings.SMTP_PORT, timeout=20) as server:
            server.starttls()
            server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            server.sendmail(settings.EMAIL_FROM, to_email, msg.as_string())
        return True
    except Exception as e:
        logger.warning("Error sending email to %s: %s", to_email, e)
        return False


def send_verification_email(to_email: str, link: str) -> bool:
    body = (
        "Welcome to Movers Connect!\n\n"
        "Please verify your email address before logging in:\n"
        f"{link}\n\n"
        "If you did not create this account, you can ignore this email.\n"
    )
    return send_email(to_email, "Verify your Movers Connect email", body)
