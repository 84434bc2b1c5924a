"""
Outgoing email for account confirmation and password reset.

Messages go out over SMTP with the credentials from Settings. When SMTP is not
configured (local development, tests) nothing is sent and callers are told so,
which lets the sign-up page show the confirmation link directly.
"""

from email.message import EmailMessage
import logging
import smtplib
import ssl

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

SMTPS_PORT = 465


def smtp_configured(settings: Settings) -> bool:
    return all((settings.smtp_host, settings.smtp_port, settings.smtp_user, settings.smtp_password, settings.smtp_from))


def build_message(settings: Settings, subject: str, to_email: str, html_body: str, text_body: str | None) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = settings.smtp_from
    msg["To"] = to_email
    msg.set_content(text_body or html_body)
    msg.add_alternative(html_body, subtype="html")
    return msg


def _deliver(settings: Settings, msg: EmailMessage) -> None:
    context = ssl.create_default_context()
    if settings.smtp_port == SMTPS_PORT:
        with smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port, context=context, timeout=15) as server:
            server.login(settings.smtp_user, settings.smtp_password)
            server.send_message(msg)
        return
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=15) as server:
        server.starttls(context=context)
        server.login(settings.smtp_user, settings.smtp_password)
        server.send_message(msg)


def send_email(subject: str, to_email: str, html_body: str, text_body: str | None = None) -> bool:
    """Send one message; True only when the SMTP server accepted it."""
    settings = get_settings()
    if not smtp_configured(settings):
        logger.warning("SMTP not configured; email to %s not sent (%s)", to_email, subject)
        return False
    try:
        _deliver(settings, build_message(settings, subject, to_email, html_body, text_body))
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("Failed to send email to %s: %s", to_email, exc)
        return False
    logger.info("Sent '%s' to %s", subject, to_email)
    return True
