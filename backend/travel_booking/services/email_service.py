"""
Transactional email.

Notifications are side effects of a status change that has already been
committed. A failed send (False, exception or timeout) is logged, counted and
handed back to the caller as a warning string; it never undoes the change.
"""

import asyncio
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from html import escape
from typing import Optional

from travel_booking.core.config import get_settings
from travel_booking.core.logging import get_logger
from travel_booking.core.metrics import email_failures
from travel_booking.services.interfaces.email_sender import EmailSender

logger = get_logger(__name__)
settings = get_settings()


class SmtpEmailSender(EmailSender):
    def __init__(
        self,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        sender: str = "",
        sender_name: str = "",
        use_tls: bool = True,
        timeout: float = 10,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.sender_name = sender_name
        self.use_tls = use_tls
        self.timeout = timeout

    def _build(self, to: str, subject: str, html_body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((self.sender_name, self.sender))
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html_body, subtype="html")
        return message

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password)
            smtp.send_message(message)

    async def send(self, to: str, subject: str, html_body: str) -> bool:
        message = self._build(to, subject, html_body)
        try:
            # smtplib blocks; keep it off the event loop
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("email_delivery_failed", to=to, subject=subject, error=str(e))
            return False
        logger.info("email_sent", to=to, subject=subject)
        return True


class LoggingEmailSender(EmailSender):
    async def send(self, to: str, subject: str, html_body: str) -> bool:
        logger.info("email_logged", to=to, subject=subject, size=len(html_body))
        return True


def get_email_sender() -> EmailSender:
    """SMTP when SMTP_HOST is set, log-only otherwise. Used as a FastAPI dependency."""
    if settings.SMTP_HOST:
        return SmtpEmailSender(
            settings.SMTP_HOST,
            settings.SMTP_PORT,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            sender=settings.SMTP_SENDER,
            sender_name=settings.SMTP_SENDER_NAME,
            use_tls=settings.SMTP_USE_TLS,
            timeout=settings.EMAIL_TIMEOUT_SECONDS,
        )
    return LoggingEmailSender()


def _card(title: str, *paragraphs: str) -> str:
    body = "".join(f"<p>{p}</p>" for p in paragraphs)
    return (
        "<div style='font-family: Arial, sans-serif; padding: 20px; max-width: 560px; margin: auto;'>"
        f"<h2 style='color: #0d6efd;'>{title}</h2>{body}</div>"
    )


async def deliver(sender: EmailSender, template: str, to: str, subject: str, html_body: str) -> Optional[str]:
    """
    Send one templated email. Returns None on success, or a warning message.
    """
    try:
        sent = await asyncio.wait_for(
            sender.send(to, subject, html_body),
            timeout=settings.EMAIL_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        sent = False
        logger.warning("email_timeout", template=template, to=to)
    except Exception as e:
        sent = False
        logger.warning("email_failed", template=template, to=to, error=str(e))

    if sent:
        return None
    email_failures.labels(template=template).inc()
    return f"The {template.replace('_', ' ')} email to {to} could not be sent."


async def send_review_invitation(
    sender: EmailSender, to: str, customer_name: str, booking_id: int, package_name: str,
) -> Optional[str]:
    link = f"{settings.PUBLIC_BASE_URL}/api/v1/bookings/{booking_id}/feedback"
    html_body = _card(
        f"How was your trip to {escape(package_name)}?",
        f"Hi {escape(customer_name)},",
        "Your trip is complete. We would love to hear how it went.",
        f"<a href='{escape(link)}'>Rate your trip</a>",
    )
    return await deliver(sender, "review_invitation", to, f"How was your trip to {package_name}?", html_body)


async def send_cancellation_notice(
    sender: EmailSender, to: str, customer_name: str, booking_id: int, package_name: str,
) -> Optional[str]:
    html_body = _card(
        "Booking cancelled",
        f"Hi {escape(customer_name)},",
        f"Your booking #{booking_id} for {escape(package_name)} has been cancelled.",
        "If you did not expect this, please contact our support team.",
    )
    return await deliver(sender, "cancellation_notice", to, f"Booking #{booking_id} cancelled", html_body)


async def send_review_thanks(
    sender: EmailSender, to: str, customer_name: str, package_name: str, rating: int,
) -> Optional[str]:
    stars = "".join("★" if i < rating else "☆" for i in range(5))
    if rating <= 2:
        message = "We are truly sorry that your trip did not meet your expectations."
    else:
        message = "Thank you for travelling with us. We hope to see you again soon."
    html_body = _card(
        "Thank you for your review",
        f"Hi {escape(customer_name)},",
        f"You rated {escape(package_name)} {stars}.",
        message,
    )
    return await deliver(sender, "review_thanks", to, "Thank you for your review", html_body)


async def send_password_reset_link(sender: EmailSender, to: str, customer_name: str, link: str) -> Optional[str]:
    html_body = _card(
        "Reset your password",
        f"Hi {escape(customer_name)},",
        f"We received a request to reset your password. The link is valid for "
        f"{settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes.",
        f"<a href='{escape(link)}'>Choose a new password</a>",
        "If you did not ask for this, you can ignore this email.",
    )
    return await deliver(sender, "password_reset", to, "Reset your password", html_body)
