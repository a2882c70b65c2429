"""
Outbound verification emails.

EmailService renders and delivers a single message; NotificationDispatcher
runs deliveries as detached tasks so callers never wait on (or fail because
of) the mail transport.
"""

import asyncio
import html
import smtplib
from email.message import EmailMessage
from typing import Optional, Protocol, Set
import structlog

from ..core.config import Settings

logger = structlog.get_logger()


def mask_email(email: str) -> str:
    local, _, domain = email.partition("@")
    return f"{local[:1]}***@{domain}" if domain else "***"


class IEmailService(Protocol):
    async def send_verification(self, verify_token: str, email: str, name: Optional[str] = None) -> None:
        ...


class EmailService:
    """Renders verification emails and delivers them over SMTP."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def verification_link(self, verify_token: str) -> str:
        return f"{self.settings.verification_link_base}/{verify_token}"

    def render_verification(self, verify_token: str, name: Optional[str] = None) -> str:
        product = html.escape(self.settings.PRODUCT_NAME)
        greeting = f"Hi {html.escape(name)}," if name else "Hi,"
        link = html.escape(self.verification_link(verify_token), quote=True)
        return (
            "<html><body>"
            f"<p>{greeting}</p>"
            f"<p>Welcome to {product}! We're very excited to have you on board.</p>"
            f"<p>To get started with {product}, please click here:</p>"
            f'<p><a href="{link}" style="background:#22BC66;color:#ffffff;'
            'padding:10px 18px;border-radius:3px;text-decoration:none">'
            "Confirm your account</a></p>"
            "</body></html>"
        )

    def build_verification_message(
        self,
        verify_token: str,
        email: str,
        name: Optional[str] = None,
    ) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = "Verify email"
        message["From"] = f"{self.settings.EMAILS_FROM_NAME} <{self.settings.EMAILS_FROM_EMAIL}>"
        message["To"] = email
        message.set_content(
            f"Confirm your account: {self.verification_link(verify_token)}"
        )
        message.add_alternative(self.render_verification(verify_token, name), subtype="html")
        return message

    async def send_verification(self, verify_token: str, email: str, name: Optional[str] = None) -> None:
        """
        Deliver the verification email.

        Raises:
            smtplib.SMTPException, OSError: If delivery fails
        """
        message = self.build_verification_message(verify_token, email, name)

        if not self.settings.SMTP_HOST:
            logger.info(
                "SMTP not configured, verification email not sent",
                email=mask_email(email),
                link=self.verification_link(verify_token),
            )
            return

        await asyncio.to_thread(self._deliver, message)
        logger.info("Verification email sent", email=mask_email(email))

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(
            self.settings.SMTP_HOST,
            self.settings.SMTP_PORT,
            timeout=self.settings.SMTP_TIMEOUT_SECONDS,
        ) as server:
            if self.settings.SMTP_TLS:
                server.starttls()
            if self.settings.SMTP_USER:
                server.login(self.settings.SMTP_USER, self.settings.SMTP_PASSWORD)
            server.send_message(message)


class NotificationDispatcher:
    """Fire-and-forget delivery of verification emails."""

    def __init__(self, email_service: IEmailService):
        self.email_service = email_service
        self._pending: Set[asyncio.Task] = set()

    def dispatch_verification(self, verify_token: str, email: str, name: Optional[str] = None) -> asyncio.Task:
        """
        Schedule a verification email without waiting for it.

        Failures are logged from the task's done-callback and never reach
        the caller.
        """
        task = asyncio.create_task(
            self.email_service.send_verification(verify_token, email, name),
            name="send-verification-email",
        )
        self._pending.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            logger.warning("Verification email task cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Failed to send verification email",
                error=str(error),
                error_type=type(error).__name__,
            )

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for in-flight deliveries; used on shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
