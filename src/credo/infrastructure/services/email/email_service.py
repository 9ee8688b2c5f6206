"""SMTP notifier built on fastapi-mail and Jinja2.

This module implements :class:`INotifier`. Messages are rendered from HTML
templates (autoescaped) and delivered through fastapi-mail. Delivery is
retried a bounded number of times with exponential back-off via tenacity;
when the attempts are exhausted an :class:`EmailServiceError` propagates.

In test mode (development and test environments) messages are logged, with
the recipient masked and the code or link omitted, instead of being sent.

Security Features:
- Auto-escaping for all template variables
- SMTP credentials read from SecretStr settings
- Codes and links never appear in logs
"""

import asyncio
from pathlib import Path
from typing import Any, Optional

import structlog
from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType
from fastapi_mail.errors import ConnectionErrors
from jinja2 import Environment, FileSystemLoader, TemplateError
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from credo.core.exceptions import EmailServiceError
from credo.core.logging import mask_email
from credo.domain.interfaces.notifier import INotifier
from credo.domain.value_objects.otp import OtpPurpose

logger = structlog.get_logger(__name__)

BUNDLED_TEMPLATES_DIR = Path(__file__).parent / "templates"

OTP_SUBJECTS = {
    OtpPurpose.REGISTER: "Your verification code",
    OtpPurpose.RESET: "Your password reset code",
}

TRANSIENT_ERRORS = (ConnectionErrors, OSError, asyncio.TimeoutError)


class EmailNotifier(INotifier):
    """Delivers one-time codes and reset links by e-mail.

    Attributes:
        settings: Service settings (SMTP, sender, templates, test mode).
        fastmail (Optional[FastMail]): The SMTP client; None in test mode.
        jinja_env (Environment): Template environment.
    """

    def __init__(self, settings, fastmail: Optional[FastMail] = None):
        self.settings = settings
        self.test_mode = bool(settings.EMAIL_TEST_MODE)
        self.max_attempts = settings.SMTP_MAX_RETRIES
        self.jinja_env = self._create_template_environment()
        self.fastmail = fastmail
        if self.fastmail is None and not self.test_mode:
            self.fastmail = FastMail(self._connection_config())

        logger.info(
            "Email notifier initialized",
            test_mode=self.test_mode,
            smtp_configured=bool(settings.SMTP_USERNAME),
        )

    def _create_template_environment(self) -> Environment:
        template_dir = Path(self.settings.EMAIL_TEMPLATES_DIR or BUNDLED_TEMPLATES_DIR)
        return Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def _connection_config(self) -> ConnectionConfig:
        settings = self.settings
        password = settings.SMTP_PASSWORD.get_secret_value() if settings.SMTP_PASSWORD else ""
        return ConnectionConfig(
            MAIL_USERNAME=settings.SMTP_USERNAME or "",
            MAIL_PASSWORD=password,
            MAIL_FROM=settings.FROM_EMAIL,
            MAIL_FROM_NAME=settings.FROM_NAME,
            MAIL_PORT=settings.SMTP_PORT,
            MAIL_SERVER=settings.SMTP_HOST,
            MAIL_STARTTLS=settings.SMTP_USE_TLS,
            MAIL_SSL_TLS=settings.SMTP_USE_SSL,
            USE_CREDENTIALS=bool(settings.SMTP_USERNAME and password),
            VALIDATE_CERTS=True,
            TIMEOUT=settings.SMTP_TIMEOUT_SECONDS,
        )

    def _render(self, template_name: str, **context: Any) -> str:
        try:
            return self.jinja_env.get_template(template_name).render(
                project_name=self.settings.PROJECT_NAME, **context
            )
        except TemplateError as e:
            logger.error("Email template rendering failed", template=template_name, error=str(e))
            raise EmailServiceError(f"Email template '{template_name}' could not be rendered") from e

    async def send_otp_code(self, email: str, code: str, purpose: OtpPurpose) -> None:
        purpose = OtpPurpose(purpose)
        minutes = max(1, self.settings.OTP_CODE_TTL_SECONDS // 60)
        html = self._render("otp_code.html", code=code, purpose=purpose.value, expires_minutes=minutes)
        await self._send(email, OTP_SUBJECTS[purpose], html)

    async def send_password_reset_link(self, email: str, reset_url: str) -> None:
        minutes = max(1, int(self.settings.password_reset_lifetime.total_seconds() // 60))
        html = self._render("password_reset.html", reset_url=reset_url, expires_minutes=minutes)
        await self._send(email, "Reset your password", html)

    async def _send(self, to_email: str, subject: str, html: str) -> None:
        """Sends one message, retrying transient SMTP failures.

        Raises:
            EmailServiceError: If every attempt fails or a non-transient
                error occurs.
        """
        if self.test_mode:
            logger.info("Email sent in test mode", to_email=mask_email(to_email), subject=subject)
            return

        message = MessageSchema(
            subject=subject,
            recipients=[to_email],
            body=html,
            subtype=MessageType.html,
        )
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=0.5, max=5),
                retry=retry_if_exception_type(TRANSIENT_ERRORS),
                reraise=False,
            ):
                with attempt:
                    await self.fastmail.send_message(message)
        except RetryError as e:
            cause = e.last_attempt.exception()
            logger.error(
                "Email delivery failed after retries",
                to_email=mask_email(to_email),
                subject=subject,
                attempts=self.max_attempts,
                error_type=type(cause).__name__,
            )
            raise EmailServiceError("Failed to send email") from cause
        except Exception as e:
            logger.error(
                "Email delivery failed",
                to_email=mask_email(to_email),
                subject=subject,
                error_type=type(e).__name__,
            )
            raise EmailServiceError("Failed to send email") from e

        logger.info("Email sent", to_email=mask_email(to_email), subject=subject)
