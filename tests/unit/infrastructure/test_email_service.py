from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi_mail import MessageType
from fastapi_mail.errors import ConnectionErrors

from credo.core.exceptions import EmailServiceError
from credo.domain.value_objects.otp import OtpPurpose
from credo.infrastructure.services.email.email_service import EmailNotifier
from tests.factories.settings import make_settings


@pytest.fixture
def fastmail():
    client = MagicMock()
    client.send_message = AsyncMock()
    return client


@pytest.fixture
def smtp_notifier(fastmail):
    """Provides a notifier that sends through a mocked FastMail client."""
    notifier = EmailNotifier(make_settings(SMTP_MAX_RETRIES=2), fastmail=fastmail)
    notifier.test_mode = False
    return notifier


def test_test_environment_forces_test_mode():
    notifier = EmailNotifier(make_settings())
    assert notifier.test_mode is True
    assert notifier.fastmail is None


async def test_test_mode_logs_without_code(mocker):
    # Arrange
    mock_logger = mocker.patch("credo.infrastructure.services.email.email_service.logger")
    notifier = EmailNotifier(make_settings())

    # Act
    await notifier.send_otp_code("alice@example.com", "123456", OtpPurpose.REGISTER)

    # Assert
    mock_logger.info.assert_called_with(
        "Email sent in test mode", to_email="al***@e*****e.com", subject="Your verification code"
    )
    assert "123456" not in str(mock_logger.mock_calls)


async def test_send_otp_code_delivers_html_message(smtp_notifier, fastmail):
    # Act
    await smtp_notifier.send_otp_code("alice@example.com", "654321", OtpPurpose.RESET)

    # Assert
    fastmail.send_message.assert_awaited_once()
    message = fastmail.send_message.await_args.args[0]
    assert message.subject == "Your password reset code"
    assert message.subtype == MessageType.html
    assert "654321" in message.body
    assert "Password reset code" in message.body


async def test_send_reset_link_includes_url(smtp_notifier, fastmail):
    # Act
    await smtp_notifier.send_password_reset_link(
        "alice@example.com", "https://app.example.com/reset?token=abc.def"
    )

    # Assert
    message = fastmail.send_message.await_args.args[0]
    assert message.subject == "Reset your password"
    assert 'href="https://app.example.com/reset?token=abc.def"' in message.body


async def test_transient_failure_is_retried(smtp_notifier, fastmail):
    # Arrange
    fastmail.send_message.side_effect = [ConnectionErrors("refused"), None]

    # Act
    await smtp_notifier.send_otp_code("alice@example.com", "123456", OtpPurpose.REGISTER)

    # Assert
    assert fastmail.send_message.await_count == 2


async def test_exhausted_retries_raise_email_service_error(smtp_notifier, fastmail):
    # Arrange
    fastmail.send_message.side_effect = ConnectionErrors("refused")

    # Act & Assert
    with pytest.raises(EmailServiceError):
        await smtp_notifier.send_otp_code("alice@example.com", "123456", OtpPurpose.REGISTER)
    assert fastmail.send_message.await_count == 2


async def test_non_transient_failure_is_not_retried(smtp_notifier, fastmail):
    # Arrange
    fastmail.send_message.side_effect = ValueError("bad recipient")

    # Act & Assert
    with pytest.raises(EmailServiceError):
        await smtp_notifier.send_password_reset_link("alice@example.com", "https://x/reset?token=a.b")
    assert fastmail.send_message.await_count == 1


def test_templates_are_autoescaped():
    # Arrange
    notifier = EmailNotifier(make_settings())

    # Act
    html = notifier._render("password_reset.html", reset_url='"><script>alert(1)</script>', expires_minutes=60)

    # Assert
    assert "<script>" not in html
    assert "&lt;script&gt;" in html


def test_missing_template_raises_email_service_error():
    notifier = EmailNotifier(make_settings())
    with pytest.raises(EmailServiceError):
        notifier._render("missing.html")
