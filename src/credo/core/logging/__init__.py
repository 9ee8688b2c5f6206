"""
Logging configuration module for structured logging.

This module configures the service's logging system using structlog.
It provides structured logging with JSON formatting for production and
human-readable console output for development.

The logging configuration includes:
- Timestamp formatting
- Log level inclusion
- Redaction of secret-bearing fields
- Masking of e-mail addresses
- JSON/Console output based on settings
"""

import logging
from typing import Any, Dict

import structlog

# Values under these keys are never written verbatim. Matching is by substring
# of the lower-cased key, so ``new_password`` and ``refresh_token`` are covered.
SECRET_KEYS = ("password", "secret", "token", "code", "hash", "authorization")
# Keys that are safe even though they contain one of the words above.
SAFE_KEYS = frozenset({"token_type", "token_prefix", "error_code", "purpose", "status_code"})
REDACTED = "[redacted]"


def mask_email(email: str) -> str:
    """Returns a masked version of an e-mail address for safe logging.

    Example: 'jane.doe@example.com' -> 'ja******@e*****e.com'
    """
    if not isinstance(email, str) or "@" not in email:
        return REDACTED
    local, _, domain = email.partition("@")
    name, dot, tld = domain.rpartition(".")
    if not dot:
        name, tld = domain, ""
    masked_local = f"{local[:2]}{'*' * max(len(local) - 2, 0)}"
    masked_name = f"{name[:1]}{'*' * max(len(name) - 2, 0)}{name[-1:] if len(name) > 1 else ''}"
    return f"{masked_local}@{masked_name}{dot}{tld}"


def redact_secrets(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Processor that strips secrets and masks e-mail addresses in log events."""
    for key in list(event_dict.keys()):
        lower_key = key.lower()
        if lower_key in SAFE_KEYS:
            continue
        if any(word in lower_key for word in SECRET_KEYS):
            event_dict[key] = REDACTED
        elif "email" in lower_key and isinstance(event_dict[key], str):
            event_dict[key] = mask_email(event_dict[key])
    return event_dict


def configure_logging(log_level: str = "INFO", json_logs: bool = True) -> None:
    """
    Configures the service's logging system.

    This function sets up structlog with:
    1. Context variables merged into every event
    2. ISO format timestamps
    3. Log level inclusion
    4. Secret redaction and e-mail masking
    5. JSON formatting for production (when LOG_JSON=True)
    6. Console formatting for development
    7. Standard library logger factory and bound loggers

    Args:
        log_level: Minimum level name, e.g. ``"INFO"``.
        json_logs: Render JSON instead of the development console format.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", level=level)
    logging.getLogger().setLevel(level)
    logging.getLogger("passlib").setLevel(logging.ERROR)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_log_level,
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer(),
    ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
