"""Structured logging for the auth service.

Every event is rendered as one JSON line. Two processors run before
rendering: raw credentials and tokens are replaced with "REDACTED", and
email addresses are masked down to their first character and domain so
failed-login events can still be correlated without storing the address.
"""

import logging
import sys
from typing import Any, Dict, Optional

import structlog

SENSITIVE_KEYS = {
    "authorization",
    "secret",
    "password",
    "access_token",
    "refresh_token",
}

EMAIL_KEYS = {"email"}

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def redact_sensitive(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Replace credential and token fields with "REDACTED".

    Matches by substring, case-insensitively, so password_hash, jwt_secret
    and Authorization are all covered.
    """
    for key in list(event_dict.keys()):
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in SENSITIVE_KEYS):
            event_dict[key] = "REDACTED"

    return event_dict


def mask_email(email: str) -> str:
    """Mask an address as a***@domain. Values without "@" are masked entirely."""
    local, sep, domain = email.partition("@")
    if not sep or not local:
        return "***"
    return f"{local[0]}***@{domain}"


def mask_emails(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Mask string values of email fields."""
    for key in EMAIL_KEYS:
        value = event_dict.get(key)
        if isinstance(value, str):
            event_dict[key] = mask_email(value)
    return event_dict


def resolve_level(log_level: Optional[str]) -> int:
    """Map a level name to its logging constant.

    None or an empty string means INFO.

    Raises:
        ValueError: If the name is not a standard level
    """
    if not log_level:
        return logging.INFO
    try:
        return _LEVELS[log_level.strip().upper()]
    except KeyError:
        raise ValueError(f"Unknown log level: {log_level!r}") from None


def configure_logging(log_level: Optional[str] = "INFO") -> None:
    """Configure structlog for JSON output with correlation ID support.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
    """
    level = resolve_level(log_level)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_sensitive,
        mask_emails,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Get a logger, bound to logger_name when a name is given."""
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger_name=name)
    return logger
