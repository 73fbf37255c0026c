"""
Logging setup for the B2B portal.

Outside development mode every record is written as one JSON line. Customer
identifiers attached to records through ``extra`` are masked before they reach
the output: emails keep their first letter and domain, session ids are cut to a
short prefix, and secrets are dropped entirely.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from b2b_portal.core.config import settings
from b2b_portal.core.security import correlation_id_ctx, mask_email, mask_session_id

SECURITY_LOGGER = "security.events"

# Attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}

_SECRET_KEYWORDS = ("password", "secret", "token", "hash", "cookie", "credential")
_EMAIL_FIELDS = frozenset({"email", "user_email", "user_id"})


def mask_log_field(key: str, value: Any) -> Any:
    """Masked form of one ``extra`` value, chosen by its field name."""
    lowered = key.lower()
    if any(keyword in lowered for keyword in _SECRET_KEYWORDS):
        return "[REDACTED]"
    if lowered in _EMAIL_FIELDS and isinstance(value, str):
        return mask_email(value)
    if "session_id" in lowered and isinstance(value, str):
        return mask_session_id(value)
    return value


class PortalJsonFormatter(logging.Formatter):
    def __init__(self, include_sensitive: bool = False):
        super().__init__()
        # Development only: write customer identifiers unmasked
        self.include_sensitive = include_sensitive

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        correlation_id = correlation_id_ctx.get()
        if correlation_id:
            entry["correlation_id"] = correlation_id
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value if self.include_sensitive else mask_log_field(key, value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRIBUTES
        }
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str, ensure_ascii=False)


def setup_logging(log_level: str = "INFO", enable_json: bool = True, include_sensitive: bool = False) -> None:
    """Replace the root handlers with a single stdout handler."""
    if enable_json:
        formatter: logging.Formatter = PortalJsonFormatter(include_sensitive=include_sensitive)
    else:
        formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.addHandler(handler)

    for noisy in ("uvicorn.access", "httpx", "httpcore", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def log_security_event(
    event_type: str,
    message: str,
    user_id: Optional[str] = None,
    ip_address: Optional[str] = None,
    extra_data: Optional[Dict[str, Any]] = None
) -> None:
    """
    Record an authentication event on the ``security.events`` logger.

    Args:
        event_type: login_success, login_failure, password_setup, logout
        message: Human-readable message
        user_id: The customer email, masked by the JSON formatter
        ip_address: Client address as seen by the portal
        extra_data: Additional structured data
    """
    event: Dict[str, Any] = {"event_type": event_type}
    if user_id:
        event["user_id"] = user_id
    if ip_address:
        event["ip_address"] = ip_address
    if extra_data:
        event.update(extra_data)

    logging.getLogger(SECURITY_LOGGER).info(message, extra=event)


def init_application_logging() -> None:
    """JSON logs with masking in production, plain unmasked text in development."""
    is_dev = settings.DEV_MODE
    log_level = "DEBUG" if is_dev else "INFO"

    setup_logging(log_level=log_level, enable_json=not is_dev, include_sensitive=is_dev)

    logging.getLogger("b2b_portal.startup").info(
        "Logging initialized",
        extra={"dev_mode": is_dev, "json_logging": not is_dev, "log_level": log_level},
    )
