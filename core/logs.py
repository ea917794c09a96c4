"""
core/logs.py -- Logging setup and secret redaction for SessionAuth.

configure_logging() is called once by api/main.py at import time. It installs
SensitiveDataFilter on every root handler so no module can accidentally write
a plaintext password, a raw session identifier, or a bcrypt hash to the logs,
even through an exception message or a third-party logger.

The filter rewrites record.msg/record.args in place. Records that fail to
format are passed through untouched -- logging must never raise.
"""

from __future__ import annotations

import logging
import re

_REDACTED = "***REDACTED***"

SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # password=..., "password": "..."
    (re.compile(r"""(passw(?:or)?d["']?\s*[:=]\s*["']?)([^"'\s,}]+)""", re.IGNORECASE), rf"\1{_REDACTED}"),
    # session_id=..., session-id: ...
    (re.compile(r"""(session[_-]?id["']?\s*[:=]\s*["']?)([A-Za-z0-9_\-.]{8,})""", re.IGNORECASE), rf"\1{_REDACTED}"),
    # Cookie / Set-Cookie headers
    (re.compile(r"((?:set-)?cookie\s*:\s*)([^\r\n]+)", re.IGNORECASE), rf"\1{_REDACTED}"),
    # bcrypt hashes ($2a$, $2b$, $2y$)
    (re.compile(r"\$2[aby]\$\d{2}\$[./A-Za-z0-9]{53}"), _REDACTED),
]


def sanitize_message(message: str) -> str:
    for pattern, replacement in SENSITIVE_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


class SensitiveDataFilter(logging.Filter):
    """Redact secrets from log records before any handler formats them."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            rendered = record.getMessage()
        except Exception:  # noqa: BLE001 -- a broken record is still logged as-is
            return True
        sanitized = sanitize_message(rendered)
        if sanitized != rendered:
            record.msg = sanitized
            record.args = None
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger and attach the redaction filter to its handlers."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, SensitiveDataFilter) for f in handler.filters):
            handler.addFilter(SensitiveDataFilter())
