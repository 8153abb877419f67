"""
Centralized Logging

Architectural Intent:
- Provides structured JSON logging for all stratus components
- Centralizes log configuration to avoid scattered print() calls
- Supports configurable log levels via CLI flags (--verbose, --debug)
"""

import json
import logging
import sys
from datetime import datetime, UTC

# LogRecord attributes callers may attach with `extra=` that the JSON output keeps
_CONTEXT_FIELDS = ("node_id", "tag", "provider")


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in _CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_entry[name] = value
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(
    level: int = logging.INFO,
    json_format: bool = False,
) -> None:
    """Configure logging for the stratus library and CLI.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, etc.)
        json_format: If True, use JSON structured output. Otherwise human-readable.
    """
    root = logging.getLogger("stratus")
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )

    root.addHandler(handler)
    # paramiko logs every transport negotiation at INFO
    logging.getLogger("paramiko").setLevel(max(level, logging.WARNING))


def level_from_name(name: str) -> int:
    """Map 'debug'/'INFO'/... to a logging level, defaulting to WARNING."""
    value = logging.getLevelName(name.upper()) if name else logging.WARNING
    return value if isinstance(value, int) else logging.WARNING
