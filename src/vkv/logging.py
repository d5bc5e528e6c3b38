"""Console and structured JSON logging with token redaction."""

import json
import logging
import re
import sys
from typing import Any, Dict, Optional

LOGGER_NAME = "vkv"

# Vault service and batch tokens, plus anything shaped like a long opaque secret
_TOKEN_PATTERNS = [
    re.compile(r"\bhv[sbr]\.[A-Za-z0-9_\-]{20,}"),
    re.compile(r"\b[sb]\.[A-Za-z0-9]{24}\b"),
    re.compile(r'(token["\']?\s*[:=]\s*["\']?)([^"\'\s,}]+)', re.IGNORECASE),
]


def redact(text: str) -> str:
    """Replace anything that looks like a Vault token with a placeholder."""
    for pattern in _TOKEN_PATTERNS:
        if pattern.groups:
            text = pattern.sub(r"\1[REDACTED]", text)
        else:
            text = pattern.sub("[REDACTED]", text)
    return text


class StructuredJSONFormatter(logging.Formatter):
    """JSON formatter for structured logging with token redaction."""

    def __init__(self, redact_secrets: bool = True):
        super().__init__()
        self.redact_secrets = redact_secrets

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON with optional token redaction."""
        log_data: Dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in ("event_type", "namespace", "engine", "path"):
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_str = json.dumps(log_data, ensure_ascii=False)
        if self.redact_secrets:
            log_str = redact(log_str)
        return log_str


class ConsoleFormatter(logging.Formatter):
    """Plain message formatter for operators reading a terminal.

    Warnings and errors are prefixed with their level so progress notes stay
    readable while problems still stand out.
    """

    def __init__(self, redact_secrets: bool = True):
        super().__init__("%(message)s")
        self.redact_secrets = redact_secrets

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if record.levelno >= logging.WARNING:
            message = f"[{record.levelname}] {message}"
        if self.redact_secrets:
            message = redact(message)
        return message


def setup_logging(
    level: str = "INFO",
    fmt: str = "text",
    redact_secrets: bool = True,
    stream: Optional[Any] = None,
) -> logging.Logger:
    """Set up logging for the vkv logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        fmt: "text" for plain messages or "json" for structured records
        redact_secrets: Whether to redact tokens in log output
        stream: Stream to write to (defaults to stderr)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    if fmt.lower() == "json":
        handler.setFormatter(StructuredJSONFormatter(redact_secrets=redact_secrets))
    else:
        handler.setFormatter(ConsoleFormatter(redact_secrets=redact_secrets))
    logger.addHandler(handler)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Optional logger name (defaults to 'vkv')

    Returns:
        Logger instance
    """
    return logging.getLogger(name or LOGGER_NAME)
