# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Logging setup for Spark.

Engine modules log through ``logging.getLogger(__name__)`` and attach the
ledger coordinates of what they touched with ``extra=ledger_context(...)``.
Both formatters render those coordinates, so a single vote can be followed
from the HTTP request (correlation ID) down to the topic and sequence
number it was written at.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# LogRecord attributes rendered by both formatters, in output order
LEDGER_FIELDS = ("item_id", "voter", "account_id", "topic_id", "sequence_number", "outcome")

SENSITIVE_KEYS = frozenset(
    {"privatekey", "private_key", "hederaprivatekey", "credential", "secret", "token", "password"}
)

MAX_LOGGED_STRING = 500


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    _correlation_id.set(correlation_id)


@contextmanager
def correlation_context(correlation_id: str | None = None) -> Generator[str, None, None]:
    """Scope log records to one request; a fresh ID is generated when none is given."""
    cid = correlation_id or str(uuid.uuid4())
    token = _correlation_id.set(cid)
    try:
        yield cid
    finally:
        _correlation_id.reset(token)


def ledger_context(**fields: Any) -> dict[str, Any]:
    """Build an ``extra=`` mapping of ledger coordinates, dropping empty values.

    Usage::

        logger.info("Vote committed", extra=ledger_context(item_id=item_id, topic_id=topic, sequence_number=seq))
    """
    unknown = set(fields) - set(LEDGER_FIELDS)
    if unknown:
        raise ValueError(f"Unknown ledger log fields: {sorted(unknown)}")
    return {key: str(value) for key, value in fields.items() if value is not None and value != ""}


def _ledger_fields(record: logging.LogRecord) -> dict[str, str]:
    return {key: getattr(record, key) for key in LEDGER_FIELDS if hasattr(record, key)}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shippers and the log file."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        correlation_id = get_correlation_id()
        if correlation_id:
            entry["correlation_id"] = correlation_id

        ledger = _ledger_fields(record)
        if ledger:
            entry["ledger"] = ledger

        if record.levelno >= logging.WARNING:
            entry["source"] = f"{record.pathname}:{record.lineno}"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


class StandardFormatter(logging.Formatter):
    """Single-line text for terminals: ``time level logger [cid] message {ledger}``."""

    def __init__(self) -> None:
        super().__init__(fmt="%(asctime)s %(levelname)-7s %(name)s %(message)s", datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        correlation_id = get_correlation_id()
        if correlation_id:
            message = f"[{correlation_id[:8]}] {message}"
        ledger = _ledger_fields(record)
        if ledger:
            message += " {" + " ".join(f"{k}={v}" for k, v in ledger.items()) + "}"

        # Copy so other handlers see the original record
        record = logging.makeLogRecord(record.__dict__)
        record.msg, record.args = message, None
        return super().format(record)


def _wants_json(log_format: str) -> bool:
    log_format = log_format.lower()
    if log_format in ("json", "text"):
        return log_format == "json"
    # auto: JSON unless a person is watching the terminal
    return not sys.stderr.isatty()


def configure_logging(
    level: str | int | None = None,
    json_format: bool | None = None,
    log_file: str | None = None,
) -> None:
    """Install Spark's handlers on the root logger.

    Arguments left as None come from ``CoreSettings``
    (``SPARK_LOG_LEVEL``, ``SPARK_LOG_FORMAT``, ``SPARK_LOG_FILE``).
    The log file, when set, is always written as JSON.
    """
    from .config import get_config

    config = get_config()
    level = config.log_level if level is None else level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    if json_format is None:
        json_format = _wants_json(config.log_format)
    log_file = config.log_file if log_file is None else log_file

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(JSONFormatter() if json_format else StandardFormatter())
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        root.addHandler(file_handler)

    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def sanitize(data: Any) -> Any:
    """Redact credentials and shorten long strings in a request body before it is logged."""
    if isinstance(data, dict):
        return {
            key: "[REDACTED]" if str(key).lower() in SENSITIVE_KEYS else sanitize(value)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [sanitize(item) for item in data]
    if isinstance(data, str) and len(data) > MAX_LOGGED_STRING:
        return data[:MAX_LOGGED_STRING] + "..."
    return data
