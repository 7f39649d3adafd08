"""Tests for sparkledger.core.logging."""

from __future__ import annotations

import json
import logging

import pytest

from sparkledger.core.logging import (
    JSONFormatter,
    StandardFormatter,
    configure_logging,
    correlation_context,
    get_correlation_id,
    ledger_context,
    sanitize,
    set_correlation_id,
)


def _record(msg: str = "hello", level: int = logging.INFO, **extra) -> logging.LogRecord:
    record = logging.LogRecord("sparkledger.test", level, __file__, 10, msg, None, None)
    record.__dict__.update(extra)
    return record


class TestCorrelationId:
    """Tests for correlation ID functionality."""

    def test_default_none(self):
        set_correlation_id(None)
        assert get_correlation_id() is None

    def test_context_sets_and_restores(self):
        set_correlation_id(None)
        with correlation_context("req-123") as cid:
            assert cid == "req-123"
            assert get_correlation_id() == "req-123"
        assert get_correlation_id() is None

    def test_context_generates_id(self):
        with correlation_context() as cid:
            assert len(cid) == 36


class TestLedgerContext:
    """Tests for the extra= mapping of ledger coordinates."""

    def test_values_become_strings(self):
        assert ledger_context(item_id="K1", sequence_number=7) == {"item_id": "K1", "sequence_number": "7"}

    def test_empty_values_dropped(self):
        assert ledger_context(item_id="K1", topic_id=None, voter="") == {"item_id": "K1"}

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError, match="category"):
            ledger_context(category="science")


class TestFormatters:
    def test_json_formatter(self):
        with correlation_context("req-abc"):
            data = json.loads(JSONFormatter().format(_record()))
        assert data["message"] == "hello"
        assert data["correlation_id"] == "req-abc"
        assert "source" not in data
        assert "ledger" not in data

    def test_json_formatter_adds_source_for_warnings(self):
        data = json.loads(JSONFormatter().format(_record(level=logging.WARNING)))
        assert data["source"].endswith(":10")

    def test_json_formatter_carries_ledger_fields(self):
        record = _record(**ledger_context(item_id="K1", voter="0.0.1002", topic_id="0.0.5001", sequence_number=4))
        data = json.loads(JSONFormatter().format(record))
        assert data["ledger"] == {
            "item_id": "K1",
            "voter": "0.0.1002",
            "topic_id": "0.0.5001",
            "sequence_number": "4",
        }

    def test_standard_formatter_prefixes_correlation(self):
        with correlation_context("abcdef123456"):
            text = StandardFormatter().format(_record())
        assert "[abcdef12] hello" in text

    def test_standard_formatter_appends_ledger_fields(self):
        record = _record("Vote committed", **ledger_context(item_id="K1", topic_id="0.0.5001"))
        text = StandardFormatter().format(record)
        assert text.endswith("Vote committed {item_id=K1 topic_id=0.0.5001}")

    def test_standard_formatter_leaves_record_untouched(self):
        record = _record("hello %s", **ledger_context(item_id="K1"))
        record.args = ("world",)
        StandardFormatter().format(record)
        assert record.getMessage() == "hello world"

    def test_extra_reaches_formatter_through_logger(self, caplog):
        logger = logging.getLogger("sparkledger.test")
        with caplog.at_level(logging.INFO, logger="sparkledger.test"):
            logger.info("Item finalized", extra=ledger_context(item_id="K1", outcome="approved"))
        data = json.loads(JSONFormatter().format(caplog.records[-1]))
        assert data["ledger"] == {"item_id": "K1", "outcome": "approved"}


class TestSanitize:
    def test_redacts_credentials(self):
        body = {"itemId": "X", "privateKey": "302e...", "nested": {"hederaPrivateKey": "k"}}
        assert sanitize(body) == {"itemId": "X", "privateKey": "[REDACTED]", "nested": {"hederaPrivateKey": "[REDACTED]"}}

    def test_truncates_long_strings(self):
        assert sanitize("x" * 600).endswith("...")


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_json_format(self, clean_env):
        configure_logging(level="DEBUG", json_format=True)
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_unknown_level_falls_back_to_info(self, clean_env):
        configure_logging(level="LOUD", json_format=True)
        assert logging.getLogger().level == logging.INFO

    def test_level_from_settings(self, clean_env, monkeypatch):
        monkeypatch.setenv("SPARK_LOG_LEVEL", "WARNING")
        configure_logging(json_format=False)
        assert logging.getLogger().level == logging.WARNING
        assert isinstance(logging.getLogger().handlers[0].formatter, StandardFormatter)
