"""
Tests for fleetadapter observability module.
"""

import json
import logging
from unittest.mock import MagicMock

import pytest

from fleetadapter.observability import (
    JSONFormatter,
    JSONLogger,
    ReconcileLogger,
    configure_logging,
)

# =============================================================================
# JSONLogger Tests
# =============================================================================


class TestJSONLogger:
    """Tests for JSONLogger."""

    def test_logs_valid_json(self, caplog):
        logger = JSONLogger(name="test.json")
        with caplog.at_level(logging.INFO, logger="test.json"):
            logger.info("Resource applied", resource="ns", operation="create")

        entry = json.loads(caplog.records[0].getMessage())
        assert entry["message"] == "Resource applied"
        assert entry["level"] == "info"
        assert entry["resource"] == "ns"
        assert "timestamp" in entry

    def test_includes_correlation_id(self, caplog):
        logger = JSONLogger(name="test.json", correlation_id="evt-123")
        with caplog.at_level(logging.INFO, logger="test.json"):
            logger.info("x")
        assert json.loads(caplog.records[0].getMessage())["correlation_id"] == "evt-123"

    def test_with_context_creates_new_logger(self, caplog):
        logger = JSONLogger(name="test.json", correlation_id="evt-1")
        child = logger.with_context(transport="maestro")

        assert child is not logger
        assert child.extra_context == {"transport": "maestro"}
        assert logger.extra_context == {}

        with caplog.at_level(logging.INFO, logger="test.json"):
            child.info("x")
        entry = json.loads(caplog.records[0].getMessage())
        assert entry["transport"] == "maestro"
        assert entry["correlation_id"] == "evt-1"

    def test_all_log_levels(self, caplog):
        logger = JSONLogger(name="test.json")
        with caplog.at_level(logging.DEBUG, logger="test.json"):
            logger.debug("d")
            logger.info("i")
            logger.warning("w")
            logger.error("e")

        assert [r.levelno for r in caplog.records] == [
            logging.DEBUG,
            logging.INFO,
            logging.WARNING,
            logging.ERROR,
        ]


# =============================================================================
# ReconcileLogger Tests
# =============================================================================


class TestReconcileLogger:
    """Tests for ReconcileLogger events."""

    @pytest.fixture
    def inner(self):
        return MagicMock()

    def test_resource_applied(self, inner):
        ReconcileLogger(inner=inner).resource_applied("ns", "kubernetes", "create", "resource not found", 12.345)

        inner.info.assert_called_once_with(
            "Resource applied",
            resource="ns",
            transport="kubernetes",
            operation="create",
            reason="resource not found",
            duration_ms=12.35,
        )

    def test_resource_failed(self, inner):
        ReconcileLogger(inner=inner).resource_failed("ns", "maestro", "boom", "TransportError", 1.0)
        assert inner.error.call_args.kwargs["error_type"] == "TransportError"

    def test_discovery_failed(self, inner):
        ReconcileLogger(inner=inner).discovery_failed("ns", "not found", nested="inner")
        inner.warning.assert_called_once_with(
            "Discovery after apply failed", resource="ns", nested="inner", error="not found"
        )

    def test_default_inner_carries_correlation_id(self):
        log = ReconcileLogger(correlation_id="evt-9")
        assert isinstance(log.inner, JSONLogger)
        assert log.inner.correlation_id == "evt-9"


# =============================================================================
# Handler setup
# =============================================================================


class TestConfigureLogging:
    """Tests for JSONFormatter and configure_logging."""

    def test_formatter_plain_record(self):
        record = logging.LogRecord("fleetadapter.x", logging.WARNING, __file__, 1, "hello %s", ("world",), None)
        entry = json.loads(JSONFormatter().format(record))
        assert entry["message"] == "hello world"
        assert entry["level"] == "warning"
        assert entry["logger"] == "fleetadapter.x"

    def test_formatter_passes_structured_through(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, '{"already": "json"}', None, None)
        record._fleetadapter_structured = True
        assert JSONFormatter().format(record) == '{"already": "json"}'

    def test_configure_is_idempotent(self):
        root = logging.getLogger()
        before = list(root.handlers)
        level = root.level
        try:
            configure_logging("DEBUG", json_format=True)
            configure_logging("warning")

            added = [h for h in root.handlers if h not in before]
            assert len(added) == 1
            assert added[0].level == logging.WARNING
            assert not isinstance(added[0].formatter, JSONFormatter)
        finally:
            for handler in root.handlers[:]:
                if handler not in before:
                    root.removeHandler(handler)
            root.setLevel(level)

    def test_unknown_level_falls_back_to_info(self):
        root = logging.getLogger()
        before = list(root.handlers)
        level = root.level
        try:
            configure_logging("chatty")
            assert root.level == logging.INFO
        finally:
            for handler in root.handlers[:]:
                if handler not in before:
                    root.removeHandler(handler)
            root.setLevel(level)
