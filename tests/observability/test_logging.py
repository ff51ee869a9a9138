"""
Test suite for logging configuration and correlation ids.

System role: Verification of the observability layer
"""

import logging

import pytest

from kb_pipeline.observability import (
    CorrelationIdFilter,
    clear_correlation_id,
    configure_logging,
    get_correlation_id,
    get_logger,
    set_correlation_id,
)


@pytest.fixture(autouse=True)
def reset_correlation():
    clear_correlation_id()
    yield
    clear_correlation_id()


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestCorrelationId:
    def test_set_should_generate_when_missing(self) -> None:
        value = set_correlation_id()

        assert value
        assert get_correlation_id() == value

    def test_set_should_keep_given_id(self) -> None:
        assert set_correlation_id("req-1") == "req-1"
        clear_correlation_id()
        assert get_correlation_id() == ""

    def test_filter_should_attach_id_or_dash(self) -> None:
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        log_filter = CorrelationIdFilter()

        log_filter.filter(record)
        assert record.correlation_id == "-"

        set_correlation_id("task-7")
        log_filter.filter(record)
        assert record.correlation_id == "task-7"


class TestConfigureLogging:
    def test_should_install_single_handler(self, restore_root_logger) -> None:
        configure_logging("debug")
        configure_logging("warning")

        assert len(restore_root_logger.handlers) == 1
        assert restore_root_logger.level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_get_logger_returns_named_logger(self) -> None:
        assert get_logger("kb_pipeline.test").name == "kb_pipeline.test"
