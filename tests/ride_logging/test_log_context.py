"""Tests for ride log context and formatters."""

import json
import logging

import pytest

from ridepool.core.correlation import CorrelationFilter, with_correlation
from ridepool.ride_logging import (
    ContextFilter,
    DefaultCorrelationFilter,
    DevFormatter,
    JSONFormatter,
    LogContext,
    PIIFilter,
    log_context,
    log_ride_context,
    setup_logging,
)
from ridepool.settings import ServiceSettings


def make_record(msg: str = "Ride accepted") -> logging.LogRecord:
    return logging.LogRecord("ridepool.test", logging.INFO, __file__, 1, msg, None, None)


@pytest.mark.unit
class TestLogContext:
    @pytest.fixture
    def captured_records(self):
        logger = logging.getLogger("test.ride_context")
        logger.setLevel(logging.DEBUG)
        records: list[logging.LogRecord] = []

        class RecordCapture(logging.Handler):
            def emit(self, record: logging.LogRecord) -> None:
                records.append(record)

        handler = RecordCapture()
        handler.addFilter(ContextFilter())
        logger.addHandler(handler)
        yield logger, records
        logger.removeHandler(handler)

    def test_ride_context_fields_added(self, captured_records):
        logger, records = captured_records

        with log_ride_context("ride-1", driver_id="d1"):
            logger.info("Ride started")

        assert records[0].ride_id == "ride-1"
        assert records[0].driver_id == "d1"

    def test_nested_contexts_restore(self, captured_records):
        logger, records = captured_records

        with log_context(pool_id="pool-1"):
            with log_ride_context("ride-1"):
                logger.info("inner")
            logger.info("outer")
        logger.info("none")

        assert records[0].pool_id == "pool-1" and records[0].ride_id == "ride-1"
        assert not hasattr(records[1], "ride_id")
        assert records[1].pool_id == "pool-1"
        assert not hasattr(records[2], "pool_id")

    def test_explicit_extra_wins(self, captured_records):
        logger, records = captured_records

        with log_ride_context("ride-1"):
            logger.info("override", extra={"ride_id": "ride-2"})

        assert records[0].ride_id == "ride-2"

    def test_log_context_class_api(self):
        LogContext.set(ride_id="ride-9")
        assert LogContext.get() == {"ride_id": "ride-9"}
        LogContext.clear()
        assert LogContext.get() == {}


@pytest.mark.unit
class TestFormatters:
    def test_json_groups_ride_fields(self):
        record = make_record()
        record.ride_id = "ride-1"
        record.pool_id = "pool-1"
        record.correlation_id = "req-1"
        record.actor_id = "p1"

        data = json.loads(JSONFormatter(environment="test").format(record))

        assert data["message"] == "Ride accepted"
        assert data["env"] == "test"
        assert data["service"] == "ridepool"
        assert data["ride"] == {"id": "ride-1", "pool_id": "pool-1"}
        assert data["actor_id"] == "p1"
        assert data["correlation_id"] == "req-1"
        assert "source" not in data

    def test_json_omits_placeholder_correlation_and_empty_ride(self):
        record = make_record()
        DefaultCorrelationFilter().filter(record)

        data = json.loads(JSONFormatter().format(record))

        assert "correlation_id" not in data
        assert "ride" not in data

    def test_json_warning_carries_source(self):
        record = logging.LogRecord(
            "ridepool.test", logging.WARNING, __file__, 42, "Projection lagging", None, None
        )

        data = json.loads(JSONFormatter().format(record))

        assert data["source"] == "test_log_context:42"

    def test_dev_formatter_shows_correlation(self):
        record = make_record()
        DefaultCorrelationFilter().filter(record)

        assert "[corr=-]" in DevFormatter().format(record)

    def test_dev_formatter_appends_ride_fields(self):
        record = make_record()
        record.correlation_id = "req-1"
        record.ride_id = "ride-1"
        record.driver_id = "d1"

        line = DevFormatter().format(record)

        assert line.endswith("Ride accepted [id=ride-1 driver_id=d1]")


@pytest.mark.unit
class TestSetupLogging:
    @pytest.fixture(autouse=True)
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_json_handler_with_filters(self):
        setup_logging(ServiceSettings(log_format="json", log_level="DEBUG", environment="prod"))

        root = logging.getLogger()
        (handler,) = root.handlers
        assert isinstance(handler.formatter, JSONFormatter)
        assert handler.formatter.environment == "prod"
        assert [type(f) for f in handler.filters] == [
            ContextFilter,
            CorrelationFilter,
            DefaultCorrelationFilter,
            PIIFilter,
        ]
        assert root.level == logging.DEBUG

    def test_text_format_and_quiet_clients(self):
        setup_logging(ServiceSettings(log_format="text", log_level="ERROR"))

        (handler,) = logging.getLogger().handlers
        assert isinstance(handler.formatter, DevFormatter)
        assert logging.getLogger("sqlalchemy.engine").level == logging.ERROR
        assert logging.getLogger("redis").level == logging.ERROR


@pytest.mark.unit
class TestFilters:
    def test_pii_masked(self):
        record = make_record("Contact asha@example.com or 555-123-4567")

        PIIFilter().filter(record)

        assert record.msg == "Contact [EMAIL] or [PHONE]"

    def test_pii_in_arguments_masked(self):
        record = logging.LogRecord(
            "ridepool.test",
            logging.INFO,
            __file__,
            1,
            "Ride cancelled: %s",
            ("call me on 555 123 4567",),
            None,
        )

        PIIFilter().filter(record)

        assert record.getMessage() == "Ride cancelled: call me on [PHONE]"

    def test_clean_arguments_untouched(self):
        record = logging.LogRecord(
            "ridepool.test", logging.INFO, __file__, 1, "Ride rated %d", (5,), None
        )

        PIIFilter().filter(record)

        assert record.args == (5,)

    def test_ride_ids_not_masked(self):
        record = make_record("Ride 1234567890abcdef pooled")

        PIIFilter().filter(record)

        assert record.msg == "Ride 1234567890abcdef pooled"

    def test_correlation_from_context(self):
        record = make_record()

        with with_correlation("req-42"):
            CorrelationFilter().filter(record)

        assert record.correlation_id == "req-42"

    def test_correlation_default(self):
        record = make_record()

        CorrelationFilter().filter(record)

        assert record.correlation_id == "-"
