import io
import json
import logging

from cloudlog.config import FormatterSettings
from cloudlog.context import LoggingContext
from cloudlog.dependencies import get_logging_context
from cloudlog.logging_config import (
    CloudLoggingFormatter,
    record_origin,
    record_to_mapping,
    setup_logging,
)
from cloudlog.services.error_report import REPORTED_ERROR_EVENT_TYPE


def _entries(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines()]


class TestRecordToMapping:
    def test_standard_fields(self):
        record = logging.LogRecord("orders", logging.WARNING, "/srv/orders.py", 9, "low %s", ("stock",), None)
        mapping = record_to_mapping(record)
        assert mapping["message"] == "low stock"
        assert mapping["level"] == logging.WARNING
        assert mapping["level_name"] == "WARNING"
        assert mapping["channel"] == "orders"
        assert mapping["datetime"].tzinfo is not None
        assert mapping["context"] == {}
        assert mapping["extra"] == {}

    def test_extra_attributes_become_context(self):
        record = logging.makeLogRecord({"msg": "hi", "order": 42, "context": {"user": "u1"}})
        assert record_to_mapping(record)["context"] == {"order": 42, "user": "u1"}

    def test_exc_info_becomes_exception(self):
        try:
            raise ValueError("bad")
        except ValueError as exc:
            error = exc
        record = logging.makeLogRecord({"msg": "x", "exc_info": (ValueError, error, error.__traceback__)})
        assert record_to_mapping(record)["context"]["exception"] is error

    def test_origin(self):
        record = logging.LogRecord("orders", logging.ERROR, "/srv/orders.py", 9, "x", (), None, func="charge")
        origin = record_origin(record)
        assert (origin.file_path, origin.line_number, origin.function) == ("/srv/orders.py", 9, "charge")


class TestCloudLoggingFormatter:
    def test_info_entry(self, capture_logger, context):
        log, stream = capture_logger
        log.info("Order placed", extra={"order": 42})
        (entry,) = _entries(stream)
        assert entry["message"] == "Order placed"
        assert entry["severity"] == "INFO"
        assert entry["order"] == 42
        assert entry["channel"] == "tests.cloudlog"
        assert entry["requestId"] == context.request_id
        assert "@type" not in entry
        assert "level" not in entry and "datetime" not in entry

    def test_error_entry_points_at_logging_call(self, capture_logger):
        log, stream = capture_logger
        log.error("Payment failed")
        (entry,) = _entries(stream)
        assert entry["@type"] == REPORTED_ERROR_EVENT_TYPE
        assert entry["serviceContext"] == {"service": "svc", "version": "1.0"}
        location = entry["context"]["reportLocation"]
        assert location["filePath"].endswith("test_logging_config.py")
        assert location["lineNumber"] > 0
        assert location["functionName"] == ""

    def test_logged_exception(self, capture_logger):
        log, stream = capture_logger

        class Importer:
            def run(self):
                raise RuntimeError("feed unavailable")

        try:
            Importer().run()
        except RuntimeError:
            log.exception("Import failed")
        (entry,) = _entries(stream)
        assert entry["context"]["reportLocation"]["functionName"] == "Importer::run"
        assert entry["exception"]["class"] == "RuntimeError"
        assert entry["exception"]["message"] == "feed unavailable"

    def test_format_batch(self, settings, context):
        formatter = CloudLoggingFormatter(settings, context)
        records = [
            logging.LogRecord("a", logging.INFO, __file__, 1, "one", (), None),
            logging.LogRecord("a", logging.INFO, __file__, 2, "two", (), None),
        ]
        assert [entry["message"] for entry in json.loads(formatter.format_batch(records))] == [
            "one",
            "two",
        ]

    def test_defaults_to_shared_context(self, settings):
        formatter = CloudLoggingFormatter(settings)
        assert formatter.context is get_logging_context()
        assert CloudLoggingFormatter(settings).context.request_id == formatter.context.request_id

    def test_construction_pins_request_id(self, settings):
        calls = []
        context = LoggingContext(request_id_factory=lambda: calls.append(1) or "rid")
        CloudLoggingFormatter(settings, context)
        assert calls == [1]


class TestSetupLogging:
    def test_installs_single_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        stream = io.StringIO()
        try:
            formatter = setup_logging(FormatterSettings(log_level="WARNING"), stream=stream)
            assert len(root.handlers) == 1
            assert root.handlers[0].formatter is formatter
            assert root.level == logging.WARNING
            logging.getLogger("tests.setup").warning("careful")
            (entry,) = _entries(stream)
            assert entry["severity"] == "WARNING"
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_lowercase_level_argument(self):
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            setup_logging(FormatterSettings(), level="debug", stream=io.StringIO())
            assert root.level == logging.DEBUG
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
