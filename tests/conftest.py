import io
import logging
from datetime import datetime, timezone

import pytest

from cloudlog.config import FormatterSettings
from cloudlog.context import LoggingContext
from cloudlog.logging_config import CloudLoggingFormatter
from cloudlog.models.schemas import ProcessSnapshot, RequestSnapshot
from cloudlog.services.enricher import RecordEnricher

REQUEST_ID = "2024/01/15-10:30:00-65a5098c1f2e3"


@pytest.fixture
def settings():
    return FormatterSettings(service="svc", version="1.0")


@pytest.fixture
def request_snapshot():
    return RequestSnapshot(
        method="GET",
        uri="/orders/42?expand=items",
        scheme="https",
        host="shop.example.com",
        referer="https://shop.example.com/",
        user_agent="curl/8.4.0",
        protocol="HTTP/1.1",
        forwarded_for="2.2.2.2, 3.3.3.3",
        remote_addr="4.4.4.4",
    )


@pytest.fixture
def make_context():
    def factory(request=None, process=None):
        return LoggingContext(
            request_provider=lambda: request,
            process_provider=lambda: process or ProcessSnapshot(),
            request_id_factory=lambda: REQUEST_ID,
        )

    return factory


@pytest.fixture
def context(make_context):
    return make_context()


@pytest.fixture
def enricher(settings, context):
    return RecordEnricher(settings, context)


@pytest.fixture
def make_record():
    def factory(level=logging.ERROR, message="boom", **fields):
        record = {
            "message": message,
            "context": {},
            "level": level,
            "level_name": logging.getLevelName(level),
            "channel": "app",
            "datetime": datetime(2024, 1, 15, 10, 30, 0, 123456, tzinfo=timezone.utc),
            "extra": {},
        }
        record.update(fields)
        return record

    return factory


@pytest.fixture
def capture_logger(settings, context):
    """A logger writing through CloudLoggingFormatter into a StringIO."""
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.terminator = ""
    handler.setFormatter(CloudLoggingFormatter(settings, context))

    log = logging.getLogger("tests.cloudlog")
    log.handlers.clear()
    log.addHandler(handler)
    log.setLevel(logging.DEBUG)
    log.propagate = False
    yield log, stream
    log.handlers.clear()
