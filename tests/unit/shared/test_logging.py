import json
import logging

from chatpulse.shared.infrastructure.logging import (
    REDACTED,
    CustomJsonFormatter,
    is_sensitive_key,
    log_latency,
    setup_logging,
)


def format_record(formatter, message="hello", **extra):
    record = logging.LogRecord("chatpulse.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return json.loads(formatter.format(record))


def test_json_output_has_context_fields():
    formatter = CustomJsonFormatter("%(name)s %(levelname)s %(message)s", environment="test")

    output = format_record(formatter, correlation_id="corr-1", sync_id="extract_chats_1")

    assert output["message"] == "hello"
    assert output["levelname"] == "INFO"
    assert output["environment"] == "test"
    assert output["correlation_id"] == "corr-1"
    assert output["sync_id"] == "extract_chats_1"
    assert "timestamp" in output


def test_credentials_are_redacted():
    formatter = CustomJsonFormatter("%(message)s")

    output = format_record(
        formatter,
        b2chat_password="secret",
        access_token="abc",
        Authorization="Bearer abc",
        records_fetched=10,
    )

    assert output["b2chat_password"] == REDACTED
    assert output["access_token"] == REDACTED
    assert output["Authorization"] == REDACTED
    assert output["records_fetched"] == 10


def test_is_sensitive_key():
    assert is_sensitive_key("API_KEY")
    assert is_sensitive_key("refresh_token")
    assert not is_sensitive_key("sync_id")


def test_setup_logging_installs_json_handler():
    root = logging.getLogger()
    previous_handlers, previous_level = root.handlers[:], root.level
    try:
        setup_logging("debug", "test")

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, CustomJsonFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.handlers[:] = previous_handlers
        root.setLevel(previous_level)


def test_log_latency(caplog):
    logger = logging.getLogger("chatpulse.test.latency")

    with caplog.at_level(logging.DEBUG, logger="chatpulse.test.latency"):
        with log_latency(logger, "b2chat_request", endpoint="/chats/export"):
            pass

    (record,) = caplog.records
    assert record.operation == "b2chat_request"
    assert record.endpoint == "/chats/export"
    assert record.latency_ms >= 0
