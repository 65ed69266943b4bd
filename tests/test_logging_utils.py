from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from fluentrest.logging_utils import (
    REDACTED,
    JsonFormatter,
    SensitiveDataFilter,
    configure_logging,
    install_null_handler,
    redact_headers,
    redact_url,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    urllib3_level = logging.getLogger("urllib3").level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("urllib3").setLevel(urllib3_level)


def _record(msg: str, args=None, **extra) -> logging.LogRecord:
    record = logging.LogRecord("fluentrest.tests", logging.INFO, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_redact_headers_masks_credentials_only() -> None:
    redacted = redact_headers({"Authorization": "Bearer t", "Cookie": "a=1", "Accept": "json"})

    assert redacted == {"Authorization": REDACTED, "Cookie": REDACTED, "Accept": "json"}


def test_redact_url_drops_credentials_and_query() -> None:
    url = "https://user:pw@Example.com:8443/a/b?token=secret#frag"

    assert redact_url(url) == "https://example.com:8443/a/b"
    assert redact_url(url, keep_path=False) == "https://example.com:8443"
    assert redact_url(None) == "None"


def test_json_formatter_includes_extra_fields() -> None:
    record = _record("sent %s", ("GET",), event="request.completed", status=200)

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "sent GET"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "fluentrest.tests"
    assert payload["event"] == "request.completed"
    assert payload["status"] == 200
    assert "args" not in payload


def test_sensitive_data_filter_redacts_args_and_headers() -> None:
    record = _record("cookie %(Cookie)s", ({"Cookie": "session=abc"},), headers={"Set-Cookie": "a=1", "X": "y"})

    assert SensitiveDataFilter().filter(record) is True
    assert record.getMessage() == f"cookie {REDACTED}"
    assert record.headers == {"Set-Cookie": REDACTED, "X": "y"}


def test_configure_logging_writes_json_file(tmp_path: Path, restore_root_logger) -> None:
    logfile = tmp_path / "logs" / "fluentrest.log"

    configure_logging("info", json_logs=True, logfile=logfile)
    logging.getLogger("fluentrest.tests").info(
        "dispatched", extra={"event": "request.end", "headers": {"Authorization": "secret"}}
    )
    logging.getLogger("fluentrest.tests").debug("hidden")
    for handler in logging.getLogger().handlers:
        handler.flush()

    lines = logfile.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    entry = json.loads(lines[0])
    assert entry["event"] == "request.end"
    assert entry["headers"] == {"Authorization": REDACTED}
    assert logging.getLogger("urllib3").level == logging.WARNING


def test_configure_logging_unknown_level_falls_back_to_info(restore_root_logger) -> None:
    configure_logging("chatty")

    assert logging.getLogger().level == logging.INFO


def test_install_null_handler_is_idempotent() -> None:
    install_null_handler()
    install_null_handler()

    handlers = logging.getLogger("fluentrest").handlers
    assert sum(isinstance(handler, logging.NullHandler) for handler in handlers) == 1
