from __future__ import annotations

import json
import logging

from securepay.utils.logging import JsonFormatter, _json_formatter, configure_logging

EXPECTED_ROWS = 10


def _record(msg: str = "hello") -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_json_formatter_promotes_standard_extra_fields() -> None:
    record = _record()
    record.rows = EXPECTED_ROWS
    record.list = "transactions"

    payload = json.loads(_json_formatter(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "test.logger"
    assert payload["message"] == "hello"
    assert payload["rows"] == EXPECTED_ROWS
    assert payload["list"] == "transactions"


def test_json_formatter_supports_legacy_nested_extra_field() -> None:
    record = _record()
    record.extra = {"temp_id": "temp-1"}

    payload = json.loads(_json_formatter(record))

    assert payload["temp_id"] == "temp-1"


def test_json_formatter_serialises_non_json_values() -> None:
    from decimal import Decimal

    record = _record("[WRITE CONFIRMED] transactions")
    record.amount = Decimal("50.01")

    payload = json.loads(JsonFormatter().format(record))

    assert payload["amount"] == "50.01"


def test_configure_logging_json_installs_formatter() -> None:
    configure_logging(level="DEBUG", json_logs=True)

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert isinstance(root.handlers[0].formatter, JsonFormatter)
    assert logging.getLogger("asyncpg").level == logging.WARNING

    configure_logging(level="INFO")
