import json
import logging
import sys

from datasense.config.logging_config import JsonFormatter


def test_json_formatter_fields():
    record = logging.LogRecord("datasense.test", logging.WARNING, __file__, 1, "queue depth %d", (3,), None)

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "WARNING"
    assert payload["logger"] == "datasense.test"
    assert payload["msg"] == "queue depth 3"
    assert "exc_info" not in payload


def test_json_formatter_includes_traceback():
    try:
        raise ValueError("bad envelope")
    except ValueError:
        record = logging.LogRecord("datasense.test", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

    payload = json.loads(JsonFormatter().format(record))

    assert "ValueError: bad envelope" in payload["exc_info"]
