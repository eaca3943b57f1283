import json
import logging

import pytest

from stockbot.logging_utils import JsonFormatter, PlainFormatter, get_logger, setup_logging


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(msg, *args, **extra):
    record = logging.LogRecord("fetcher", logging.WARNING, __file__, 1, msg, args, None)
    record.__dict__.update(extra)
    return record


def test_json_formatter_includes_extras():
    line = JsonFormatter().format(
        _record("fetch_attempt_failed attempt=%d", 2, ticker="AAPL")
    )
    payload = json.loads(line)
    assert payload["level"] == "WARNING"
    assert payload["name"] == "fetcher"
    assert payload["msg"] == "fetch_attempt_failed attempt=2"
    assert payload["ticker"] == "AAPL"


def test_json_formatter_stringifies_unserialisable_extras():
    payload = json.loads(JsonFormatter().format(_record("x", obj=object())))
    assert payload["obj"].startswith("<object object")


def test_plain_formatter_single_line():
    line = PlainFormatter().format(_record("quote_lookup symbol=%s", "MSFT"))
    assert "WARNING" in line
    assert "fetcher: quote_lookup symbol=MSFT" in line
    assert "\n" not in line


def test_setup_logging_writes_rotating_files(settings, restore_root):
    setup_logging(settings)

    get_logger("stockbot.test").warning("something_odd value=%d", 3)
    for handler in restore_root.handlers:
        handler.flush()

    jsonl = (settings.log_dir / "bot.jsonl").read_text(encoding="utf-8")
    errors = (settings.log_dir / "errors.log").read_text(encoding="utf-8")
    assert "something_odd value=3" in jsonl
    assert "something_odd value=3" in errors
    assert restore_root.level == logging.INFO


def test_setup_logging_level_override(settings, restore_root):
    setup_logging(settings, level="debug")
    assert restore_root.level == logging.DEBUG
