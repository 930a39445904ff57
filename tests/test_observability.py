import io
import json
import logging
import sys
from datetime import date

import pytest

from lifeos_sync.observability.logging import JsonFormatter, get_logger, setup_logging


def test_json_formatter():
    formatter = JsonFormatter()
    log_record = logging.LogRecord(
        name="lifeos_sync.engine.store",
        level=logging.WARNING,
        pathname="store.py",
        lineno=10,
        msg="Snapshot write to %s tier failed.",
        args=("object_store",),
        exc_info=None,
    )
    log_record.extra_fields = {"tier": "object_store"}
    log_record.device_id = "device-a"

    data = json.loads(formatter.format(log_record))

    assert data["message"] == "Snapshot write to object_store tier failed."
    assert data["level"] == "WARNING"
    assert data["component"] == "lifeos_sync.engine.store"
    assert data["tier"] == "object_store"
    assert data["device_id"] == "device-a"
    assert "extra_fields" not in data
    assert "timestamp" in data


def test_json_formatter_includes_exception():
    formatter = JsonFormatter()
    try:
        raise ValueError("bad document")
    except ValueError:
        exc_info = sys.exc_info()
    record = logging.LogRecord("x", logging.ERROR, "x.py", 1, "failed", None, exc_info)
    data = json.loads(formatter.format(record))
    assert "ValueError: bad document" in data["exception"]


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)


def test_setup_logging(restore_root_logger):
    output = io.StringIO()
    setup_logging("debug", stream=output)

    assert restore_root_logger.level == logging.DEBUG
    assert len(restore_root_logger.handlers) == 1

    get_logger("lifeos_sync.test").info("Backup created", extra={"extra_fields": {"reason": "manual"}})
    data = json.loads(output.getvalue().strip().splitlines()[-1])
    assert data["message"] == "Backup created"
    assert data["reason"] == "manual"


def test_setup_logging_reads_env(restore_root_logger, monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "warning")
    setup_logging(stream=io.StringIO())
    assert restore_root_logger.level == logging.WARNING


def test_get_logger():
    logger = get_logger("my_name")
    assert logger.name == "my_name"
    assert isinstance(logger, logging.Logger)


def test_json_formatter_stringifies_unserializable_extras():
    record = logging.LogRecord("x", logging.INFO, "x.py", 1, "adopted", None, None)
    record.extra_fields = {"day": date(2024, 1, 2)}
    data = json.loads(JsonFormatter().format(record))
    assert data["day"] == "2024-01-02"


def test_setup_logging_defaults_to_stderr(restore_root_logger):
    setup_logging("info")
    (handler,) = restore_root_logger.handlers
    assert handler.stream is sys.stderr
