# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for structured logging setup."""

import json
import logging
import sys
from datetime import datetime, timezone

import pytest

from designloom.logging_setup import StructuredFormatter, log_filename, setup_logging


@pytest.fixture
def restore_root_logger():
    """Keep setup_logging from leaking handlers into other tests."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_structured_formatter_outputs_json():
    record = logging.LogRecord(
        name="designloom.store",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Created %s",
        args=("workflow 'W1'",),
        exc_info=None,
    )
    record.extra_fields = {"kind": "workflow", "id": "W1"}

    data = json.loads(StructuredFormatter().format(record))

    assert data["level"] == "INFO"
    assert data["logger"] == "designloom.store"
    assert data["message"] == "Created workflow 'W1'"
    assert data["kind"] == "workflow"
    assert data["timestamp"].endswith("Z")


def test_structured_formatter_includes_exception():
    try:
        raise RuntimeError("disk full")
    except RuntimeError:
        exc_info = sys.exc_info()
    record = logging.LogRecord("designloom", logging.ERROR, __file__, 1, "boom", None, exc_info)

    data = json.loads(StructuredFormatter().format(record))

    assert "RuntimeError: disk full" in data["exception"]


def test_log_filename():
    assert log_filename(datetime(2025, 1, 14, tzinfo=timezone.utc)) == "designloom_20250114.log"


def test_setup_logging_writes_json_file(tmp_path, restore_root_logger):
    log_file = setup_logging(log_dir=tmp_path / "logs", console_output=False)

    logging.getLogger("designloom.test").warning("index loaded")

    assert log_file is not None
    lines = log_file.read_text(encoding="utf-8").splitlines()
    messages = [json.loads(line)["message"] for line in lines]
    assert "index loaded" in messages


def test_setup_logging_without_file(restore_root_logger):
    assert setup_logging(log_dir=None, log_level="debug") is None
    assert restore_root_logger.level == logging.DEBUG


def test_setup_logging_unknown_level_defaults_to_info(restore_root_logger):
    setup_logging(log_level="CHATTY", console_output=False)

    assert restore_root_logger.level == logging.INFO
