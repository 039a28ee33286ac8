# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Structured logging setup for Designloom."""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_DATEFMT = "%Y-%m-%d %H:%M:%S"


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Fields passed as logger.info(..., extra={"extra_fields": {...}})
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data)


def log_filename(now: Optional[datetime] = None) -> str:
    """Daily log file name, e.g. ``designloom_20250114.log``."""
    now = now or datetime.now(timezone.utc)
    return f"designloom_{now.strftime('%Y%m%d')}.log"


def setup_logging(
    log_dir: Optional[Path] = None,
    log_level: Union[int, str] = logging.INFO,
    console_output: bool = True,
) -> Optional[Path]:
    """Set up logging for the application.

    The console handler writes to stderr: stdout carries the stdio MCP transport.

    Args:
        log_dir: Directory for the JSON log file. If None, no file is written.
        log_level: Logging level, as a number or a name such as "DEBUG".
        console_output: Whether to also log human-readable lines to stderr.

    Returns:
        Path of the log file, or None when file logging is off.
    """
    if isinstance(log_level, str):
        log_level = logging.getLevelName(log_level.upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    log_file: Optional[Path] = None
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / log_filename()
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=CONSOLE_DATEFMT))
        root_logger.addHandler(console_handler)

    logging.info(f"Logging initialized. Log file: {log_file or 'disabled'}")
    return log_file
