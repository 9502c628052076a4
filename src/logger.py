"""
Logging Setup Module.

Builds the application logger used across the worker. Call sites log
dictionaries carrying a "message" key plus context fields, which are
written as one JSON object per line to a rotating log file.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler


class JsonLineFormatter(logging.Formatter):
    """Render a log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }
        if isinstance(record.msg, dict):
            payload.update(record.msg)
        else:
            payload["message"] = record.getMessage()
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class LogManager:
    """
    Creates and configures the application logger.

    Attributes:
        logger (logging.Logger): The configured logger instance.
    """

    def __init__(
        self,
        app_name: str,
        log_dir: str,
        development: bool = False,
        level: int = logging.INFO,
        max_bytes: int = 5 * 1024 * 1024,
        backup_count: int = 3,
    ):
        """Initialize the log manager.

        Args:
            app_name (str): Logger name, also used for the log file name.
            log_dir (str): Directory where log files are written.
            development (bool): Also log to the console when True.
            level (int): Logging level.
            max_bytes (int): Size at which the log file is rotated.
            backup_count (int): Number of rotated files to keep.
        """
        self.logger = logging.getLogger(app_name)
        self.logger.setLevel(level)
        self.logger.propagate = False

        # Configure handlers only once per logger name
        if self.logger.handlers:
            return

        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, f"{app_name}.log"),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(JsonLineFormatter())
        self.logger.addHandler(file_handler)

        if development:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(JsonLineFormatter())
            self.logger.addHandler(console_handler)
