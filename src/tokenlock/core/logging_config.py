"""
tokenlock - Structured Logging Configuration

Emits JSON log lines so freeze and claim activity can be aggregated and
audited alongside the engine's event log.

Usage:
    from tokenlock.core.logging_config import setup_logging

    logger = setup_logging(name="tokenlock", level="INFO")
    logger.info("Tokens claimed", extra={"event": "vesting.claimed", "amount": 350})
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pythonjsonlogger import jsonlogger

from tokenlock.core import config


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter that adds timestamp, environment, service and source
    location to every record.
    """

    def __init__(
        self,
        fmt: str = "%(timestamp)s %(level)s %(name)s %(message)s",
        timestamp: bool = True,
        environment: Optional[str] = None,
        service_name: str = "tokenlock",
    ):
        super().__init__(fmt=fmt)
        self.timestamp = timestamp
        self.environment = environment or config.ENVIRONMENT
        self.service_name = service_name

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if self.timestamp and not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        log_record["environment"] = self.environment
        log_record["service"] = self.service_name

        if not log_record.get("level"):
            log_record["level"] = record.levelname.lower()

        log_record["source"] = {
            "function": record.funcName,
            "module": record.module,
            "line": record.lineno,
        }


def _build_handlers(
    formatter: logging.Formatter,
    log_file: Optional[str],
    enable_console: bool,
    max_bytes: int,
    backup_count: int,
) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if enable_console:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                filename=log_file, maxBytes=max_bytes, backupCount=backup_count
            )
        )
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(
    name: str = "tokenlock",
    log_file: Optional[str] = None,
    level: Optional[str] = None,
    environment: Optional[str] = None,
    enable_console: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Point a logger tree at JSON handlers, replacing any it already had.

    ``level`` falls back to ``TOKENLOCK_LOG_LEVEL`` and ``log_file`` to
    ``TOKENLOCK_LOG_FILE``; without a file only stderr is used.
    """
    numeric_level = getattr(logging, (level or config.LOG_LEVEL).upper())
    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)
    logger.handlers = []

    formatter = CustomJsonFormatter(
        environment=environment or config.ENVIRONMENT,
        service_name=name.split(".")[0],
    )
    target_file = log_file or config.LOG_FILE
    file_error: Optional[OSError] = None
    try:
        handlers = _build_handlers(formatter, target_file, enable_console, max_bytes, backup_count)
    except OSError as exc:
        file_error = exc
        handlers = _build_handlers(formatter, None, enable_console, max_bytes, backup_count)

    for handler in handlers:
        handler.setLevel(numeric_level)
        logger.addHandler(handler)
    if file_error is not None:
        logger.warning("Log file %s unavailable: %s", target_file, file_error)
    return logger


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Logger ``name``, configured only if it has no handlers yet."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        return setup_logging(name=name, level=level)
    return logger
