import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

from wakeword_service.core.config import LoggingConfig

ROOT_LOGGER_NAME = "wakeword_service"


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)


def setup_logging(config: LoggingConfig, log_dir: Path | None = None) -> None:
    """
    Configure the service loggers.

    Args:
        config: Logging section of the app config.
        log_dir: Directory for the rotating log file. Console only when None.
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(config.level)
    root_logger.handlers.clear()

    formatter: logging.Formatter
    if config.json_output:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(config.format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(config.level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    log_file: Path | None = None
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / "wakeword_service.log"
        file_handler = RotatingFileHandler(
            filename=log_file,
            maxBytes=config.rotate_max_bytes,
            backupCount=config.rotate_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(config.level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    _configure_uvicorn_loggers(config.level, formatter)

    root_logger.propagate = False

    root_logger.info(
        "Logging configured: level=%s, json=%s, file=%s",
        config.level,
        config.json_output,
        log_file,
    )


def _configure_uvicorn_loggers(level: str, formatter: logging.Formatter) -> None:
    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(logger_name)
        logger.handlers.clear()

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(level)
        logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the service namespace.

    Example:
        >>> logger = get_logger("services.controller")
        # Logs as: wakeword_service.services.controller
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
