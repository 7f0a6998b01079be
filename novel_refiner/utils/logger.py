import logging
import sys
from loguru import logger
from pathlib import Path
from typing import Optional, Union

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"

# The completion client logs through the standard library; forward these at or above the level
LIBRARY_LEVELS = {
    "openai": logging.WARNING,
    "httpx": logging.WARNING,
}


class InterceptHandler(logging.Handler):
    """Hand standard-library log records over to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(exception=record.exc_info).log(level, f"[{record.name}] {record.getMessage()}")


def _route_library_logs() -> None:
    for name, level in LIBRARY_LEVELS.items():
        library_logger = logging.getLogger(name)
        library_logger.handlers = [InterceptHandler()]
        library_logger.setLevel(level)
        library_logger.propagate = False


def setup_logger(log_level: str = "INFO", log_file: Optional[Union[str, Path]] = None):
    """Replace every loguru sink with a console sink and, optionally, a debug file.

    Safe to call once per command: the sinks are swapped, not stacked.
    """
    handlers = [
        {"sink": sys.stderr, "format": CONSOLE_FORMAT, "level": log_level.upper(), "colorize": True},
    ]

    # Pipeline runs can be long; the file keeps everything down to DEBUG
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append({
            "sink": log_file,
            "format": FILE_FORMAT,
            "level": "DEBUG",
            "rotation": "10 MB",
            "retention": "7 days",
            "encoding": "utf-8",
        })

    logger.configure(handlers=handlers)
    _route_library_logs()
    return logger
