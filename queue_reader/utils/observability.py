"""
Structured Logging & Observability
Loguru configuration plus the leveled logger the queue reader writes to.
"""
import sys
from typing import Protocol, runtime_checkable

from loguru import logger

from queue_reader.config import get_settings


def configure_logging():
    """
    Configure loguru for the reader process.

    In development: Human-readable colorized output
    In production: Structured JSON logs for ingestion
    """
    settings = get_settings()

    # Remove default handler
    logger.remove()

    if not settings.enable_structured_logging:
        logger.add(
            sys.stderr,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "{message}"
            ),
            level=settings.log_level,
            colorize=True,
        )
    else:
        logger.add(
            sys.stderr,
            format="{message}",
            level=settings.log_level,
            serialize=True,  # Output as JSON
        )

    logger.info(f"Logging configured: level={settings.log_level}, structured={settings.enable_structured_logging}")


@runtime_checkable
class ReaderLogger(Protocol):
    """Five-level logger consumed by QueueReader."""

    def verbose(self, message: str) -> None: ...

    def debug(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def warn(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoguruReaderLogger:
    """
    ReaderLogger backed by loguru.

    verbose maps to TRACE and warn to WARNING; every record carries the
    bound context (queue_url by default) in its extra dict.
    """

    def __init__(self, **context: str):
        self._logger = logger.bind(**context)

    def verbose(self, message: str) -> None:
        self._logger.trace(message)

    def debug(self, message: str) -> None:
        self._logger.debug(message)

    def info(self, message: str) -> None:
        self._logger.info(message)

    def warn(self, message: str) -> None:
        self._logger.warning(message)

    def error(self, message: str) -> None:
        self._logger.error(message)
