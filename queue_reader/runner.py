"""
Reader Runner

Process glue: run a QueueReader until it finishes or the process receives
SIGINT/SIGTERM.
"""

import asyncio
import signal

from loguru import logger

from queue_reader.config import Settings, get_settings
from queue_reader.message_queue import (
    InMemoryTransport,
    QueueMessage,
    QueueReader,
    QueueTransport,
    ReaderOptions,
    SQSTransport,
)
from queue_reader.utils.observability import configure_logging

MEMORY_SCHEME = "memory://"


async def run_reader(reader: QueueReader, install_signal_handlers: bool = True) -> None:
    """
    Start the reader and wait for it to exit.

    SIGINT/SIGTERM call reader.stop(). Errors that terminated the loop are
    re-raised.
    """
    loop = asyncio.get_running_loop()
    installed = []
    if install_signal_handlers:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, _request_shutdown, reader, sig)
                installed.append(sig)
            except (NotImplementedError, RuntimeError):
                # Not supported on this platform / not the main thread
                pass

    reader.start()
    try:
        await reader.join()
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


def _request_shutdown(reader: QueueReader, sig: signal.Signals) -> None:
    if reader.running:
        logger.info(f"Received {sig.name}, shutting down...")
        reader.stop()


def build_transport(settings: Settings) -> QueueTransport:
    """In-memory transport for memory:// queue URLs, SQS otherwise."""
    if settings.queue_url.startswith(MEMORY_SCHEME):
        return InMemoryTransport.from_settings(settings)
    return SQSTransport.from_settings(settings)


async def log_message(message: QueueMessage) -> None:
    logger.info(f"Received message {message.message_id} at {message.received_at.isoformat()}")


def main() -> None:
    settings = get_settings()
    configure_logging()
    if not settings.queue_url:
        raise SystemExit("QUEUE_URL is not configured")

    async def _main() -> None:
        reader = QueueReader(
            settings.queue_url,
            log_message,
            options=ReaderOptions.from_settings(settings),
            transport=build_transport(settings),
        )
        await run_reader(reader)

    # An SQS receive aborted by a signal keeps its executor thread until the
    # long poll returns, so shutdown can lag by up to WaitTimeSeconds.
    try:
        asyncio.run(_main())
    except KeyboardInterrupt:
        logger.info("Reader interrupted")
    except Exception as e:
        logger.exception(f"Reader failed: {e}")
        raise


if __name__ == "__main__":
    main()
