"""
queue-reader

Long-running queue consumer loop with batched acknowledgement, idle backoff
and cooperative cancellation.
"""

from queue_reader.message_queue import (
    QueueReader,
    ReaderOptions,
    QueueMessage,
    QueueTransport,
    InMemoryTransport,
    SQSTransport,
)

__version__ = "0.1.0"

__all__ = [
    "QueueReader",
    "ReaderOptions",
    "QueueMessage",
    "QueueTransport",
    "InMemoryTransport",
    "SQSTransport",
]
