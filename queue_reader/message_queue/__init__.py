"""
Message Queue Reader

Provides an async consumer loop over remote queues with:
- Abstract transport interface supporting multiple backends
- In-memory transport for testing and single-process use
- SQS transport for production
- Batched acknowledgement of handled messages
- Exponential idle backoff with early wake-up (resume)
- Race-free stop during a blocking receive or an idle sleep
"""

from queue_reader.message_queue.base import (
    MAX_RECEIVE_MESSAGES,
    AckEntry,
    AckFailure,
    AckResult,
    QueueMessage,
    QueueMetrics,
    QueueTransport,
)
from queue_reader.message_queue.backoff import IdleBackoff
from queue_reader.message_queue.delay import CancelReason, DelayHandle, DelayOutcome, begin_delay
from queue_reader.message_queue.exceptions import (
    QueueDoesNotExist,
    QueueError,
    TransportError,
)
from queue_reader.message_queue.memory import InMemoryTransport
from queue_reader.message_queue.options import ReaderOptions
from queue_reader.message_queue.reader import MessageHandler, QueueReader, ReaderState, ReaderStats
from queue_reader.message_queue.sqs import SQSTransport

__all__ = [
    "MAX_RECEIVE_MESSAGES",
    "AckEntry",
    "AckFailure",
    "AckResult",
    "QueueMessage",
    "QueueMetrics",
    "QueueTransport",
    "IdleBackoff",
    "CancelReason",
    "DelayHandle",
    "DelayOutcome",
    "begin_delay",
    "QueueDoesNotExist",
    "QueueError",
    "TransportError",
    "InMemoryTransport",
    "ReaderOptions",
    "MessageHandler",
    "QueueReader",
    "ReaderState",
    "ReaderStats",
    "SQSTransport",
]
