"""
Queue Errors

Exceptions raised by transports and the reader. Handler exceptions are
never wrapped; they reach join() unchanged.
"""

from typing import Optional


class QueueError(Exception):
    """Base class for queue reader errors."""
    pass


class TransportError(QueueError):
    """
    A transport call failed.

    Attributes:
        code: Service error code (e.g. "AccessDenied", "UnknownEndpoint")
        message: Human readable description
    """

    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        self.message = message or code
        super().__init__(self.message)


class QueueDoesNotExist(TransportError):
    """Raised when the target queue is unknown to the transport."""

    def __init__(self, queue_url: str, message: Optional[str] = None):
        self.queue_url = queue_url
        super().__init__(
            "AWS.SimpleQueueService.NonExistentQueue",
            message or f"Queue '{queue_url}' does not exist",
        )

