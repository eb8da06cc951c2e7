"""
Base Transport Interface

Message models and the abstract transport the reader pulls from.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional
from pydantic import BaseModel, Field

# ReceiveMessage never returns more than this many messages per call
MAX_RECEIVE_MESSAGES = 10


class QueueMessage(BaseModel):
    """
    Message received from a queue.

    Attributes:
        message_id: Identifier assigned by the queue
        body: Message payload
        receipt_handle: Token required to acknowledge (delete) this delivery
        attributes: System attributes (receive count, sent timestamp, ...)
        message_attributes: User supplied attributes
        received_at: When this delivery was received
    """
    message_id: str
    body: str
    receipt_handle: str
    attributes: dict[str, str] = Field(default_factory=dict)
    message_attributes: dict[str, Any] = Field(default_factory=dict)
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AckEntry(BaseModel):
    """Single entry of a batch acknowledgement. `id` is local to the batch."""
    id: str
    receipt_handle: str


class AckFailure(BaseModel):
    """Entry the queue refused to acknowledge."""
    id: str
    code: str
    message: Optional[str] = None
    sender_fault: bool = True


class AckResult(BaseModel):
    """
    Outcome of a batch acknowledgement.

    Attributes:
        successful: Batch-local ids that were deleted
        failed: Entries that were not deleted
    """
    successful: list[str] = Field(default_factory=list)
    failed: list[AckFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class QueueMetrics(BaseModel):
    """
    Queue occupancy snapshot.

    Attributes:
        visible: Messages available for receipt
        in_flight: Received but not yet acknowledged or expired
        acknowledged: Total messages deleted through acknowledgement
    """
    visible: int = 0
    in_flight: int = 0
    acknowledged: int = 0


class QueueTransport(ABC):
    """
    Abstract queue transport.

    Implementations must provide:
    - Receive: Long-poll for a batch of messages
    - Acknowledge: Delete a batch of deliveries by receipt handle
    """

    @abstractmethod
    async def receive(
        self,
        queue_url: str,
        max_messages: int = MAX_RECEIVE_MESSAGES,
        wait_seconds: Optional[int] = None,
    ) -> list[QueueMessage]:
        """
        Receive up to max_messages messages.

        Must return promptly when the awaiting task is cancelled, and should
        let the CancelledError propagate rather than wrap it in a
        TransportError.

        Args:
            queue_url: Queue to receive from
            max_messages: Batch size, 1..MAX_RECEIVE_MESSAGES
            wait_seconds: Long-poll duration; None uses the transport default

        Returns:
            Received messages, possibly empty
        """
        pass

    @abstractmethod
    async def acknowledge_batch(self, queue_url: str, entries: list[AckEntry]) -> AckResult:
        """
        Delete a batch of deliveries.

        Args:
            queue_url: Queue the messages were received from
            entries: Batch-local ids with receipt handles

        Returns:
            Per-entry outcome
        """
        pass
