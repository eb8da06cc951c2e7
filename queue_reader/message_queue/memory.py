"""
In-Memory Queue Transport

In-process queue with SQS delivery semantics for testing and single-process
deployments. Uses asyncio primitives; data is lost on restart.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from queue_reader.config import Settings
from queue_reader.message_queue.base import (
    MAX_RECEIVE_MESSAGES,
    AckEntry,
    AckFailure,
    AckResult,
    QueueMessage,
    QueueMetrics,
    QueueTransport,
)
from queue_reader.message_queue.exceptions import QueueDoesNotExist, TransportError


@dataclass
class _StoredMessage:
    """Message as held by the queue, independent of any delivery."""
    message_id: str
    body: str
    sequence: int
    sent_timestamp_ms: int
    message_attributes: dict = field(default_factory=dict)
    receive_count: int = 0


@dataclass
class _QueueState:
    """Per-queue storage."""
    visible: list[_StoredMessage] = field(default_factory=list)
    # receipt handle -> (message, loop time at which it becomes visible again)
    in_flight: dict[str, tuple[_StoredMessage, float]] = field(default_factory=dict)
    acknowledged: int = 0
    condition: asyncio.Condition = field(default_factory=asyncio.Condition)


class InMemoryTransport(QueueTransport):
    """
    In-memory queue transport.

    Behaves like SQS standard queues:
    - receive long-polls up to wait_seconds for visible messages
    - every delivery gets a fresh receipt handle
    - received messages stay invisible for visibility_timeout seconds and
      are redelivered unless acknowledged (at-least-once)

    Suitable for:
    - Testing
    - Single-process applications

    Not suitable for:
    - Multi-process consumers
    - Persistence across restarts
    """

    def __init__(
        self,
        visibility_timeout: float = 30.0,
        default_wait_seconds: int = 0,
        auto_create: bool = True,
    ):
        """
        Initialize in-memory transport.

        Args:
            visibility_timeout: Seconds a delivery stays invisible before redelivery
            default_wait_seconds: Long-poll duration when receive gets None
            auto_create: Create unknown queues on first use instead of raising
        """
        self.visibility_timeout = visibility_timeout
        self.default_wait_seconds = default_wait_seconds
        self.auto_create = auto_create
        self._queues: dict[str, _QueueState] = {}
        self._sequence = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> "InMemoryTransport":
        return cls(
            visibility_timeout=settings.visibility_timeout_seconds,
            default_wait_seconds=settings.receive_wait_seconds or 0,
        )

    def create_queue(self, queue_url: str) -> None:
        """Create a queue if it does not exist yet."""
        self._queues.setdefault(queue_url, _QueueState())

    def _get_queue(self, queue_url: str) -> _QueueState:
        state = self._queues.get(queue_url)
        if state is None:
            if not self.auto_create:
                raise QueueDoesNotExist(queue_url)
            state = self._queues[queue_url] = _QueueState()
        return state

    async def send(
        self,
        queue_url: str,
        body: str,
        message_attributes: Optional[dict] = None,
    ) -> str:
        """
        Add message to queue.

        Args:
            queue_url: Target queue
            body: Message payload
            message_attributes: Optional user attributes

        Returns:
            Message ID
        """
        state = self._get_queue(queue_url)
        async with state.condition:
            self._sequence += 1
            message = _StoredMessage(
                message_id=str(uuid.uuid4()),
                body=body,
                sequence=self._sequence,
                sent_timestamp_ms=int(time.time() * 1000),
                message_attributes=dict(message_attributes or {}),
            )
            state.visible.append(message)
            state.condition.notify_all()
            return message.message_id

    def _requeue_expired(self, state: _QueueState, now: float) -> None:
        expired = [handle for handle, (_, visible_at) in state.in_flight.items() if visible_at <= now]
        if not expired:
            return
        for handle in expired:
            message, _ = state.in_flight.pop(handle)
            state.visible.append(message)
        state.visible.sort(key=lambda m: m.sequence)

    def _next_expiry(self, state: _QueueState) -> Optional[float]:
        if not state.in_flight:
            return None
        return min(visible_at for _, visible_at in state.in_flight.values())

    async def receive(
        self,
        queue_url: str,
        max_messages: int = MAX_RECEIVE_MESSAGES,
        wait_seconds: Optional[int] = None,
    ) -> list[QueueMessage]:
        """
        Receive up to max_messages visible messages in send order.

        Blocks up to wait_seconds while the queue is empty. Cancelling the
        awaiting task abandons the poll without consuming anything.
        """
        if not 1 <= max_messages <= MAX_RECEIVE_MESSAGES:
            raise TransportError(
                "InvalidParameterValue",
                f"max_messages must be between 1 and {MAX_RECEIVE_MESSAGES}, got {max_messages}",
            )
        state = self._get_queue(queue_url)
        loop = asyncio.get_running_loop()
        wait = self.default_wait_seconds if wait_seconds is None else wait_seconds
        deadline = loop.time() + wait

        async with state.condition:
            while True:
                now = loop.time()
                self._requeue_expired(state, now)
                if state.visible:
                    break
                remaining = deadline - now
                if remaining <= 0:
                    return []
                next_expiry = self._next_expiry(state)
                timeout = remaining if next_expiry is None else min(remaining, max(next_expiry - now, 0))
                try:
                    await asyncio.wait_for(state.condition.wait(), timeout)
                except asyncio.TimeoutError:
                    pass

            batch = state.visible[:max_messages]
            del state.visible[:max_messages]
            visible_at = loop.time() + self.visibility_timeout
            received = []
            for stored in batch:
                stored.receive_count += 1
                handle = uuid.uuid4().hex
                state.in_flight[handle] = (stored, visible_at)
                received.append(QueueMessage(
                    message_id=stored.message_id,
                    body=stored.body,
                    receipt_handle=handle,
                    attributes={
                        "ApproximateReceiveCount": str(stored.receive_count),
                        "SentTimestamp": str(stored.sent_timestamp_ms),
                    },
                    message_attributes=dict(stored.message_attributes),
                ))
            return received

    async def acknowledge_batch(self, queue_url: str, entries: list[AckEntry]) -> AckResult:
        """
        Delete deliveries by receipt handle.

        Stale or unknown handles are reported per entry, never raised.
        """
        if len(entries) > MAX_RECEIVE_MESSAGES:
            raise TransportError(
                "AWS.SimpleQueueService.TooManyEntriesInBatchRequest",
                f"Maximum number of entries per request are {MAX_RECEIVE_MESSAGES}",
            )
        ids = [entry.id for entry in entries]
        if len(set(ids)) != len(ids):
            raise TransportError(
                "AWS.SimpleQueueService.BatchEntryIdsNotDistinct",
                "Two or more batch entries in the request have the same Id",
            )
        state = self._get_queue(queue_url)
        result = AckResult()
        async with state.condition:
            for entry in entries:
                if state.in_flight.pop(entry.receipt_handle, None) is None:
                    result.failed.append(AckFailure(
                        id=entry.id,
                        code="ReceiptHandleIsInvalid",
                        message=f"Receipt handle {entry.receipt_handle} is not valid",
                    ))
                    continue
                state.acknowledged += 1
                result.successful.append(entry.id)
        return result

    async def get_metrics(self, queue_url: str) -> QueueMetrics:
        """
        Get current queue occupancy.

        Expired deliveries are counted as visible again.
        """
        state = self._get_queue(queue_url)
        async with state.condition:
            self._requeue_expired(state, asyncio.get_running_loop().time())
            return QueueMetrics(
                visible=len(state.visible),
                in_flight=len(state.in_flight),
                acknowledged=state.acknowledged,
            )
