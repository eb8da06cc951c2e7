import os
import asyncio
from collections import deque
from typing import Optional

import pytest

os.environ.setdefault("ENVIRONMENT", "test")

from queue_reader.message_queue import AckEntry, AckFailure, AckResult, QueueMessage, QueueTransport


class RecordingLogger:
    """ReaderLogger that keeps every (level, message) pair."""

    def __init__(self):
        self.records: list[tuple[str, str]] = []

    def _record(self, level: str, message: str) -> None:
        self.records.append((level, message))

    def verbose(self, message: str) -> None:
        self._record("verbose", message)

    def debug(self, message: str) -> None:
        self._record("debug", message)

    def info(self, message: str) -> None:
        self._record("info", message)

    def warn(self, message: str) -> None:
        self._record("warn", message)

    def error(self, message: str) -> None:
        self._record("error", message)

    def messages(self, level: str) -> list[str]:
        return [message for lvl, message in self.records if lvl == level]


class ScriptedTransport(QueueTransport):
    """
    Transport that replays scripted receive results.

    Each scripted item is either a list of messages or an exception to raise.
    Once the script is exhausted, receive blocks until cancelled.
    If abort_error is set, a cancelled receive raises it instead of
    CancelledError, the way some clients report an aborted request.
    """

    def __init__(self, batches=None):
        self.batches = deque(batches or [])
        self.receive_calls = 0
        self.receive_cancelled = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.waiting = False
        self.receive_args: list[tuple[int, Optional[int]]] = []
        self.ack_calls: list[list[AckEntry]] = []
        self.ack_error: Optional[Exception] = None
        self.reject_ack_ids: set[str] = set()
        self.abort_error: Optional[Exception] = None

    async def receive(self, queue_url, max_messages=10, wait_seconds=None):
        self.receive_calls += 1
        self.receive_args.append((max_messages, wait_seconds))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.batches:
                item = self.batches.popleft()
                await asyncio.sleep(0)
                if isinstance(item, BaseException):
                    raise item
                return list(item)
            self.waiting = True
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.receive_cancelled += 1
            if self.abort_error is not None:
                raise self.abort_error
            raise
        finally:
            self.waiting = False
            self.in_flight -= 1

    async def acknowledge_batch(self, queue_url, entries):
        self.ack_calls.append(list(entries))
        if self.ack_error is not None:
            raise self.ack_error
        result = AckResult()
        for entry in entries:
            if entry.receipt_handle in self.reject_ack_ids:
                result.failed.append(AckFailure(id=entry.id, code="ReceiptHandleIsInvalid"))
            else:
                result.successful.append(entry.id)
        return result

    def acked_handles(self) -> list[list[str]]:
        return [[entry.receipt_handle for entry in call] for call in self.ack_calls]


@pytest.fixture
def recording_logger():
    """Fresh recording logger."""
    return RecordingLogger()


@pytest.fixture
def scripted_transport():
    """Factory for scripted transports."""
    def factory(*batches):
        return ScriptedTransport(batches)
    return factory


@pytest.fixture
def make_message():
    """Factory for numbered queue messages."""
    def factory(n: int) -> QueueMessage:
        return QueueMessage(
            message_id=f"msg-{n}",
            body=f"body-{n}",
            receipt_handle=f"handle-{n}",
        )
    return factory


@pytest.fixture
def wait_until():
    """Poll a predicate on the event loop until it holds or the timeout expires."""
    async def waiter(predicate, timeout: float = 2.0, interval: float = 0.005):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() >= deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(interval)
    return waiter
