"""
Queue Reader

Long-running consumer loop: receive a batch, hand each message to the
handler, acknowledge the handled ones in bulk, and back off while the queue
is empty. stop() and resume() can interrupt a blocking receive or an idle
sleep at any time.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from queue_reader.config import get_settings
from queue_reader.message_queue.backoff import IdleBackoff
from queue_reader.message_queue.base import AckEntry, QueueMessage, QueueTransport
from queue_reader.message_queue.delay import CancelReason, DelayHandle, DelayOutcome, begin_delay
from queue_reader.message_queue.options import ReaderOptions
from queue_reader.message_queue.sqs import SQSTransport
from queue_reader.utils.observability import LoguruReaderLogger, ReaderLogger

MessageHandler = Callable[[QueueMessage], Awaitable[None]]


class ReaderState(str, Enum):
    """Phase of the receive loop."""
    STOPPED = "stopped"
    RECEIVING = "receiving"
    PROCESSING = "processing"
    SLEEPING = "sleeping"


@dataclass
class ReaderStats:
    """Counters accumulated over the reader's lifetime."""
    receives: int = 0
    empty_receives: int = 0
    messages_handled: int = 0
    acknowledged: int = 0
    ack_failures: int = 0
    sleeps: int = 0
    resumes: int = 0


@dataclass
class _LoopState:
    """
    Mutable state owned by the loop task.

    stop() and resume() only clear `running` or cancel the handle that is
    currently set; at most one of receive_task/sleep_handle is non-None.
    """
    running: bool = False
    phase: ReaderState = ReaderState.STOPPED
    receive_task: Optional[asyncio.Future] = None
    sleep_handle: Optional[DelayHandle] = None
    cancel_reason: Optional[CancelReason] = None


class QueueReader:
    """
    Consumer loop bound to one queue and one handler.

    Handler invocations within a batch are sequential and in receipt order.
    Messages whose handler raised are never acknowledged, so the queue
    redelivers them; a handler error also terminates the loop and is
    re-raised from join().

    Usage:
        reader = QueueReader(queue_url, handle_message)
        reader.start()
        ...
        reader.stop()
        await reader.join()
    """

    def __init__(
        self,
        queue_url: str,
        handler: MessageHandler,
        options: Optional[ReaderOptions] = None,
        transport: Optional[QueueTransport] = None,
    ):
        """
        Initialize queue reader.

        Args:
            queue_url: Queue to consume
            handler: Async function called once per received message
            options: Reader options (defaults when omitted)
            transport: Queue transport (SQS from settings when omitted)
        """
        self.queue_url = queue_url
        self.handler = handler
        self.options = options if options is not None else ReaderOptions()
        self.transport = transport if transport is not None else SQSTransport.from_settings(get_settings())
        self.logger: ReaderLogger = self.options.logger or LoguruReaderLogger(
            queue_url=queue_url,
            environment=get_settings().environment,
        )
        self.stats = ReaderStats()
        self._backoff = IdleBackoff(
            self.options.initial_idle_delay_seconds,
            self.options.maximum_idle_delay_seconds,
        )
        self._state = _LoopState()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._state.running

    @property
    def state(self) -> ReaderState:
        return self._state.phase

    @property
    def idle_delay(self) -> float:
        """Delay the next idle sleep would use."""
        return self._backoff.current

    def start(self) -> None:
        """
        Launch the receive loop as a background task.

        No-op while running. Called after stop() but before the loop has
        exited, it keeps that loop going instead of launching another.
        Must be called from a running event loop.
        """
        if self._state.running:
            return
        if self._task is not None and not self._task.done():
            self._state.running = True
            return
        self._state = _LoopState(running=True)
        self._backoff.reset()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        """
        Ask the loop to exit, aborting an in-flight receive or sleep.

        A batch being processed is finished and acknowledged first.
        Safe to call repeatedly or before start().
        """
        state = self._state
        state.running = False
        if state.receive_task is not None and not state.receive_task.done():
            state.cancel_reason = CancelReason.STOP
            state.receive_task.cancel()
        if state.sleep_handle is not None and state.sleep_handle.cancel(CancelReason.STOP):
            state.cancel_reason = CancelReason.STOP

    def resume(self) -> None:
        """Cut an idle sleep short so the loop receives immediately. No-op otherwise."""
        handle = self._state.sleep_handle
        if handle is not None and handle.cancel(CancelReason.RESUME):
            self.stats.resumes += 1

    async def join(self) -> None:
        """
        Wait for the loop to exit.

        Returns normally after stop(), re-raises the error that terminated
        the loop otherwise. Returns immediately if start() was never called.
        Cancelling the caller does not cancel the loop.
        """
        if self._task is None:
            return
        await asyncio.shield(self._task)

    async def __aenter__(self) -> "QueueReader":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
        await self.join()

    async def _run(self) -> None:
        state = self._state
        self.logger.debug("Starting receive loop")
        try:
            while state.running:
                messages = await self._receive(state)
                if messages is None:
                    continue
                if messages:
                    await self._process(state, messages)
                    self._backoff.reset()
                elif state.running:
                    await self._sleep(state)
        except Exception as e:
            self.logger.info(f"Exception in receive loop: {_error_message(e)}")
            raise
        finally:
            state.running = False
            state.phase = ReaderState.STOPPED
        self.logger.debug("Receive loop exiting")

    async def _receive(self, state: _LoopState) -> Optional[list[QueueMessage]]:
        """Receive one batch. Returns None when stop() aborted the call."""
        state.phase = ReaderState.RECEIVING
        receive_task = asyncio.ensure_future(self.transport.receive(
            self.queue_url,
            self.options.max_messages,
            self.options.receive_wait_seconds,
        ))
        state.receive_task = receive_task
        try:
            messages = await receive_task
        except asyncio.CancelledError:
            if state.cancel_reason is CancelReason.STOP and receive_task.cancelled():
                state.cancel_reason = None
                self.logger.debug("Receive request aborted")
                return None
            raise
        except Exception as e:
            # transports may surface the abort as their own error
            if state.cancel_reason is CancelReason.STOP:
                state.cancel_reason = None
                self.logger.debug(f"Receive request aborted: {_error_message(e)}")
                return None
            raise
        finally:
            state.receive_task = None

        self.stats.receives += 1
        if not messages:
            self.stats.empty_receives += 1
        return messages

    async def _process(self, state: _LoopState, messages: list[QueueMessage]) -> None:
        state.phase = ReaderState.PROCESSING
        handles: list[str] = []
        try:
            for message in messages:
                await self.handler(message)
                self.stats.messages_handled += 1
                handles.append(message.receipt_handle)
        finally:
            await self._acknowledge(handles)

    async def _acknowledge(self, handles: list[str]) -> None:
        """Best-effort batch delete; failures are logged and never retried."""
        if not handles:
            return
        entries = [AckEntry(id=str(i), receipt_handle=h) for i, h in enumerate(handles)]
        try:
            result = await self.transport.acknowledge_batch(self.queue_url, entries)
        except Exception as e:
            self.stats.ack_failures += len(handles)
            self.logger.warn(f"Failed to delete handles ({', '.join(handles)}): {_error_message(e)}")
            return

        self.stats.acknowledged += len(result.successful)
        if result.failed:
            by_id = {entry.id: entry.receipt_handle for entry in entries}
            self.stats.ack_failures += len(result.failed)
            details = ", ".join(f"{by_id.get(f.id, f.id)} [{f.code}]" for f in result.failed)
            self.logger.warn(f"Failed to delete handles ({details})")

    async def _sleep(self, state: _LoopState) -> None:
        state.phase = ReaderState.SLEEPING
        delay = self._backoff.current
        self.logger.verbose(f"Sleeping for {delay:g} seconds while idle")
        self.stats.sleeps += 1
        handle = begin_delay(delay)
        state.sleep_handle = handle
        try:
            outcome = await handle
        finally:
            state.sleep_handle = None

        if outcome is DelayOutcome.ELAPSED:
            self._backoff.advance()
        elif handle.reason is CancelReason.STOP:
            state.cancel_reason = None
            self.logger.debug("Receive sleep cancelled")
        else:
            self.logger.debug("Receive sleep resumed")


def _error_message(e: BaseException) -> str:
    return str(e) or type(e).__name__
