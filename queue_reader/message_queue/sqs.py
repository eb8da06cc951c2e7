"""
SQS Queue Transport

Amazon SQS transport built on boto3. boto3 is synchronous, so each call
runs in the event loop's executor.
"""

import asyncio
from concurrent.futures import Executor
from functools import partial
from typing import Any, Callable, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, EndpointConnectionError
from loguru import logger

from queue_reader.config import Settings
from queue_reader.message_queue.base import (
    MAX_RECEIVE_MESSAGES,
    AckEntry,
    AckFailure,
    AckResult,
    QueueMessage,
    QueueTransport,
)
from queue_reader.message_queue.exceptions import QueueDoesNotExist, TransportError

_MISSING_QUEUE_CODES = {
    "AWS.SimpleQueueService.NonExistentQueue",
    "QueueDoesNotExist",
}


class SQSTransport(QueueTransport):
    """
    SQS transport.

    Cancellation releases the awaiting task immediately. The underlying HTTP
    request cannot be interrupted, so any messages it still receives stay
    invisible until their visibility timeout expires and are then redelivered.
The abandoned call also keeps its executor thread busy, so asyncio.run()
may wait up to WaitTimeSeconds for it while shutting down.

    Usage:
        transport = SQSTransport(region_name="us-east-1")
        messages = await transport.receive(queue_url, wait_seconds=20)
    """

    def __init__(
        self,
        client: Any = None,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        executor: Optional[Executor] = None,
    ):
        """
        Initialize SQS transport.

        Args:
            client: Existing boto3 SQS client (created when omitted)
            region_name: AWS region for a new client
            endpoint_url: Custom endpoint for a new client (e.g. local emulator)
            executor: Executor for blocking calls (loop default when omitted)
        """
        self.client = client or boto3.client(
            "sqs",
            api_version="2012-11-05",
            region_name=region_name,
            endpoint_url=endpoint_url,
        )
        self.executor = executor

    @classmethod
    def from_settings(cls, settings: Settings) -> "SQSTransport":
        return cls(region_name=settings.aws_region, endpoint_url=settings.sqs_endpoint_url)

    async def _call(self, queue_url: str, func: Callable[..., dict], **kwargs: Any) -> dict:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self.executor, partial(func, QueueUrl=queue_url, **kwargs))
        except ClientError as e:
            error = e.response.get("Error", {})
            code = error.get("Code", "Unknown")
            if code in _MISSING_QUEUE_CODES:
                raise QueueDoesNotExist(queue_url, error.get("Message")) from e
            raise TransportError(code, error.get("Message") or str(e)) from e
        except EndpointConnectionError as e:
            raise TransportError("UnknownEndpoint", str(e)) from e
        except BotoCoreError as e:
            raise TransportError(type(e).__name__, str(e)) from e

    async def receive(
        self,
        queue_url: str,
        max_messages: int = MAX_RECEIVE_MESSAGES,
        wait_seconds: Optional[int] = None,
    ) -> list[QueueMessage]:
        """
        Receive up to max_messages messages with ReceiveMessage.

        WaitTimeSeconds is omitted when wait_seconds is None so the queue's
        ReceiveMessageWaitTimeSeconds applies.
        """
        params: dict[str, Any] = {
            "MaxNumberOfMessages": max_messages,
            "AttributeNames": ["All"],
            "MessageAttributeNames": ["All"],
        }
        if wait_seconds is not None:
            params["WaitTimeSeconds"] = wait_seconds

        response = await self._call(queue_url, self.client.receive_message, **params)
        messages = []
        for raw in response.get("Messages", []):
            if not raw.get("ReceiptHandle"):
                # Cannot be acknowledged; the queue will redeliver it
                logger.warning(f"Skipping message {raw.get('MessageId')} without receipt handle")
                continue
            messages.append(QueueMessage(
                message_id=raw["MessageId"],
                body=raw.get("Body", ""),
                receipt_handle=raw["ReceiptHandle"],
                attributes=raw.get("Attributes", {}),
                message_attributes=raw.get("MessageAttributes", {}),
            ))
        return messages

    async def acknowledge_batch(self, queue_url: str, entries: list[AckEntry]) -> AckResult:
        """Delete deliveries with DeleteMessageBatch."""
        if not entries:
            return AckResult()
        response = await self._call(
            queue_url,
            self.client.delete_message_batch,
            Entries=[{"Id": entry.id, "ReceiptHandle": entry.receipt_handle} for entry in entries],
        )
        return AckResult(
            successful=[item["Id"] for item in response.get("Successful", [])],
            failed=[
                AckFailure(
                    id=item["Id"],
                    code=item.get("Code", "Unknown"),
                    message=item.get("Message"),
                    sender_fault=item.get("SenderFault", True),
                )
                for item in response.get("Failed", [])
            ],
        )
