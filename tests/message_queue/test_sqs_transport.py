"""
Tests for SQSTransport using botocore's Stubber.
"""

import pytest
import asyncio
import threading
from unittest.mock import MagicMock

import boto3
from botocore.exceptions import EndpointConnectionError
from botocore.stub import Stubber

from queue_reader.config import Settings
from queue_reader.message_queue import (
    AckEntry,
    QueueDoesNotExist,
    SQSTransport,
    TransportError,
)

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/test-queue"


class TestSQSTransport:
    """Test suite for SQSTransport."""

    @pytest.fixture
    def client(self):
        return boto3.client(
            "sqs",
            region_name="us-east-1",
            aws_access_key_id="testing",
            aws_secret_access_key="testing",
        )

    @pytest.fixture
    def stubber(self, client):
        with Stubber(client) as stubber:
            yield stubber
            stubber.assert_no_pending_responses()

    @pytest.fixture
    def transport(self, client):
        return SQSTransport(client=client)

    @pytest.mark.asyncio
    async def test_receive_maps_messages(self, transport, stubber):
        """Test ReceiveMessage parameters and response mapping."""
        stubber.add_response(
            "receive_message",
            {
                "Messages": [
                    {
                        "MessageId": "m-1",
                        "ReceiptHandle": "rh-1",
                        "Body": "hello",
                        "Attributes": {"ApproximateReceiveCount": "1"},
                    },
                    {"MessageId": "m-2", "ReceiptHandle": "rh-2", "Body": "world"},
                ]
            },
            expected_params={
                "QueueUrl": QUEUE_URL,
                "MaxNumberOfMessages": 10,
                "WaitTimeSeconds": 20,
                "AttributeNames": ["All"],
                "MessageAttributeNames": ["All"],
            },
        )

        messages = await transport.receive(QUEUE_URL, wait_seconds=20)

        assert [m.message_id for m in messages] == ["m-1", "m-2"]
        assert [m.receipt_handle for m in messages] == ["rh-1", "rh-2"]
        assert messages[0].body == "hello"
        assert messages[0].attributes == {"ApproximateReceiveCount": "1"}

    @pytest.mark.asyncio
    async def test_receive_omits_wait_time_by_default(self, transport, stubber):
        """Test that the queue's own wait time applies when none is given."""
        stubber.add_response(
            "receive_message",
            {},
            expected_params={
                "QueueUrl": QUEUE_URL,
                "MaxNumberOfMessages": 5,
                "AttributeNames": ["All"],
                "MessageAttributeNames": ["All"],
            },
        )

        assert await transport.receive(QUEUE_URL, max_messages=5) == []

    @pytest.mark.asyncio
    async def test_receive_skips_messages_without_receipt_handle(self, transport, stubber):
        stubber.add_response(
            "receive_message",
            {"Messages": [{"MessageId": "m-1", "Body": "orphan"}]},
        )

        assert await transport.receive(QUEUE_URL, wait_seconds=0) == []

    @pytest.mark.asyncio
    async def test_missing_queue(self, transport, stubber):
        """Test that a non-existent queue raises QueueDoesNotExist."""
        stubber.add_client_error(
            "receive_message",
            service_error_code="AWS.SimpleQueueService.NonExistentQueue",
            service_message="The specified queue does not exist.",
            http_status_code=400,
        )

        with pytest.raises(QueueDoesNotExist) as exc_info:
            await transport.receive(QUEUE_URL, wait_seconds=0)

        assert exc_info.value.queue_url == QUEUE_URL
        assert exc_info.value.code == "AWS.SimpleQueueService.NonExistentQueue"

    @pytest.mark.asyncio
    async def test_client_error_wrapped(self, transport, stubber):
        stubber.add_client_error(
            "receive_message",
            service_error_code="AccessDenied",
            service_message="Access to the resource is denied.",
            http_status_code=403,
        )

        with pytest.raises(TransportError) as exc_info:
            await transport.receive(QUEUE_URL, wait_seconds=0)

        assert exc_info.value.code == "AccessDenied"
        assert exc_info.value.message == "Access to the resource is denied."

    @pytest.mark.asyncio
    async def test_unreachable_endpoint(self):
        """Test that connection failures surface as UnknownEndpoint."""
        client = MagicMock()
        client.receive_message.side_effect = EndpointConnectionError(endpoint_url="https://invalid")
        transport = SQSTransport(client=client)

        with pytest.raises(TransportError) as exc_info:
            await transport.receive("invalid", wait_seconds=0)

        assert exc_info.value.code == "UnknownEndpoint"

    @pytest.mark.asyncio
    async def test_acknowledge_batch(self, transport, stubber):
        """Test DeleteMessageBatch mapping with a partial failure."""
        stubber.add_response(
            "delete_message_batch",
            {
                "Successful": [{"Id": "0"}],
                "Failed": [
                    {
                        "Id": "1",
                        "SenderFault": True,
                        "Code": "ReceiptHandleIsInvalid",
                        "Message": "The receipt handle is not valid.",
                    }
                ],
            },
            expected_params={
                "QueueUrl": QUEUE_URL,
                "Entries": [
                    {"Id": "0", "ReceiptHandle": "rh-1"},
                    {"Id": "1", "ReceiptHandle": "rh-2"},
                ],
            },
        )

        result = await transport.acknowledge_batch(
            QUEUE_URL,
            [AckEntry(id="0", receipt_handle="rh-1"), AckEntry(id="1", receipt_handle="rh-2")],
        )

        assert result.successful == ["0"]
        assert len(result.failed) == 1
        assert result.failed[0].id == "1"
        assert result.failed[0].code == "ReceiptHandleIsInvalid"
        assert result.failed[0].sender_fault is True

    @pytest.mark.asyncio
    async def test_empty_acknowledge_makes_no_call(self, transport, stubber):
        result = await transport.acknowledge_batch(QUEUE_URL, [])

        assert result.ok
        assert result.successful == []

    @pytest.mark.asyncio
    async def test_cancelled_receive_releases_caller(self):
        """Test that cancelling a blocked receive returns control immediately."""
        release = threading.Event()

        def blocking_receive(**kwargs):
            # stands in for a long poll that has not returned yet
            release.wait(timeout=5)
            return {}

        client = MagicMock()
        client.receive_message.side_effect = blocking_receive
        transport = SQSTransport(client=client)

        receive_task = asyncio.create_task(transport.receive(QUEUE_URL, wait_seconds=20))
        await asyncio.sleep(0.05)
        receive_task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await asyncio.wait_for(receive_task, timeout=1.0)

        release.set()

    def test_from_settings(self):
        settings = Settings(aws_region="eu-west-1", sqs_endpoint_url="http://localhost:9324")

        transport = SQSTransport.from_settings(settings)

        assert transport.client.meta.region_name == "eu-west-1"
        assert transport.client.meta.endpoint_url == "http://localhost:9324"
