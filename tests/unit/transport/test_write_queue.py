"""Unit tests for the SQS pending-write queue."""

from __future__ import annotations

import json

import pytest

from core.errors import QueueDeliveryError
from transport.write_queue import QueueMessage, SqsWriteQueue, parse_message_body, parse_queue_event

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/pending-writes"


class _FakeSqsClient:
    def __init__(self, fail_send: bool = False) -> None:
        self.fail_send = fail_send
        self.sent: list[dict[str, str]] = []
        self.deleted: list[str] = []
        self.attributes = {
            "ApproximateNumberOfMessages": "3",
            "ApproximateNumberOfMessagesNotVisible": "2",
        }
        self.messages = [{"ReceiptHandle": "r-1", "Body": "[]"}]

    def send_message(self, QueueUrl: str, MessageBody: str):
        if self.fail_send:
            raise RuntimeError("access denied")
        self.sent.append({"QueueUrl": QueueUrl, "MessageBody": MessageBody})
        return {"MessageId": str(len(self.sent))}

    def get_queue_attributes(self, QueueUrl: str, AttributeNames: list[str]):
        return {"Attributes": self.attributes}

    def receive_message(self, QueueUrl: str, MaxNumberOfMessages: int, WaitTimeSeconds: int):
        return {"Messages": self.messages}

    def delete_message(self, QueueUrl: str, ReceiptHandle: str):
        self.deleted.append(ReceiptHandle)


def test_send_batch_writes_one_json_array_message() -> None:
    """A small page is sent as one JSON array body."""
    client = _FakeSqsClient()
    queue = SqsWriteQueue(client, QUEUE_URL)

    sent = queue.send_batch([{"pk": "a"}, {"pk": "b"}])

    assert sent == 1 and json.loads(client.sent[0]["MessageBody"]) == [{"pk": "a"}, {"pk": "b"}]


def test_send_batch_splits_oversized_pages() -> None:
    """Pages over the message size limit are split without losing documents."""
    client = _FakeSqsClient()
    queue = SqsWriteQueue(client, QUEUE_URL)
    documents = [{"pk": str(index), "blob": "x" * 100_000} for index in range(4)]

    sent = queue.send_batch(documents)
    delivered = [doc for message in client.sent for doc in json.loads(message["MessageBody"])]

    assert sent > 1 and delivered == documents


def test_send_batch_rejects_single_oversized_document() -> None:
    """A document larger than the limit cannot be delivered."""
    queue = SqsWriteQueue(_FakeSqsClient(), QUEUE_URL)

    with pytest.raises(QueueDeliveryError):
        queue.send_batch([{"__firestoreDocumentId": "big", "blob": "x" * 300_000}])


def test_send_failure_raises_delivery_error() -> None:
    """Transport failures surface as queue delivery errors."""
    queue = SqsWriteQueue(_FakeSqsClient(fail_send=True), QUEUE_URL)

    with pytest.raises(QueueDeliveryError):
        queue.send_batch([{"pk": "a"}])


def test_empty_page_is_not_sent() -> None:
    """Empty pages produce no messages."""
    client = _FakeSqsClient()

    assert SqsWriteQueue(client, QUEUE_URL).send_batch([]) == 0 and client.sent == []


def test_approximate_depth_counts_visible_and_in_flight() -> None:
    """Depth includes messages currently being processed."""
    assert SqsWriteQueue(_FakeSqsClient(), QUEUE_URL).approximate_depth() == 5


def test_receive_and_acknowledge_messages() -> None:
    """Received messages can be deleted by receipt handle."""
    client = _FakeSqsClient()
    queue = SqsWriteQueue(client, QUEUE_URL)

    messages = queue.receive_batches()
    queue.acknowledge(messages[0])

    assert messages == [QueueMessage(receipt_handle="r-1", body="[]")]
    assert client.deleted == ["r-1"]


def test_parse_message_body_rejects_non_arrays() -> None:
    """Bodies must be JSON arrays of objects."""
    with pytest.raises(QueueDeliveryError):
        parse_message_body('{"pk": "a"}')


def test_parse_queue_event_flattens_records() -> None:
    """Lambda SQS events are flattened in record order."""
    event = {"Records": [{"body": '[{"pk": "a"}]'}, {"body": '[{"pk": "b"}, {"pk": "c"}]'}]}

    assert [doc["pk"] for doc in parse_queue_event(event)] == ["a", "b", "c"]
