"""SQS-backed pending-write queue.

This module sends pages as JSON array messages, reports approximate
queue depth, and decodes message bodies for the merge writer.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Any, Mapping, Protocol, Sequence

from core.constants import (
    DEFAULT_WORKER_WAIT_SECONDS,
    SQS_MAX_MESSAGE_BYTES,
    SQS_MAX_RECEIVE_MESSAGES,
)
from core.errors import QueueDeliveryError
from core.logging_config import get_logger
from core.types import Document

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class QueueMessage:
    """One received queue message."""

    receipt_handle: str
    body: str

    def documents(self) -> list[Document]:
        """Decode the message body into documents."""
        return parse_message_body(self.body)


class WriteQueue(Protocol):
    """Queue operations used by the orchestrator and write worker."""

    def send_batch(self, documents: Sequence[Document]) -> int: ...

    def approximate_depth(self) -> int: ...

    def receive_batches(self) -> list[QueueMessage]: ...

    def acknowledge(self, message: QueueMessage) -> None: ...


class SqsWriteQueue:
    """Pending-write queue over one SQS queue URL."""

    def __init__(self, sqs_client: Any, queue_url: str) -> None:
        self._sqs = sqs_client
        self._queue_url = queue_url

    def send_batch(self, documents: Sequence[Document]) -> int:
        """Send one page of documents, splitting oversized messages.

        Args:
            documents: Transformed documents.

        Returns:
            Number of messages sent.

        Raises:
            QueueDeliveryError: If a message is rejected or one document
                alone exceeds the message size limit.
        """
        if not documents:
            return 0
        bodies = _encode_bodies(list(documents))
        for body in bodies:
            try:
                self._sqs.send_message(QueueUrl=self._queue_url, MessageBody=body)
            except Exception as error:
                raise QueueDeliveryError(
                    f"Failed to send {len(documents)} documents to {self._queue_url}: {error}. "
                    "Retry the Enqueue step."
                ) from error
        _LOGGER.info("page_enqueued", document_count=len(documents), message_count=len(bodies))
        return len(bodies)

    def approximate_depth(self) -> int:
        """Return visible plus in-flight message counts."""
        response = self._sqs.get_queue_attributes(
            QueueUrl=self._queue_url,
            AttributeNames=[
                "ApproximateNumberOfMessages",
                "ApproximateNumberOfMessagesNotVisible",
            ],
        )
        attributes = response.get("Attributes", {})
        return int(attributes.get("ApproximateNumberOfMessages", 0)) + int(
            attributes.get("ApproximateNumberOfMessagesNotVisible", 0)
        )

    def receive_batches(
        self,
        max_messages: int = SQS_MAX_RECEIVE_MESSAGES,
        wait_seconds: int = DEFAULT_WORKER_WAIT_SECONDS,
    ) -> list[QueueMessage]:
        """Long-poll the queue for pending pages.

        Args:
            max_messages: Upper bound of messages to receive.
            wait_seconds: Long-poll wait time.

        Returns:
            Received messages, possibly empty.
        """
        response = self._sqs.receive_message(
            QueueUrl=self._queue_url,
            MaxNumberOfMessages=min(max_messages, SQS_MAX_RECEIVE_MESSAGES),
            WaitTimeSeconds=wait_seconds,
        )
        return [
            QueueMessage(
                receipt_handle=str(message["ReceiptHandle"]),
                body=str(message["Body"]),
            )
            for message in response.get("Messages", [])
        ]

    def acknowledge(self, message: QueueMessage) -> None:
        """Delete a processed message from the queue."""
        self._sqs.delete_message(QueueUrl=self._queue_url, ReceiptHandle=message.receipt_handle)


def parse_message_body(body: str) -> list[Document]:
    """Decode one message body into documents.

    Args:
        body: JSON array message body.

    Returns:
        Decoded documents.

    Raises:
        QueueDeliveryError: If the body is not a JSON array of objects.
    """
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as error:
        raise QueueDeliveryError(f"Invalid queue message body: {error.msg}.") from error
    if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
        raise QueueDeliveryError("Invalid queue message body: expected a JSON array of objects.")
    return payload


def parse_queue_event(event: Mapping[str, Any]) -> list[Document]:
    """Flatten a Lambda SQS event into its documents in record order."""
    documents: list[Document] = []
    for record in event.get("Records", []):
        documents.extend(parse_message_body(str(record["body"])))
    return documents


def _encode_bodies(documents: list[Document]) -> list[str]:
    body = json.dumps(documents, separators=(",", ":"))
    if len(body.encode("utf-8")) <= SQS_MAX_MESSAGE_BYTES:
        return [body]
    if len(documents) == 1:
        raise QueueDeliveryError(
            f"Document {documents[0].get('__firestoreDocumentId')} exceeds the "
            f"{SQS_MAX_MESSAGE_BYTES} byte queue message limit."
        )
    middle = len(documents) // 2
    return _encode_bodies(documents[:middle]) + _encode_bodies(documents[middle:])
