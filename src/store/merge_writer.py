"""Idempotent merge writer for pending-write batches.

This module merges incoming documents onto existing target records and
registers their facets. Merges are field-level last-write-wins and keep
the existing record's key, so redelivered batches converge.
"""

from __future__ import annotations

import threading
from typing import Any, Mapping, Sequence

from core.constants import (
    FACET_ATTRIBUTE_NAME,
    PARTITION_KEY_NAME,
    SORT_KEY_NAME,
    SOURCE_ID_ATTRIBUTE_NAME,
)
from core.errors import MigratorError
from core.logging_config import get_logger
from core.types import Document, MergeResult
from store.target_table import TargetTable
from transport.write_queue import QueueMessage, WriteQueue, parse_queue_event

_LOGGER = get_logger(__name__)


class MergeWriter:
    """Merges batches of transformed documents into the target table."""

    def __init__(self, table: TargetTable) -> None:
        self._table = table

    def handle_event(self, event: Mapping[str, Any]) -> MergeResult:
        """Merge every document carried by a Lambda SQS event.

        Args:
            event: Event with ``Records[].body`` JSON array payloads.

        Returns:
            Merge summary.
        """
        return self.write_batch(parse_queue_event(event))

    def write_batch(self, documents: Sequence[Document]) -> MergeResult:
        """Merge one batch of documents.

        Args:
            documents: Transformed documents in arrival order.

        Returns:
            Merge summary.

        Raises:
            TargetStoreError: If the table cannot be read or written.
        """
        if not documents:
            return MergeResult(written_count=0, merged_count=0, facets=())
        incoming = coalesce_documents(documents)
        facets = _collect_facets(incoming)
        self._table.add_facets(facets)

        merged_records: list[Document] = []
        merged_count = 0
        duplicates: list[str] = []
        for document in incoming:
            existing = self._find_existing(document, duplicates)
            if existing is not None:
                merged_count += 1
            merged_records.append(merge_document(existing, document))
        written_count = self._table.put_records(merged_records)
        _LOGGER.info(
            "batch_merged",
            document_count=len(documents),
            written_count=written_count,
            merged_count=merged_count,
            facets=list(facets),
        )
        return MergeResult(
            written_count=written_count,
            merged_count=merged_count,
            facets=facets,
            duplicate_source_ids=tuple(duplicates),
        )

    def _find_existing(self, document: Document, duplicates: list[str]) -> Document | None:
        source_id = document.get(SOURCE_ID_ATTRIBUTE_NAME)
        if source_id is None:
            return None
        candidates = self._table.find_by_source_id(str(source_id))
        if len(candidates) > 1:
            duplicates.append(str(source_id))
            _LOGGER.warning(
                "duplicate_source_document",
                document_id=str(source_id),
                facet=document.get(FACET_ATTRIBUTE_NAME),
                candidate_keys=[
                    [candidate.get(PARTITION_KEY_NAME), candidate.get(SORT_KEY_NAME)]
                    for candidate in candidates
                ],
            )
        return candidates[0] if candidates else None


def merge_document(existing: Document | None, incoming: Document) -> Document:
    """Merge an incoming document onto an existing record.

    Incoming fields overwrite same-named fields, absent fields are kept,
    and the existing record's ``pk``/``sk`` win over freshly derived keys.

    Args:
        existing: Current target record, if any.
        incoming: Transformed document.

    Returns:
        Record to write.
    """
    if existing is None:
        return dict(incoming)
    merged = {**existing, **incoming}
    merged[PARTITION_KEY_NAME] = existing[PARTITION_KEY_NAME]
    merged[SORT_KEY_NAME] = existing[SORT_KEY_NAME]
    return merged


def coalesce_documents(documents: Sequence[Document]) -> list[Document]:
    """Fold repeated source documents inside one batch in arrival order."""
    by_source_id: dict[str, Document] = {}
    anonymous: list[Document] = []
    for document in documents:
        source_id = document.get(SOURCE_ID_ATTRIBUTE_NAME)
        if source_id is None:
            anonymous.append(dict(document))
            continue
        key = str(source_id)
        by_source_id[key] = {**by_source_id.get(key, {}), **document}
    return list(by_source_id.values()) + anonymous


class WriteWorker:
    """Polling consumer that feeds queue messages to the merge writer.

    Failed messages are left unacknowledged so the queue redelivers them
    and eventually dead-letters them after its receive limit.
    """

    def __init__(self, queue: WriteQueue, writer: MergeWriter) -> None:
        self._queue = queue
        self._writer = writer

    def drain(
        self,
        max_batches: int | None = None,
        stop_event: threading.Event | None = None,
    ) -> int:
        """Process messages until the queue is idle or a limit is reached.

        Args:
            max_batches: Optional cap on processed messages.
            stop_event: Optional cancellation flag checked between messages.

        Returns:
            Number of messages merged and acknowledged.
        """
        processed = 0
        while max_batches is None or processed < max_batches:
            messages = self._queue.receive_batches()
            if not messages:
                break
            for message in messages:
                if stop_event is not None and stop_event.is_set():
                    return processed
                if max_batches is not None and processed >= max_batches:
                    return processed
                if self._process(message):
                    processed += 1
        _LOGGER.info("write_worker_idle", processed=processed)
        return processed

    def _process(self, message: QueueMessage) -> bool:
        try:
            self._writer.write_batch(message.documents())
        except MigratorError as error:
            _LOGGER.error(
                "write_batch_failed",
                receipt_handle=message.receipt_handle,
                error=str(error),
            )
            return False
        self._queue.acknowledge(message)
        return True


def _collect_facets(documents: Sequence[Document]) -> tuple[str, ...]:
    facets = {document.get(FACET_ATTRIBUTE_NAME) for document in documents}
    return tuple(sorted(str(facet) for facet in facets if facet))
