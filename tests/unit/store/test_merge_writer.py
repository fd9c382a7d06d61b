"""Unit tests for idempotent merges and the write worker."""

from __future__ import annotations

import itertools
import json
import threading

import pytest

from core.errors import TargetStoreError
from store.merge_writer import MergeWriter, WriteWorker, coalesce_documents, merge_document
from tests.sync_fakes import FakeWriteQueue, InMemoryTargetTable


def _document(source_id: str, facet: str = "orders", **fields) -> dict[str, object]:
    return {
        "pk": source_id,
        "sk": "2023-05-01T00:00:00.000Z",
        "__facet": facet,
        "__firestoreDocumentId": source_id,
        "__firestoreUpdatedAt": "2023-05-01T00:00:00.000Z",
        **fields,
    }


def test_applying_a_batch_twice_is_idempotent() -> None:
    """Redelivered batches converge to the same record."""
    table = InMemoryTargetTable()
    writer = MergeWriter(table)
    batch = [_document("o-1", total=10, status="new"), _document("o-2", total=3)]

    writer.write_batch(batch)
    first = dict(table.items)
    writer.write_batch(batch)

    assert table.items == first and len(table.items) == 2


def test_merge_overwrites_fields_and_keeps_absent_ones() -> None:
    """Incoming fields win; fields missing from the update are preserved."""
    table = InMemoryTargetTable()
    writer = MergeWriter(table)
    writer.write_batch([_document("o-1", total=10, note="gift")])

    result = writer.write_batch([_document("o-1", total=12)])

    record = table.items[("o-1", "2023-05-01T00:00:00.000Z")]
    assert (record["total"], record["note"], result.merged_count) == (12, "gift", 1)


def test_existing_key_takes_precedence_over_new_key() -> None:
    """A changed key heuristic must not fragment a document's history."""
    table = InMemoryTargetTable()
    writer = MergeWriter(table)
    writer.write_batch([_document("o-1", total=1)])
    rekeyed = {**_document("o-1", total=2), "pk": "A-100", "sk": "2024-01-01T00:00:00.000Z"}

    writer.write_batch([rekeyed])

    assert list(table.items) == [("o-1", "2023-05-01T00:00:00.000Z")]
    assert table.items[("o-1", "2023-05-01T00:00:00.000Z")]["total"] == 2


@pytest.mark.parametrize("order", list(itertools.permutations([("A",), ("B",), ("A", "C")])))
def test_facet_registry_is_monotonic_union(order) -> None:
    """Batches touching any facets in any order union into the registry."""
    table = InMemoryTargetTable()
    writer = MergeWriter(table)

    for facets in order:
        writer.write_batch([_document(f"{facet}-1", facet=facet) for facet in facets])

    assert table.read_meta().facets == frozenset({"A", "B", "C"})


def test_duplicate_source_records_are_reported() -> None:
    """Multiple records for one source id are reported and the oldest wins."""
    table = InMemoryTargetTable()
    table.put_records(
        [
            {**_document("o-1"), "pk": "old", "__firestoreUpdatedAt": "2020"},
            {**_document("o-1"), "pk": "new", "__firestoreUpdatedAt": "2021"},
        ]
    )

    result = MergeWriter(table).write_batch([{**_document("o-1", total=5), "pk": "fresh"}])

    assert result.duplicate_source_ids == ("o-1",)
    assert table.items[("old", "2023-05-01T00:00:00.000Z")]["total"] == 5


def test_coalesce_documents_folds_repeats_in_arrival_order() -> None:
    """Later copies of a document in one batch win field by field."""
    documents = [_document("o-1", a=1, b=1), _document("o-1", b=2), _document("o-2")]

    coalesced = coalesce_documents(documents)

    assert [doc["__firestoreDocumentId"] for doc in coalesced] == ["o-1", "o-2"]
    assert (coalesced[0]["a"], coalesced[0]["b"]) == (1, 2)


def test_merge_document_without_existing_returns_copy() -> None:
    """New documents are written as-is."""
    incoming = _document("o-1", total=1)

    merged = merge_document(None, incoming)

    assert merged == incoming and merged is not incoming


def test_handle_event_merges_sqs_records() -> None:
    """Lambda SQS events are decoded and merged."""
    table = InMemoryTargetTable()
    event = {"Records": [{"body": json.dumps([_document("o-1"), _document("o-2")])}]}

    result = MergeWriter(table).handle_event(event)

    assert (result.written_count, result.facets) == (2, ("orders",))


def test_write_worker_acknowledges_merged_messages() -> None:
    """Processed messages are deleted from the queue."""
    queue = FakeWriteQueue()
    table = InMemoryTargetTable()
    queue.send_batch([_document("o-1")])
    queue.send_batch([_document("o-2")])

    processed = WriteWorker(queue, MergeWriter(table)).drain()

    assert processed == 2 and queue.approximate_depth() == 0 and len(table.items) == 2


def test_write_worker_leaves_failed_messages_for_redelivery() -> None:
    """Failed merges stay in flight so the queue can redeliver them."""

    class _FailingTable(InMemoryTargetTable):
        def put_records(self, records):
            raise TargetStoreError("unavailable")

    queue = FakeWriteQueue()
    queue.send_batch([_document("o-1")])

    processed = WriteWorker(queue, MergeWriter(_FailingTable())).drain()

    assert processed == 0 and len(queue.in_flight) == 1


def test_write_worker_respects_batch_cap_and_stop_event() -> None:
    """Draining stops at the cap and when cancellation is requested."""
    queue = FakeWriteQueue()
    for index in range(3):
        queue.send_batch([_document(f"o-{index}")])
    worker = WriteWorker(queue, MergeWriter(InMemoryTargetTable()))
    stop_event = threading.Event()

    capped = worker.drain(max_batches=1)
    queue.release_in_flight()
    stop_event.set()
    stopped = worker.drain(stop_event=stop_event)

    assert (capped, stopped) == (1, 0)
