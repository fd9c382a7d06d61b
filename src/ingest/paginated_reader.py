"""Paginated reader for the Read step.

This module walks one collection at a time, transforms each page, and
returns the continuation envelope for the next step. Page read errors
degrade to an empty page and move on to the next collection.
"""

from __future__ import annotations

from core.constants import DEFAULT_PAGE_SIZE
from core.errors import SourceReadError
from core.logging_config import get_logger
from core.types import ContinuationEnvelope, Document, ReadResult, SourceDocument
from ingest.document_transform import KeyHints, transform_page
from ingest.firestore_source import SourceStore
from transport.backpressure import BackpressureGovernor, should_continue

_LOGGER = get_logger(__name__)


def read_page(
    envelope: ContinuationEnvelope,
    source: SourceStore,
    governor: BackpressureGovernor,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> ReadResult:
    """Fetch and transform the next page described by an envelope.

    Args:
        envelope: Current continuation envelope.
        source: Source store.
        governor: Queue-depth gate for loop termination.
        page_size: Default page size applied when switching collections.

    Returns:
        Transformed documents and the envelope for the next step.
    """
    pending = list(envelope.collections)
    collection = envelope.collection
    if collection is None and pending:
        collection = pending.pop()
    limit = envelope.limit or page_size
    offset = envelope.offset
    hints = _hints_from_envelope(envelope)

    documents: list[Document] = []
    if collection is not None:
        page = _fetch_page_soft(source, collection, limit, offset)
        documents, hints = transform_page(collection, page, hints)
        _LOGGER.info(
            "reader_page_fetched",
            collection=collection,
            offset=offset,
            limit=limit,
            document_count=len(documents),
        )

    queue_depth = governor.probe()

    if not documents:
        finished = collection
        collection = pending.pop() if pending else None
        limit = page_size
        offset = -limit
        hints = None
        if finished is not None:
            _LOGGER.info("collection_exhausted", collection=finished, next_collection=collection)

    next_envelope = ContinuationEnvelope(
        collections=tuple(pending),
        collection=collection,
        limit=limit,
        offset=offset + limit,
        partition_key=hints.partition_key if hints else None,
        sort_key=hints.sort_key if hints else None,
        should_continue=should_continue(len(documents), collection, tuple(pending), queue_depth),
    )
    return ReadResult(documents=tuple(documents), envelope=next_envelope, queue_depth=queue_depth)


def _fetch_page_soft(
    source: SourceStore,
    collection: str,
    limit: int,
    offset: int,
) -> list[SourceDocument]:
    """Fetch a page, treating read failures as an empty page."""
    try:
        return source.fetch_page(collection, limit, offset)
    except SourceReadError as error:
        _LOGGER.warning(
            "source_page_failed",
            collection=collection,
            offset=offset,
            limit=limit,
            error=str(error),
        )
        return []


def _hints_from_envelope(envelope: ContinuationEnvelope) -> KeyHints | None:
    if envelope.partition_key and envelope.sort_key:
        return KeyHints(partition_key=envelope.partition_key, sort_key=envelope.sort_key)
    return None
