"""Collection enumeration for the Prime step.

This module lists the source's top-level collections once per run and
seeds the continuation envelope that the Read steps consume as a stack.
"""

from __future__ import annotations

from core.constants import DEFAULT_PAGE_SIZE
from core.logging_config import get_logger
from core.types import ContinuationEnvelope
from ingest.firestore_source import SourceStore

_LOGGER = get_logger(__name__)


def enumerate_collections(
    source: SourceStore,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> ContinuationEnvelope:
    """List source collections and build the initial envelope.

    Args:
        source: Source store.
        page_size: Page size for the first Read step.

    Returns:
        Fresh envelope whose stack holds every collection.

    Raises:
        SourceReadError: If the listing fails. The run cannot proceed.
    """
    collections = tuple(source.list_collections())
    _LOGGER.info("collections_enumerated", collections=list(collections), count=len(collections))
    return ContinuationEnvelope(
        collections=collections,
        collection=None,
        limit=page_size,
        offset=0,
        should_continue=True,
    )
