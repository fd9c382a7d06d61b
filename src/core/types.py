"""Shared typed models.

This module defines immutable data models used by the reader, queue,
writer, and orchestrator layers to keep step contracts explicit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from core.constants import DEFAULT_PAGE_SIZE
from core.errors import SyncStateError

Document = dict[str, Any]


@dataclass(frozen=True)
class SourceDocument:
    """One document as returned by the source store.

    Attributes:
        document_id: Natural document id inside its collection.
        fields: JSON-safe document fields.
        update_time: Last modification time reported by the store.
    """

    document_id: str
    fields: Mapping[str, Any]
    update_time: datetime


@dataclass(frozen=True)
class ContinuationEnvelope:
    """Serializable pagination state threaded between orchestrator steps.

    Attributes:
        collections: Pending collections stack; the last entry is read next.
        collection: Collection currently being paginated.
        limit: Page size for the next fetch.
        offset: Offset of the next fetch.
        partition_key: Field chosen as partition key for this collection.
        sort_key: Field chosen as sort key for this collection.
        should_continue: Whether the orchestrator loops back to Read.
    """

    collections: tuple[str, ...] = ()
    collection: str | None = None
    limit: int = DEFAULT_PAGE_SIZE
    offset: int = 0
    partition_key: str | None = None
    sort_key: str | None = None
    should_continue: bool = True

    def to_payload(self) -> dict[str, object]:
        """Serialize envelope into its JSON step-contract shape."""
        return {
            "collections": list(self.collections),
            "collection": self.collection,
            "limit": self.limit,
            "offset": self.offset,
            "partition_key": self.partition_key,
            "sort_key": self.sort_key,
            "continue": self.should_continue,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ContinuationEnvelope":
        """Rebuild an envelope from its JSON step-contract shape.

        Args:
            payload: Envelope payload as produced by ``to_payload``.

        Returns:
            Parsed envelope.

        Raises:
            SyncStateError: If payload fields have invalid types.
        """
        collections = payload.get("collections", [])
        if not isinstance(collections, (list, tuple)) or not all(
            isinstance(item, str) for item in collections
        ):
            raise SyncStateError(
                "Invalid continuation envelope: 'collections' must be a list of strings."
            )
        try:
            return cls(
                collections=tuple(collections),
                collection=_optional_string(payload.get("collection")),
                limit=int(payload.get("limit") or DEFAULT_PAGE_SIZE),
                offset=int(payload.get("offset") or 0),
                partition_key=_optional_string(payload.get("partition_key")),
                sort_key=_optional_string(payload.get("sort_key")),
                should_continue=bool(payload.get("continue", True)),
            )
        except (TypeError, ValueError) as error:
            raise SyncStateError(
                f"Invalid continuation envelope: {error}. "
                "Restart the sync without --resume to rebuild state."
            ) from error


@dataclass(frozen=True)
class ReadResult:
    """Output of one Read step.

    Attributes:
        documents: Transformed documents read this round.
        envelope: Envelope for the next step.
        queue_depth: Pending-write queue depth probed this round.
    """

    documents: tuple[Document, ...]
    envelope: ContinuationEnvelope
    queue_depth: int


@dataclass(frozen=True)
class MergeResult:
    """Summary of one Merge Writer invocation.

    Attributes:
        written_count: Records written to the target table.
        merged_count: Records merged onto an existing record.
        facets: Facets registered in the meta record.
        duplicate_source_ids: Source ids matching more than one record.
    """

    written_count: int
    merged_count: int
    facets: tuple[str, ...]
    duplicate_source_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class MetaRecord:
    """Parsed meta record holding the facet registry and inferred schemas.

    Attributes:
        facets: Registered facets.
        pseudo_schema: Facet to serialized pseudo-schema payload.
    """

    facets: frozenset[str] = frozenset()
    pseudo_schema: Mapping[str, Any] = field(default_factory=dict)


def _optional_string(value: object) -> str | None:
    if value is None or value == "":
        return None
    return str(value)
