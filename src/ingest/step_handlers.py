"""Lambda-style handlers for externally orchestrated sync steps.

Each handler takes and returns the JSON step contract so a workflow
engine can drive Prime, Read, Write, and Introspect as separate
invocations. All handlers share one lazily built service registry.
"""

from __future__ import annotations

from typing import Any, Mapping

from core.logging_config import get_logger
from core.services import ServiceRegistry
from core.types import ContinuationEnvelope
from ingest.collection_enumerator import enumerate_collections
from ingest.paginated_reader import read_page
from introspect.schema_inferencer import SchemaInferencer
from store.merge_writer import MergeWriter

_LOGGER = get_logger(__name__)
REGISTRY = ServiceRegistry()


def prime_handler(event: Mapping[str, Any], context: Any = None) -> dict[str, object]:
    """Enumerate collections and return the initial envelope payload."""
    config = REGISTRY.config()
    envelope = enumerate_collections(REGISTRY.services().source, config.page_size)
    return envelope.to_payload()


def read_handler(event: Mapping[str, Any], context: Any = None) -> dict[str, object]:
    """Read one page for the envelope carried by the event.

    Args:
        event: Continuation envelope payload.
        context: Unused invocation context.

    Returns:
        Envelope payload for the next step plus the page under ``docs``.

    Raises:
        SyncStateError: If the event is not a valid envelope.
    """
    config = REGISTRY.config()
    services = REGISTRY.services()
    result = read_page(
        ContinuationEnvelope.from_payload(event),
        services.source,
        services.governor,
        config.page_size,
    )
    return {"docs": list(result.documents), **result.envelope.to_payload()}


def write_handler(event: Mapping[str, Any], context: Any = None) -> dict[str, object]:
    """Merge every document of an SQS event into the target table.

    Failures propagate so the queue redelivers the batch.
    """
    result = MergeWriter(REGISTRY.services().table).handle_event(event)
    return {
        "written": result.written_count,
        "merged": result.merged_count,
        "facets": list(result.facets),
        "duplicates": list(result.duplicate_source_ids),
    }


def introspect_handler(event: Mapping[str, Any], context: Any = None) -> dict[str, object]:
    """Infer and persist pseudo-schemas for every registered facet."""
    config = REGISTRY.config()
    report = SchemaInferencer(REGISTRY.services().table, config.sample_size).run()
    if report.failed_facets:
        _LOGGER.warning("introspection_partial", failed_facets=sorted(report.failed_facets))
    return {
        "written_facets": list(report.written_facets),
        "failed_facets": dict(report.failed_facets),
    }
