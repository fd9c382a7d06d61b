"""Document transform and key derivation.

This module tags source documents with facet and source bookkeeping
fields and derives partition and sort keys once per collection.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.constants import (
    FACET_ATTRIBUTE_NAME,
    PARTITION_KEY_NAME,
    SORT_KEY_CANDIDATE_FIELDS,
    SORT_KEY_NAME,
    SOURCE_ID_ATTRIBUTE_NAME,
    SOURCE_TIMESTAMP_ATTRIBUTE_NAME,
)
from core.logging_config import get_logger
from core.types import Document, SourceDocument
from core.values import format_timestamp

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class KeyHints:
    """Field names used as partition and sort key for one collection."""

    partition_key: str
    sort_key: str


def tag_document(collection: str, document: SourceDocument) -> Document:
    """Attach facet and source bookkeeping fields to document fields.

    Args:
        collection: Source collection, used as facet.
        document: Source document.

    Returns:
        Tagged record fields without keys.
    """
    record: Document = dict(document.fields)
    record[SOURCE_ID_ATTRIBUTE_NAME] = document.document_id
    record[SOURCE_TIMESTAMP_ATTRIBUTE_NAME] = format_timestamp(document.update_time)
    record[FACET_ATTRIBUTE_NAME] = collection
    return record


def derive_key_hints(collection: str, record: Document) -> KeyHints:
    """Choose key fields from the first tagged record of a collection.

    Args:
        collection: Source collection name.
        record: First tagged record of the collection.

    Returns:
        Partition and sort key field names.
    """
    collection_id_field = f"{collection}Id"
    partition_key = (
        collection_id_field if record.get(collection_id_field) is not None
        else SOURCE_ID_ATTRIBUTE_NAME
    )
    sort_key = next(
        (name for name in SORT_KEY_CANDIDATE_FIELDS if record.get(name) is not None),
        SOURCE_TIMESTAMP_ATTRIBUTE_NAME,
    )
    return KeyHints(partition_key=partition_key, sort_key=sort_key)


def apply_keys(record: Document, hints: KeyHints) -> Document:
    """Set ``pk``/``sk`` from hinted fields and drop the duplicated fields.

    Args:
        record: Tagged record.
        hints: Key fields chosen for the collection.

    Returns:
        New record carrying string ``pk`` and ``sk`` values.
    """
    keyed = dict(record)
    keyed[PARTITION_KEY_NAME] = _take_key(
        keyed, hints.partition_key, PARTITION_KEY_NAME, SOURCE_ID_ATTRIBUTE_NAME
    )
    keyed[SORT_KEY_NAME] = _take_key(
        keyed, hints.sort_key, SORT_KEY_NAME, SOURCE_TIMESTAMP_ATTRIBUTE_NAME
    )
    return keyed


def transform_page(
    collection: str,
    documents: list[SourceDocument],
    hints: KeyHints | None,
) -> tuple[list[Document], KeyHints | None]:
    """Transform one page, deriving key hints from its first document if needed.

    Args:
        collection: Source collection name.
        documents: Page of source documents.
        hints: Key hints carried from earlier pages, if any.

    Returns:
        Transformed records and the hints used for them.
    """
    records: list[Document] = []
    for document in documents:
        tagged = tag_document(collection, document)
        if hints is None:
            hints = derive_key_hints(collection, tagged)
            _LOGGER.info(
                "key_hints_derived",
                collection=collection,
                partition_key=hints.partition_key,
                sort_key=hints.sort_key,
            )
        records.append(apply_keys(tagged, hints))
    return records, hints


def _take_key(record: Document, field_name: str, key_name: str, fallback_field: str) -> str:
    value = record.get(field_name)
    if value is None:
        _LOGGER.warning(
            "key_field_missing",
            facet=record.get(FACET_ATTRIBUTE_NAME),
            document_id=record.get(SOURCE_ID_ATTRIBUTE_NAME),
            key_field=field_name,
            fallback_field=fallback_field,
        )
        return str(record[fallback_field])
    if field_name not in (key_name, fallback_field):
        del record[field_name]
    return str(value)
