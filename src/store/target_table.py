"""DynamoDB target table access.

This module wraps the boto3 table resource with the queries and writes
used by the merge writer and schema inferencer: source-id lookups,
per-item batch writes, facet sampling, and meta record updates.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Protocol, TypeVar

from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from core.constants import (
    FACET_ATTRIBUTE_NAME,
    FACET_INDEX_NAME,
    META_FACET_ITEM_ATTRIBUTE,
    META_FACETS_ATTRIBUTE,
    META_PARTITION_KEY,
    META_PSEUDO_SCHEMA_ATTRIBUTE,
    META_SORT_KEY,
    PARTITION_KEY_NAME,
    SORT_KEY_NAME,
    SOURCE_ID_ATTRIBUTE_NAME,
    SOURCE_ID_INDEX_NAME,
)
from core.errors import TargetStoreError
from core.types import Document, MetaRecord
from store.record_payload import from_dynamo_item, to_dynamo_item

_T = TypeVar("_T")
_META_KEY = {PARTITION_KEY_NAME: META_PARTITION_KEY, SORT_KEY_NAME: META_SORT_KEY}


class TargetTable(Protocol):
    """Target table operations used by the writer and inferencer."""

    def find_by_source_id(self, source_id: str) -> list[Document]: ...

    def put_records(self, records: Iterable[Document]) -> int: ...

    def query_facet(self, facet: str, limit: int) -> list[Document]: ...

    def read_meta(self) -> MetaRecord: ...

    def add_facets(self, facets: Iterable[str]) -> None: ...

    def put_pseudo_schema(self, facet: str, payload: Mapping[str, Any]) -> None: ...


class DynamoTargetTable:
    """Target table backed by a boto3 DynamoDB ``Table`` resource."""

    def __init__(self, table: Any) -> None:
        self._table = table

    def find_by_source_id(self, source_id: str) -> list[Document]:
        """Return every record carrying a source document id.

        Args:
            source_id: Source document id.

        Returns:
            Matching records ordered by source timestamp.

        Raises:
            TargetStoreError: If the index query fails.
        """
        query_kwargs = {
            "IndexName": SOURCE_ID_INDEX_NAME,
            "KeyConditionExpression": Key(SOURCE_ID_ATTRIBUTE_NAME).eq(source_id),
        }
        return self._call(
            f"look up source document {source_id}",
            lambda: self._query_all(query_kwargs, limit=None),
        )

    def put_records(self, records: Iterable[Document]) -> int:
        """Write records as independent per-item puts.

        Args:
            records: Complete records including ``pk`` and ``sk``.

        Returns:
            Number of records written.

        Raises:
            TargetStoreError: If a batch write fails.
        """

        def _write() -> int:
            count = 0
            with self._table.batch_writer(
                overwrite_by_pkeys=[PARTITION_KEY_NAME, SORT_KEY_NAME]
            ) as batch:
                for record in records:
                    batch.put_item(Item=to_dynamo_item(record))
                    count += 1
            return count

        return self._call("write merged records", _write)

    def query_facet(self, facet: str, limit: int) -> list[Document]:
        """Sample up to ``limit`` records of one facet.

        Args:
            facet: Facet tag.
            limit: Maximum records to return.

        Returns:
            Records ordered by sort key.

        Raises:
            TargetStoreError: If the index query fails.
        """
        query_kwargs = {
            "IndexName": FACET_INDEX_NAME,
            "KeyConditionExpression": Key(FACET_ATTRIBUTE_NAME).eq(facet),
        }
        return self._call(
            f"sample facet {facet}",
            lambda: self._query_all(query_kwargs, limit=limit),
        )

    def read_meta(self) -> MetaRecord:
        """Read the meta record, returning an empty one when absent."""
        response = self._call(
            "read meta record",
            lambda: self._table.get_item(Key=_META_KEY, ConsistentRead=True),
        )
        item = response.get("Item")
        if not item:
            return MetaRecord()
        payload = from_dynamo_item(item)
        return MetaRecord(
            facets=frozenset(str(facet) for facet in payload.get(META_FACETS_ATTRIBUTE, ())),
            pseudo_schema=dict(payload.get(META_PSEUDO_SCHEMA_ATTRIBUTE) or {}),
        )

    def add_facets(self, facets: Iterable[str]) -> None:
        """Union facets into the meta record, creating it when missing."""
        facet_set = {facet for facet in facets if facet}
        if not facet_set:
            return
        self._call(
            "register facets",
            lambda: self._table.update_item(
                Key=_META_KEY,
                UpdateExpression="ADD #facets :facets SET #facetItemAttributeName = :facetItem",
                ExpressionAttributeNames={
                    "#facets": META_FACETS_ATTRIBUTE,
                    "#facetItemAttributeName": META_FACET_ITEM_ATTRIBUTE,
                },
                ExpressionAttributeValues={
                    ":facets": facet_set,
                    ":facetItem": FACET_ATTRIBUTE_NAME,
                },
            ),
        )

    def put_pseudo_schema(self, facet: str, payload: Mapping[str, Any]) -> None:
        """Replace one facet's pseudo-schema entry in the meta record."""
        names = {"#schema": META_PSEUDO_SCHEMA_ATTRIBUTE}
        self._call(
            "prepare pseudo-schema map",
            lambda: self._table.update_item(
                Key=_META_KEY,
                UpdateExpression="SET #schema = if_not_exists(#schema, :empty)",
                ExpressionAttributeNames=names,
                ExpressionAttributeValues={":empty": {}},
            ),
        )
        self._call(
            f"persist pseudo-schema for {facet}",
            lambda: self._table.update_item(
                Key=_META_KEY,
                UpdateExpression="SET #schema.#facet = :payload",
                ExpressionAttributeNames={**names, "#facet": facet},
                ExpressionAttributeValues={":payload": to_dynamo_item(payload)},
            ),
        )

    def _query_all(self, query_kwargs: dict[str, Any], limit: int | None) -> list[Document]:
        records: list[Document] = []
        start_key: Mapping[str, Any] | None = None
        while True:
            page_kwargs = dict(query_kwargs)
            if start_key:
                page_kwargs["ExclusiveStartKey"] = start_key
            if limit is not None:
                page_kwargs["Limit"] = limit - len(records)
            response = self._table.query(**page_kwargs)
            records.extend(from_dynamo_item(item) for item in response.get("Items", []))
            start_key = response.get("LastEvaluatedKey")
            if not start_key or (limit is not None and len(records) >= limit):
                return records

    def _call(self, action: str, operation: Callable[[], _T]) -> _T:
        try:
            return operation()
        except (BotoCoreError, ClientError) as error:
            raise TargetStoreError(
                f"Failed to {action} in target table: {error}. Retry the step."
            ) from error
