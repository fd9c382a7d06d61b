"""DynamoDB item conversion for target records.

This module converts JSON-safe documents to DynamoDB-compatible items
and back. DynamoDB numbers round-trip through ``Decimal``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping

from core.types import Document
from core.values import number_from_text


def to_dynamo_item(record: Mapping[str, Any]) -> Document:
    """Serialize a document into a DynamoDB item payload.

    Args:
        record: JSON-safe document.

    Returns:
        Item with floats replaced by ``Decimal``.
    """
    return {str(name): _to_dynamo_value(value) for name, value in record.items()}


def from_dynamo_item(item: Mapping[str, Any]) -> Document:
    """Deserialize a DynamoDB item into a plain document.

    Args:
        item: Item returned by the boto3 table resource.

    Returns:
        Document with ``Decimal`` values replaced by ``int`` or ``float``.
    """
    return {str(name): _from_dynamo_value(value) for name, value in item.items()}


def _to_dynamo_value(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    if isinstance(value, Mapping):
        return {str(name): _to_dynamo_value(item) for name, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_dynamo_value(item) for item in value]
    return value


def _from_dynamo_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return number_from_text(str(value)).value
    if isinstance(value, Mapping):
        return {str(name): _from_dynamo_value(item) for name, item in value.items()}
    if isinstance(value, list):
        return [_from_dynamo_value(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return {_from_dynamo_value(item) for item in value}
    return value
