"""Tagged-variant value model for document fields.

This module represents arbitrary field values as an explicit closed set
of variants so schema inference is written as pure functions over them.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
import re
from typing import Any, Mapping, Union

from core.errors import SchemaInferenceError

INTEGER_TEXT_PATTERN = re.compile(r"^-?[0-9]+$")
DATE_TIME_TEXT_PATTERN = re.compile(
    r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:?\d{2})?$"
)


@dataclass(frozen=True)
class NullValue:
    """Explicit null or missing value."""


@dataclass(frozen=True)
class BoolValue:
    value: bool


@dataclass(frozen=True)
class IntValue:
    value: int


@dataclass(frozen=True)
class FloatValue:
    value: float


@dataclass(frozen=True)
class StringValue:
    value: str


@dataclass(frozen=True)
class DateTimeValue:
    value: datetime


@dataclass(frozen=True)
class ListValue:
    items: tuple["Value", ...]


@dataclass(frozen=True)
class MapValue:
    fields: Mapping[str, "Value"]


Value = Union[
    NullValue,
    BoolValue,
    IntValue,
    FloatValue,
    StringValue,
    DateTimeValue,
    ListValue,
    MapValue,
]
SCALAR_VALUE_TYPES = (BoolValue, IntValue, FloatValue, StringValue, DateTimeValue)


def value_from_native(native: Any) -> Value:
    """Convert a JSON, Firestore, or DynamoDB native value into a variant.

    Args:
        native: Python value decoded from a store or message body.

    Returns:
        Tagged variant value.

    Raises:
        SchemaInferenceError: If the native type has no variant.
    """
    if native is None:
        return NullValue()
    if isinstance(native, bool):
        return BoolValue(native)
    if isinstance(native, (int, Decimal)):
        return number_from_text(str(native))
    if isinstance(native, float):
        return FloatValue(native)
    if isinstance(native, str):
        return StringValue(native)
    if isinstance(native, datetime):
        return DateTimeValue(native)
    if isinstance(native, Mapping):
        return MapValue({str(key): value_from_native(item) for key, item in native.items()})
    if isinstance(native, (set, frozenset)):
        return ListValue(tuple(value_from_native(item) for item in sorted(native, key=str)))
    if isinstance(native, (list, tuple)):
        return ListValue(tuple(value_from_native(item) for item in native))
    raise SchemaInferenceError(f"Unsupported field value of type {type(native).__name__}.")


def number_from_text(text: str) -> IntValue | FloatValue:
    """Classify numeric text as integer or floating point.

    Args:
        text: Canonical numeric text, e.g. ``"42"`` or ``"42.5"``.

    Returns:
        ``IntValue`` for optionally signed all-digit text, else ``FloatValue``.
    """
    if INTEGER_TEXT_PATTERN.match(text):
        return IntValue(int(text))
    return FloatValue(float(text))


def is_date_time_text(text: str) -> bool:
    """Return whether text looks like an ISO-8601 date-time."""
    return bool(DATE_TIME_TEXT_PATTERN.match(text))


def is_null(value: Value) -> bool:
    return isinstance(value, NullValue)


def is_scalar(value: Value) -> bool:
    return isinstance(value, SCALAR_VALUE_TYPES)


def to_json_safe(native: Any) -> Any:
    """Normalize store natives into JSON-serializable values.

    Datetimes become UTC ISO strings with millisecond precision, bytes
    become base64 text, and sets become sorted lists.

    Args:
        native: Native value from a document.

    Returns:
        JSON-safe value.
    """
    if native is None or isinstance(native, (bool, int, float, str)):
        return native
    if isinstance(native, Decimal):
        return number_from_text(str(native)).value
    if isinstance(native, datetime):
        return format_timestamp(native)
    if isinstance(native, (bytes, bytearray)):
        return base64.b64encode(bytes(native)).decode("ascii")
    if isinstance(native, Mapping):
        return {str(key): to_json_safe(item) for key, item in native.items()}
    if isinstance(native, (set, frozenset)):
        return [to_json_safe(item) for item in sorted(native, key=str)]
    if isinstance(native, (list, tuple)):
        return [to_json_safe(item) for item in native]
    return str(native)


def format_timestamp(moment: datetime) -> str:
    """Format a datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    utc_moment = moment.astimezone(timezone.utc)
    return utc_moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
