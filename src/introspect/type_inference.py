"""Pure type inference over tagged field values.

This module derives field types from sampled values: scalars map onto
the GraphQL scalar set, homogeneous scalar lists become list types, and
nested maps recurse into named composites.
"""

from __future__ import annotations

from typing import Mapping, Sequence

from core.constants import BOOKKEEPING_FIELD_NAMES, RECORD_KEY_FIELD_NAME
from core.errors import SchemaInferenceError
from core.logging_config import get_logger
from core.types import Document
from core.values import (
    BoolValue,
    DateTimeValue,
    FloatValue,
    IntValue,
    ListValue,
    MapValue,
    StringValue,
    Value,
    is_date_time_text,
    is_null,
    value_from_native,
)
from introspect.naming import composite_type_name
from introspect.schema_types import (
    BOOLEAN_TYPE,
    DATE_TIME_TYPE,
    FLOAT_TYPE,
    ID_TYPE,
    INT_TYPE,
    JSON_TYPE,
    STRING_TYPE,
    CompositeSpec,
    FieldSpec,
    PseudoSchema,
    build_pseudo_schema,
)

_LOGGER = get_logger(__name__)

Sample = Mapping[str, Value]


def infer_pseudo_schema(
    facet: str,
    records: Sequence[Document],
    singularize: bool = True,
) -> PseudoSchema:
    """Infer the pseudo-schema of one facet from sampled records.

    Args:
        facet: Facet tag of the records.
        records: Sampled target records, oldest first.
        singularize: Whether type names use the singular facet name.

    Returns:
        Root type pair plus nested composite pairs.

    Raises:
        SchemaInferenceError: If a field has no supported type or two
            composites of the facet share a type name.
    """
    samples = [_record_sample(facet, record) for record in records]
    root = infer_composite(facet, (), samples, BOOKKEEPING_FIELD_NAMES, singularize)
    key_field = (RECORD_KEY_FIELD_NAME, FieldSpec(type_name=ID_TYPE, is_required=True))
    fields = [item for item in root.fields if item[0] != RECORD_KEY_FIELD_NAME]
    root = CompositeSpec(name=root.name, fields=tuple(sorted([*fields, key_field])))
    schema = build_pseudo_schema(root)
    names = schema.type_names()
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise SchemaInferenceError(
            f"Facet {facet} field paths produce duplicate type names: "
            f"{', '.join(duplicates)}.",
            facet=facet,
        )
    return schema


def infer_composite(
    facet: str,
    path: tuple[str, ...],
    samples: Sequence[Sample],
    excluded: frozenset[str] = frozenset(),
    singularize: bool = True,
) -> CompositeSpec:
    """Infer a composite type from the union of sampled maps.

    Args:
        facet: Facet tag, used for naming and error scope.
        path: Field path of the composite; empty for the facet root.
        samples: Sampled maps, oldest first.
        excluded: Field names left out of the type.
        singularize: Whether the name uses the singular facet name.

    Returns:
        Composite with fields in name order.
    """
    prototype_names = sorted({name for sample in samples for name in sample} - excluded)
    required = required_fields(samples, excluded)
    fields = tuple(
        (
            name,
            infer_field(
                facet,
                (*path, name),
                [sample[name] for sample in samples if name in sample],
                name in required,
                singularize,
            ),
        )
        for name in prototype_names
    )
    return CompositeSpec(name=composite_type_name(facet, path, singularize), fields=fields)


def required_fields(
    samples: Sequence[Sample],
    excluded: frozenset[str] = frozenset(),
) -> set[str]:
    """Return field names present and non-null in every sample."""
    if not samples:
        return set()
    present = [
        {name for name, value in sample.items() if not is_null(value)} for sample in samples
    ]
    return set.intersection(*present) - excluded


def infer_field(
    facet: str,
    path: tuple[str, ...],
    values: Sequence[Value],
    required: bool,
    singularize: bool = True,
) -> FieldSpec:
    """Infer a field type from its own sampled values.

    The latest non-null sample decides between map, list and scalar;
    scalar samples must agree up to Int/Float and String/AWSDateTime
    widening.

    Args:
        facet: Facet tag.
        path: Field path inside the facet.
        values: Sampled values of the field, oldest first.
        required: Whether every sample carries a non-null value.
        singularize: Whether composite names use the singular facet name.

    Returns:
        Inferred field type.

    Raises:
        SchemaInferenceError: If the value shape is unsupported.
    """
    present = [value for value in values if not is_null(value)]
    if not present:
        _LOGGER.warning("field_type_defaulted", facet=facet, field_path=".".join(path))
        return FieldSpec(type_name=STRING_TYPE, is_required=False)
    latest = present[-1]
    if isinstance(latest, MapValue):
        maps = [value.fields for value in present if isinstance(value, MapValue)]
        if not any(maps):
            return FieldSpec(type_name=JSON_TYPE, is_required=required)
        composite = infer_composite(facet, path, maps, singularize=singularize)
        return FieldSpec(type_name=composite.name, is_required=required, composite=composite)
    if isinstance(latest, ListValue):
        lists = [value for value in present if isinstance(value, ListValue)]
        return infer_list_field(facet, path, lists, required)
    scalar_types = {scalar_type_name(value, facet, path) for value in present}
    return FieldSpec(
        type_name=_unify_scalar_types(
            scalar_type_name(latest, facet, path), scalar_types, facet, path, "field"
        ),
        is_required=required,
    )


def infer_list_field(
    facet: str,
    path: tuple[str, ...],
    lists: Sequence[ListValue],
    required: bool,
) -> FieldSpec:
    """Infer the element type of a homogeneous scalar list field.

    Args:
        facet: Facet tag.
        path: Field path inside the facet.
        lists: Sampled list values, oldest first.
        required: Whether the list itself is required.

    Returns:
        List field type; elements are required unless any sampled
        element is null.

    Raises:
        SchemaInferenceError: If elements are not compatible scalars.
    """
    elements = [item for value in reversed(lists) for item in value.items]
    non_null = [item for item in elements if not is_null(item)]
    elements_required = len(non_null) == len(elements)
    if not non_null:
        _LOGGER.warning("list_element_type_defaulted", facet=facet, field_path=".".join(path))
        element_type = STRING_TYPE
    else:
        element_types = {scalar_type_name(item, facet, path) for item in non_null}
        element_type = _unify_scalar_types(
            scalar_type_name(non_null[0], facet, path), element_types, facet, path, "list"
        )
    return FieldSpec(
        type_name=element_type,
        is_list=True,
        is_required=elements_required,
        is_required_list=required,
    )


def scalar_type_name(value: Value, facet: str, path: tuple[str, ...]) -> str:
    """Map a scalar value onto its type name.

    Raises:
        SchemaInferenceError: If the value is not a scalar.
    """
    if isinstance(value, BoolValue):
        return BOOLEAN_TYPE
    if isinstance(value, StringValue):
        return DATE_TIME_TYPE if is_date_time_text(value.value) else STRING_TYPE
    if isinstance(value, DateTimeValue):
        return DATE_TIME_TYPE
    if isinstance(value, IntValue):
        return INT_TYPE
    if isinstance(value, FloatValue):
        return FLOAT_TYPE
    field_path = ".".join(path)
    raise SchemaInferenceError(
        f"Facet {facet} field {field_path} has unsupported shape {type(value).__name__}.",
        facet=facet,
        field_path=field_path,
    )


def _unify_scalar_types(
    first_type: str,
    scalar_types: set[str],
    facet: str,
    path: tuple[str, ...],
    shape: str,
) -> str:
    if len(scalar_types) == 1:
        return first_type
    if scalar_types == {INT_TYPE, FLOAT_TYPE}:
        return FLOAT_TYPE
    if scalar_types == {STRING_TYPE, DATE_TIME_TYPE}:
        return STRING_TYPE
    field_path = ".".join(path)
    raise SchemaInferenceError(
        f"Facet {facet} field {field_path} is a heterogeneous {shape} of "
        f"{', '.join(sorted(scalar_types))}.",
        facet=facet,
        field_path=field_path,
    )


def _record_sample(facet: str, record: Document) -> Sample:
    try:
        return {str(name): value_from_native(value) for name, value in record.items()}
    except SchemaInferenceError as error:
        raise SchemaInferenceError(str(error), facet=facet) from error
