"""Pseudo-schema type models and serialization.

This module defines the inferred field and composite type models, the
paired read/input type definitions built from them, and the JSON shape
persisted in the meta record.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Any, Literal, Mapping

from core.constants import INPUT_TYPE_SUFFIX
from core.errors import SyncStateError

TypeKind = Literal["object", "input"]
FieldKind = Literal["scalar", "object", "input"]

ID_TYPE = "ID"
STRING_TYPE = "String"
INT_TYPE = "Int"
FLOAT_TYPE = "Float"
BOOLEAN_TYPE = "Boolean"
DATE_TIME_TYPE = "AWSDateTime"
JSON_TYPE = "AWSJSON"


@dataclass(frozen=True)
class FieldSpec:
    """Inferred type of one field.

    Attributes:
        type_name: Scalar type name, or composite name for nested maps.
        is_list: Whether the field holds a list.
        is_required: Field presence for scalars, element presence for lists.
        is_required_list: Whether the list itself is required.
        composite: Nested composite for map-valued fields.
    """

    type_name: str
    is_list: bool = False
    is_required: bool = False
    is_required_list: bool = False
    composite: "CompositeSpec | None" = None


@dataclass(frozen=True)
class CompositeSpec:
    """Inferred composite type with its fields in name order."""

    name: str
    fields: tuple[tuple[str, FieldSpec], ...]


@dataclass(frozen=True)
class FieldDefinition:
    """Field of a read or input type definition."""

    type_name: str
    kind: FieldKind
    is_list: bool = False
    is_required: bool = False
    is_required_list: bool = False


@dataclass(frozen=True)
class TypeDefinition:
    """Named read or input type definition."""

    name: str
    kind: TypeKind
    fields: tuple[tuple[str, FieldDefinition], ...]


@dataclass(frozen=True)
class TypePair:
    """Read type and its mutable input counterpart."""

    read: TypeDefinition
    input: TypeDefinition


@dataclass(frozen=True)
class PseudoSchema:
    """Inferred schema of one facet.

    Attributes:
        root: Root read and input types.
        auxiliary: Nested composite type pairs in breadth-first order.
    """

    root: TypePair
    auxiliary: tuple[TypePair, ...] = ()

    def type_names(self) -> tuple[str, ...]:
        """Return every read and input type name in this schema."""
        pairs = (self.root, *self.auxiliary)
        return tuple(name for pair in pairs for name in (pair.read.name, pair.input.name))

    def to_payload(self) -> dict[str, Any]:
        """Serialize into the meta record's pseudo-schema entry shape."""
        return {
            "rootReadType": _type_to_payload(self.root.read),
            "rootInputType": _type_to_payload(self.root.input),
            "auxiliaryTypePairs": [
                [_type_to_payload(pair.read), _type_to_payload(pair.input)]
                for pair in self.auxiliary
            ],
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "PseudoSchema":
        """Deserialize a meta record pseudo-schema entry.

        Raises:
            SyncStateError: If the payload shape is invalid.
        """
        try:
            root = TypePair(
                read=_type_from_payload(payload["rootReadType"]),
                input=_type_from_payload(payload["rootInputType"]),
            )
            auxiliary = tuple(
                TypePair(read=_type_from_payload(read), input=_type_from_payload(input_type))
                for read, input_type in payload.get("auxiliaryTypePairs", [])
            )
        except (KeyError, TypeError, ValueError) as error:
            raise SyncStateError(f"Invalid pseudo-schema payload: {error}.") from error
        return cls(root=root, auxiliary=auxiliary)


def build_type_pair(composite: CompositeSpec) -> TypePair:
    """Build the read type and the all-optional input type of a composite.

    Args:
        composite: Inferred composite.

    Returns:
        Paired read and input definitions.
    """
    read_fields: list[tuple[str, FieldDefinition]] = []
    input_fields: list[tuple[str, FieldDefinition]] = []
    for name, field_spec in composite.fields:
        if field_spec.composite is not None:
            read_name, read_kind = field_spec.composite.name, "object"
            input_name, input_kind = field_spec.composite.name + INPUT_TYPE_SUFFIX, "input"
        else:
            read_name, read_kind = field_spec.type_name, "scalar"
            input_name, input_kind = field_spec.type_name, "scalar"
        read_fields.append(
            (
                name,
                FieldDefinition(
                    type_name=read_name,
                    kind=read_kind,
                    is_list=field_spec.is_list,
                    is_required=field_spec.is_required,
                    is_required_list=field_spec.is_required_list,
                ),
            )
        )
        input_fields.append(
            (
                name,
                FieldDefinition(type_name=input_name, kind=input_kind, is_list=field_spec.is_list),
            )
        )
    return TypePair(
        read=TypeDefinition(name=composite.name, kind="object", fields=tuple(read_fields)),
        input=TypeDefinition(
            name=composite.name + INPUT_TYPE_SUFFIX, kind="input", fields=tuple(input_fields)
        ),
    )


def build_pseudo_schema(root: CompositeSpec) -> PseudoSchema:
    """Pair the root composite and every nested composite reachable from it."""
    auxiliary: list[TypePair] = []
    pending = deque(_nested_composites(root))
    while pending:
        composite = pending.popleft()
        auxiliary.append(build_type_pair(composite))
        pending.extend(_nested_composites(composite))
    return PseudoSchema(root=build_type_pair(root), auxiliary=tuple(auxiliary))


def render_sdl(schema: PseudoSchema) -> str:
    """Render a pseudo-schema as GraphQL type and input declarations."""
    blocks = [
        _render_type(definition)
        for pair in (schema.root, *schema.auxiliary)
        for definition in (pair.read, pair.input)
    ]
    return "\n\n".join(blocks) + "\n"


def _nested_composites(composite: CompositeSpec) -> list[CompositeSpec]:
    return [field.composite for _, field in composite.fields if field.composite is not None]


def _render_type(definition: TypeDefinition) -> str:
    keyword = "type" if definition.kind == "object" else "input"
    lines = [f"{keyword} {definition.name} {{"]
    for name, field in definition.fields:
        lines.append(f"  {name}: {_render_field_type(field)}")
    lines.append("}")
    return "\n".join(lines)


def _render_field_type(field: FieldDefinition) -> str:
    rendered = field.type_name + ("!" if field.is_required else "")
    if field.is_list:
        rendered = f"[{rendered}]" + ("!" if field.is_required_list else "")
    return rendered


def _type_to_payload(definition: TypeDefinition) -> dict[str, Any]:
    return {
        "name": definition.name,
        "kind": definition.kind,
        "definition": {
            name: {
                "type": field.type_name,
                "kind": field.kind,
                "isList": field.is_list,
                "isRequired": field.is_required,
                "isRequiredList": field.is_required_list,
            }
            for name, field in definition.fields
        },
    }


def _type_from_payload(payload: Mapping[str, Any]) -> TypeDefinition:
    kind = str(payload["kind"])
    if kind not in ("object", "input"):
        raise ValueError(f"unknown type kind {kind!r}")
    fields = tuple(
        (
            str(name),
            FieldDefinition(
                type_name=str(field["type"]),
                kind=str(field["kind"]),  # type: ignore[arg-type]
                is_list=bool(field.get("isList", False)),
                is_required=bool(field.get("isRequired", False)),
                is_required_list=bool(field.get("isRequiredList", False)),
            ),
        )
        for name, field in sorted(payload["definition"].items())
    )
    return TypeDefinition(
        name=str(payload["name"]),
        kind=kind,  # type: ignore[arg-type]
        fields=fields,
    )
