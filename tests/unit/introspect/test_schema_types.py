"""Unit tests for pseudo-schema serialization and rendering."""

from __future__ import annotations

import pytest

from core.errors import SyncStateError
from introspect.naming import composite_type_name, facet_type_name
from introspect.schema_types import PseudoSchema, render_sdl
from introspect.type_inference import infer_pseudo_schema


def _schema() -> PseudoSchema:
    return infer_pseudo_schema(
        "orders",
        [{"total": 5, "tags": ["a"], "address": {"city": "Berlin"}}],
    )


def test_payload_matches_meta_record_shape() -> None:
    """Payload exposes root types and auxiliary pairs."""
    payload = _schema().to_payload()

    assert payload["rootReadType"]["name"] == "Order"
    assert payload["rootInputType"]["kind"] == "input"
    assert [[pair[0]["name"], pair[1]["name"]] for pair in payload["auxiliaryTypePairs"]] == [
        ["OrderAddress", "OrderAddressInput"]
    ]
    assert payload["rootReadType"]["definition"]["tags"] == {
        "type": "String",
        "kind": "scalar",
        "isList": True,
        "isRequired": True,
        "isRequiredList": True,
    }


def test_payload_is_readable_back() -> None:
    """Persisted payloads load back into the same schema."""
    schema = _schema()

    assert PseudoSchema.from_payload(schema.to_payload()) == schema


def test_from_payload_rejects_malformed_entries() -> None:
    """Broken meta entries raise a sync state error."""
    with pytest.raises(SyncStateError):
        PseudoSchema.from_payload({"rootReadType": {"name": "Order"}})


def test_render_sdl_emits_types_and_inputs() -> None:
    """SDL output declares read types and input types."""
    sdl = render_sdl(_schema())

    assert "type Order {" in sdl and "input OrderInput {" in sdl
    assert "  key: ID!" in sdl and "  tags: [String!]!" in sdl
    assert "  address: OrderAddressInput" in sdl


def test_type_names_are_singular_and_capitalized() -> None:
    """Facet names are singularized before capitalization."""
    assert (facet_type_name("customers"), facet_type_name("customers", singularize=False)) == (
        "Customer",
        "Customers",
    )
    assert composite_type_name("orders", ("shipping", "address")) == "OrderShippingAddress"
