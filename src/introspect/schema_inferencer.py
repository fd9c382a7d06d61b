"""Facet schema inference and persistence.

This module runs once per sync after the read/write loop: it samples
each registered facet, infers its pseudo-schema, and replaces that
facet's entry in the meta record. Inference failures are scoped to the
facet; the previous entry of a failed facet is left in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from core.constants import DEFAULT_SAMPLE_SIZE
from core.errors import SchemaInferenceError
from core.logging_config import get_logger
from introspect.schema_types import PseudoSchema
from introspect.type_inference import infer_pseudo_schema
from store.target_table import TargetTable

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class IntrospectionReport:
    """Outcome of one schema inference run.

    Attributes:
        written_facets: Facets whose pseudo-schema entry was replaced.
        failed_facets: Facet to failure message for skipped facets.
    """

    written_facets: tuple[str, ...]
    failed_facets: Mapping[str, str] = field(default_factory=dict)


class SchemaInferencer:
    """Samples facets from the target table and persists pseudo-schemas."""

    def __init__(self, table: TargetTable, sample_size: int = DEFAULT_SAMPLE_SIZE) -> None:
        self._table = table
        self._sample_size = sample_size

    def run(self) -> IntrospectionReport:
        """Infer and persist a pseudo-schema for every registered facet.

        Returns:
            Written and failed facets.

        Raises:
            TargetStoreError: If the table cannot be read or written.
        """
        meta = self._table.read_meta()
        claimed_names: dict[str, str] = {}
        written: list[str] = []
        failed: dict[str, str] = {}
        for facet in sorted(meta.facets):
            try:
                schema = self.infer_facet(facet, claimed_names)
            except SchemaInferenceError as error:
                failed[facet] = str(error)
                _LOGGER.error(
                    "schema_inference_failed",
                    facet=facet,
                    field_path=error.field_path,
                    error=str(error),
                    stale_entry_kept=facet in meta.pseudo_schema,
                )
                continue
            self._table.put_pseudo_schema(facet, schema.to_payload())
            claimed_names.update({name: facet for name in schema.type_names()})
            written.append(facet)
            _LOGGER.info(
                "schema_inferred",
                facet=facet,
                root_type=schema.root.read.name,
                auxiliary_count=len(schema.auxiliary),
            )
        return IntrospectionReport(written_facets=tuple(written), failed_facets=failed)

    def infer_facet(
        self,
        facet: str,
        claimed_names: Mapping[str, str] | None = None,
    ) -> PseudoSchema:
        """Infer one facet's pseudo-schema from a bounded record sample.

        Type names already claimed by another facet make the facet fall
        back to its unsingularized name.

        Args:
            facet: Facet tag.
            claimed_names: Type name to owning facet from earlier facets.

        Returns:
            Inferred pseudo-schema.

        Raises:
            SchemaInferenceError: If no collision-free schema can be built
                or a field shape is unsupported.
        """
        records = self._table.query_facet(facet, self._sample_size)
        claimed = claimed_names or {}
        schema = infer_pseudo_schema(facet, records)
        if not _collisions(schema, claimed):
            return schema
        schema = infer_pseudo_schema(facet, records, singularize=False)
        collisions = _collisions(schema, claimed)
        if collisions:
            raise SchemaInferenceError(
                f"Facet {facet} type names collide with other facets: {', '.join(collisions)}.",
                facet=facet,
            )
        _LOGGER.warning("facet_type_name_unsingularized", facet=facet)
        return schema


def _collisions(schema: PseudoSchema, claimed: Mapping[str, str]) -> list[str]:
    return sorted(name for name in schema.type_names() if name in claimed)
