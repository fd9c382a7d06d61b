"""Python SDK for migration operations.

This module exposes high-level APIs for running a sync, draining the
pending-write queue, and reading inferred schemas back from the meta
record.
"""

from __future__ import annotations

import threading

from core.config import MigratorConfig
from core.errors import MigratorError
from core.logging_config import configure_logging
from core.services import SyncServices
from ingest.pipeline import SyncRunReport, sync_source
from introspect.schema_inferencer import IntrospectionReport, SchemaInferencer
from introspect.schema_types import PseudoSchema, render_sdl
from store.merge_writer import MergeWriter, WriteWorker


class MigratorClient:
    """Primary SDK entry point for sync workflows."""

    def __init__(
        self,
        config: MigratorConfig | None = None,
        services: SyncServices | None = None,
    ) -> None:
        """Create SDK client.

        Args:
            config: Optional runtime configuration.
            services: Optional prebuilt services, mainly for tests.
        """
        configure_logging()
        self._config = config or MigratorConfig.from_env()
        self._services = services
        self._lock = threading.Lock()

    @property
    def config(self) -> MigratorConfig:
        return self._config

    def services(self) -> SyncServices:
        """Return shared services, building them on first use."""
        with self._lock:
            if self._services is None:
                self._services = SyncServices.from_config(self._config)
            return self._services

    def sync(
        self,
        resume: bool = False,
        stop_event: threading.Event | None = None,
    ) -> SyncRunReport:
        """Run the sync pipeline.

        Args:
            resume: Whether to continue from the last checkpoint.
            stop_event: Optional cancellation flag.

        Returns:
            Run summary.
        """
        return sync_source(self._config, self.services(), resume, stop_event)

    def list_collections(self) -> list[str]:
        """List source collections."""
        return self.services().source.list_collections()

    def drain_queue(
        self,
        max_batches: int | None = None,
        stop_event: threading.Event | None = None,
    ) -> int:
        """Merge pending queue messages into the target table.

        Args:
            max_batches: Optional cap on processed messages.
            stop_event: Optional cancellation flag.

        Returns:
            Number of messages merged.
        """
        services = self.services()
        worker = WriteWorker(services.queue, MergeWriter(services.table))
        return worker.drain(max_batches=max_batches, stop_event=stop_event)

    def introspect(self) -> IntrospectionReport:
        """Infer and persist pseudo-schemas for every registered facet."""
        return SchemaInferencer(self.services().table, self._config.sample_size).run()

    def schemas(self) -> dict[str, PseudoSchema]:
        """Load persisted pseudo-schemas keyed by facet.

        Raises:
            SyncStateError: If a persisted entry is malformed.
        """
        meta = self.services().table.read_meta()
        return {
            facet: PseudoSchema.from_payload(payload)
            for facet, payload in sorted(meta.pseudo_schema.items())
        }

    def render_schema(self, facet: str | None = None) -> str:
        """Render persisted pseudo-schemas as GraphQL declarations.

        Args:
            facet: Optional facet to render; all facets when omitted.

        Returns:
            SDL text.

        Raises:
            MigratorError: If the requested facet has no schema.
        """
        schemas = self.schemas()
        if facet is not None:
            if facet not in schemas:
                raise MigratorError(
                    f"No inferred schema for facet '{facet}'. Run introspect first."
                )
            schemas = {facet: schemas[facet]}
        return "\n".join(render_sdl(schema) for schema in schemas.values())
