"""Public SDK surface for the Firestore migrator.

This module provides a stable import path for library users.
It re-exports the client, config, and step handlers.
"""

from __future__ import annotations

from core.config import MigratorConfig
from core.services import SyncServices
from core.types import ContinuationEnvelope, MergeResult
from ingest.pipeline import SyncRunReport, sync_source
from ingest.step_handlers import introspect_handler, prime_handler, read_handler, write_handler
from introspect.schema_inferencer import IntrospectionReport
from introspect.schema_types import PseudoSchema, render_sdl
from store.migrator_sdk import MigratorClient

__all__ = [
    "ContinuationEnvelope",
    "IntrospectionReport",
    "MergeResult",
    "MigratorClient",
    "MigratorConfig",
    "PseudoSchema",
    "SyncRunReport",
    "SyncServices",
    "introspect_handler",
    "prime_handler",
    "read_handler",
    "render_sdl",
    "sync_source",
    "write_handler",
]
