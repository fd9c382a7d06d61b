"""Migrator exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each pipeline stage raises a specific error type for triage.
"""

from __future__ import annotations


class MigratorError(Exception):
    """Base exception for all migrator failures."""


class MigratorConfigError(MigratorError):
    """Raised for invalid runtime configuration."""


class SourceReadError(MigratorError):
    """Raised when a source page or collection listing cannot be read."""


class QueueDeliveryError(MigratorError):
    """Raised when a page cannot be handed to the pending-write queue."""


class TargetStoreError(MigratorError):
    """Raised for target table read and write failures."""


class SyncStateError(MigratorError):
    """Raised for invalid continuation or checkpoint state."""


class SyncCancelledError(MigratorError):
    """Raised when a sync run is cancelled between steps."""


class SchemaInferenceError(MigratorError):
    """Raised when a facet's records cannot be described by a pseudo-schema."""

    def __init__(self, message: str, facet: str | None = None, field_path: str | None = None):
        super().__init__(message)
        self.facet = facet
        self.field_path = field_path
