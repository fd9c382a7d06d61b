"""Core constants used across migrator modules.

This module centralizes table layout names and pipeline defaults.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_DATA_ROOT = Path(".migrator")
CHECKPOINT_DIR_NAME = "sync_checkpoint"
CHECKPOINT_STATE_FILE_NAME = "state.json"

DEFAULT_PAGE_SIZE = 5
DEFAULT_SAMPLE_SIZE = 100
DEFAULT_DRAIN_POLL_SECONDS = 2.0
DEFAULT_WORKER_WAIT_SECONDS = 10
SQS_MAX_MESSAGE_BYTES = 262_144
SQS_MAX_RECEIVE_MESSAGES = 10

PARTITION_KEY_NAME = "pk"
SORT_KEY_NAME = "sk"
FACET_ATTRIBUTE_NAME = "__facet"
SOURCE_ID_ATTRIBUTE_NAME = "__firestoreDocumentId"
SOURCE_TIMESTAMP_ATTRIBUTE_NAME = "__firestoreUpdatedAt"
BOOKKEEPING_FIELD_NAMES = frozenset(
    {
        PARTITION_KEY_NAME,
        SORT_KEY_NAME,
        FACET_ATTRIBUTE_NAME,
        SOURCE_ID_ATTRIBUTE_NAME,
        SOURCE_TIMESTAMP_ATTRIBUTE_NAME,
    }
)
SORT_KEY_CANDIDATE_FIELDS = ("updatedAt", "updated_at", "lastModifiedAt")

FACET_INDEX_NAME = "facet-sk-index"
SOURCE_ID_INDEX_NAME = "firestoreDocumentId-firestoreUpdatedAt-index"
META_PARTITION_KEY = "META"
META_SORT_KEY = "META"
META_FACETS_ATTRIBUTE = "facets"
META_FACET_ITEM_ATTRIBUTE = "facetItemAttributeName"
META_PSEUDO_SCHEMA_ATTRIBUTE = "pseudoSchema"

RECORD_KEY_FIELD_NAME = "key"
INPUT_TYPE_SUFFIX = "Input"

SERVICE_ACCOUNT_PARAMETER_TEMPLATE = "/FirebaseMigrator/{project_id}/FirebaseServiceAccount"
