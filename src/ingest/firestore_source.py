"""Firestore source store adapter.

This module lists collections and fetches offset pages from Firestore.
It normalizes Firestore natives into JSON-safe document fields.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Mapping, Protocol

import firebase_admin
from firebase_admin import credentials, firestore
from google.cloud.firestore_v1 import DocumentReference, GeoPoint

from core.constants import SERVICE_ACCOUNT_PARAMETER_TEMPLATE
from core.errors import MigratorConfigError, SourceReadError
from core.logging_config import get_logger
from core.types import SourceDocument
from core.values import to_json_safe

_LOGGER = get_logger(__name__)


class SourceStore(Protocol):
    """Source operations consumed by the sync pipeline."""

    def list_collections(self) -> list[str]: ...

    def fetch_page(self, collection: str, limit: int, offset: int) -> list[SourceDocument]: ...


class FirestoreSource:
    """Firestore-backed source store with lazily initialized client."""

    def __init__(
        self,
        project_id: str,
        credentials_path: Path | None = None,
        ssm_client: Any | None = None,
    ) -> None:
        self._project_id = project_id
        self._credentials_path = credentials_path
        self._ssm_client = ssm_client
        self._client: Any | None = None
        self._lock = threading.Lock()

    def list_collections(self) -> list[str]:
        """List top-level collection ids.

        Returns:
            Collection names in store order.

        Raises:
            SourceReadError: If Firestore cannot be reached.
            MigratorConfigError: If Firebase credentials are missing or invalid.
        """
        client = self._firestore()
        try:
            return [collection.id for collection in client.collections()]
        except Exception as error:
            raise SourceReadError(
                f"Failed to list Firestore collections for project {self._project_id}: {error}."
            ) from error

    def fetch_page(self, collection: str, limit: int, offset: int) -> list[SourceDocument]:
        """Fetch one offset page of documents from a collection.

        Args:
            collection: Collection name.
            limit: Maximum documents to return.
            offset: Documents to skip.

        Returns:
            Page of source documents.

        Raises:
            SourceReadError: If the page query fails.
            MigratorConfigError: If Firebase credentials are missing or invalid.
        """
        client = self._firestore()
        try:
            snapshots = client.collection(collection).limit(limit).offset(offset).get()
        except Exception as error:
            raise SourceReadError(
                f"Failed to read {collection} page [{offset}, {limit}]: {error}."
            ) from error
        return [
            SourceDocument(
                document_id=snapshot.id,
                fields=normalize_firestore_fields(snapshot.to_dict() or {}),
                update_time=snapshot.update_time,
            )
            for snapshot in snapshots
        ]

    def _firestore(self) -> Any:
        with self._lock:
            if self._client is None:
                service_account = self._load_service_account()
                try:
                    app = firebase_admin.initialize_app(
                        credentials.Certificate(service_account),
                        name=f"migrator-{self._project_id}",
                    )
                except ValueError as error:
                    raise MigratorConfigError(
                        f"Invalid Firebase service account for project {self._project_id}: "
                        f"{error}."
                    ) from error
                self._client = firestore.client(app=app)
                _LOGGER.info("firestore_client_initialized", project_id=self._project_id)
            return self._client

    def _load_service_account(self) -> dict[str, Any]:
        if self._credentials_path is not None:
            return _read_service_account_file(self._credentials_path)
        if self._ssm_client is None:
            raise MigratorConfigError(
                "Firebase credentials are not configured. Set MIGRATOR_FIREBASE_CREDENTIALS "
                "or store the service account in SSM."
            )
        parameter_name = SERVICE_ACCOUNT_PARAMETER_TEMPLATE.format(project_id=self._project_id)
        try:
            response = self._ssm_client.get_parameter(Name=parameter_name, WithDecryption=True)
            return json.loads(response["Parameter"]["Value"])
        except Exception as error:
            raise MigratorConfigError(
                f"Failed to load Firebase service account from SSM parameter {parameter_name}: "
                f"{error}."
            ) from error


def normalize_firestore_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Normalize one document's fields into JSON-safe values.

    Args:
        fields: Raw Firestore document data.

    Returns:
        JSON-safe field mapping.
    """
    return {str(name): _normalize_value(value) for name, value in fields.items()}


def _normalize_value(value: Any) -> Any:
    if isinstance(value, GeoPoint):
        return {"latitude": value.latitude, "longitude": value.longitude}
    if isinstance(value, DocumentReference):
        return value.path
    if isinstance(value, Mapping):
        return {str(name): _normalize_value(item) for name, item in value.items()}
    if isinstance(value, list):
        return [_normalize_value(item) for item in value]
    return to_json_safe(value)


def _read_service_account_file(credentials_path: Path) -> dict[str, Any]:
    try:
        return json.loads(credentials_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as error:
        raise MigratorConfigError(
            f"Failed to read Firebase service account at {credentials_path}: {error}."
        ) from error
