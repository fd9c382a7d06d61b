"""Process-wide service registry.

This module builds the AWS clients, target table, queue, and source
store once from config and hands them to the steps that need them.
"""

from __future__ import annotations

from dataclasses import dataclass
import threading
from typing import Callable

from core.aws_session import create_aws_session
from core.config import MigratorConfig
from core.logging_config import configure_logging, get_logger
from ingest.firestore_source import FirestoreSource, SourceStore
from store.target_table import DynamoTargetTable, TargetTable
from transport.backpressure import BackpressureGovernor
from transport.write_queue import SqsWriteQueue, WriteQueue

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class SyncServices:
    """Collaborators shared by the orchestrator steps.

    Attributes:
        source: Source document store.
        table: Target table.
        queue: Pending-write queue.
        governor: Queue-depth gate bound to ``queue``.
    """

    source: SourceStore
    table: TargetTable
    queue: WriteQueue
    governor: BackpressureGovernor

    @classmethod
    def from_config(cls, config: MigratorConfig) -> "SyncServices":
        """Build all services from runtime config.

        Args:
            config: Runtime configuration.

        Returns:
            Service registry.

        Raises:
            MigratorConfigError: If table, queue, or project settings are missing.
        """
        table_name = config.require("table_name")
        queue_url = config.require("queue_url")
        project_id = config.require("firebase_project_id")
        session = create_aws_session(config)
        queue = SqsWriteQueue(session.client("sqs"), queue_url)
        services = cls(
            source=FirestoreSource(
                project_id,
                credentials_path=config.firebase_credentials_path,
                ssm_client=session.client("ssm"),
            ),
            table=DynamoTargetTable(session.resource("dynamodb").Table(table_name)),
            queue=queue,
            governor=BackpressureGovernor(queue),
        )
        _LOGGER.info(
            "services_initialized",
            table_name=table_name,
            queue_url=queue_url,
            firebase_project_id=project_id,
        )
        return services


class ServiceRegistry:
    """Lazily builds one ``SyncServices`` instance under a lock."""

    def __init__(
        self,
        config_loader: Callable[[], MigratorConfig] = MigratorConfig.from_env,
    ) -> None:
        self._config_loader = config_loader
        self._services: SyncServices | None = None
        self._config: MigratorConfig | None = None
        self._lock = threading.Lock()

    def config(self) -> MigratorConfig:
        """Return the loaded runtime config, configuring logging first."""
        configure_logging()
        with self._lock:
            if self._config is None:
                self._config = self._config_loader()
            return self._config

    def services(self) -> SyncServices:
        """Return the shared services, building them on first use."""
        config = self.config()
        with self._lock:
            if self._services is None:
                self._services = SyncServices.from_config(config)
            return self._services

    def install(self, services: SyncServices, config: MigratorConfig | None = None) -> None:
        """Replace the registry contents with prebuilt services."""
        with self._lock:
            self._services = services
            if config is not None:
                self._config = config
