"""Sync orchestration state machine.

This module sequences Prime, Read, Enqueue, Decide, and Introspect steps
over the continuation envelope, checkpointing after every step so an
interrupted run resumes at the step boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import hashlib
import json
import threading
import time
from typing import Callable, Literal, cast

from core.config import MigratorConfig
from core.errors import SyncCancelledError, SyncStateError
from core.logging_config import get_logger
from core.services import SyncServices
from core.types import ContinuationEnvelope
from ingest.checkpoint_store import SyncCheckpointState, SyncCheckpointStore
from ingest.collection_enumerator import enumerate_collections
from ingest.paginated_reader import read_page
from introspect.schema_inferencer import IntrospectionReport, SchemaInferencer

_LOGGER = get_logger(__name__)

SyncStage = Literal["prime", "read", "enqueue", "decide", "introspect", "done"]
ALLOWED_TRANSITIONS: dict[str, tuple[str, ...]] = {
    "prime": ("read",),
    "read": ("enqueue",),
    "enqueue": ("decide",),
    "decide": ("read", "introspect"),
    "introspect": ("done",),
    "done": (),
}


@dataclass(frozen=True)
class SyncRunReport:
    """Summary of one completed sync run.

    Attributes:
        read_steps: Read steps executed by this process.
        documents_read: Documents read by this process.
        messages_sent: Queue messages sent by this process.
        introspection: Schema inference outcome.
    """

    read_steps: int
    documents_read: int
    messages_sent: int
    introspection: IntrospectionReport | None


class SyncPipelineRunner:
    """Stateful runner for resumable sync execution.

    Exactly one step runs at a time; pagination is strictly sequential.
    """

    def __init__(
        self,
        config: MigratorConfig,
        services: SyncServices,
        resume: bool = False,
        sleeper: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config
        self._services = services
        self._sleeper = sleeper
        self._checkpoint = SyncCheckpointStore(config.data_root)
        self._state = self._checkpoint.prepare_run(build_run_signature(config), resume)
        if self._state.stage not in ALLOWED_TRANSITIONS:
            raise SyncStateError(
                f"Unknown sync stage '{self._state.stage}' in checkpoint. "
                "Retry sync without --resume."
            )
        self._read_steps = 0
        self._documents_read = 0
        self._messages_sent = 0
        self._introspection: IntrospectionReport | None = None

    @property
    def stage(self) -> SyncStage:
        return cast(SyncStage, self._state.stage)

    def run(self, stop_event: threading.Event | None = None) -> SyncRunReport:
        """Run steps until the Done stage.

        Args:
            stop_event: Optional cancellation flag checked between steps.

        Returns:
            Run summary.

        Raises:
            SyncCancelledError: If ``stop_event`` is set before completion.
                The checkpoint is kept so the run can be resumed.
        """
        while self.stage != "done":
            if stop_event is not None and stop_event.is_set():
                _LOGGER.warning("sync_cancelled", stage=self.stage)
                raise SyncCancelledError(
                    f"Sync cancelled before stage '{self.stage}'. "
                    "Run sync --resume to continue."
                )
            self.step()
        self._checkpoint.clear()
        report = SyncRunReport(
            read_steps=self._read_steps,
            documents_read=self._documents_read,
            messages_sent=self._messages_sent,
            introspection=self._introspection,
        )
        _log_sync_completion(self._config, report)
        return report

    def step(self) -> SyncStage:
        """Execute the current stage, persist the next one, and return it."""
        stage = self.stage
        if stage == "prime":
            next_state = self._prime()
        elif stage == "read":
            next_state = self._read()
        elif stage == "enqueue":
            next_state = self._enqueue()
        elif stage == "decide":
            next_state = self._decide()
        elif stage == "introspect":
            next_state = self._introspect()
        else:
            return stage
        if next_state.stage not in ALLOWED_TRANSITIONS[stage]:
            raise SyncStateError(f"Illegal sync transition {stage} -> {next_state.stage}.")
        self._checkpoint.save(next_state)
        self._state = next_state
        return self.stage

    def _prime(self) -> SyncCheckpointState:
        envelope = enumerate_collections(self._services.source, self._config.page_size)
        return replace(self._state, stage="read", envelope=envelope.to_payload())

    def _read(self) -> SyncCheckpointState:
        result = read_page(
            self._current_envelope(),
            self._services.source,
            self._services.governor,
            self._config.page_size,
        )
        self._read_steps += 1
        self._documents_read += len(result.documents)
        return replace(
            self._state,
            stage="enqueue",
            envelope=result.envelope.to_payload(),
            pending_documents=result.documents,
        )

    def _enqueue(self) -> SyncCheckpointState:
        if self._state.pending_documents:
            self._messages_sent += self._services.queue.send_batch(
                list(self._state.pending_documents)
            )
        return replace(self._state, stage="decide", pending_documents=())

    def _decide(self) -> SyncCheckpointState:
        envelope = self._current_envelope()
        if not envelope.should_continue:
            return replace(self._state, stage="introspect")
        if envelope.collection is None and not envelope.collections:
            _LOGGER.info(
                "waiting_for_queue_drain",
                poll_seconds=self._config.drain_poll_seconds,
            )
            self._sleeper(self._config.drain_poll_seconds)
        return replace(self._state, stage="read")

    def _introspect(self) -> SyncCheckpointState:
        inferencer = SchemaInferencer(self._services.table, self._config.sample_size)
        self._introspection = inferencer.run()
        return replace(self._state, stage="done", envelope=None)

    def _current_envelope(self) -> ContinuationEnvelope:
        if self._state.envelope is None:
            raise SyncStateError(
                "Sync checkpoint has no continuation envelope. Retry sync without --resume."
            )
        return ContinuationEnvelope.from_payload(self._state.envelope)


def sync_source(
    config: MigratorConfig,
    services: SyncServices | None = None,
    resume: bool = False,
    stop_event: threading.Event | None = None,
) -> SyncRunReport:
    """Run the full sync pipeline from the source store to the target table.

    Args:
        config: Runtime configuration.
        services: Optional prebuilt services; built from config when omitted.
        resume: Whether to continue from the last checkpoint.
        stop_event: Optional cancellation flag checked between steps.

    Returns:
        Run summary.

    Raises:
        MigratorConfigError: If required settings are missing.
        SyncStateError: If the checkpoint cannot be resumed.
        SyncCancelledError: If the run is cancelled.
        TargetStoreError: If the target table fails.
        QueueDeliveryError: If a page cannot be enqueued.
    """
    runner = SyncPipelineRunner(config, services or SyncServices.from_config(config), resume)
    return runner.run(stop_event)


def build_run_signature(config: MigratorConfig) -> str:
    """Build deterministic run signature for checkpoint matching."""
    signature_payload = {
        "table_name": config.table_name,
        "queue_url": config.queue_url,
        "firebase_project_id": config.firebase_project_id,
    }
    serialized_payload = json.dumps(signature_payload, sort_keys=True)
    return hashlib.sha256(serialized_payload.encode("utf-8")).hexdigest()


def _log_sync_completion(config: MigratorConfig, report: SyncRunReport) -> None:
    """Log pipeline completion with contextual metadata."""
    introspection = report.introspection
    _LOGGER.info(
        "sync_completed",
        table_name=config.table_name,
        queue_url=config.queue_url,
        read_steps=report.read_steps,
        documents_read=report.documents_read,
        messages_sent=report.messages_sent,
        written_facets=list(introspection.written_facets) if introspection else [],
        failed_facets=sorted(introspection.failed_facets) if introspection else [],
    )
