"""Unit tests for the sync state machine."""

from __future__ import annotations

from dataclasses import replace
import threading

import pytest

from core.errors import QueueDeliveryError, SyncCancelledError
from core.services import SyncServices
from ingest.pipeline import SyncPipelineRunner, build_run_signature, sync_source
from tests.sync_fakes import FakeWriteQueue, InMemorySource, InMemoryTargetTable, source_document
from transport.backpressure import BackpressureGovernor


def _services(source: InMemorySource, queue: FakeWriteQueue | None = None) -> SyncServices:
    queue = queue or FakeWriteQueue()
    return SyncServices(
        source=source,
        table=InMemoryTargetTable(),
        queue=queue,
        governor=BackpressureGovernor(queue),
    )


def test_step_walks_prime_read_enqueue_decide(migrator_config) -> None:
    """Each step advances exactly one stage."""
    source = InMemorySource({"orders": [source_document("o-1")]})
    runner = SyncPipelineRunner(migrator_config, _services(source))

    stages = [runner.step() for _ in range(4)]

    assert stages == ["read", "enqueue", "decide", "read"]


def test_enqueue_sends_pending_page(migrator_config) -> None:
    """A non-empty page is sent to the queue as one batch."""
    queue = FakeWriteQueue()
    source = InMemorySource({"orders": [source_document("o-1"), source_document("o-2")]})
    runner = SyncPipelineRunner(migrator_config, _services(source, queue))

    for _ in range(3):
        runner.step()

    assert len(queue.sent_bodies) == 1 and '"o-2"' in queue.sent_bodies[0]


def test_backlog_waits_before_next_read(migrator_config) -> None:
    """Only a queue backlog keeps the loop alive, with a poll delay."""
    queue = FakeWriteQueue()
    source = InMemorySource({"orders": [source_document("o-1")]})
    services = _services(source, queue)
    naps: list[float] = []

    def _sleeper(seconds: float) -> None:
        naps.append(seconds)
        queue.visible.clear()

    config = replace(migrator_config, drain_poll_seconds=1.5)
    report = SyncPipelineRunner(config, services, sleeper=_sleeper).run()

    assert naps == [1.5] and report.documents_read == 1 and report.messages_sent == 1


def test_cancelled_run_keeps_checkpoint_and_resumes(migrator_config) -> None:
    """Cancellation between steps leaves a resumable checkpoint."""
    source = InMemorySource({"orders": [source_document("o-1")]})
    services = _services(source)
    stop_event = threading.Event()
    runner = SyncPipelineRunner(migrator_config, services)
    runner.step()
    stop_event.set()

    with pytest.raises(SyncCancelledError):
        runner.run(stop_event)
    resumed = SyncPipelineRunner(migrator_config, services, resume=True)

    assert resumed.stage == "read"


def test_failed_enqueue_resumes_with_pending_page(migrator_config) -> None:
    """A failed Enqueue step is retried with the checkpointed page."""

    class _FlakyQueue(FakeWriteQueue):
        def __init__(self) -> None:
            super().__init__()
            self.failures = 1

        def send_batch(self, documents):
            if self.failures:
                self.failures -= 1
                raise QueueDeliveryError("throttled")
            return super().send_batch(documents)

    queue = _FlakyQueue()
    source = InMemorySource({"orders": [source_document("o-1")]})
    services = _services(source, queue)

    with pytest.raises(QueueDeliveryError):
        sync_source(migrator_config, services)
    runner = SyncPipelineRunner(migrator_config, services, resume=True)
    stage = runner.stage
    runner.step()

    assert stage == "enqueue" and len(queue.sent_bodies) == 1


def test_run_signature_tracks_table_queue_and_project(migrator_config) -> None:
    """Different targets produce different run signatures."""
    other = replace(migrator_config, table_name="other-table")

    assert build_run_signature(migrator_config) != build_run_signature(other)
    assert build_run_signature(migrator_config) == build_run_signature(
        replace(migrator_config, page_size=50)
    )


def test_completed_run_clears_checkpoint(migrator_config) -> None:
    """A finished run removes its checkpoint state."""
    services = _services(InMemorySource({}))

    sync_source(migrator_config, services)

    assert not (migrator_config.data_root / "sync_checkpoint" / "state.json").exists()
