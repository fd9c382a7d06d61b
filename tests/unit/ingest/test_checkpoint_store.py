"""Unit tests for sync checkpoint storage."""

from __future__ import annotations

from dataclasses import replace

import pytest

from core.errors import SyncStateError
from ingest.checkpoint_store import SyncCheckpointStore


def test_prepare_run_initializes_state(tmp_path) -> None:
    """New non-resume run should start at the prime stage."""
    checkpoint = SyncCheckpointStore(tmp_path)

    state = checkpoint.prepare_run("sig", resume=False)

    assert (state.stage, state.envelope, state.pending_documents) == ("prime", None, ())


def test_prepare_run_resume_requires_checkpoint(tmp_path) -> None:
    """Resume without any checkpoint should fail."""
    checkpoint = SyncCheckpointStore(tmp_path)

    with pytest.raises(SyncStateError, match="not found"):
        checkpoint.prepare_run("sig", resume=True)


def test_prepare_run_resume_requires_matching_signature(tmp_path) -> None:
    """Resume should fail when signature differs from checkpoint state."""
    checkpoint = SyncCheckpointStore(tmp_path)
    checkpoint.prepare_run("sig-1", resume=False)

    with pytest.raises(SyncStateError, match="does not match"):
        checkpoint.prepare_run("sig-2", resume=True)


def test_checkpoint_roundtrip_envelope_and_pending_docs(tmp_path) -> None:
    """Saved stage, envelope, and pending page should be restored on resume."""
    checkpoint = SyncCheckpointStore(tmp_path)
    state = checkpoint.prepare_run("sig", resume=False)
    checkpoint.save(
        replace(
            state,
            stage="enqueue",
            envelope={"collections": ["orders"], "collection": "customers", "offset": 5},
            pending_documents=({"pk": "c-1", "sk": "t"},),
        )
    )

    resumed = SyncCheckpointStore(tmp_path).prepare_run("sig", resume=True)

    assert resumed.stage == "enqueue" and resumed.pending_documents == ({"pk": "c-1", "sk": "t"},)
    assert resumed.envelope is not None and resumed.envelope["collection"] == "customers"


def test_corrupted_state_raises(tmp_path) -> None:
    """A corrupted state file should raise a sync state error."""
    checkpoint = SyncCheckpointStore(tmp_path)
    (tmp_path / "sync_checkpoint" / "state.json").write_text("{", encoding="utf-8")

    with pytest.raises(SyncStateError):
        checkpoint.read_state()
