"""Sync checkpoint persistence.

This module stores the orchestrator stage, continuation envelope, and
the page awaiting enqueue so ``sync --resume`` continues after the last
completed step.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path
from typing import Any, Mapping

from core.constants import CHECKPOINT_DIR_NAME, CHECKPOINT_STATE_FILE_NAME
from core.errors import SyncStateError
from core.types import Document


@dataclass(frozen=True)
class SyncCheckpointState:
    """Checkpoint state metadata.

    Attributes:
        run_signature: Hash of the table, queue, and project of the run.
        stage: Next stage to execute.
        envelope: Continuation envelope payload, once primed.
        pending_documents: Page read but not yet enqueued.
    """

    run_signature: str
    stage: str
    envelope: Mapping[str, Any] | None = None
    pending_documents: tuple[Document, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        return {
            "run_signature": self.run_signature,
            "stage": self.stage,
            "envelope": dict(self.envelope) if self.envelope is not None else None,
            "pending_docs": list(self.pending_documents),
        }


class SyncCheckpointStore:
    """Filesystem-backed sync checkpoint store."""

    def __init__(self, data_root: Path) -> None:
        self._checkpoint_dir = data_root / CHECKPOINT_DIR_NAME
        self._checkpoint_dir.mkdir(parents=True, exist_ok=True)

    def prepare_run(self, run_signature: str, resume: bool) -> SyncCheckpointState:
        """Prepare checkpoint state for a new or resumed run.

        Args:
            run_signature: Deterministic run signature.
            resume: Whether this run should resume.

        Returns:
            Checkpoint state for current run.

        Raises:
            SyncStateError: If resume requested without matching checkpoint.
        """
        if resume:
            state = self.read_state()
            if state is None:
                raise SyncStateError(
                    "Cannot resume sync: checkpoint state not found. "
                    "Run sync once without --resume to initialize checkpoints."
                )
            if state.run_signature != run_signature:
                raise SyncStateError(
                    "Cannot resume sync: checkpoint does not match the current table, "
                    "queue, or project. Retry without --resume or use the same settings."
                )
            return state
        self.clear()
        state = SyncCheckpointState(run_signature=run_signature, stage="prime")
        self.save(state)
        return state

    def save(self, state: SyncCheckpointState) -> None:
        """Persist checkpoint state."""
        state_path = self._state_path()
        temp_path = state_path.with_suffix(".tmp")
        temp_path.write_text(
            json.dumps(state.to_payload(), indent=2, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        temp_path.replace(state_path)

    def clear(self) -> None:
        """Remove all checkpoint files."""
        for file_path in self._checkpoint_dir.glob("*"):
            if file_path.is_file():
                file_path.unlink()

    def read_state(self) -> SyncCheckpointState | None:
        """Read checkpoint state file if present.

        Raises:
            SyncStateError: If the state file is corrupted.
        """
        state_path = self._state_path()
        if not state_path.exists():
            return None
        try:
            payload = json.loads(state_path.read_text(encoding="utf-8"))
            envelope = payload["envelope"]
            pending = payload["pending_docs"]
            if envelope is not None and not isinstance(envelope, dict):
                raise TypeError("envelope must be an object")
            if not isinstance(pending, list):
                raise TypeError("pending_docs must be a list")
            return SyncCheckpointState(
                run_signature=str(payload["run_signature"]),
                stage=str(payload["stage"]),
                envelope=envelope,
                pending_documents=tuple(pending),
            )
        except (json.JSONDecodeError, KeyError, TypeError) as error:
            raise SyncStateError(
                f"Failed to read sync checkpoint state at {state_path}: {error}. "
                "Delete the checkpoint directory and retry sync."
            ) from error

    def _state_path(self) -> Path:
        return self._checkpoint_dir / CHECKPOINT_STATE_FILE_NAME
