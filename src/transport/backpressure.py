"""Backpressure governor for loop termination.

This module probes pending-write queue depth and decides whether the
sync loop may stop. Probe failures fail open to a depth of zero.
"""

from __future__ import annotations

from typing import Protocol

from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


class QueueDepthProbe(Protocol):
    """Queue operation required by the governor."""

    def approximate_depth(self) -> int: ...


class BackpressureGovernor:
    """Queue-depth gate consulted once per Read step."""

    def __init__(self, queue: QueueDepthProbe) -> None:
        self._queue = queue

    def probe(self) -> int:
        """Return approximate queue depth, or zero when the probe fails."""
        try:
            depth = self._queue.approximate_depth()
        except Exception as error:
            _LOGGER.warning("queue_depth_probe_failed", error=str(error))
            return 0
        _LOGGER.info("queue_depth_probed", depth=depth)
        return max(depth, 0)


def should_continue(
    documents_read: int,
    collection: str | None,
    pending_collections: tuple[str, ...],
    queue_depth: int,
) -> bool:
    """Return whether the loop must run another Read step.

    The loop may only stop once nothing was read this round, no
    collection remains, and the queue has drained.
    """
    return (
        documents_read > 0
        or collection is not None
        or bool(pending_collections)
        or queue_depth > 0
    )
