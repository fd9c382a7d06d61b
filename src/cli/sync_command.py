"""Sync and write-worker CLI command wiring.

This module registers the long-running commands and wires SIGINT to
cooperative cancellation between steps.
"""

from __future__ import annotations

import argparse
from contextlib import contextmanager
import signal
import sys
import threading
from typing import Any, Iterator

from core.errors import SyncCancelledError
from store.migrator_sdk import MigratorClient


def add_sync_command(subparsers: Any) -> None:
    """Register sync subcommand."""
    parser = subparsers.add_parser("sync", help="Copy source collections into the target table")
    parser.add_argument("--resume", action="store_true", help="Resume from sync checkpoint")


def add_write_worker_command(subparsers: Any) -> None:
    """Register write-worker subcommand."""
    parser = subparsers.add_parser(
        "write-worker",
        help="Merge pending queue messages into the target table",
    )
    parser.add_argument("--max-batches", type=int, help="Stop after this many messages")


def run_sync_command(client: MigratorClient, args: argparse.Namespace) -> int:
    """Handle sync command invocation."""
    try:
        with _stop_on_interrupt() as stop_event:
            report = client.sync(resume=args.resume, stop_event=stop_event)
    except SyncCancelledError as error:
        print(str(error), file=sys.stderr)
        return 130
    print(f"read_steps={report.read_steps}")
    print(f"documents_read={report.documents_read}")
    print(f"messages_sent={report.messages_sent}")
    if report.introspection is not None:
        print(f"written_facets={','.join(report.introspection.written_facets) or '-'}")
        print(f"failed_facets={','.join(sorted(report.introspection.failed_facets)) or '-'}")
    return 0


def run_write_worker_command(client: MigratorClient, args: argparse.Namespace) -> int:
    """Handle write-worker command invocation."""
    with _stop_on_interrupt() as stop_event:
        processed = client.drain_queue(max_batches=args.max_batches, stop_event=stop_event)
    print(f"processed={processed}")
    return 0


@contextmanager
def _stop_on_interrupt() -> Iterator[threading.Event]:
    stop_event = threading.Event()
    previous = signal.signal(signal.SIGINT, lambda _signum, _frame: stop_event.set())
    try:
        yield stop_event
    finally:
        signal.signal(signal.SIGINT, previous)
