"""Migrator CLI entry points.
This module exposes sync, queue, and schema commands.
It maps argparse commands onto SDK calls.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
from typing import Any, Sequence

from cli.sync_command import (
    add_sync_command,
    add_write_worker_command,
    run_sync_command,
    run_write_worker_command,
)
from core.config import MigratorConfig
from core.logging_config import configure_logging
from store.migrator_sdk import MigratorClient


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(
        prog="migrator",
        description="Firestore to DynamoDB migrator CLI",
    )
    parser.add_argument("--config", help="Optional YAML settings file")
    parser.add_argument("--data-root", help="Override MIGRATOR_DATA_ROOT for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)
    add_sync_command(subparsers)
    _add_collections_command(subparsers)
    add_write_worker_command(subparsers)
    _add_introspect_command(subparsers)
    _add_schema_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the migrator CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging()
    client = _build_client(args.config, args.data_root)
    if args.command == "sync":
        return run_sync_command(client, args)
    if args.command == "collections":
        return _run_collections_command(client)
    if args.command == "write-worker":
        return run_write_worker_command(client, args)
    if args.command == "introspect":
        return _run_introspect_command(client)
    if args.command == "schema":
        return _run_schema_command(client, args)
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_client(config_path: str | None, data_root: str | None) -> MigratorClient:
    """Build SDK client with optional settings file and data-root override.

    Args:
        config_path: Optional YAML settings path.
        data_root: Optional override path.

    Returns:
        Configured SDK client.
    """
    config = MigratorConfig.from_file(config_path) if config_path else MigratorConfig.from_env()
    if data_root:
        config = replace(config, data_root=Path(data_root).expanduser().resolve())
    return MigratorClient(config)


def _run_collections_command(client: MigratorClient) -> int:
    for collection in client.list_collections():
        print(collection)
    return 0


def _run_introspect_command(client: MigratorClient) -> int:
    """Handle introspect command.

    Returns:
        Exit code; 1 when any facet failed inference.
    """
    report = client.introspect()
    for facet in report.written_facets:
        print(f"{facet}\twritten")
    for facet, message in sorted(report.failed_facets.items()):
        print(f"{facet}\tfailed\t{message}")
    return 1 if report.failed_facets else 0


def _run_schema_command(client: MigratorClient, args: argparse.Namespace) -> int:
    print(client.render_schema(args.facet), end="")
    return 0


def _add_collections_command(subparsers: Any) -> None:
    """Register collections subcommand."""
    subparsers.add_parser("collections", help="List source collections")


def _add_introspect_command(subparsers: Any) -> None:
    """Register introspect subcommand."""
    subparsers.add_parser("introspect", help="Infer and persist facet pseudo-schemas")


def _add_schema_command(subparsers: Any) -> None:
    """Register schema subcommand."""
    parser = subparsers.add_parser("schema", help="Print persisted schemas as GraphQL SDL")
    parser.add_argument("--facet", help="Only print one facet")
