"""Unit tests for CLI command handling."""

from __future__ import annotations

import importlib

import pytest

from cli.main import main
from core.errors import SyncStateError
from core.services import SyncServices
from store.merge_writer import MergeWriter
from tests.sync_fakes import FakeWriteQueue, InMemorySource, InMemoryTargetTable, source_document
from transport.backpressure import BackpressureGovernor


class _InlineMergeQueue(FakeWriteQueue):
    """Queue whose consumer merges each page as soon as it is sent."""

    def __init__(self, table: InMemoryTargetTable) -> None:
        super().__init__()
        self.writer = MergeWriter(table)

    def send_batch(self, documents):
        self.writer.write_batch(list(documents))
        return 1


@pytest.fixture
def fake_services(monkeypatch: pytest.MonkeyPatch) -> SyncServices:
    table = InMemoryTargetTable()
    queue = _InlineMergeQueue(table)
    services = SyncServices(
        source=InMemorySource(
            {
                "orders": [source_document("o-1", total=5), source_document("o-2", total=7)],
                "customers": [source_document("c-1", name="Ada")],
            }
        ),
        table=table,
        queue=queue,
        governor=BackpressureGovernor(queue),
    )
    monkeypatch.setattr(SyncServices, "from_config", classmethod(lambda cls, config: services))
    return services


def test_cli_collections_lists_source_collections(tmp_path, capsys, fake_services) -> None:
    """CLI collections should print one collection per line."""
    exit_code = main(["--data-root", str(tmp_path), "collections"])

    assert exit_code == 0 and capsys.readouterr().out.split() == ["orders", "customers"]


def test_cli_sync_reports_run_summary(tmp_path, capsys, fake_services) -> None:
    """CLI sync should copy documents and print the run summary."""
    exit_code = main(["--data-root", str(tmp_path), "sync"])
    output = capsys.readouterr().out

    assert exit_code == 0
    assert "documents_read=3" in output and "written_facets=customers,orders" in output


def test_cli_sync_resume_without_checkpoint_fails(tmp_path, fake_services) -> None:
    """Resuming with no checkpoint should raise a sync state error."""
    with pytest.raises(SyncStateError):
        main(["--data-root", str(tmp_path), "sync", "--resume"])


def test_cli_write_worker_respects_max_batches(tmp_path, capsys, fake_services) -> None:
    """CLI write-worker should stop after the requested message count."""
    queue = fake_services.queue
    FakeWriteQueue.send_batch(queue, [{"__firestoreDocumentId": "x", "pk": "x", "sk": "1"}])
    FakeWriteQueue.send_batch(queue, [{"__firestoreDocumentId": "y", "pk": "y", "sk": "1"}])

    exit_code = main(["--data-root", str(tmp_path), "write-worker", "--max-batches", "1"])

    assert exit_code == 0 and capsys.readouterr().out.strip() == "processed=1"


def test_cli_introspect_and_schema(tmp_path, capsys, fake_services) -> None:
    """CLI introspect should persist schemas that schema then renders."""
    main(["--data-root", str(tmp_path), "sync"])
    capsys.readouterr()

    introspect_code = main(["--data-root", str(tmp_path), "introspect"])
    introspect_output = capsys.readouterr().out
    schema_code = main(["--data-root", str(tmp_path), "schema", "--facet", "orders"])
    schema_output = capsys.readouterr().out

    assert (introspect_code, schema_code) == (0, 0)
    assert "orders\twritten" in introspect_output
    assert "type Order {" in schema_output and "Customer" not in schema_output


def test_cli_reads_settings_file(tmp_path, capsys, fake_services) -> None:
    """The --config option should load YAML settings."""
    settings_path = tmp_path / "settings.yaml"
    settings_path.write_text("page_size: 1\n", encoding="utf-8")

    exit_code = main(["--config", str(settings_path), "--data-root", str(tmp_path), "sync"])

    assert exit_code == 0 and "read_steps=5" in capsys.readouterr().out


def test_module_entry_point_runs_cli_main() -> None:
    """``python -m cli`` should dispatch to the same main function."""
    entry_module = importlib.import_module("cli.__main__")

    assert entry_module.main is main
