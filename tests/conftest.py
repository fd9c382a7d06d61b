"""Pytest configuration and shared fixtures for repository test runs."""

from __future__ import annotations

import sys
from dataclasses import replace
from pathlib import Path

import pytest


def pytest_sessionstart() -> None:
    """Add src directory to sys.path for test imports."""
    project_root = Path(__file__).resolve().parent.parent
    src_path = project_root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


@pytest.fixture
def migrator_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Config pointing at a temporary data root with fake AWS settings."""
    from core.config import MigratorConfig

    for name in ("MIGRATOR_PAGE_SIZE", "MIGRATOR_SAMPLE_SIZE", "MIGRATOR_DRAIN_POLL_SECONDS"):
        monkeypatch.delenv(name, raising=False)
    return replace(
        MigratorConfig.from_env(),
        data_root=tmp_path / "migrator",
        table_name="migration-table",
        queue_url="https://sqs.us-east-1.amazonaws.com/123456789012/pending-writes",
        firebase_project_id="demo-project",
        drain_poll_seconds=0.0,
    )


@pytest.fixture(autouse=True, scope="session")
def _json_logging_to_stderr():
    """Keep event logs off stdout so CLI output assertions stay exact."""
    from core.logging_config import configure_logging

    configure_logging("info", force=True)
