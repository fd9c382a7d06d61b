"""Runtime configuration model for the migrator.

This module owns all environment variable and settings-file parsing.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
import os
from pathlib import Path
from typing import Any, Mapping, cast

import yaml

from core.constants import (
    DEFAULT_DATA_ROOT,
    DEFAULT_DRAIN_POLL_SECONDS,
    DEFAULT_PAGE_SIZE,
    DEFAULT_SAMPLE_SIZE,
)
from core.errors import MigratorConfigError


@dataclass(frozen=True)
class MigratorConfig:
    """Validated runtime configuration.

    Attributes:
        data_root: Local root directory for sync checkpoints.
        table_name: Target DynamoDB table name.
        queue_url: Pending-write SQS queue URL.
        aws_region: Optional AWS region for boto3 session initialization.
        aws_profile: Optional AWS profile for boto3 session initialization.
        firebase_project_id: Source Firebase project identifier.
        firebase_credentials_path: Optional service-account JSON path.
            When omitted, credentials are read from SSM.
        page_size: Documents fetched per Read step.
        sample_size: Records sampled per facet during schema inference.
        drain_poll_seconds: Delay between Read steps while only queue
            backlog keeps the loop alive.
    """

    data_root: Path
    table_name: str | None
    queue_url: str | None
    aws_region: str | None
    aws_profile: str | None
    firebase_project_id: str | None
    firebase_credentials_path: Path | None
    page_size: int
    sample_size: int
    drain_poll_seconds: float

    @classmethod
    def from_env(cls) -> "MigratorConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            MigratorConfigError: If environment values are invalid.
        """
        data_root_value = os.getenv("MIGRATOR_DATA_ROOT", str(DEFAULT_DATA_ROOT))
        credentials_value = os.getenv("MIGRATOR_FIREBASE_CREDENTIALS")
        return cls(
            data_root=Path(data_root_value).expanduser().resolve(),
            table_name=os.getenv("MIGRATOR_TABLE_NAME"),
            queue_url=os.getenv("MIGRATOR_QUEUE_URL"),
            aws_region=os.getenv("MIGRATOR_AWS_REGION"),
            aws_profile=os.getenv("MIGRATOR_AWS_PROFILE"),
            firebase_project_id=os.getenv("MIGRATOR_FIREBASE_PROJECT_ID"),
            firebase_credentials_path=(
                Path(credentials_value).expanduser() if credentials_value else None
            ),
            page_size=_parse_positive_int(
                "MIGRATOR_PAGE_SIZE", os.getenv("MIGRATOR_PAGE_SIZE", str(DEFAULT_PAGE_SIZE))
            ),
            sample_size=_parse_positive_int(
                "MIGRATOR_SAMPLE_SIZE",
                os.getenv("MIGRATOR_SAMPLE_SIZE", str(DEFAULT_SAMPLE_SIZE)),
            ),
            drain_poll_seconds=_parse_seconds(
                "MIGRATOR_DRAIN_POLL_SECONDS",
                os.getenv("MIGRATOR_DRAIN_POLL_SECONDS", str(DEFAULT_DRAIN_POLL_SECONDS)),
            ),
        )

    @classmethod
    def from_file(cls, settings_path: str) -> "MigratorConfig":
        """Build config from environment, overlaid by a YAML settings file.

        Args:
            settings_path: Path to a YAML mapping of config field names.

        Returns:
            A validated config object.

        Raises:
            MigratorConfigError: If the file is unreadable or has unknown keys.
        """
        settings = _load_settings_file(settings_path)
        return apply_settings(cls.from_env(), settings)

    def require(self, field_name: str) -> str:
        """Return a required string setting or fail with guidance.

        Args:
            field_name: Config attribute name.

        Returns:
            Non-empty setting value.

        Raises:
            MigratorConfigError: If the setting is missing.
        """
        value = getattr(self, field_name)
        if not value:
            env_name = f"MIGRATOR_{field_name.upper()}"
            raise MigratorConfigError(
                f"Missing required setting '{field_name}'. "
                f"Set {env_name} or provide it in the --config settings file."
            )
        return str(value)


def apply_settings(config: MigratorConfig, settings: Mapping[str, object]) -> MigratorConfig:
    """Overlay a settings mapping onto an existing config.

    Args:
        config: Base config.
        settings: Mapping of config field name to raw value.

    Returns:
        Updated config.

    Raises:
        MigratorConfigError: If a key is unknown or a value is invalid.
    """
    known_fields = {item.name for item in fields(MigratorConfig)}
    updates: dict[str, Any] = {}
    for key, raw_value in settings.items():
        if key not in known_fields:
            raise MigratorConfigError(
                f"Unknown settings key '{key}'. Supported keys: {', '.join(sorted(known_fields))}."
            )
        updates[key] = _coerce_setting(key, raw_value)
    return replace(config, **updates)


def _coerce_setting(key: str, raw_value: object) -> object:
    if raw_value is None:
        return None
    if key == "data_root":
        return Path(str(raw_value)).expanduser().resolve()
    if key == "firebase_credentials_path":
        return Path(str(raw_value)).expanduser()
    if key in ("page_size", "sample_size"):
        return _parse_positive_int(key, str(raw_value))
    if key == "drain_poll_seconds":
        return _parse_seconds(key, str(raw_value))
    return str(raw_value)


def _load_settings_file(settings_path: str) -> Mapping[str, object]:
    settings_file = Path(settings_path).expanduser().resolve()
    if not settings_file.exists():
        raise MigratorConfigError(
            f"Settings file does not exist at {settings_file}. Provide a valid YAML file path."
        )
    try:
        payload = cast(object, yaml.safe_load(settings_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise MigratorConfigError(
            f"Failed to read settings at {settings_file}: {error}. Check file permissions."
        ) from error
    except yaml.YAMLError as error:
        raise MigratorConfigError(
            f"Failed to parse YAML settings at {settings_file}: {error}. Fix YAML syntax and retry."
        ) from error
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise MigratorConfigError(
            f"Invalid settings at {settings_file}: expected a mapping at the top level."
        )
    return {str(key): value for key, value in payload.items()}


def _parse_positive_int(name: str, raw_value: str) -> int:
    """Parse a positive integer setting.

    Args:
        name: Setting name for error messages.
        raw_value: Raw string value.

    Returns:
        Parsed integer.

    Raises:
        MigratorConfigError: If value is not a positive integer.
    """
    try:
        parsed = int(raw_value)
    except ValueError as error:
        raise MigratorConfigError(
            f"Invalid {name} value: expected integer, got '{raw_value}'. "
            f"Set {name} to a positive number."
        ) from error
    if parsed <= 0:
        raise MigratorConfigError(
            f"Invalid {name} value: expected a positive integer, got {parsed}."
        )
    return parsed


def _parse_seconds(name: str, raw_value: str) -> float:
    """Parse a non-negative duration in seconds."""
    try:
        parsed = float(raw_value)
    except ValueError as error:
        raise MigratorConfigError(
            f"Invalid {name} value: expected seconds, got '{raw_value}'."
        ) from error
    if parsed < 0:
        raise MigratorConfigError(f"Invalid {name} value: seconds cannot be negative.")
    return parsed
