"""AWS session helpers.

This module encapsulates boto3 session creation for table, queue,
and parameter-store clients so every client shares one session.
"""

from __future__ import annotations

from typing import Any

import boto3

from core.config import MigratorConfig


def create_aws_session(config: MigratorConfig) -> Any:
    """Create the boto3 session shared by all AWS clients.

    Args:
        config: Runtime config with optional session settings.

    Returns:
        Boto3 session.
    """
    session_kwargs: dict[str, str] = {}
    if config.aws_profile:
        session_kwargs["profile_name"] = config.aws_profile
    if config.aws_region:
        session_kwargs["region_name"] = config.aws_region
    return boto3.session.Session(**session_kwargs)
