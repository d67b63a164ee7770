"""S3 client construction.

This module builds the boto3 client used by the S3 blob store.
The client is created once from config and injected into the store.
"""

from __future__ import annotations

from typing import Any

import boto3
from botocore.config import Config as BotoConfig

from core.config import TabvcConfig
from core.constants import S3_MAX_ATTEMPTS


def create_s3_client(config: TabvcConfig) -> Any:
    """Create boto3 S3 client for blob storage.

    Args:
        config: Runtime config with optional session settings.

    Returns:
        Boto3 S3 client.
    """
    session_kwargs: dict[str, str] = {}
    if config.s3_profile:
        session_kwargs["profile_name"] = config.s3_profile
    if config.s3_region:
        session_kwargs["region_name"] = config.s3_region
    session = boto3.session.Session(**session_kwargs)
    return session.client(
        "s3",
        endpoint_url=config.s3_endpoint_url,
        config=BotoConfig(
            connect_timeout=config.s3_timeout_seconds,
            read_timeout=config.s3_timeout_seconds,
            retries={"max_attempts": S3_MAX_ATTEMPTS, "mode": "standard"},
        ),
    )
