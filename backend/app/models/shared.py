"""Shared model utilities used across all models."""

import uuid
from datetime import UTC, datetime


def generate_id(prefix: str = "") -> str:
    """Generate an opaque identifier, optionally namespaced like ``contract_<hex>``."""
    token = uuid.uuid4().hex
    return f"{prefix}_{token}" if prefix else token


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)
