"""Temporary identifiers for optimistic rows."""

from __future__ import annotations

import time
import uuid

DEFAULT_PREFIX = "temp"


def new_temp_id(prefix: str = DEFAULT_PREFIX) -> str:
    """
    `temp-<epoch ms>-<uuid4 hex>`.

    Store-assigned ids are UUIDs without the prefix.
    """
    return f"{prefix}-{time.time_ns() // 1_000_000}-{uuid.uuid4().hex}"


def is_temp_id(record_id: str, prefix: str = DEFAULT_PREFIX) -> bool:
    return record_id.startswith(f"{prefix}-")


__all__ = ["DEFAULT_PREFIX", "new_temp_id", "is_temp_id"]
