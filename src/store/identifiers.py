"""Identifier generation for projects and commits.

Commit ids sort lexicographically in creation order: a zero-padded
nanosecond timestamp followed by a random suffix.
"""

from __future__ import annotations

import threading
import time
import uuid


def new_group_id() -> str:
    """Return a fresh project (group) identifier."""
    return uuid.uuid4().hex


class CommitIdGenerator:
    """Generate unique, monotonically ordered commit ids.

    Timestamps are forced to increase strictly within one generator, so
    two commits created in the same clock tick still sort in creation order.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_timestamp = 0

    def next_id(self) -> str:
        with self._lock:
            timestamp = max(time.time_ns(), self._last_timestamp + 1)
            self._last_timestamp = timestamp
        return f"{timestamp:020d}-{uuid.uuid4().hex[:12]}"
