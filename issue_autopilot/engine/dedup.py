"""
Work item deduplication.

One registry per process. ``admit`` is an atomic test-and-set, so a webhook
delivery racing a poll cycle cannot both start on the same item. Nothing is
persisted or evicted; a restart forgets everything, and reprocessing is
absorbed by the executor's handling of already-applied states.
"""

from __future__ import annotations

import threading
from typing import Set


class DedupRegistry:
    """Set of work item ids already admitted during this process."""

    def __init__(self) -> None:
        self._admitted: Set[int] = set()
        self._lock = threading.Lock()

    def admit(self, work_item_id: int) -> bool:
        """Return True the first time ``work_item_id`` is seen, False after."""
        with self._lock:
            if work_item_id in self._admitted:
                return False
            self._admitted.add(work_item_id)
            return True

    def __contains__(self, work_item_id: object) -> bool:
        with self._lock:
            return work_item_id in self._admitted

    def __len__(self) -> int:
        with self._lock:
            return len(self._admitted)
