"""
Progress events and run state.

The engine never touches display state. It emits immutable ProgressEvent
records to an EventSink; RunState is one such sink, owned by whoever runs the
engine, and keeps the counters and recent history the HTTP surface shows.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional

MAX_LOG_ENTRIES = 500


class EventTypes:
    """Event types emitted by the engine and the pipeline."""

    # Work item lifecycle
    WORK_ITEM_ADMITTED = "work_item.admitted"
    WORK_ITEM_DUPLICATE = "work_item.duplicate"
    WORK_ITEM_COMPLETED = "work_item.completed"
    WORK_ITEM_CLOSED = "work_item.closed"
    WORK_ITEM_FAILED = "work_item.failed"

    # Plan
    PLAN_GENERATED = "plan.generated"
    PLAN_REJECTED = "plan.rejected"

    # Actions
    ACTION_REJECTED = "action.rejected"
    ACTION_APPLIED = "action.applied"
    ACTION_SKIPPED = "action.skipped"
    ACTION_FAILED = "action.failed"

    # Isolated mode
    BRANCH_READY = "branch.ready"
    MERGE_REQUEST_OPENED = "merge_request.opened"
    MERGE_REQUEST_FAILED = "merge_request.failed"

    # Polling
    POLL_STARTED = "poll.started"
    POLL_IDLE = "poll.idle"
    POLL_FAILED = "poll.failed"


@dataclass(frozen=True)
class ProgressEvent:
    """An immutable record of something the engine did."""

    type: str
    message: str = ""
    work_item_id: Optional[int] = None
    work_item_number: Optional[int] = None
    action: Optional[str] = None
    path: Optional[str] = None
    outcome: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert the event to a dictionary."""
        return {
            "type": self.type,
            "message": self.message,
            "work_item_id": self.work_item_id,
            "work_item_number": self.work_item_number,
            "action": self.action,
            "path": self.path,
            "outcome": self.outcome,
            "data": dict(self.data),
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        return f"ProgressEvent(type={self.type}, number={self.work_item_number})"


EventSink = Callable[[ProgressEvent], None]


def null_sink(event: ProgressEvent) -> None:
    """Discard events."""


_EFFECT_COUNTERS = {"created", "updated", "deleted"}


class RunState:
    """Counters and recent history for one process, safe across threads."""

    def __init__(self, max_entries: int = MAX_LOG_ENTRIES):
        self._lock = threading.Lock()
        self.started_at = datetime.now(timezone.utc)
        self.status = "starting"
        self.online = False
        self.last_run: Optional[datetime] = None
        self.stats: Dict[str, int] = {"created": 0, "updated": 0, "deleted": 0, "errors": 0}
        self.events: Deque[ProgressEvent] = deque(maxlen=max_entries)

    def record(self, event: ProgressEvent) -> None:
        """EventSink: fold one event into the counters and history."""
        with self._lock:
            self.events.appendleft(event)
            self.last_run = event.timestamp
            self.online = True

            if event.type == EventTypes.ACTION_APPLIED:
                effect = event.data.get("effect")
                if effect in _EFFECT_COUNTERS:
                    self.stats[effect] += 1
            elif event.type in (
                EventTypes.ACTION_FAILED,
                EventTypes.WORK_ITEM_FAILED,
                EventTypes.POLL_FAILED,
            ):
                self.stats["errors"] += 1

            if event.type == EventTypes.WORK_ITEM_ADMITTED:
                self.status = f"Issue #{event.work_item_number}"
            elif event.type in (EventTypes.POLL_IDLE, EventTypes.WORK_ITEM_COMPLETED):
                self.status = "running"

    def set_status(self, status: str) -> None:
        with self._lock:
            self.status = status
            self.online = True
            self.last_run = datetime.now(timezone.utc)

    def snapshot(self, limit: int = 50) -> Dict[str, Any]:
        """Plain-dict copy of the current state."""
        with self._lock:
            recent: List[Dict[str, Any]] = [e.to_dict() for e in list(self.events)[:limit]]
            return {
                "status": self.status,
                "online": self.online,
                "started_at": self.started_at.isoformat(),
                "last_run": self.last_run.isoformat() if self.last_run else None,
                "uptime_seconds": (
                    datetime.now(timezone.utc) - self.started_at
                ).total_seconds(),
                "stats": dict(self.stats),
                "events": recent,
            }
