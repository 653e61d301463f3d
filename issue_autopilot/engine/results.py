"""
Execution results.

One ExecutionResult per action, aggregated into one ExecutionSummary per
plan. The summary is always produced, even when nothing could be applied.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from ..schemas.plan_v1 import ActionType
from ..store.base import CommitRef

if TYPE_CHECKING:
    from ..policy.plan_gate import RejectedAction
    from ..schemas.work_item import WorkItem


class Outcome(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


class ExecutionState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    PARTIALLY_FAILED = "partially_failed"


class Effect(str, Enum):
    """What an applied action actually did to the store."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of a single action."""

    index: int
    action_type: ActionType
    path: str
    outcome: Outcome
    effect: Optional[Effect] = None
    reason: Optional[str] = None
    error: Optional[str] = None
    commit: Optional[CommitRef] = None
    attempts: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "action": self.action_type.value,
            "path": self.path,
            "outcome": self.outcome.value,
            "effect": self.effect.value if self.effect else None,
            "reason": self.reason,
            "error": self.error,
            "commit": str(self.commit) if self.commit else None,
            "attempts": self.attempts,
        }


@dataclass
class ExecutionCounters:
    created: int = 0
    updated: int = 0
    deleted: int = 0
    errors: int = 0

    @property
    def applied(self) -> int:
        return self.created + self.updated + self.deleted

    def to_dict(self) -> Dict[str, int]:
        return {
            "created": self.created,
            "updated": self.updated,
            "deleted": self.deleted,
            "errors": self.errors,
        }


@dataclass
class ExecutionSummary:
    """Everything that happened while executing one plan."""

    work_item_id: int
    work_item_number: int
    mode: str = "direct"
    branch: Optional[str] = None
    dry_run: bool = False
    state: ExecutionState = ExecutionState.PENDING
    results: List[ExecutionResult] = field(default_factory=list)
    counters: ExecutionCounters = field(default_factory=ExecutionCounters)
    commits: List[CommitRef] = field(default_factory=list)
    rejected: List["RejectedAction"] = field(default_factory=list)
    merge_request_url: Optional[str] = None
    merge_request_error: Optional[str] = None
    fatal_error: Optional[str] = None

    @classmethod
    def for_fatal_error(cls, item: "WorkItem", error: str) -> "ExecutionSummary":
        """Summary for an attempt that failed before any action ran."""
        summary = cls(work_item_id=item.id, work_item_number=item.number)
        summary.fatal_error = error
        summary.state = ExecutionState.PARTIALLY_FAILED
        return summary

    def record(self, result: ExecutionResult) -> None:
        self.results.append(result)
        if result.outcome is Outcome.FAILED:
            self.counters.errors += 1
        elif result.outcome is Outcome.APPLIED:
            if result.effect is Effect.CREATED:
                self.counters.created += 1
            elif result.effect is Effect.UPDATED:
                self.counters.updated += 1
            elif result.effect is Effect.DELETED:
                self.counters.deleted += 1
            if result.commit is not None:
                self.commits.append(result.commit)

    def finish(self) -> "ExecutionSummary":
        failed = any(r.outcome is Outcome.FAILED for r in self.results)
        if failed or self.fatal_error:
            self.state = ExecutionState.PARTIALLY_FAILED
        else:
            self.state = ExecutionState.COMPLETED
        return self

    def by_outcome(self, outcome: Outcome) -> List[ExecutionResult]:
        return [r for r in self.results if r.outcome is outcome]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "work_item_id": self.work_item_id,
            "work_item_number": self.work_item_number,
            "mode": self.mode,
            "branch": self.branch,
            "dry_run": self.dry_run,
            "state": self.state.value,
            "results": [r.to_dict() for r in self.results],
            "counters": self.counters.to_dict(),
            "commits": [str(c) for c in self.commits],
            "rejected": [
                {"index": r.index, "path": r.action.path, "reason": r.reason}
                for r in self.rejected
            ],
            "merge_request_url": self.merge_request_url,
            "merge_request_error": self.merge_request_error,
            "fatal_error": self.fatal_error,
        }
