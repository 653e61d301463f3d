"""
Plan execution engine.

Components:
    - executor: PlanExecutor, applies validated plans to a content store
    - results: per-action results and the per-plan summary
    - dedup: process-wide work item admission guard
    - events: immutable progress events and the owned RunState sink
"""

from .dedup import DedupRegistry
from .events import EventSink, EventTypes, ProgressEvent, RunState, null_sink
from .executor import PlanExecutor
from .results import (
    Effect,
    ExecutionCounters,
    ExecutionResult,
    ExecutionState,
    ExecutionSummary,
    Outcome,
)

__all__ = [
    "DedupRegistry",
    "Effect",
    "EventSink",
    "EventTypes",
    "ExecutionCounters",
    "ExecutionResult",
    "ExecutionState",
    "ExecutionSummary",
    "Outcome",
    "PlanExecutor",
    "ProgressEvent",
    "RunState",
    "null_sink",
]
