"""
Issue Autopilot - turns repository issues into applied file changes.
"""

from .config import Settings, get_settings
from .engine import PlanExecutor
from .schemas import ActionPlan, WorkItem
from .worker import IssuePipeline, PollingLoop

__all__ = [
    "ActionPlan",
    "IssuePipeline",
    "PlanExecutor",
    "PollingLoop",
    "Settings",
    "WorkItem",
    "get_settings",
]
