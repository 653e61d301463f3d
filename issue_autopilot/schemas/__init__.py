from .plan_v1 import (
    Action,
    ActionPlan,
    ActionType,
    CreateFileAction,
    DeleteFileAction,
    UpdateFileAction,
)
from .work_item import Comment, WorkItem

__all__ = [
    "Action",
    "ActionPlan",
    "ActionType",
    "Comment",
    "CreateFileAction",
    "DeleteFileAction",
    "UpdateFileAction",
    "WorkItem",
]
