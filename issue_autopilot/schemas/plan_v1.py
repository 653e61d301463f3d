"""
Action plan schema (V1).

The reasoning service answers with a JSON document in this shape. Parsing it
into these models is the boundary between untyped external data and the
typed engine; only the plan gate constructs them from raw text.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, constr


class ActionType(str, Enum):
    CREATE = "create_file"
    UPDATE = "update_file"
    DELETE = "delete_file"


class CreateFileAction(BaseModel):
    """Create a file. ``content`` is the complete file body."""

    model_config = ConfigDict(frozen=True)

    type: Literal["create_file"] = "create_file"
    path: constr(min_length=1)
    content: str = ""
    description: Optional[str] = None

    @property
    def action_type(self) -> ActionType:
        return ActionType.CREATE


class UpdateFileAction(BaseModel):
    """Replace a file. ``content`` is the complete file body, never a diff."""

    model_config = ConfigDict(frozen=True)

    type: Literal["update_file"] = "update_file"
    path: constr(min_length=1)
    content: str = ""
    description: Optional[str] = None

    @property
    def action_type(self) -> ActionType:
        return ActionType.UPDATE


class DeleteFileAction(BaseModel):
    """Delete a file."""

    model_config = ConfigDict(frozen=True)

    type: Literal["delete_file"] = "delete_file"
    path: constr(min_length=1)
    description: Optional[str] = None

    @property
    def action_type(self) -> ActionType:
        return ActionType.DELETE


Action = Annotated[
    Union[CreateFileAction, UpdateFileAction, DeleteFileAction],
    Field(discriminator="type"),
]


class ActionPlan(BaseModel):
    """One plan per processing attempt. Never mutated once built."""

    issue_number: int
    tasks_summary: List[str]
    actions: List[Action]
    final_comment: str
    close_issue: bool
    state_reason: Literal["completed", "not_planned"]

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "issue_number": 12,
                "tasks_summary": ["Add a landing page"],
                "actions": [
                    {
                        "type": "create_file",
                        "path": "index.html",
                        "content": "<!doctype html><title>Hello</title>",
                        "description": "Landing page",
                    }
                ],
                "final_comment": "Added `index.html`.",
                "close_issue": True,
                "state_reason": "completed",
            }
        },
    )
