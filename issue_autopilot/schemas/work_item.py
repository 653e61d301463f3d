"""Work items (issues) and their comments, as read from the tracker."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Comment(BaseModel):
    """A comment on a work item, in creation order."""

    model_config = ConfigDict(frozen=True)

    author: str = "user"
    body: str = ""
    created_at: Optional[datetime] = None

    @classmethod
    def from_github(cls, payload: Dict[str, Any]) -> "Comment":
        user = payload.get("user") or {}
        return cls(
            author=user.get("login") or "user",
            body=payload.get("body") or "",
            created_at=payload.get("created_at"),
        )


class WorkItem(BaseModel):
    """An externally authored request driving one plan/execute cycle.

    ``id`` is immutable and stable across edits; ``number`` is the
    display/addressing sequence number.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    number: int
    title: str
    body: str = ""
    comments: Tuple[Comment, ...] = Field(default_factory=tuple)

    @classmethod
    def from_github(cls, payload: Dict[str, Any]) -> "WorkItem":
        return cls(
            id=payload["id"],
            number=payload["number"],
            title=payload.get("title") or "",
            body=payload.get("body") or "",
        )

    def with_comments(self, comments: Iterable[Comment]) -> "WorkItem":
        # Tracker returns comments oldest first.
        return self.model_copy(update={"comments": tuple(comments)})
