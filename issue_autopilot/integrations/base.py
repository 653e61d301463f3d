"""Interfaces for the external collaborators the pipeline consumes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from ..schemas.work_item import Comment, WorkItem


class IssueTracker(ABC):
    """Source of work items and sink for their reports."""

    @abstractmethod
    def list_open_issues(self) -> List[WorkItem]:
        """Open work items, excluding pull requests."""
        pass

    @abstractmethod
    def get_issue(self, number: int) -> WorkItem:
        pass

    @abstractmethod
    def list_comments(self, number: int) -> List[Comment]:
        """Comments on a work item, oldest first."""
        pass

    @abstractmethod
    def comment(self, number: int, body: str) -> None:
        pass

    @abstractmethod
    def close(self, number: int, reason: str = "completed") -> None:
        pass


class ReasoningService(ABC):
    """Turns a work item's prompt into raw (untrusted) plan text."""

    @property
    @abstractmethod
    def model(self) -> str:
        """Model name for logging and the /meta endpoint."""
        pass

    @abstractmethod
    def generate(self, system_prompt: str, user_prompt: str) -> str:
        pass
