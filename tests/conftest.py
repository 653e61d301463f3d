"""Test configuration and fixtures."""

import json
from typing import Any, Dict, List, Optional

import pytest

from issue_autopilot.config import Settings
from issue_autopilot.engine.events import RunState
from issue_autopilot.engine.executor import PlanExecutor
from issue_autopilot.integrations.base import IssueTracker, ReasoningService
from issue_autopilot.retry import RetryPolicy
from issue_autopilot.schemas.plan_v1 import ActionPlan
from issue_autopilot.schemas.work_item import Comment, WorkItem
from issue_autopilot.store.memory import InMemoryContentStore


def make_plan_data(**overrides) -> Dict[str, Any]:
    """Create a valid plan document with optional overrides."""
    defaults = {
        "issue_number": 7,
        "tasks_summary": ["Do the thing"],
        "actions": [
            {"type": "create_file", "path": "a.txt", "content": "A"},
        ],
        "final_comment": "Done.",
        "close_issue": True,
        "state_reason": "completed",
    }
    defaults.update(overrides)
    return defaults


def make_plan(**overrides) -> ActionPlan:
    return ActionPlan.model_validate(make_plan_data(**overrides))


def make_plan_text(**overrides) -> str:
    """Plan as the reasoning service would answer it, in a fenced block."""
    return "Here is the plan:\n```json\n" + json.dumps(make_plan_data(**overrides)) + "\n```"


def make_item(**overrides) -> WorkItem:
    defaults = {"id": 1001, "number": 7, "title": "Add files", "body": "Please add a.txt"}
    defaults.update(overrides)
    return WorkItem(**defaults)


class FakeTracker(IssueTracker):
    """IssueTracker that keeps everything in lists."""

    def __init__(self, issues: Optional[List[WorkItem]] = None):
        self.issues = list(issues or [])
        self.comments: Dict[int, List[Comment]] = {}
        self.posted: List[tuple] = []
        self.closed: List[tuple] = []
        self.fail_list: Optional[Exception] = None
        self.fail_comment: Optional[Exception] = None
        self.fail_comments_fetch: Optional[Exception] = None

    def list_open_issues(self) -> List[WorkItem]:
        if self.fail_list:
            raise self.fail_list
        return list(self.issues)

    def get_issue(self, number: int) -> WorkItem:
        for item in self.issues:
            if item.number == number:
                return item
        raise KeyError(number)

    def list_comments(self, number: int) -> List[Comment]:
        if self.fail_comments_fetch:
            raise self.fail_comments_fetch
        return list(self.comments.get(number, []))

    def comment(self, number: int, body: str) -> None:
        if self.fail_comment:
            raise self.fail_comment
        self.posted.append((number, body))

    def close(self, number: int, reason: str = "completed") -> None:
        self.closed.append((number, reason))


class FakeReasoning(ReasoningService):
    """ReasoningService answering with canned text."""

    def __init__(self, answer: str = "", error: Optional[Exception] = None):
        self.answer = answer
        self.error = error
        self.prompts: List[tuple] = []

    @property
    def model(self) -> str:
        return "fake-model"

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        self.prompts.append((system_prompt, user_prompt))
        if self.error:
            raise self.error
        return self.answer


@pytest.fixture
def settings() -> Settings:
    """Settings with credentials set and no delays."""
    return Settings(
        _env_file=None,
        github_token="test-token",
        gemini_api_key="test-key",
        repo_owner="acme",
        repo_name="site",
        inter_action_delay=0,
        retry_backoff=0,
        enable_polling=False,
    )


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def retry(sleeps) -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay=0.5, sleep=sleeps.append)


@pytest.fixture
def store() -> InMemoryContentStore:
    return InMemoryContentStore()


@pytest.fixture
def state() -> RunState:
    return RunState()


@pytest.fixture
def executor(store, retry, state) -> PlanExecutor:
    return PlanExecutor(store, retry, inter_action_delay=0, sleep=lambda s: None, emit=state.record)


@pytest.fixture
def tracker() -> FakeTracker:
    return FakeTracker([make_item()])
