"""
Wiring for one running process.

The Runtime owns every long-lived object: the run state, the deduplicator,
the HTTP clients and the pipeline built on them. Entry points (CLI, API)
build one and close it on shutdown.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .config import Settings
from .engine.dedup import DedupRegistry
from .engine.events import RunState
from .engine.executor import PlanExecutor
from .integrations.base import IssueTracker, ReasoningService
from .integrations.gemini import GeminiReasoningService
from .integrations.github import GitHubClient, GitHubContentStore, GitHubIssueTracker
from .retry import RetryPolicy
from .store.base import ContentStore
from .worker.loop import PollingLoop
from .worker.pipeline import IssuePipeline


@dataclass
class Runtime:
    settings: Settings
    state: RunState
    dedup: DedupRegistry
    retry: RetryPolicy
    store: ContentStore
    tracker: IssueTracker
    reasoning: ReasoningService
    executor: PlanExecutor
    pipeline: IssuePipeline
    loop: PollingLoop
    _closers: List[Callable[[], None]] = field(default_factory=list, repr=False)

    def close(self) -> None:
        """Release HTTP clients."""
        while self._closers:
            self._closers.pop()()


def build_runtime(
    settings: Settings,
    *,
    store: Optional[ContentStore] = None,
    tracker: Optional[IssueTracker] = None,
    reasoning: Optional[ReasoningService] = None,
    retry: Optional[RetryPolicy] = None,
    state: Optional[RunState] = None,
) -> Runtime:
    """Build the runtime, creating GitHub/Gemini clients for anything not given."""
    closers: List[Callable[[], None]] = []
    state = state or RunState()
    retry = retry or RetryPolicy.from_settings(settings)

    if store is None or tracker is None:
        github = GitHubClient(
            token=settings.github_token or "",
            owner=settings.repo_owner,
            repo=settings.repo_name,
            base_url=settings.github_api_url,
            timeout=settings.http_timeout_seconds,
        )
        closers.append(github.close)
        store = store or GitHubContentStore(github)
        tracker = tracker or GitHubIssueTracker(github)

    if reasoning is None:
        gemini = GeminiReasoningService(
            api_key=settings.gemini_api_key or "",
            model=settings.gemini_model,
            base_url=settings.gemini_api_url,
            timeout=settings.http_timeout_seconds * 2,
        )
        closers.append(gemini.close)
        reasoning = gemini

    dedup = DedupRegistry()
    pipeline = IssuePipeline.from_settings(
        settings,
        tracker,
        store,
        reasoning,
        retry=retry,
        dedup=dedup,
        emit=state.record,
    )
    loop = PollingLoop(
        pipeline,
        tracker,
        retry=retry,
        interval=settings.check_interval,
        emit=state.record,
    )
    return Runtime(
        settings=settings,
        state=state,
        dedup=dedup,
        retry=retry,
        store=store,
        tracker=tracker,
        reasoning=reasoning,
        executor=pipeline.executor,
        pipeline=pipeline,
        loop=loop,
        _closers=closers,
    )
