"""Tests for the per-work-item pipeline."""

import pytest

from conftest import FakeReasoning, FakeTracker, make_item, make_plan_text
from issue_autopilot.engine.events import EventTypes
from issue_autopilot.engine.executor import PlanExecutor
from issue_autopilot.errors import TransportError
from issue_autopilot.schemas.work_item import Comment
from issue_autopilot.store.memory import InMemoryContentStore
from issue_autopilot.worker.pipeline import IssuePipeline


@pytest.fixture
def reasoning() -> FakeReasoning:
    return FakeReasoning(make_plan_text())


@pytest.fixture
def pipeline(settings, tracker, store, reasoning, executor, retry, state) -> IssuePipeline:
    return IssuePipeline(
        settings, tracker, store, reasoning, executor, retry=retry, emit=state.record
    )


def event_types(state):
    return [e["type"] for e in state.snapshot(limit=500)["events"]]


class TestHappyPath:
    def test_applies_reports_and_closes(self, pipeline, tracker, store, state):
        summary = pipeline.process_work_item(make_item())

        assert summary.counters.created == 1
        assert store.get_content("a.txt") == "A"
        assert len(tracker.posted) == 1
        number, body = tracker.posted[0]
        assert number == 7
        assert "## 🤖 Automation run" in body
        assert tracker.closed == [(7, "completed")]

        types = event_types(state)
        assert EventTypes.WORK_ITEM_ADMITTED in types
        assert EventTypes.PLAN_GENERATED in types
        assert EventTypes.WORK_ITEM_COMPLETED in types
        assert EventTypes.WORK_ITEM_CLOSED in types

    def test_duplicate_is_refused(self, pipeline, reasoning, state):
        assert pipeline.process_work_item(make_item()) is not None
        assert pipeline.process_work_item(make_item(title="edited")) is None
        assert len(reasoning.prompts) == 1
        assert EventTypes.WORK_ITEM_DUPLICATE in event_types(state)

    def test_prompt_carries_comments_and_files(self, settings, tracker, reasoning, retry):
        store = InMemoryContentStore({"style.css": "body { color: red; }"})
        tracker.comments[7] = [
            Comment(author="alice", body="Also fix style.css please"),
        ]
        executor = PlanExecutor(store, retry, inter_action_delay=0)
        pipeline = IssuePipeline(settings, tracker, store, reasoning, executor, retry=retry)

        pipeline.process_work_item(make_item())

        system, user = reasoning.prompts[0]
        assert "acme/site" in system
        assert "alice: Also fix style.css please" in user
        assert "--- BEGIN style.css ---\nbody { color: red; }\n--- END style.css ---" in user

    def test_close_refused_when_nothing_applied(self, settings, tracker, store, executor, retry):
        reasoning = FakeReasoning(
            make_plan_text(
                actions=[{"type": "update_file", "path": "missing.txt", "content": "x"}]
            )
        )
        pipeline = IssuePipeline(settings, tracker, store, reasoning, executor, retry=retry)

        pipeline.process_work_item(make_item())

        assert tracker.closed == []
        assert "stays open" in tracker.posted[0][1]


class TestFailures:
    def test_invalid_plan_is_reported(self, pipeline, reasoning, tracker, state):
        reasoning.answer = "I am not JSON"

        summary = pipeline.process_work_item(make_item())

        assert summary.fatal_error.startswith("Invalid plan: MALFORMED_JSON")
        assert summary.results == []
        assert tracker.posted[0][1].startswith("⚠️ Failed to process this issue: Invalid plan")
        assert tracker.closed == []
        types = event_types(state)
        assert EventTypes.PLAN_REJECTED in types
        assert EventTypes.WORK_ITEM_FAILED in types
        assert state.snapshot()["stats"]["errors"] == 1

    def test_reasoning_failure_never_raises(self, pipeline, reasoning, tracker):
        reasoning.error = TransportError("quota", status_code=403)
        summary = pipeline.process_work_item(make_item())
        assert "403" in summary.fatal_error
        assert len(tracker.posted) == 1

    def test_report_delivery_failure_keeps_summary(self, pipeline, tracker, store, state):
        tracker.fail_comment = TransportError("forbidden", status_code=403)

        summary = pipeline.process_work_item(make_item())

        assert summary.counters.created == 1
        assert store.get_content("a.txt") == "A"
        assert tracker.closed == []
        assert EventTypes.WORK_ITEM_FAILED in event_types(state)

    def test_comment_fetch_failure_degrades(self, pipeline, tracker, reasoning):
        tracker.fail_comments_fetch = TransportError("nope", status_code=404)
        summary = pipeline.process_work_item(make_item())
        assert summary.fatal_error is None
        assert "COMMENTS:\n\n" in reasoning.prompts[0][1]


class TestDryRun:
    def test_no_comments_no_close_no_writes(self, settings, tracker, store, reasoning, retry):
        settings.dry_run = True
        executor = PlanExecutor.from_settings(settings, store, retry)
        pipeline = IssuePipeline(settings, tracker, store, reasoning, executor, retry=retry)

        summary = pipeline.process_work_item(make_item())

        assert summary.dry_run
        assert tracker.posted == []
        assert tracker.closed == []
        assert [c[0] for c in store.calls if c[0] != "read"] == []
        assert store.get_content("a.txt") is None

    def test_failures_not_commented(self, settings, tracker, store, retry):
        settings.dry_run = True
        reasoning = FakeReasoning("nope")
        executor = PlanExecutor.from_settings(settings, store, retry)
        pipeline = IssuePipeline(settings, tracker, store, reasoning, executor, retry=retry)

        summary = pipeline.process_work_item(make_item())

        assert summary.fatal_error
        assert tracker.posted == []


def test_works_with_empty_tracker(settings, store, executor, retry):
    pipeline = IssuePipeline(
        settings, FakeTracker(), store, FakeReasoning(make_plan_text()), executor, retry=retry
    )
    assert pipeline.process_work_item(make_item(id=5, number=7)).counters.created == 1


def test_from_settings_wires_executor(settings, tracker, store, state):
    settings.use_pull_request = True
    pipeline = IssuePipeline.from_settings(
        settings, tracker, store, FakeReasoning(make_plan_text()), emit=state.record
    )
    assert pipeline.executor.isolated
    assert pipeline.executor.emit == state.record
    summary = pipeline.process_work_item(make_item())
    assert summary.merge_request_url == "memory://merge/1"
