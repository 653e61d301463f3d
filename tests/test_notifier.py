"""Tests for report building and close gating."""

from conftest import make_item, make_plan
from issue_autopilot.engine.results import (
    Effect,
    ExecutionResult,
    ExecutionSummary,
    Outcome,
)
from issue_autopilot.policy.plan_gate import RejectedAction
from issue_autopilot.reporting import failure_report, summarize
from issue_autopilot.schemas.plan_v1 import ActionType, CreateFileAction
from issue_autopilot.store.base import CommitRef


def summary_with(*results, **kwargs) -> ExecutionSummary:
    summary = ExecutionSummary(work_item_id=1001, work_item_number=7, **kwargs)
    for result in results:
        summary.record(result)
    return summary.finish()


def created(path="a.txt", index=0) -> ExecutionResult:
    return ExecutionResult(
        index=index,
        action_type=ActionType.CREATE,
        path=path,
        outcome=Outcome.APPLIED,
        effect=Effect.CREATED,
        commit=CommitRef(sha="abc", url="https://example.test/commit/abc"),
    )


def skipped(path="b.txt", index=1) -> ExecutionResult:
    return ExecutionResult(
        index=index,
        action_type=ActionType.UPDATE,
        path=path,
        outcome=Outcome.SKIPPED,
        reason="target missing",
    )


def failed(path="c.txt", index=2) -> ExecutionResult:
    return ExecutionResult(
        index=index,
        action_type=ActionType.DELETE,
        path=path,
        outcome=Outcome.FAILED,
        error="HTTP 403: nope",
    )


class TestCloseGating:
    def test_close_with_applied_action(self):
        report = summarize(make_plan(state_reason="not_planned"), summary_with(created()))
        assert report.close
        assert report.state_reason == "not_planned"
        assert report.discrepancy is None

    def test_close_requested_but_nothing_applied(self):
        report = summarize(make_plan(), summary_with(skipped(), failed()))
        assert not report.close
        assert report.state_reason is None
        assert "stays open" in report.discrepancy
        assert "> ⚠️" in report.body

    def test_no_close_requested(self):
        report = summarize(make_plan(close_issue=False), summary_with(created()))
        assert not report.close
        assert report.discrepancy is None

    def test_isolated_mode_keeps_issue_open(self):
        summary = summary_with(created(), mode="isolated")
        report = summarize(make_plan(), summary)
        assert not report.close
        assert report.state_reason is None
        assert "await review in the pull request" in report.discrepancy
        assert "> ⚠️" in report.body


class TestBody:
    def test_sections(self):
        summary = summary_with(created(), skipped(), failed())
        body = summarize(make_plan(final_comment="All set."), summary).body

        assert body.startswith("## 🤖 Automation run")
        assert "All set." in body
        assert "- Do the thing" in body
        assert "created: 1 · updated: 0 · deleted: 0 · errors: 1" in body
        assert "#### Applied (1)" in body
        assert "- create_file `a.txt` (created)" in body
        assert "- update_file `b.txt`: target missing" in body
        assert "- delete_file `c.txt`: HTTP 403: nope" in body
        assert "1. https://example.test/commit/abc" in body

    def test_no_actions(self):
        body = summarize(make_plan(actions=[]), summary_with()).body
        assert "_No actions were executed._" in body

    def test_rejected_listed(self):
        rejected = [
            RejectedAction(
                index=0,
                action=CreateFileAction(path="../x", content="x"),
                reason="unsafe path",
            )
        ]
        body = summarize(make_plan(), summary_with(rejected=rejected)).body
        assert "#### Rejected by validation" in body
        assert "- create_file `../x`: unsafe path" in body

    def test_isolated_mode_links_pull_request(self):
        summary = summary_with(created(), mode="isolated")
        summary.merge_request_url = "https://example.test/pull/5"
        body = summarize(make_plan(), summary).body
        assert "🔗 Pull request: https://example.test/pull/5" in body

    def test_dry_run_note(self):
        body = summarize(make_plan(), summary_with(dry_run=True)).body
        assert "Dry run" in body


def test_failure_report():
    report = failure_report("Invalid plan: boom")
    assert report.body == "⚠️ Failed to process this issue: Invalid plan: boom\n"
    assert not report.close


def test_fatal_summary():
    summary = ExecutionSummary.for_fatal_error(make_item(), "boom")
    assert summary.fatal_error == "boom"
    assert summary.to_dict()["state"] == "partially_failed"
