"""
Reports posted back to the work item.

``summarize`` is a pure function of the plan and the execution summary. It
also decides the work item's terminal disposition: the item is closed only
when the plan asked for it AND at least one action was applied AND the
changes landed on the target branch. A plan that asks to close but changed
nothing, or whose changes sit on an unmerged pull request, leaves the item
open, and the report says so.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from ..engine.results import ExecutionResult, ExecutionSummary, Outcome
from ..schemas.plan_v1 import ActionPlan, ActionType

_OUTCOME_HEADINGS = [
    (Outcome.APPLIED, "Applied"),
    (Outcome.SKIPPED, "Skipped"),
    (Outcome.FAILED, "Failed"),
]
_TYPE_ORDER = [ActionType.CREATE, ActionType.UPDATE, ActionType.DELETE]


@dataclass(frozen=True)
class Report:
    """Comment body plus the disposition to apply to the work item."""

    body: str
    close: bool = False
    state_reason: Optional[str] = None
    discrepancy: Optional[str] = None


def _describe(result: ExecutionResult) -> str:
    line = f"`{result.path}`"
    if result.outcome is Outcome.APPLIED and result.effect is not None:
        line += f" ({result.effect.value})"
    if result.reason:
        line += f": {result.reason}"
    if result.error:
        line += f": {result.error}"
    return line


def _outcome_section(summary: ExecutionSummary) -> List[str]:
    lines: List[str] = []
    for outcome, heading in _OUTCOME_HEADINGS:
        results = summary.by_outcome(outcome)
        if not results:
            continue
        lines.append(f"#### {heading} ({len(results)})")
        for action_type in _TYPE_ORDER:
            for result in results:
                if result.action_type is action_type:
                    lines.append(f"- {action_type.value} {_describe(result)}")
        lines.append("")
    return lines


def summarize(plan: ActionPlan, summary: ExecutionSummary) -> Report:
    """Build the report and disposition for an executed plan."""
    applied = summary.counters.applied
    isolated = summary.mode == "isolated"
    close = plan.close_issue and applied > 0 and not isolated
    discrepancy = None
    if plan.close_issue and not close:
        if applied and isolated:
            discrepancy = (
                "The changes await review in the pull request, "
                "so this issue stays open."
            )
        else:
            discrepancy = (
                "The plan asked to close this issue, but no action was applied, "
                "so it stays open."
            )

    lines = ["## 🤖 Automation run", ""]
    if plan.final_comment:
        lines.extend([plan.final_comment, ""])

    if plan.tasks_summary:
        lines.append("### Tasks")
        lines.extend(f"- {task}" for task in plan.tasks_summary)
        lines.append("")

    lines.append("### Actions")
    counters = summary.counters
    lines.append(
        f"created: {counters.created} · updated: {counters.updated} · "
        f"deleted: {counters.deleted} · errors: {counters.errors}"
    )
    lines.append("")
    if summary.results:
        lines.extend(_outcome_section(summary))
    else:
        lines.extend(["_No actions were executed._", ""])

    if summary.rejected:
        lines.append("#### Rejected by validation")
        for rejected in summary.rejected:
            lines.append(
                f"- {rejected.action.type} `{rejected.action.path}`: {rejected.reason}"
            )
        lines.append("")

    if summary.commits:
        lines.append("### Commits")
        lines.extend(f"{i}. {commit}" for i, commit in enumerate(summary.commits, 1))
        lines.append("")

    if summary.mode == "isolated":
        if summary.merge_request_url:
            lines.extend([f"🔗 Pull request: {summary.merge_request_url}", ""])
        elif summary.merge_request_error:
            lines.extend(
                [f"⚠️ Could not open a pull request: {summary.merge_request_error}", ""]
            )

    if summary.dry_run:
        lines.extend(["🛑 Dry run: no changes were made to the repository.", ""])

    if discrepancy:
        lines.extend([f"> ⚠️ {discrepancy}", ""])

    return Report(
        body="\n".join(lines).rstrip() + "\n",
        close=close,
        state_reason=plan.state_reason if close else None,
        discrepancy=discrepancy,
    )


def failure_report(error: str) -> Report:
    """Report for an attempt that failed before producing a plan summary."""
    return Report(body=f"⚠️ Failed to process this issue: {error}\n")
