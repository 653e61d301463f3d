"""
Per-work-item pipeline.

    admit -> comments -> context -> reasoning -> plan gate -> execute -> report

``process_work_item`` is the single entry point used by the poll loop, the
webhook and the CLI. It never raises: every failure ends up in the returned
ExecutionSummary, an error event and (unless dry-run) a comment on the item.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import structlog

from ..engine.dedup import DedupRegistry
from ..engine.events import EventSink, EventTypes, ProgressEvent, null_sink
from ..engine.executor import PlanExecutor
from ..engine.results import ExecutionSummary
from ..integrations.base import IssueTracker, ReasoningService
from ..policy.plan_gate import PlanGateConfig, PlanValidationError, evaluate
from ..reporting.notifier import Report, failure_report, summarize
from ..retry import RetryPolicy
from ..schemas.work_item import WorkItem
from ..store.base import ContentStore
from .context import build_issue_context, build_user_prompt, system_prompt

if TYPE_CHECKING:
    from ..config import Settings

logger = structlog.get_logger()


class IssuePipeline:
    """Runs one work item end to end."""

    def __init__(
        self,
        settings: "Settings",
        tracker: IssueTracker,
        store: ContentStore,
        reasoning: ReasoningService,
        executor: PlanExecutor,
        retry: Optional[RetryPolicy] = None,
        dedup: Optional[DedupRegistry] = None,
        emit: EventSink = null_sink,
    ):
        self.settings = settings
        self.tracker = tracker
        self.store = store
        self.reasoning = reasoning
        self.executor = executor
        self.retry = retry or RetryPolicy.from_settings(settings)
        self.dedup = dedup or DedupRegistry()
        self.emit = emit
        self.gate_config = PlanGateConfig.from_settings(settings)

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        tracker: IssueTracker,
        store: ContentStore,
        reasoning: ReasoningService,
        retry: Optional[RetryPolicy] = None,
        dedup: Optional[DedupRegistry] = None,
        emit: EventSink = null_sink,
    ) -> "IssuePipeline":
        """Build the pipeline with an executor configured from ``settings``."""
        retry = retry or RetryPolicy.from_settings(settings)
        executor = PlanExecutor.from_settings(settings, store, retry, emit=emit)
        return cls(
            settings,
            tracker,
            store,
            reasoning,
            executor,
            retry=retry,
            dedup=dedup,
            emit=emit,
        )

    def _event(self, type: str, item: WorkItem, message: str = "", **data) -> None:
        self.emit(
            ProgressEvent(
                type=type,
                message=message,
                work_item_id=item.id,
                work_item_number=item.number,
                data=data,
            )
        )

    def process_work_item(self, item: WorkItem) -> Optional[ExecutionSummary]:
        """Process ``item`` once per process lifetime.

        Returns:
            The execution summary, or None if the item was already admitted
        """
        log = logger.bind(work_item_id=item.id, number=item.number)

        if not self.dedup.admit(item.id):
            log.debug("work_item_duplicate")
            self._event(EventTypes.WORK_ITEM_DUPLICATE, item)
            return None

        log.info("work_item_start", title=item.title)
        self._event(EventTypes.WORK_ITEM_ADMITTED, item, item.title)

        try:
            return self._process(item, log)
        except PlanValidationError as e:
            log.warning("plan_rejected", code=e.code, error=e.message)
            self._event(EventTypes.PLAN_REJECTED, item, e.message, code=e.code)
            return self._fail(item, f"Invalid plan: {e}", log)
        except Exception as e:
            log.exception("work_item_failed", error=str(e))
            return self._fail(item, str(e), log)

    def _fail(self, item: WorkItem, error: str, log) -> ExecutionSummary:
        self._event(EventTypes.WORK_ITEM_FAILED, item, error)
        self._report_failure(item, error, log)
        return ExecutionSummary.for_fatal_error(item, error)

    def _process(self, item: WorkItem, log) -> ExecutionSummary:
        item = item.with_comments(self._comments(item, log))

        context = build_issue_context(
            item,
            self._read_for_context,
            max_files=self.settings.max_mentioned_files,
            max_bytes=self.settings.max_file_size_bytes,
        )
        raw = self.retry.call(
            self.reasoning.generate,
            system_prompt(
                self.settings.repo_owner,
                self.settings.repo_name,
                self.settings.max_actions,
            ),
            build_user_prompt(context),
        )

        gate = evaluate(raw, self.gate_config)
        plan = gate.plan
        if plan.issue_number != item.number:
            log.warning("plan_issue_mismatch", plan_issue_number=plan.issue_number)
        log.info(
            "plan_accepted",
            actions=len(plan.actions),
            rejected=len(gate.rejected),
            truncated=gate.truncated,
            tasks=plan.tasks_summary,
        )
        self._event(
            EventTypes.PLAN_GENERATED,
            item,
            "; ".join(plan.tasks_summary) or "no summary",
            actions=len(plan.actions),
        )
        for rejected in gate.rejected:
            self.emit(
                ProgressEvent(
                    type=EventTypes.ACTION_REJECTED,
                    message=rejected.reason,
                    work_item_id=item.id,
                    work_item_number=item.number,
                    action=rejected.action.type,
                    path=rejected.action.path,
                )
            )

        summary = self.executor.execute(plan, item, rejected=gate.rejected)
        report = summarize(plan, summary)

        if self.settings.dry_run:
            log.info("dry_run_no_report")
        else:
            self._deliver(item, report, log)

        self._event(
            EventTypes.WORK_ITEM_COMPLETED,
            item,
            summary.state.value,
            **summary.counters.to_dict(),
        )
        return summary

    def _deliver(self, item: WorkItem, report: Report, log) -> None:
        """Post the report and apply its disposition."""
        try:
            self.retry.call(self.tracker.comment, item.number, report.body)
            if report.close:
                self.retry.call(self.tracker.close, item.number, report.state_reason)
        except Exception as e:
            # The plan already ran; only the report is lost.
            log.error("report_delivery_failed", error=str(e))
            self._event(EventTypes.WORK_ITEM_FAILED, item, f"report not delivered: {e}")
            return
        if report.close:
            log.info("work_item_closed", reason=report.state_reason)
            self._event(EventTypes.WORK_ITEM_CLOSED, item, report.state_reason or "")
        elif report.discrepancy:
            log.warning("close_refused", reason=report.discrepancy)

    def _comments(self, item: WorkItem, log):
        try:
            return self.retry.call(self.tracker.list_comments, item.number)
        except Exception as e:
            log.warning("comments_unavailable", error=str(e))
            return []

    def _read_for_context(self, path: str) -> Optional[str]:
        current = self.retry.call(self.store.read, path, branch=self.settings.branch)
        return current.content if current else None

    def _report_failure(self, item: WorkItem, error: str, log) -> None:
        if self.settings.dry_run:
            return
        try:
            self.retry.call(self.tracker.comment, item.number, failure_report(error).body)
        except Exception as e:
            log.error("failure_comment_failed", error=str(e))
