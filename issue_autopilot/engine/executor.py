"""
Plan execution engine.

Applies a validated ActionPlan to a ContentStore, one action at a time, in
plan order, and always returns an ExecutionSummary.

Per action:
1. Re-check path/content safety (the plan may have been altered after the
   gate ran).
2. Dry-run: record ``skipped: dry-run`` and issue no store call.
3. Read the path's current version token, then:
   - create: absent -> unconditional write; present -> write with its token
   - update: absent -> skipped (target missing); present -> conditional write
   - delete: absent -> skipped (already absent); present -> conditional delete
4. Every store call goes through the RetryPolicy. A ConflictError restarts
   the action from the read once; a second conflict fails the action.
5. Record the result and move on. A failed action never stops later ones.

Isolated mode works on ``{prefix}issue-{number}``, created from the target
branch if missing, and finishes with one merge request.
"""
from __future__ import annotations

import time
from dataclasses import replace
from typing import TYPE_CHECKING, Callable, Optional, Sequence

import structlog

from ..errors import ConflictError
from ..policy.plan_gate import PlanGateConfig, RejectedAction, check_action
from ..retry import RetryPolicy
from ..schemas.plan_v1 import (
    Action,
    ActionPlan,
    CreateFileAction,
    DeleteFileAction,
    UpdateFileAction,
)
from ..schemas.work_item import WorkItem
from ..store.base import ContentStore
from .events import EventSink, EventTypes, ProgressEvent, null_sink
from .results import Effect, ExecutionResult, ExecutionState, ExecutionSummary, Outcome

if TYPE_CHECKING:
    from ..config import Settings

logger = structlog.get_logger()

# A conflict restarts the action from the read this many times.
MAX_CONFLICT_RETRIES = 1

_OUTCOME_EVENTS = {
    Outcome.APPLIED: EventTypes.ACTION_APPLIED,
    Outcome.SKIPPED: EventTypes.ACTION_SKIPPED,
    Outcome.FAILED: EventTypes.ACTION_FAILED,
}


class PlanExecutor:
    """Executes action plans against a content store."""

    def __init__(
        self,
        store: ContentStore,
        retry: Optional[RetryPolicy] = None,
        *,
        branch: str = "main",
        gate_config: Optional[PlanGateConfig] = None,
        inter_action_delay: float = 1.0,
        isolated: bool = False,
        isolated_branch_prefix: str = "autopilot/",
        dry_run: bool = False,
        sleep: Callable[[float], None] = time.sleep,
        emit: EventSink = null_sink,
    ):
        self.store = store
        self.retry = retry or RetryPolicy()
        self.branch = branch
        self.gate_config = gate_config or PlanGateConfig()
        self.inter_action_delay = inter_action_delay
        self.isolated = isolated
        self.isolated_branch_prefix = isolated_branch_prefix
        self.dry_run = dry_run
        self.sleep = sleep
        self.emit = emit

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        store: ContentStore,
        retry: Optional[RetryPolicy] = None,
        emit: EventSink = null_sink,
    ) -> "PlanExecutor":
        return cls(
            store,
            retry or RetryPolicy.from_settings(settings),
            branch=settings.branch,
            gate_config=PlanGateConfig.from_settings(settings),
            inter_action_delay=settings.inter_action_delay,
            isolated=settings.use_pull_request,
            isolated_branch_prefix=settings.isolated_branch_prefix,
            dry_run=settings.dry_run,
            emit=emit,
        )

    @property
    def mode(self) -> str:
        return "isolated" if self.isolated else "direct"

    def working_branch(self, item: WorkItem) -> str:
        """Branch the plan for ``item`` is applied to."""
        if not self.isolated:
            return self.branch
        return f"{self.isolated_branch_prefix}issue-{item.number}"

    def execute(
        self,
        plan: ActionPlan,
        item: WorkItem,
        rejected: Sequence[RejectedAction] = (),
    ) -> ExecutionSummary:
        """Apply every action of ``plan`` and summarize what happened."""
        branch = self.working_branch(item)
        summary = ExecutionSummary(
            work_item_id=item.id,
            work_item_number=item.number,
            mode=self.mode,
            branch=branch,
            dry_run=self.dry_run,
            rejected=list(rejected),
        )
        log = logger.bind(
            work_item_id=item.id, number=item.number, mode=self.mode, branch=branch
        )
        summary.state = ExecutionState.RUNNING
        log.info("plan_execution_start", actions=len(plan.actions), dry_run=self.dry_run)

        if self.isolated and not self.dry_run:
            error = self._prepare_branch(branch, item, log)
            if error is not None:
                for index, action in enumerate(plan.actions):
                    self._record(
                        summary,
                        item,
                        ExecutionResult(
                            index=index,
                            action_type=action.action_type,
                            path=action.path,
                            outcome=Outcome.FAILED,
                            error=f"branch {branch} unavailable: {error}",
                        ),
                    )
                return summary.finish()

        for index, action in enumerate(plan.actions):
            result = self._run_action(index, action, branch, item, log)
            self._record(summary, item, result)

            if not self.dry_run and index < len(plan.actions) - 1:
                self.sleep(self.inter_action_delay)

        if self.isolated and not self.dry_run:
            self._open_merge_request(summary, plan, item, branch, log)

        summary.finish()
        log.info(
            "plan_execution_complete",
            state=summary.state.value,
            **summary.counters.to_dict(),
        )
        return summary

    def _prepare_branch(self, branch: str, item: WorkItem, log) -> Optional[str]:
        try:
            created = self.retry.call(self.store.ensure_branch, branch, base=self.branch)
        except Exception as e:
            log.error("branch_prepare_failed", error=str(e))
            return str(e)
        log.info("branch_ready", created=created)
        self.emit(
            ProgressEvent(
                type=EventTypes.BRANCH_READY,
                message=f"{'Created' if created else 'Reusing'} branch {branch}",
                work_item_id=item.id,
                work_item_number=item.number,
                data={"branch": branch, "created": created},
            )
        )
        return None

    def _open_merge_request(
        self,
        summary: ExecutionSummary,
        plan: ActionPlan,
        item: WorkItem,
        branch: str,
        log,
    ) -> None:
        if summary.counters.applied == 0:
            log.info("merge_request_skipped", reason="no applied actions")
            return
        body = f"Automated changes for #{item.number}.\n\n" + "\n".join(
            f"- {task}" for task in plan.tasks_summary
        )
        try:
            url = self.retry.call(
                self.store.open_merge_request,
                head=branch,
                base=self.branch,
                title=f"Changes for #{item.number}: {item.title}",
                body=body,
            )
        except Exception as e:
            summary.merge_request_error = str(e)
            log.error("merge_request_failed", error=str(e))
            self.emit(
                ProgressEvent(
                    type=EventTypes.MERGE_REQUEST_FAILED,
                    message=str(e),
                    work_item_id=item.id,
                    work_item_number=item.number,
                )
            )
            return
        summary.merge_request_url = url
        log.info("merge_request_opened", url=url)
        self.emit(
            ProgressEvent(
                type=EventTypes.MERGE_REQUEST_OPENED,
                message=url,
                work_item_id=item.id,
                work_item_number=item.number,
                data={"url": url},
            )
        )

    def _record(
        self, summary: ExecutionSummary, item: WorkItem, result: ExecutionResult
    ) -> None:
        summary.record(result)
        self.emit(
            ProgressEvent(
                type=_OUTCOME_EVENTS[result.outcome],
                message=result.error or result.reason or "",
                work_item_id=item.id,
                work_item_number=item.number,
                action=result.action_type.value,
                path=result.path,
                outcome=result.outcome.value,
                data={
                    "effect": result.effect.value if result.effect else None,
                    "commit": str(result.commit) if result.commit else None,
                },
            )
        )

    def _run_action(
        self, index: int, action: Action, branch: str, item: WorkItem, log
    ) -> ExecutionResult:
        log = log.bind(index=index, type=action.type, path=action.path)

        reason = check_action(action, self.gate_config)
        if reason is not None:
            log.warning("action_rejected", reason=reason)
            return self._result(index, action, Outcome.SKIPPED, reason=reason)

        if self.dry_run:
            log.info("action_dry_run")
            return self._result(index, action, Outcome.SKIPPED, reason="dry-run")

        attempts = 0
        while True:
            attempts += 1
            try:
                result = self._apply(index, action, branch, item)
            except ConflictError as e:
                if attempts <= MAX_CONFLICT_RETRIES:
                    log.warning("action_conflict_retry", attempt=attempts, error=str(e))
                    continue
                log.error("action_failed", attempts=attempts, error=str(e))
                return self._result(
                    index,
                    action,
                    Outcome.FAILED,
                    error=f"version conflict persisted: {e}",
                    attempts=attempts,
                )
            except Exception as e:
                log.error("action_failed", attempts=attempts, error=str(e))
                return self._result(
                    index, action, Outcome.FAILED, error=str(e), attempts=attempts
                )

            log.info(
                "action_complete",
                outcome=result.outcome.value,
                effect=result.effect.value if result.effect else None,
                reason=result.reason,
            )
            return replace(result, attempts=attempts)

    def _apply(
        self, index: int, action: Action, branch: str, item: WorkItem
    ) -> ExecutionResult:
        """One read-then-mutate cycle for ``action``."""
        current = self.retry.call(self.store.read, action.path, branch=branch)
        via = f"via issue #{item.number}"

        if isinstance(action, CreateFileAction):
            if current is None:
                commit = self.retry.call(
                    self.store.write,
                    action.path,
                    action.content,
                    f"Create {action.path} {via}",
                    branch=branch,
                )
                return self._result(
                    index, action, Outcome.APPLIED, effect=Effect.CREATED, commit=commit
                )
            commit = self.retry.call(
                self.store.write,
                action.path,
                action.content,
                f"Update {action.path} (existing) {via}",
                branch=branch,
                expected_sha=current.sha,
            )
            return self._result(
                index, action, Outcome.APPLIED, effect=Effect.UPDATED, commit=commit
            )

        if isinstance(action, UpdateFileAction):
            if current is None:
                return self._result(
                    index, action, Outcome.SKIPPED, reason="target missing"
                )
            commit = self.retry.call(
                self.store.write,
                action.path,
                action.content,
                f"Update {action.path} {via}",
                branch=branch,
                expected_sha=current.sha,
            )
            return self._result(
                index, action, Outcome.APPLIED, effect=Effect.UPDATED, commit=commit
            )

        if isinstance(action, DeleteFileAction):
            if current is None:
                return self._result(
                    index, action, Outcome.SKIPPED, reason="already absent"
                )
            commit = self.retry.call(
                self.store.delete,
                action.path,
                f"Delete {action.path} {via}",
                branch=branch,
                expected_sha=current.sha,
            )
            return self._result(
                index, action, Outcome.APPLIED, effect=Effect.DELETED, commit=commit
            )

        raise TypeError(f"Unsupported action: {type(action).__name__}")

    @staticmethod
    def _result(
        index: int, action: Action, outcome: Outcome, **kwargs
    ) -> ExecutionResult:
        return ExecutionResult(
            index=index,
            action_type=action.action_type,
            path=action.path,
            outcome=outcome,
            **kwargs,
        )

