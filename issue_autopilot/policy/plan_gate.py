"""
Policy gate for action plans produced by the reasoning service.

The reasoning service's answer is untrusted text. This module turns it into a
sanitized ActionPlan or raises a PlanValidationError with a stable error
code. It never executes anything.

Steps, in order:
1. Extract a JSON object: fenced code blocks first (```json before any
   other fence), then the raw text.
2. Validate against the ActionPlan schema. Failure is fatal for the attempt.
3. Safety-filter each action. Unsafe actions are logged and dropped; the
   rest of the plan survives.
   - path must stay inside the repository (no ``..`` segment, no leading
     separator, no drive letter)
   - create/update must carry non-empty content within the size limit
4. Truncate to ``max_actions``, logging how many were dropped.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from itertools import chain
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional

import structlog
from pydantic import BaseModel, ValidationError

from issue_autopilot.schemas.plan_v1 import Action, ActionPlan, DeleteFileAction

if TYPE_CHECKING:
    from issue_autopilot.config import Settings

logger = structlog.get_logger()

DEFAULT_MAX_ACTIONS = 20
DEFAULT_MAX_FILE_SIZE_BYTES = 200_000

_FENCE = re.compile(r"```([A-Za-z0-9_+-]*)")
_DECODER = json.JSONDecoder()
_DRIVE_ABSOLUTE = re.compile(r"^[A-Za-z]:")


class PlanGateConfig(BaseModel):
    """Configuration for plan evaluation."""

    max_actions: int = DEFAULT_MAX_ACTIONS
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES

    @classmethod
    def from_settings(cls, settings: "Settings") -> "PlanGateConfig":
        return cls(
            max_actions=settings.max_actions,
            max_file_size_bytes=settings.max_file_size_bytes,
        )


class PlanValidationError(Exception):
    """
    Raised when the reasoning service's answer is not a usable plan.

    Attributes:
        code: Stable error code for programmatic handling
        message: Human-readable error description
    """

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")

    def to_dict(self) -> dict:
        """Convert to dict for JSON serialization."""
        return {
            "error": "invalid_plan",
            "code": self.code,
            "message": self.message,
        }


@dataclass(frozen=True)
class RejectedAction:
    """An action dropped by safety filtering."""

    index: int
    action: Action
    reason: str


@dataclass
class PlanGateResult:
    """A sanitized plan plus what the gate removed from it."""

    plan: ActionPlan
    rejected: List[RejectedAction] = field(default_factory=list)
    truncated: int = 0


def _parse_object(text: str) -> Optional[Any]:
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return None


def _fenced_candidates(text: str) -> Iterator[Any]:
    """Parsed values found in fenced blocks, ``json``-tagged fences first.

    For each opening fence, try the block up to the next fence, then decode
    from the first ``{`` after the fence so that fences inside string
    values do not cut the object short.
    """
    fences = list(_FENCE.finditer(text))
    tagged = [m for m in fences if m.group(1).lower() == "json"]
    others = [m for m in fences if m.group(1).lower() != "json"]

    for match in tagged + others:
        start = match.end()
        end = text.find("```", start)
        if end != -1:
            parsed = _parse_object(text[start:end].strip())
            if parsed is not None:
                yield parsed
        brace = text.find("{", start)
        if brace != -1:
            try:
                parsed, _ = _DECODER.raw_decode(text, brace)
            except ValueError:
                continue
            yield parsed


def extract_json(raw_text: str) -> Dict[str, Any]:
    """
    Pull the JSON object out of the reasoning service's answer.

    Accepts a fenced code block (```json preferred, then any other fence) or
    the whole text.

    Raises:
        PlanValidationError: MALFORMED_JSON if nothing parses,
            SCHEMA_VIOLATION if the JSON is not an object
    """
    text = raw_text or ""
    first_other: Optional[Any] = None

    for parsed in chain(_fenced_candidates(text), [_parse_object(text.strip())]):
        if isinstance(parsed, dict):
            return parsed
        if parsed is not None and first_other is None:
            first_other = parsed

    if first_other is not None:
        raise PlanValidationError(
            code="SCHEMA_VIOLATION",
            message=f"Plan must be a JSON object, got {type(first_other).__name__}",
        )
    raise PlanValidationError(
        code="MALFORMED_JSON",
        message="Response contains neither a fenced JSON block nor raw JSON",
    )


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "(root)"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def is_safe_path(path: str) -> bool:
    """
    True if ``path`` stays inside the repository root.

    Rejects empty paths, NUL bytes, a leading ``/`` or ``\\``, drive-absolute
    forms (``C:...``) and any ``..`` segment.
    """
    if not path or not path.strip():
        return False
    if "\x00" in path:
        return False
    if path.startswith(("/", "\\")):
        return False
    if _DRIVE_ABSOLUTE.match(path):
        return False
    segments = re.split(r"[\\/]", path)
    return ".." not in segments


def check_action(action: Action, config: PlanGateConfig) -> Optional[str]:
    """Return the reason ``action`` is unsafe, or None if it may run."""
    if not is_safe_path(action.path):
        return "unsafe path"
    if isinstance(action, DeleteFileAction):
        return None
    if not action.content:
        return "missing content"
    size = len(action.content.encode("utf-8"))
    if size > config.max_file_size_bytes:
        return f"content exceeds {config.max_file_size_bytes} bytes ({size})"
    return None


def evaluate(raw_text: str, config: Optional[PlanGateConfig] = None) -> PlanGateResult:
    """
    Evaluate the reasoning service's answer and return a sanitized plan.

    Args:
        raw_text: Untrusted text from the reasoning service
        config: Optional gate configuration; defaults to the built-in limits

    Returns:
        PlanGateResult with the sanitized plan, rejected actions and the
        number of actions dropped by truncation

    Raises:
        PlanValidationError: if the text is not a schema-valid plan
    """
    if config is None:
        config = PlanGateConfig()

    data = extract_json(raw_text)

    try:
        plan = ActionPlan.model_validate(data)
    except ValidationError as e:
        raise PlanValidationError(
            code="SCHEMA_VIOLATION",
            message=_format_validation_error(e),
        ) from e

    kept: List[Action] = []
    rejected: List[RejectedAction] = []
    for index, action in enumerate(plan.actions):
        reason = check_action(action, config)
        if reason is None:
            kept.append(action)
            continue
        logger.warning(
            "plan_action_rejected",
            index=index,
            type=action.type,
            path=action.path,
            reason=reason,
        )
        rejected.append(RejectedAction(index=index, action=action, reason=reason))

    truncated = max(0, len(kept) - config.max_actions)
    if truncated:
        logger.warning(
            "plan_actions_truncated",
            max_actions=config.max_actions,
            dropped=truncated,
        )
        kept = kept[: config.max_actions]

    return PlanGateResult(
        plan=plan.model_copy(update={"actions": kept}),
        rejected=rejected,
        truncated=truncated,
    )
