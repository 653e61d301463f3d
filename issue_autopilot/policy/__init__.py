from .plan_gate import (
    PlanGateConfig,
    PlanGateResult,
    PlanValidationError,
    RejectedAction,
    check_action,
    evaluate,
    extract_json,
    is_safe_path,
)

__all__ = [
    "PlanGateConfig",
    "PlanGateResult",
    "PlanValidationError",
    "RejectedAction",
    "check_action",
    "evaluate",
    "extract_json",
    "is_safe_path",
]
