from .reissue import PlanReview, build_reissue_prompt, review_plan, telemetry_metrics
from .schema import Action, load_plan, normalize_action, normalize_plan
from .steps import StepCount, count_how_steps
from .validator import (
    PlanMetrics,
    ValidationResult,
    count_quantifiable_signals,
    is_generic_what,
    validate_actions,
    validate_plan,
)

__all__ = [
    "Action",
    "PlanMetrics",
    "PlanReview",
    "StepCount",
    "ValidationResult",
    "build_reissue_prompt",
    "count_how_steps",
    "count_quantifiable_signals",
    "is_generic_what",
    "load_plan",
    "normalize_action",
    "normalize_plan",
    "review_plan",
    "telemetry_metrics",
    "validate_actions",
    "validate_plan",
]
