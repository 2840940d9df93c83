from .evaluator import (
    DatasetStats,
    check_section,
    compute_quality_score,
    evaluate_guardrails,
    resolve_group_column,
)
from .forbidden_terms import FORBIDDEN_TERMS_MAP, derive_forbidden_terms, find_forbidden_terms
from .groups import rank_groups, small_groups
from .report import data_improvement_suggestions, format_limitations_section

__all__ = [
    "DatasetStats",
    "FORBIDDEN_TERMS_MAP",
    "check_section",
    "compute_quality_score",
    "data_improvement_suggestions",
    "derive_forbidden_terms",
    "evaluate_guardrails",
    "find_forbidden_terms",
    "format_limitations_section",
    "rank_groups",
    "resolve_group_column",
    "small_groups",
]
