from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Optional

import pandas as pd

from ..config import DEFAULT_SETTINGS, GuardrailSettings
from ..models import (
    ColumnRequirement,
    ColumnType,
    CompatibilityResult,
    DisabledSection,
    EnrichedColumn,
    EnrichedSchema,
    GroupExclusion,
    GuardrailDecision,
    Playbook,
    SectionSpec,
)
from ..playbooks.registry import FALLBACK_PLAYBOOK_ID
from ..playbooks.scoring import effective_min_rows, find_column
from .forbidden_terms import derive_forbidden_terms
from .groups import group_sizes, small_groups

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatasetStats:
    row_count: int
    column_count: int = 0

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> "DatasetStats":
        return cls(row_count=int(frame.shape[0]), column_count=int(frame.shape[1]))


@dataclass
class _SectionCheck:
    reasons: list[str] = field(default_factory=list)
    requirements: list[str] = field(default_factory=list)
    actions: list[str] = field(default_factory=list)
    missing_columns: list[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return bool(self.reasons)

    def fail(self, reason: str, requirement: str, action: str) -> None:
        self.reasons.append(reason)
        self.requirements.append(requirement)
        if action not in self.actions:
            self.actions.append(action)

    def to_disabled(self, section: SectionSpec) -> DisabledSection:
        return DisabledSection(
            section=section.name,
            reason="; ".join(self.reasons),
            missing_requirement=", ".join(self.requirements),
            call_to_action=" ".join(self.actions),
            missing_columns=tuple(self.missing_columns),
        )


_TYPE_NOUNS = {
    ColumnType.DATE: "date",
    ColumnType.NUMERIC: "numeric",
    ColumnType.TEXT: "text/category",
    ColumnType.BOOLEAN: "yes/no",
}


def _describe_missing(req: ColumnRequirement, schema: EnrichedSchema) -> str:
    candidates = schema.with_canonical(req.name)
    if candidates:
        c = candidates[0]
        return (
            f"Column '{c.original_name}' maps to '{req.name}' but was read as "
            f"{c.inferred_type.value}, not {req.type.value}"
        )
    return f"No {_TYPE_NOUNS[req.type]} column maps to '{req.name}'"


def _default_action(section: SectionSpec, req: ColumnRequirement) -> str:
    return f"Add a {_TYPE_NOUNS[req.type]} column for '{req.name}' to enable {section.display_title()}."


def check_section(
    section: SectionSpec,
    schema: EnrichedSchema,
    row_count: int,
) -> _SectionCheck:
    """Evaluate every precondition of a section; all unmet conditions are reported."""
    check = _SectionCheck()

    for req in section.columns:
        if find_column(schema, req) is None:
            check.missing_columns.append(req.name)
            check.fail(
                _describe_missing(req, schema),
                req.name,
                section.call_to_action or _default_action(section, req),
            )

    if section.any_of and not any(find_column(schema, r) is not None for r in section.any_of):
        names = [r.name for r in section.any_of]
        check.missing_columns.extend(names)
        check.fail(
            f"None of the columns {', '.join(repr(n) for n in names)} is present with the expected type",
            " | ".join(names),
            section.call_to_action or _default_action(section, section.any_of[0]),
        )

    for t in section.requires_types:
        if not schema.of_type(t):
            check.fail(
                f"No column was read as {t.value}",
                f"a {t.value} column",
                section.call_to_action or f"Add a {_TYPE_NOUNS[t]} column to enable {section.display_title()}.",
            )

    numeric = len(schema.of_type(ColumnType.NUMERIC))
    if numeric < section.min_numeric_columns:
        check.fail(
            f"Only {numeric} numeric column(s) (minimum {section.min_numeric_columns})",
            f"at least {section.min_numeric_columns} numeric columns",
            section.call_to_action or "Add more numeric columns (amounts, quantities, scores).",
        )

    if row_count < section.min_rows:
        check.fail(
            f"Sample too small ({row_count} < {section.min_rows} rows)",
            f"at least {section.min_rows} rows",
            f"Add more rows (at least {section.min_rows}) for a reliable {section.display_title()}.",
        )

    return check


def resolve_group_column(
    section: SectionSpec,
    schema: EnrichedSchema,
    frame: Optional[pd.DataFrame] = None,
    min_group_n: int = DEFAULT_SETTINGS.min_group_n,
) -> Optional[EnrichedColumn]:
    """
    Column a grouping section groups on.

    Canonical group_by names win. Otherwise the first column of group_by_type is
    taken; with a frame, empty columns are skipped and a column with at least one
    group of min_group_n rows is preferred over one whose groups are all small.
    """
    for name in section.group_by:
        found = schema.with_canonical(name)
        if found:
            return found[0]
    if section.group_by_type is None:
        return None

    candidates = schema.of_type(section.group_by_type)
    if frame is None:
        return candidates[0] if candidates else None

    fallback: Optional[EnrichedColumn] = None
    for col in candidates:
        if col.original_name not in frame.columns:
            continue
        sizes = group_sizes(frame, col.original_name)
        if sizes.empty:
            continue
        if int(sizes.iloc[0]) >= min_group_n:
            return col
        if fallback is None:
            fallback = col
    return fallback


def _completeness(
    playbook: Playbook,
    compatibility: CompatibilityResult,
    schema: EnrichedSchema,
    row_count: int,
) -> float:
    if row_count <= 0:
        return 0.0

    if playbook.id == FALLBACK_PLAYBOOK_ID or not playbook.required_columns:
        cols = list(schema.columns)
    else:
        by_name = {r.name: r for r in playbook.required_columns}
        cols = []
        for name in compatibility.matched_columns:
            col = find_column(schema, by_name[name]) if name in by_name else None
            if col is not None:
                cols.append(col)

    if not cols:
        return 0.0
    nulls = sum(min(c.null_count, row_count) for c in cols)
    return 1.0 - nulls / (row_count * len(cols))


def compute_quality_score(
    completeness: float,
    compatibility_score: int,
    enabled_fraction: float,
    settings: GuardrailSettings = DEFAULT_SETTINGS,
) -> int:
    w_complete, w_compat, w_sections = settings.quality_weights
    raw = 100 * (w_complete * completeness + w_compat * compatibility_score / 100 + w_sections * enabled_fraction)
    return max(0, min(100, int(math.floor(raw + 0.5))))


def evaluate_guardrails(
    playbook: Playbook,
    compatibility: CompatibilityResult,
    schema: EnrichedSchema,
    stats: DatasetStats,
    settings: GuardrailSettings = DEFAULT_SETTINGS,
    frame: Optional[pd.DataFrame] = None,
) -> GuardrailDecision:
    """
    Decide which of the playbook's sections may run.

    Sections are checked in declared order. A section that fails any precondition is
    disabled with a reason, the literal missing requirement and a call to action.
    When the frame is given, grouping sections drop groups under min_group_n rows
    and are disabled if no group survives. Pure: same inputs, same decision.
    """
    row_count = stats.row_count
    active: list[str] = []
    disabled: list[DisabledSection] = []
    exclusions: list[GroupExclusion] = []
    warnings: list[str] = []

    min_rows = effective_min_rows(playbook, settings)
    if row_count < min_rows:
        warnings.append(
            f"Dataset has only {row_count} rows; at least {min_rows} are recommended for reliable results."
        )

    for m in compatibility.type_mismatches:
        warnings.append(
            f"Column '{m.column}' matches '{m.canonical_name}' by name but holds "
            f"{m.actual.value} values, not {m.expected.value}; it was not used for that requirement."
        )

    for col in schema.of_type(ColumnType.MIXED):
        warnings.append(f"Column '{col.original_name}' mixes value types; it was not coerced.")

    for section in playbook.sections:
        check = check_section(section, schema, row_count)
        if check.failed:
            disabled.append(check.to_disabled(section))
            continue

        if frame is not None and section.is_grouping:
            group_col = resolve_group_column(section, schema, frame, settings.min_group_n)
            if group_col is not None and group_col.original_name in frame.columns:
                kept, excluded = small_groups(frame, group_col.original_name, settings.min_group_n)
                label = group_col.canonical_name or group_col.normalized_name
                if not kept:
                    disabled.append(
                        DisabledSection(
                            section=section.name,
                            reason=f"Every group in '{group_col.original_name}' has fewer than "
                                   f"{settings.min_group_n} rows",
                            missing_requirement=f"groups of at least {settings.min_group_n} rows in {label}",
                            call_to_action="Add more rows per group, or group on a broader column.",
                        )
                    )
                    continue
                if excluded:
                    exclusions.append(
                        GroupExclusion(
                            section=section.name,
                            column=group_col.original_name,
                            excluded_groups=tuple(excluded),
                            min_group_n=settings.min_group_n,
                        )
                    )

        active.append(section.name)

    total = len(playbook.sections)
    enabled_fraction = len(active) / total if total else 0.0
    completeness = _completeness(playbook, compatibility, schema, row_count)
    quality = compute_quality_score(completeness, compatibility.score, enabled_fraction, settings)

    decision = GuardrailDecision(
        playbook_id=playbook.id,
        active_sections=tuple(active),
        disabled_sections=tuple(disabled),
        excluded_groups=tuple(exclusions),
        forbidden_terms=derive_forbidden_terms(playbook, schema),
        warnings=tuple(warnings),
        quality_score=quality,
    )

    logger.info(
        "Guardrails for %s: %d active, %d disabled, quality %d",
        playbook.id, len(active), len(disabled), quality,
    )
    return decision
