from __future__ import annotations

import logging
import math
from typing import Iterable, Optional

from ..config import DEFAULT_SETTINGS, GuardrailSettings
from ..models import (
    ColumnRequirement,
    ColumnType,
    CompatibilityResult,
    EnrichedColumn,
    EnrichedSchema,
    Playbook,
    PlaybookSelection,
    TypeMismatch,
)
from .registry import PlaybookRegistry

logger = logging.getLogger(__name__)


def is_type_compatible(required: ColumnType, actual: ColumnType) -> bool:
    """
    A text requirement is a label and accepts any column. Every other requirement
    needs the exact inferred type; mixed never satisfies numeric, date or boolean.
    """
    if required == ColumnType.TEXT:
        return True
    return required == actual


def find_column(schema: EnrichedSchema, requirement: ColumnRequirement) -> Optional[EnrichedColumn]:
    """First column carrying the required canonical name with a compatible type."""
    for col in schema.with_canonical(requirement.name):
        if is_type_compatible(requirement.type, col.inferred_type):
            return col
    return None


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def effective_min_rows(playbook: Playbook, settings: GuardrailSettings = DEFAULT_SETTINGS) -> int:
    return playbook.min_rows if playbook.min_rows is not None else settings.default_min_rows


def score_playbook(
    playbook: Playbook,
    schema: EnrichedSchema,
    row_count: int,
    settings: GuardrailSettings = DEFAULT_SETTINGS,
) -> CompatibilityResult:
    """
    Compatibility of one playbook with the enriched schema.

    A required column counts only when both its canonical name and its inferred type
    match. Below the playbook's row minimum the score is capped under the selection
    threshold, whatever the column match.
    """
    matched: list[str] = []
    missing: list[str] = []
    mismatches: list[TypeMismatch] = []

    for req in playbook.required_columns:
        if find_column(schema, req) is not None:
            matched.append(req.name)
            continue
        missing.append(req.name)
        candidates = schema.with_canonical(req.name)
        if candidates:
            mismatches.append(
                TypeMismatch(
                    canonical_name=req.name,
                    column=candidates[0].original_name,
                    expected=req.type,
                    actual=candidates[0].inferred_type,
                )
            )

    total = len(playbook.required_columns)
    score = _round_half_up(len(matched) / total * 100) if total else 0

    gated = row_count < effective_min_rows(playbook, settings)
    if gated:
        score = min(score, settings.row_gate_cap)

    return CompatibilityResult(
        playbook_id=playbook.id,
        score=score,
        matched_columns=tuple(matched),
        missing_columns=tuple(missing),
        type_mismatches=tuple(mismatches),
        row_gate_applied=gated,
    )


def score_all(
    registry: PlaybookRegistry,
    schema: EnrichedSchema,
    row_count: int,
    settings: GuardrailSettings = DEFAULT_SETTINGS,
) -> list[CompatibilityResult]:
    """One result per scorable playbook, in registry order."""
    return [score_playbook(pb, schema, row_count, settings) for pb in registry.scorable]


def rank_results(
    results: Iterable[CompatibilityResult],
    registry: PlaybookRegistry,
) -> list[CompatibilityResult]:
    """Score desc, then matched column count desc, then registry order."""
    return sorted(
        results,
        key=lambda r: (-r.score, -len(r.matched_columns), registry.index_of(r.playbook_id)),
    )


def select_playbook(
    registry: PlaybookRegistry,
    schema: EnrichedSchema,
    row_count: int,
    settings: GuardrailSettings = DEFAULT_SETTINGS,
) -> PlaybookSelection:
    """
    Pick the playbook to apply.

    Only a score at or above the selection threshold is applied automatically.
    Otherwise the generic exploratory playbook is used and the fallback is
    recorded as an event.
    """
    ranked = rank_results(score_all(registry, schema, row_count, settings), registry)
    best = ranked[0] if ranked else None

    if best is not None and best.score >= settings.selection_threshold:
        playbook = registry.get_playbook(best.playbook_id)
        alternatives = tuple(
            r for r in ranked[1:] if r.score >= settings.alternative_threshold
        )
        logger.info("Selected playbook %s (score %d)", best.playbook_id, best.score)
        return PlaybookSelection(
            playbook=playbook,
            result=best,
            is_fallback=False,
            ranked=tuple(ranked),
            alternatives=alternatives,
        )

    fallback = registry.fallback
    best_score = best.score if best is not None else 0
    if best is not None:
        event = (
            f"No playbook reached {settings.selection_threshold}% compatibility "
            f"(best: {best.playbook_id} at {best.score}%); using {fallback.id} "
            "(descriptive statistics only)."
        )
    else:
        event = f"No playbooks registered; using {fallback.id} (descriptive statistics only)."
    logger.warning(event)

    return PlaybookSelection(
        playbook=fallback,
        result=CompatibilityResult(playbook_id=fallback.id, score=best_score),
        is_fallback=True,
        ranked=tuple(ranked),
        alternatives=tuple(r for r in ranked if r.score >= settings.alternative_threshold),
        events=(event,),
    )
