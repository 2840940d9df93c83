from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ..config import DEFAULT_SETTINGS, MAX_PLAN_RETRIES_CEILING, GuardrailSettings
from ..errors import PlanFormatError
from .schema import Action, normalize_plan
from .validator import ValidationResult, validate_actions

logger = logging.getLogger(__name__)

# Called with None for the first attempt, then with the reissue prompt.
PlanGenerator = Callable[[Optional[str]], Any]


def build_reissue_prompt(result: ValidationResult, settings: GuardrailSettings = DEFAULT_SETTINGS) -> str:
    """
    Correction instruction for the plan generator.

    Built from the same result the validator produced, so what is asked to be fixed
    is exactly what was checked.
    """
    m = result.metrics
    lines = ["VALIDATION FAILED - REWRITE THE PLAN:", ""]

    if result.errors:
        lines.append("CRITICAL ERRORS:")
        lines.extend(f"{i}. {e}" for i, e in enumerate(result.errors, start=1))
        lines.append("")

    lines.append("CURRENT STATE:")
    lines.append(
        f"- Actions generated: {m.action_count} (TARGET: {settings.min_actions}-{settings.max_actions})"
    )
    lines.append(
        f"- Average HOW depth: {m.avg_how_depth} steps (TARGET: at least {settings.min_how_steps})"
    )
    lines.append(
        f"- KPIs identified: {m.kpis_count} (TARGET: at least {settings.min_kpis} per action)"
    )
    lines.append("")

    lines.append("CORRECTION INSTRUCTIONS:")
    if m.action_count < settings.min_actions:
        lines.append(f"- ADD {settings.min_actions - m.action_count} distinct complementary action(s)")
    if m.avg_how_depth < settings.min_how_steps:
        lines.append(f"- DETAIL the HOW of every action with at least {settings.min_how_steps} practical steps")
    if m.kpis_count < m.action_count * settings.min_kpis:
        lines.append("- ADD measurable targets (numbers, %, R$, deadlines) to every action")
    lines.append('- REMOVE generic wording such as "melhorar X" or "treinar equipe"')
    lines.append("- NAME tool categories (CRM, ERP, BI) with examples, not fixed brands")
    lines.append("")

    lines.append("Rewrite the complete JSON with ALL actions corrected and return ONLY the JSON.")
    return "\n".join(lines)


def telemetry_metrics(result: ValidationResult) -> dict[str, Any]:
    """Flat metrics for plan-quality telemetry."""
    return {
        "acao_density": result.metrics.action_count,
        "how_depth_avg": result.metrics.avg_how_depth,
        "kpis_count": result.metrics.kpis_count,
    }


@dataclass(frozen=True)
class PlanReview:
    """Final plan after the bounded re-issue cycle. Unverified plans are best effort."""
    actions: tuple[Action, ...]
    result: ValidationResult
    attempts: int
    prompts: tuple[str, ...] = field(default_factory=tuple)

    @property
    def verified(self) -> bool:
        return self.result.is_valid


def _review_once(raw: Any, settings: GuardrailSettings) -> tuple[tuple[Action, ...], ValidationResult]:
    try:
        actions = normalize_plan(raw)
    except PlanFormatError as e:
        return (), ValidationResult(is_valid=False, errors=(f"Malformed plan: {e}",))
    return tuple(actions), validate_actions(actions, settings)


def review_plan(generate: PlanGenerator, settings: GuardrailSettings = DEFAULT_SETTINGS) -> PlanReview:
    """
    Generate, validate and re-issue until valid or the retry budget is spent.

    The budget is settings.max_plan_retries, never above MAX_PLAN_RETRIES_CEILING.
    """
    budget = min(settings.max_plan_retries, MAX_PLAN_RETRIES_CEILING)

    actions, result = _review_once(generate(None), settings)
    attempts = 1
    prompts: list[str] = []

    while not result.is_valid and attempts <= budget:
        prompt = build_reissue_prompt(result, settings)
        prompts.append(prompt)
        logger.info("Plan failed validation with %d error(s); re-issuing (attempt %d).", len(result.errors), attempts + 1)
        actions, result = _review_once(generate(prompt), settings)
        attempts += 1

    if not result.is_valid:
        logger.warning("Plan still invalid after %d attempt(s); returning it unverified.", attempts)

    return PlanReview(actions=actions, result=result, attempts=attempts, prompts=tuple(prompts))
