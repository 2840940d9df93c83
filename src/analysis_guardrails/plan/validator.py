from __future__ import annotations

import re
from typing import Any, Sequence

from pydantic import BaseModel, ConfigDict

from ..config import DEFAULT_SETTINGS, GuardrailSettings
from .schema import Action, normalize_plan
from .steps import count_how_steps

# ---- Quantifiable signals -----------------------------------------------------

SIGNAL_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("percent", re.compile(r"\d+\s*%")),
    ("currency", re.compile(r"R\$\s*[\d.,]+", re.IGNORECASE)),
    (
        "unit_quantity",
        re.compile(r"\d+\s+(dias?|horas?|clientes?|vendas?|leads?|conversões?|tickets?|pedidos?)", re.IGNORECASE),
    ),
    ("comparison", re.compile(r"(de\s+\d+.*?para\s+\d+|passar\s+de.*?para)", re.IGNORECASE)),
    ("goal", re.compile(r"(meta|objetivo|alvo)\s+(de|:)\s*\d+", re.IGNORECASE)),
)

GENERIC_WHAT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^melhorar\s+\w+$", re.IGNORECASE),
    re.compile(r"^treinar\s+(equipe|time|funcionários?)$", re.IGNORECASE),
    re.compile(r"^contratar\s+sistema$", re.IGNORECASE),
    re.compile(r"^investir\s+em\s+\w+$", re.IGNORECASE),
    re.compile(r"^implementar\s+\w+\s*$", re.IGNORECASE),
)

_TOOL_CATEGORY_RE = re.compile(r"\b(crm|erp|bi|wms|aps|mes|scada|tipo|exemplo|similar)\b", re.IGNORECASE)


def count_quantifiable_signals(text: str, cap: int = DEFAULT_SETTINGS.kpi_cap) -> int:
    """Percentages, currency amounts, unit quantities, comparisons and numeric goals, capped."""
    if not text:
        return 0
    total = sum(len(p.findall(text)) for _, p in SIGNAL_PATTERNS)
    return min(total, cap)


def is_generic_what(what: str) -> bool:
    w = what.strip()
    return any(p.match(w) for p in GENERIC_WHAT_PATTERNS)


def names_vague_tool(how: str) -> bool:
    return "sistema" in how.lower() and not _TOOL_CATEGORY_RE.search(how)


# ---- Result -------------------------------------------------------------------


class PlanMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    action_count: int = 0
    avg_how_depth: float = 0.0
    kpis_count: int = 0


class ValidationResult(BaseModel):
    """Outcome of one plan review. Errors block acceptance, warnings do not."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    metrics: PlanMetrics = PlanMetrics()


# ---- Validation ---------------------------------------------------------------


def _action_errors(
    number: int,
    action: Action,
    settings: GuardrailSettings,
) -> tuple[list[str], list[str], int, int]:
    errors: list[str] = []
    warnings: list[str] = []

    steps = count_how_steps(action.how).count
    if steps < settings.min_how_steps:
        errors.append(
            f'Action {number} "{action.what[:40]}..." has only {steps} steps in HOW. '
            f"At least {settings.min_how_steps} are required."
        )

    if is_generic_what(action.what):
        errors.append(f'Action {number} "{action.what}" is too generic. Say specifically WHAT will be done.')

    kpis = count_quantifiable_signals(f"{action.why} {action.how}", cap=settings.kpi_cap)
    if kpis < settings.min_kpis:
        errors.append(
            f"Action {number} has only {kpis} measurable KPI(s). At least {settings.min_kpis} are required."
        )

    if names_vague_tool(action.how):
        warnings.append(
            f'Action {number}: name a tool CATEGORY (e.g. "CRM such as HubSpot"), not just "sistema".'
        )

    return errors, warnings, steps, kpis


def validate_actions(
    actions: Sequence[Action],
    settings: GuardrailSettings = DEFAULT_SETTINGS,
) -> ValidationResult:
    """Single pass over the plan. The actions are never modified."""
    errors: list[str] = []
    warnings: list[str] = []

    n = len(actions)
    if n < settings.min_actions:
        errors.append(f"Only {n} actions generated. At least {settings.min_actions} actions are required.")
    elif n > settings.max_actions:
        warnings.append(f"{n} actions generated. Consider consolidating to at most {settings.max_actions}.")

    total_steps = 0
    total_kpis = 0
    for i, action in enumerate(actions, start=1):
        a_errors, a_warnings, steps, kpis = _action_errors(i, action, settings)
        errors.extend(a_errors)
        warnings.extend(a_warnings)
        total_steps += steps
        total_kpis += kpis

    avg_depth = round(total_steps / n, 1) if n else 0.0
    return ValidationResult(
        is_valid=not errors,
        errors=tuple(errors),
        warnings=tuple(warnings),
        metrics=PlanMetrics(action_count=n, avg_how_depth=avg_depth, kpis_count=total_kpis),
    )


def validate_plan(obj: Any, settings: GuardrailSettings = DEFAULT_SETTINGS) -> ValidationResult:
    """Normalize a raw plan (list or mapping, English or Portuguese keys) and validate it."""
    return validate_actions(normalize_plan(obj), settings)
