from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict

from ..errors import PlanFormatError

ACTION_FIELDS: tuple[str, ...] = ("what", "why", "who", "when", "where", "how", "how_much")

# English key first, then the Portuguese spellings plans arrive with.
_KEY_ALIASES: dict[str, tuple[str, ...]] = {
    "what": ("what", "o_que", "oque", "o que"),
    "why": ("why", "por_que", "porque", "por que"),
    "who": ("who", "quem"),
    "when": ("when", "quando"),
    "where": ("where", "onde"),
    "how": ("how", "como"),
    "how_much": ("how_much", "quanto", "quanto_custa"),
}

_PLAN_LIST_KEYS: tuple[str, ...] = ("actions", "acoes", "ações", "plano", "plan")


class Action(BaseModel):
    """One 5W2H action in its canonical shape. Read-only input to the validator."""

    model_config = ConfigDict(frozen=True)

    what: str = ""
    why: str = ""
    who: str = ""
    when: str = ""
    where: str = ""
    how: str = ""
    how_much: str = ""


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        # A list of steps is rendered as a numbered sequence.
        items = [str(v).strip() for v in value if v is not None and str(v).strip()]
        return "\n".join(f"{i}. {s}" for i, s in enumerate(items, start=1))
    return str(value).strip()


def normalize_action(raw: Mapping[str, Any]) -> Action:
    """Map an action with English or Portuguese keys to the canonical Action."""
    values: dict[str, str] = {}
    for field in ACTION_FIELDS:
        for key in _KEY_ALIASES[field]:
            v = raw.get(key)
            if v is not None and _as_text(v):
                values[field] = _as_text(v)
                break
    return Action(**values)


def normalize_plan(obj: Any) -> list[Action]:
    """Accept a list of actions or a mapping holding one under a known key."""
    if isinstance(obj, Mapping):
        for key in _PLAN_LIST_KEYS:
            if key in obj:
                obj = obj[key]
                break
        else:
            raise PlanFormatError(f"Plan object must hold its actions under one of {list(_PLAN_LIST_KEYS)}.")

    if not isinstance(obj, list):
        raise PlanFormatError("Plan must be a list of actions or an object with an 'actions' list.")

    actions: list[Action] = []
    for i, item in enumerate(obj):
        if isinstance(item, Action):
            actions.append(item)
            continue
        if not isinstance(item, Mapping):
            raise PlanFormatError(f"actions[{i}] must be an object.")
        actions.append(normalize_action(item))
    return actions


def load_plan(path: Path) -> list[Action]:
    """Load a plan JSON file and normalize it."""
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise PlanFormatError(f"{path.name} is not valid JSON: {e}") from e
    return normalize_plan(raw)
