from __future__ import annotations

import os
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

ENV_PREFIX = "GUARDRAILS_"

# Hard ceiling for plan re-issue cycles, regardless of configuration.
MAX_PLAN_RETRIES_CEILING = 3


class GuardrailSettings(BaseModel):
    """
    Policy values used across the engine.

    Every threshold here is a policy default, not a business constant: callers may
    build their own instance (tests do) or override through GUARDRAILS_* env vars.
    """

    model_config = ConfigDict(frozen=True)

    # playbook selection
    selection_threshold: int = Field(80, ge=1, le=100)
    alternative_threshold: int = Field(60, ge=0, le=100)
    default_min_rows: int = Field(10, ge=0)
    row_gate_cap: int = Field(59, ge=0, le=100)

    # type inference
    sample_size: int = Field(100, ge=1)
    type_threshold: float = Field(0.8, gt=0.0, le=1.0)
    mixed_threshold: float = Field(0.2, gt=0.0, le=0.5)
    serial_min: float = 1
    serial_max: float = 60000
    serial_plausible_floor: float = 25569  # 1970-01-01 as a spreadsheet serial
    serial_hinted_floor: float = 366  # 1900-12-31; below this a hinted column is a day count

    # guardrails
    min_group_n: int = Field(10, ge=1)
    weight_completeness: float = Field(0.4, ge=0.0)
    weight_compatibility: float = Field(0.3, ge=0.0)
    weight_sections: float = Field(0.3, ge=0.0)

    # audit card
    low_compatibility_threshold: int = Field(90, ge=0, le=100)
    mapping_table_limit: int = Field(10, ge=1)

    # action plan review
    min_actions: int = Field(4, ge=1)
    max_actions: int = Field(8, ge=1)
    min_how_steps: int = Field(7, ge=1)
    min_kpis: int = Field(2, ge=0)
    kpi_cap: int = Field(10, ge=1)
    max_plan_retries: int = Field(1, ge=0, le=MAX_PLAN_RETRIES_CEILING)

    @model_validator(mode="after")
    def _check_consistency(self) -> "GuardrailSettings":
        if self.alternative_threshold >= self.selection_threshold:
            raise ValueError("alternative_threshold must be below selection_threshold.")
        if self.row_gate_cap >= self.selection_threshold:
            raise ValueError("row_gate_cap must stay below selection_threshold.")
        if self.serial_min >= self.serial_max:
            raise ValueError("serial_min must be below serial_max.")
        if self.serial_hinted_floor > self.serial_plausible_floor:
            raise ValueError("serial_hinted_floor must not exceed serial_plausible_floor.")
        if self.min_actions > self.max_actions:
            raise ValueError("min_actions must not exceed max_actions.")
        total = self.weight_completeness + self.weight_compatibility + self.weight_sections
        if total <= 0:
            raise ValueError("Quality score weights must not all be zero.")
        return self

    @property
    def quality_weights(self) -> tuple[float, float, float]:
        total = self.weight_completeness + self.weight_compatibility + self.weight_sections
        return (
            self.weight_completeness / total,
            self.weight_compatibility / total,
            self.weight_sections / total,
        )


DEFAULT_SETTINGS = GuardrailSettings()


def load_settings(environ: Optional[Mapping[str, str]] = None) -> GuardrailSettings:
    """Build settings from defaults plus GUARDRAILS_<FIELD> overrides.

    Unparsable values are ignored (the default is kept). A combination of values that
    parses but is inconsistent raises ValueError.
    """
    env = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}

    for name, field in GuardrailSettings.model_fields.items():
        raw = env.get(ENV_PREFIX + name.upper())
        if raw is None or raw.strip() == "":
            continue
        parsed = _parse_env_value(raw.strip(), field.annotation)
        if parsed is not None:
            overrides[name] = parsed

    try:
        return GuardrailSettings(**overrides)
    except ValidationError as e:
        raise ValueError(f"Invalid guardrail settings: {e}") from e


def _parse_env_value(raw: str, annotation: Any) -> Optional[float | int]:
    try:
        if annotation is int:
            return int(raw)
        return float(raw)
    except ValueError:
        return None
