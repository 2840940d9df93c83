from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ColumnType(str, Enum):
    """Primitive type inferred for a column from its sampled values."""
    NUMERIC = "numeric"
    TEXT = "text"
    DATE = "date"
    BOOLEAN = "boolean"
    MIXED = "mixed"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---- Columns ------------------------------------------------------------------


class RawColumn(_Frozen):
    """One column as handed over by the ingestion collaborator. Consumed once."""
    name: str
    sample_values: tuple[Any, ...] = ()


class NormalizedColumn(_Frozen):
    """
    Canonical shape of a column.

    normalized_name: lower-cased, accent/unit/currency stripped, never empty,
    unique within the dataset (collisions get a numeric suffix).
    """
    original_name: str
    normalized_name: str
    inferred_type: ColumnType = ColumnType.TEXT
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    is_spreadsheet_serial: bool = False

    @field_validator("normalized_name")
    @classmethod
    def _not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("normalized_name must not be empty.")
        return v


class EnrichedColumn(_Frozen):
    column: NormalizedColumn
    canonical_name: Optional[str] = None
    null_count: int = Field(0, ge=0)

    @property
    def original_name(self) -> str:
        return self.column.original_name

    @property
    def normalized_name(self) -> str:
        return self.column.normalized_name

    @property
    def inferred_type(self) -> ColumnType:
        return self.column.inferred_type


class EnrichedSchema(_Frozen):
    """Ordered columns, one entry per original column, original order preserved."""
    columns: tuple[EnrichedColumn, ...] = ()

    def with_canonical(self, canonical_name: str) -> list[EnrichedColumn]:
        return [c for c in self.columns if c.canonical_name == canonical_name]

    def of_type(self, column_type: ColumnType) -> list[EnrichedColumn]:
        return [c for c in self.columns if c.inferred_type == column_type]

    def canonical_names(self) -> list[str]:
        return [c.canonical_name for c in self.columns if c.canonical_name]


# ---- Playbooks ----------------------------------------------------------------


class ColumnRequirement(_Frozen):
    """A canonical column a playbook (or one of its sections) needs, with its type."""
    name: str
    type: ColumnType

    @field_validator("type")
    @classmethod
    def _no_mixed(cls, v: ColumnType) -> ColumnType:
        if v == ColumnType.MIXED:
            raise ValueError("A requirement cannot ask for a 'mixed' column.")
        return v

    def label(self) -> str:
        return f"{self.name} ({self.type.value})"


class SectionSpec(_Frozen):
    """
    One analysis section a playbook defines, plus its data precondition.

    columns: every requirement must be satisfied
    any_of: at least one requirement must be satisfied (empty = no constraint)
    requires_types: at least one column of each type, whatever its canonical name
    group_by: canonical columns the section may group on, first present wins
    group_by_type: group on the first column of this type (domain-neutral sections)
    """
    name: str
    title: Optional[str] = None
    columns: tuple[ColumnRequirement, ...] = ()
    any_of: tuple[ColumnRequirement, ...] = ()
    requires_types: tuple[ColumnType, ...] = ()
    min_rows: int = Field(0, ge=0)
    min_numeric_columns: int = Field(0, ge=0)
    group_by: tuple[str, ...] = ()
    group_by_type: Optional[ColumnType] = None
    call_to_action: Optional[str] = None

    @field_validator("group_by", mode="before")
    @classmethod
    def _group_by_as_tuple(cls, v: Any) -> Any:
        if isinstance(v, str):
            return (v,)
        return v

    @property
    def is_grouping(self) -> bool:
        return bool(self.group_by) or self.group_by_type is not None

    def display_title(self) -> str:
        return self.title or self.name.replace("_", " ").title()


class Playbook(_Frozen):
    """Static, pre-registered bundle of requirements and sections for one analysis domain."""
    id: str
    name: str
    domain: str = "generic"
    description: str = ""
    version: str = "1.0.0"
    required_columns: tuple[ColumnRequirement, ...] = ()
    optional_columns: tuple[ColumnRequirement, ...] = ()
    semantic_tags: tuple[str, ...] = ()
    min_rows: Optional[int] = Field(None, ge=0)
    sections: tuple[SectionSpec, ...] = ()
    forbidden_terms: tuple[str, ...] = ()

    @model_validator(mode="after")
    def _check_sections(self) -> "Playbook":
        if not self.id.strip():
            raise ValueError("Playbook id must not be empty.")
        seen: set[str] = set()
        for s in self.sections:
            if s.name in seen:
                raise ValueError(f"Playbook '{self.id}' declares section '{s.name}' twice.")
            seen.add(s.name)
        req_names = [r.name for r in self.required_columns]
        if len(set(req_names)) != len(req_names):
            raise ValueError(f"Playbook '{self.id}' lists a required column twice.")
        return self

    def section_names(self) -> list[str]:
        return [s.name for s in self.sections]


class TypeMismatch(_Frozen):
    canonical_name: str
    column: str
    expected: ColumnType
    actual: ColumnType


class CompatibilityResult(_Frozen):
    """Score of one playbook against one request. Never persisted beyond the request."""
    playbook_id: str
    score: int = Field(ge=0, le=100)
    matched_columns: tuple[str, ...] = ()
    missing_columns: tuple[str, ...] = ()
    type_mismatches: tuple[TypeMismatch, ...] = ()
    row_gate_applied: bool = False


# ---- Guardrails ---------------------------------------------------------------


class DisabledSection(_Frozen):
    section: str
    reason: str
    missing_requirement: str
    call_to_action: str
    missing_columns: tuple[str, ...] = ()


class GroupExclusion(_Frozen):
    """Groups left out of a grouping section because they hold too few rows."""
    section: str
    column: str
    excluded_groups: tuple[str, ...]
    min_group_n: int


class GuardrailDecision(_Frozen):
    playbook_id: str
    active_sections: tuple[str, ...] = ()
    disabled_sections: tuple[DisabledSection, ...] = ()
    excluded_groups: tuple[GroupExclusion, ...] = ()
    forbidden_terms: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    quality_score: int = Field(0, ge=0, le=100)

    @model_validator(mode="after")
    def _sections_are_exclusive(self) -> "GuardrailDecision":
        disabled = {d.section for d in self.disabled_sections}
        both = disabled.intersection(self.active_sections)
        if both:
            raise ValueError(f"Sections both active and disabled: {sorted(both)}")
        return self

    def disabled_names(self) -> list[str]:
        return [d.section for d in self.disabled_sections]

    def is_active(self, section: str) -> bool:
        return section in self.active_sections


class PlaybookSelection(_Frozen):
    """
    Outcome of scoring every registered playbook for one request.

    ranked: every scored result, best first
    alternatives: non-selected results at or above the alternative threshold
    events: guardrail events raised during selection (fallback use)
    """
    playbook: Playbook
    result: CompatibilityResult
    is_fallback: bool = False
    ranked: tuple[CompatibilityResult, ...] = ()
    alternatives: tuple[CompatibilityResult, ...] = ()
    events: tuple[str, ...] = ()
