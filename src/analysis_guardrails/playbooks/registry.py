from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from ..errors import ReferenceDataError
from ..models import ColumnRequirement, ColumnType, Playbook, SectionSpec
from ..utils import read_json

logger = logging.getLogger(__name__)

DEFAULT_PLAYBOOKS_PATH = Path(__file__).parent / "data" / "playbooks.json"

FALLBACK_PLAYBOOK_ID = "generic_exploratory_v1"

VALID_COLUMN_TYPES = {t.value for t in ColumnType if t != ColumnType.MIXED}

# Common scenario names -> playbook id.
SCENARIOS = {
    "inventory_divergence": "pb_estoque_divergencias_v1",
    "stock_divergence": "pb_estoque_divergencias_v1",
    "sales": "pb_vendas_basico_v1",
    "seasonality": "pb_vendas_sazonalidade_v1",
    "otif": "pb_logistica_otif_v1",
    "logistics": "pb_logistica_otif_v1",
    "hr_performance": "pb_rh_performance_v1",
    "cashflow": "pb_financeiro_cashflow_v1",
    "pareto": "pb_pareto_abc_generico_v1",
    "abc": "pb_pareto_abc_generico_v1",
}


def _generic_exploratory() -> Playbook:
    """Domain-neutral playbook: descriptive statistics only, sections gated on column types."""
    return Playbook(
        id=FALLBACK_PLAYBOOK_ID,
        name="Generic exploratory analysis",
        domain="generic",
        description="Descriptive statistics only. Makes no domain-specific claims.",
        version="1.0.0",
        semantic_tags=("exploratory", "descriptive"),
        sections=(
            SectionSpec(name="overview", title="Dataset overview"),
            SectionSpec(
                name="distribution",
                title="Numeric distributions",
                min_numeric_columns=1,
                call_to_action="Include at least one numeric column (amounts, quantities, scores).",
            ),
            SectionSpec(
                name="by_category",
                title="Breakdown by category",
                requires_types=(ColumnType.TEXT, ColumnType.NUMERIC),
                group_by_type=ColumnType.TEXT,
                call_to_action="Include a categorical column and a numeric column to compare groups.",
            ),
            SectionSpec(
                name="temporal_trend",
                title="Trend over time",
                requires_types=(ColumnType.DATE,),
                min_rows=24,
                call_to_action="Add a column with order or event dates to enable trend analysis.",
            ),
            SectionSpec(
                name="relationship",
                title="Relationships between numeric columns",
                min_numeric_columns=2,
                min_rows=30,
                call_to_action="Include at least two numeric columns and 30 rows to study relationships.",
            ),
        ),
    )


class PlaybookRegistry:
    """
    Registry of analysis playbooks.

    Declared order is kept (it breaks scoring ties). Immutable once built: reloads
    construct a new registry. The fallback playbook is always present and never scored.
    """

    def __init__(self, playbooks: Iterable[Playbook], *, version: str = "0") -> None:
        self.version = version
        self._playbooks: dict[str, Playbook] = {}
        # Versions per base id (pb_vendas_basico -> [pb_vendas_basico_v1, ...]).
        self._playbook_versions: dict[str, list[str]] = {}

        for pb in playbooks:
            if pb.id == FALLBACK_PLAYBOOK_ID:
                continue
            self._register(pb)

        self._fallback = _generic_exploratory()
        self._register(self._fallback)

    def _register(self, playbook: Playbook) -> None:
        if playbook.id in self._playbooks:
            raise ReferenceDataError(f"Duplicate playbook id '{playbook.id}'.")
        self._playbooks[playbook.id] = playbook

        base_name = playbook.id
        if "_v" in playbook.id:
            base_name = playbook.id.rsplit("_v", 1)[0]
        self._playbook_versions.setdefault(base_name, []).append(playbook.id)

    def __len__(self) -> int:
        return len(self._playbooks)

    def __contains__(self, playbook_id: object) -> bool:
        return playbook_id in self._playbooks

    @property
    def fallback(self) -> Playbook:
        return self._fallback

    @property
    def scorable(self) -> list[Playbook]:
        """Playbooks that take part in scoring, in declared order."""
        return [p for p in self._playbooks.values() if p.id != FALLBACK_PLAYBOOK_ID]

    def index_of(self, playbook_id: str) -> int:
        return list(self._playbooks).index(playbook_id)

    def list_playbooks(self) -> list[str]:
        """Sorted ids of every registered playbook, fallback included."""
        return sorted(self._playbooks.keys())

    def list_playbook_versions(self, base_name: str) -> list[str]:
        return sorted(self._playbook_versions.get(base_name, []))

    def get_playbook(self, playbook_id: str) -> Playbook:
        try:
            return self._playbooks[playbook_id]
        except KeyError as exc:
            raise KeyError(self._unknown_playbook_msg(playbook_id)) from exc

    def describe_playbook(self, playbook_id: str) -> dict[str, object]:
        pb = self.get_playbook(playbook_id)
        return {
            "id": pb.id,
            "name": pb.name,
            "version": pb.version,
            "domain": pb.domain,
            "description": pb.description,
            "required_columns": [{"name": r.name, "type": r.type.value} for r in pb.required_columns],
            "optional_columns": [{"name": r.name, "type": r.type.value} for r in pb.optional_columns],
            "semantic_tags": list(pb.semantic_tags),
            "min_rows": pb.min_rows,
            "sections": pb.section_names(),
            "forbidden_terms": list(pb.forbidden_terms),
            "is_fallback": pb.id == FALLBACK_PLAYBOOK_ID,
        }

    def search(self, keyword: str) -> list[Playbook]:
        """Playbooks whose id, domain, description or tags contain the keyword."""
        k = keyword.strip().lower()
        if not k:
            return []
        out = []
        for pb in self._playbooks.values():
            haystack = " ".join([pb.id, pb.domain, pb.description, *pb.semantic_tags]).lower()
            if k in haystack:
                out.append(pb)
        return out

    def recommended_for(self, scenario: str) -> Optional[Playbook]:
        playbook_id = SCENARIOS.get(scenario.strip().lower())
        if playbook_id is None or playbook_id not in self._playbooks:
            return None
        return self._playbooks[playbook_id]

    def stats(self) -> dict[str, Any]:
        scorable = self.scorable
        by_domain: dict[str, int] = {}
        for pb in scorable:
            by_domain[pb.domain] = by_domain.get(pb.domain, 0) + 1
        n = len(scorable) or 1
        return {
            "total": len(scorable),
            "by_domain": dict(sorted(by_domain.items())),
            "avg_required_columns": round(sum(len(p.required_columns) for p in scorable) / n, 1),
            "avg_optional_columns": round(sum(len(p.optional_columns) for p in scorable) / n, 1),
        }

    def _unknown_playbook_msg(self, playbook_id: str) -> str:
        available = ", ".join(self.list_playbooks()) or "none"
        return f"Unknown playbook '{playbook_id}'. Available playbooks: {available}."


def validate_playbook_structure(raw: Any) -> list[str]:
    """Structural problems of one raw playbook definition (empty list when valid)."""
    if not isinstance(raw, dict):
        return ["Playbook definition must be an object"]

    errors: list[str] = []
    for key in ("id", "domain", "description", "required_columns", "sections"):
        if not raw.get(key):
            errors.append(f"Missing {key}")

    for group in ("required_columns", "optional_columns"):
        for req in raw.get(group) or []:
            if not isinstance(req, dict) or not req.get("name"):
                errors.append(f"Invalid entry in {group}: {req!r}")
                continue
            if req.get("type") not in VALID_COLUMN_TYPES:
                errors.append(f'Invalid type "{req.get("type")}" for column "{req["name"]}"')

    names: set[str] = set()
    for section in raw.get("sections") or []:
        name = section.get("name") if isinstance(section, dict) else None
        if not name:
            errors.append(f"Section without a name: {section!r}")
            continue
        if name in names:
            errors.append(f'Duplicate section "{name}"')
        names.add(name)

    return errors


def load_playbook_registry(path: Optional[Path] = None) -> PlaybookRegistry:
    """Load and validate the registry. Every failure is fatal (ReferenceDataError)."""
    p = Path(path) if path is not None else DEFAULT_PLAYBOOKS_PATH
    try:
        data = read_json(p)
    except (OSError, json.JSONDecodeError) as e:
        raise ReferenceDataError(f"Unable to read playbook registry '{p}': {e}") from e

    raw_playbooks = data.get("playbooks") if isinstance(data, dict) else None
    if not isinstance(raw_playbooks, list) or not raw_playbooks:
        raise ReferenceDataError(f"Playbook registry '{p}' must hold a non-empty 'playbooks' list.")

    playbooks: list[Playbook] = []
    for raw in raw_playbooks:
        problems = validate_playbook_structure(raw)
        if problems:
            pid = raw.get("id", "?") if isinstance(raw, dict) else "?"
            raise ReferenceDataError(f"Invalid playbook '{pid}': {'; '.join(problems)}")
        try:
            playbooks.append(Playbook.model_validate(raw))
        except ValidationError as e:
            raise ReferenceDataError(f"Invalid playbook '{raw.get('id')}': {e}") from e

    registry = PlaybookRegistry(playbooks, version=str(data.get("registry_version", "0")))
    logger.info("Loaded %d playbooks (registry v%s)", len(registry.scorable), registry.version)
    return registry
