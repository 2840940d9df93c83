from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, ValidationError

from ..audit.card import AuditCard, IngestTelemetry, build_audit_card
from ..audit.markdown import render_audit_card_markdown
from ..errors import InputError
from ..guardrails.evaluator import DatasetStats, evaluate_guardrails
from ..infer import infer_columns, take_sample
from ..models import EnrichedSchema, GuardrailDecision, PlaybookSelection, RawColumn
from ..normalize import ColumnNormalizer, NormalizationOutcome, resolve_ingest_defaults
from ..plan.reissue import build_reissue_prompt
from ..plan.validator import ValidationResult, validate_plan
from ..playbooks.scoring import select_playbook
from ..semantic.dictionary import enrich_columns
from ..utils import is_null, now_iso
from .context import ReferenceData, ReferenceStore

logger = logging.getLogger(__name__)


class IngestPayload(BaseModel):
    """What the ingestion collaborator hands over: parsed rows, headers and telemetry."""

    model_config = ConfigDict(frozen=True)

    rows: tuple[dict[str, Any], ...]
    headers: tuple[str, ...]
    telemetry: IngestTelemetry = IngestTelemetry()


@dataclass(frozen=True)
class AnalysisResult:
    success: bool
    is_fallback: bool
    schema: EnrichedSchema
    selection: PlaybookSelection
    decision: GuardrailDecision
    audit_card: AuditCard
    normalization: NormalizationOutcome
    row_count: int

    @property
    def playbook_id(self) -> str:
        return self.selection.playbook.id

    @property
    def audit_markdown(self) -> str:
        return render_audit_card_markdown(self.audit_card)

    def to_dict(self) -> dict[str, Any]:
        """Response payload. Deterministic: identical input gives identical output."""
        return {
            "success": self.success,
            "is_fallback": self.is_fallback,
            "playbook_id": self.playbook_id,
            "compatibility_score": self.selection.result.score,
            "alternatives": [r.model_dump(mode="json") for r in self.selection.alternatives],
            "schema": self.schema.model_dump(mode="json"),
            "decision": self.decision.model_dump(mode="json"),
            "audit_card": self.audit_card.model_dump(mode="json"),
        }

    def envelope(self, generated_at: Optional[str] = None) -> dict[str, Any]:
        """Response payload plus the generation timestamp, kept outside the decision."""
        out = self.to_dict()
        out["generated_at"] = generated_at or now_iso()
        return out


def _coerce_payload(payload: Union[IngestPayload, Mapping[str, Any]]) -> IngestPayload:
    if isinstance(payload, IngestPayload):
        return payload
    if not isinstance(payload, Mapping):
        raise InputError("Ingestion payload must be an object with 'rows', 'headers' and 'telemetry'.")
    try:
        return IngestPayload.model_validate(payload)
    except ValidationError as e:
        raise InputError(f"Malformed ingestion payload: {e}") from e


def _check_payload(payload: IngestPayload) -> None:
    if not payload.headers:
        raise InputError("Dataset has no columns.")
    if not payload.rows:
        raise InputError("Dataset has no rows.")
    dupes = sorted({h for h in payload.headers if payload.headers.count(h) > 1})
    if dupes:
        raise InputError(f"Duplicate headers in payload: {dupes}")


class GuardrailEngine:
    """
    Entry point of the guardrail pipeline.

    Runs normalize -> infer -> semantic lookup -> score -> guardrails -> audit card in
    that order, against one reference snapshot per request.
    """

    def __init__(self, reference: Union[ReferenceData, ReferenceStore]) -> None:
        self._reference = reference

    @property
    def reference(self) -> ReferenceData:
        if isinstance(self._reference, ReferenceStore):
            return self._reference.current
        return self._reference

    def analyze(self, payload: Union[IngestPayload, Mapping[str, Any]]) -> AnalysisResult:
        """Analyze one upload. Raises InputError only for empty or malformed input."""
        data = _coerce_payload(payload)
        _check_payload(data)

        ref = self.reference
        settings = ref.settings
        telemetry = data.telemetry

        _, _, declared_locale, default_warnings = resolve_ingest_defaults(
            encoding=telemetry.encoding,
            dialect=telemetry.dialect,
            decimal_locale=telemetry.decimal_locale,
        )

        headers = list(data.headers)
        frame = pd.DataFrame.from_records(list(data.rows), columns=headers)

        raw_columns = [
            RawColumn(name=h, sample_values=tuple(take_sample(frame[h].tolist(), settings.sample_size)))
            for h in headers
        ]
        outcome = ColumnNormalizer().normalize(raw_columns, declared_locale=declared_locale)
        typed = infer_columns(raw_columns, outcome, settings=settings)

        null_counts = {h: int(frame[h].map(is_null).sum()) for h in headers}
        schema = enrich_columns(typed, ref.dictionary, null_counts=null_counts)

        stats = DatasetStats.from_frame(frame)
        selection = select_playbook(ref.registry, schema, stats.row_count, settings)
        decision = evaluate_guardrails(
            selection.playbook, selection.result, schema, stats, settings, frame=frame
        )

        mismatches = selection.result.type_mismatches
        if selection.is_fallback and selection.ranked:
            mismatches = selection.ranked[0].type_mismatches

        card = build_audit_card(
            telemetry,
            schema,
            decision,
            selection.playbook.id,
            selection.result.score,
            selection.is_fallback,
            row_count=stats.row_count,
            normalization=outcome,
            warnings=[*default_warnings, *outcome.warnings],
            type_mismatches=mismatches,
            events=selection.events,
            settings=settings,
        )

        return AnalysisResult(
            success=True,
            is_fallback=selection.is_fallback,
            schema=schema,
            selection=selection,
            decision=decision,
            audit_card=card,
            normalization=outcome,
            row_count=stats.row_count,
        )

    def review_action_plan(self, plan: Union[Sequence[Any], Mapping[str, Any]]) -> ValidationResult:
        return validate_plan(plan, self.reference.settings)

    def reissue_prompt(self, result: ValidationResult) -> str:
        return build_reissue_prompt(result, self.reference.settings)
