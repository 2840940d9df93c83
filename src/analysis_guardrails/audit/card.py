from __future__ import annotations

from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from ..config import DEFAULT_SETTINGS, GuardrailSettings
from ..models import (
    DisabledSection,
    EnrichedSchema,
    GroupExclusion,
    GuardrailDecision,
    TypeMismatch,
)
from ..normalize import COMMA, MAX_EXAMPLES, NormalizationOutcome

_DIALECT_NAMES = {"comma": "comma", "semicolon": "semicolon", "tab": "tab", "pipe": "pipe"}


class IngestTelemetry(BaseModel):
    """What the ingestion collaborator reports about the upload. Unknown keys are ignored."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    ingest_source: str = "unknown"
    file_size_bytes: int = Field(0, ge=0)
    detection_confidence: float = Field(0.0, ge=0.0, le=100.0)
    headers_original: tuple[str, ...] = ()
    headers_normalized: tuple[str, ...] = ()
    row_count: Optional[int] = Field(None, ge=0)
    column_count: Optional[int] = Field(None, ge=0)
    discarded_rows: int = Field(0, ge=0)
    decimal_locale: Optional[str] = None
    encoding: Optional[str] = None
    dialect: Optional[str] = None
    ingest_warnings: tuple[str, ...] = ()
    limitations: tuple[str, ...] = ()

    # format-specific details
    sheet_name: Optional[str] = None
    total_sheets: Optional[int] = None
    format: Optional[str] = None
    detection_method: Optional[str] = None
    tables_detected: Optional[int] = None


class _Card(BaseModel):
    model_config = ConfigDict(frozen=True)


class FileInfo(_Card):
    type: str
    size_mb: str
    confidence: str


class IngestionSummary(_Card):
    method: str
    rows_processed: int
    rows_discarded: int = 0
    columns_detected: int = 0
    warnings: tuple[str, ...] = ()


class NormalizationSummary(_Card):
    headers_changed: bool = False
    decimal_locale: Optional[str] = None
    encoding: Optional[str] = None
    dialect: Optional[str] = None
    examples: tuple[str, ...] = ()


class ColumnMappingRow(_Card):
    original: str
    normalized: str
    type: str
    canonical: Optional[str] = None
    note: Optional[str] = None


class SchemaDetection(_Card):
    columns: tuple[ColumnMappingRow, ...] = ()
    total_columns: int = 0
    omitted_columns: int = 0


class GuardrailsSummary(_Card):
    playbook_id: str
    compatibility_score: int
    is_fallback: bool = False
    quality_score: int = 0
    active_sections: tuple[str, ...] = ()
    disabled_sections: tuple[DisabledSection, ...] = ()
    excluded_groups: tuple[GroupExclusion, ...] = ()
    events: tuple[str, ...] = ()


class AuditCard(_Card):
    """Every normalization, mapping and guardrail decision of one request. No timestamps."""

    file_info: FileInfo
    ingestion: IngestionSummary
    normalizations: NormalizationSummary
    schema_detection: SchemaDetection
    guardrails: GuardrailsSummary
    limitations: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()

    def to_json(self) -> str:
        return self.model_dump_json(indent=2)


def ingestion_method_description(t: IngestTelemetry) -> str:
    source = t.ingest_source.lower()
    if source == "csv":
        return f"CSV with {_DIALECT_NAMES.get(t.dialect or '', t.dialect or 'detected')} delimiter"
    if source in ("xlsx", "xls"):
        if t.total_sheets and t.total_sheets > 1:
            return f'Excel - sheet "{t.sheet_name}" ({t.total_sheets} sheets in the file)'
        return f'Excel - sheet "{t.sheet_name}"' if t.sheet_name else "Excel"
    if source == "json":
        return "JSON (direct array)" if t.format == "direct_array" else "JSON (wrapped format)"
    if source == "txt":
        if t.detection_method == "delimited":
            return f"TXT with {t.dialect or 'detected'} delimiter"
        if t.detection_method == "fixed_width":
            return "TXT with fixed-width columns"
        return "TXT (structure detected)"
    if source == "pdf":
        return f"PDF - {t.tables_detected} table(s) detected" if t.tables_detected else "PDF (basic extraction)"
    if source == "docx":
        return "Word document (table extraction)"
    if source == "pptx":
        return "PowerPoint (table extraction)"
    return t.ingest_source.upper()


def _mapping_rows(
    schema: EnrichedSchema,
    mismatches: Sequence[TypeMismatch],
) -> list[ColumnMappingRow]:
    notes = {
        m.column: f"named like '{m.canonical_name}' but read as {m.actual.value}, not {m.expected.value}"
        for m in mismatches
    }
    return [
        ColumnMappingRow(
            original=c.original_name,
            normalized=c.normalized_name,
            type=c.inferred_type.value,
            canonical=c.canonical_name,
            note=notes.get(c.original_name),
        )
        for c in schema.columns
    ]


def _recommendations(
    telemetry: IngestTelemetry,
    decision: GuardrailDecision,
    playbook_id: str,
    compatibility_score: int,
    is_fallback: bool,
    row_count: int,
    settings: GuardrailSettings,
) -> list[str]:
    recs: list[str] = []

    if is_fallback:
        recs.append(
            f"No playbook reached {settings.selection_threshold}% compatibility (best score "
            f"{compatibility_score}%); a generic exploratory analysis was used. Add the columns a "
            "domain playbook expects to get a domain-specific analysis."
        )
    elif compatibility_score < settings.low_compatibility_threshold:
        recs.append(
            f'Compatibility with playbook "{playbook_id}": {compatibility_score}%. '
            "To improve the analysis, make sure the dataset holds every expected column."
        )

    if telemetry.discarded_rows > 0:
        pct = telemetry.discarded_rows / (row_count + telemetry.discarded_rows) * 100
        recs.append(
            f"{telemetry.discarded_rows} empty rows were discarded ({pct:.1f}%). "
            "Consider cleaning the file before upload."
        )

    if decision.disabled_sections:
        recs.append(
            "Some analysis sections were disabled for lack of required data. "
            'See "Disabled sections" for details.'
        )

    if telemetry.total_sheets and telemetry.total_sheets > 1:
        recs.append(
            f"The workbook holds {telemetry.total_sheets} sheets. Only the first "
            f'("{telemetry.sheet_name}") was analyzed. Export the other sheets individually to analyze them.'
        )

    return recs


def build_audit_card(
    telemetry: IngestTelemetry,
    schema: EnrichedSchema,
    decision: GuardrailDecision,
    playbook_id: str,
    compatibility_score: int,
    is_fallback: bool = False,
    *,
    row_count: Optional[int] = None,
    decimal_locale: Optional[str] = None,
    normalization: Optional[NormalizationOutcome] = None,
    warnings: Sequence[str] = (),
    type_mismatches: Sequence[TypeMismatch] = (),
    events: Sequence[str] = (),
    settings: GuardrailSettings = DEFAULT_SETTINGS,
) -> AuditCard:
    """
    Aggregate upstream results into the audit card.

    Pure formatting: every field comes from the telemetry, the normalizer outcome,
    the enriched schema or the guardrail decision. Nothing is decided here. Without
    a normalizer outcome the rename examples are read off the schema.
    """
    rows = row_count if row_count is not None else (telemetry.row_count or 0)

    if normalization is not None:
        locale = decimal_locale or normalization.decimal_locale
        headers_changed = bool(normalization.examples)
        examples = normalization.example_lines()
    else:
        locale = decimal_locale or telemetry.decimal_locale
        renames = [
            (c.original_name, c.normalized_name) for c in schema.columns if c.original_name != c.normalized_name
        ]
        headers_changed = bool(renames)
        examples = [f'"{before}" → "{after}"' for before, after in renames[:MAX_EXAMPLES]]
    if locale == COMMA:
        examples.append("Decimals: comma → dot (e.g. 1,5 → 1.5)")

    all_rows = _mapping_rows(schema, type_mismatches)
    limit = settings.mapping_table_limit

    ingest_warnings = tuple(dict.fromkeys([*telemetry.ingest_warnings, *warnings]))
    limitations = tuple(dict.fromkeys([*telemetry.limitations, *decision.warnings]))

    return AuditCard(
        file_info=FileInfo(
            type=telemetry.ingest_source.upper(),
            size_mb=f"{telemetry.file_size_bytes / 1024 / 1024:.2f}",
            confidence=f"{telemetry.detection_confidence:g}%",
        ),
        ingestion=IngestionSummary(
            method=ingestion_method_description(telemetry),
            rows_processed=rows,
            rows_discarded=telemetry.discarded_rows,
            columns_detected=len(schema.columns),
            warnings=ingest_warnings,
        ),
        normalizations=NormalizationSummary(
            headers_changed=headers_changed,
            decimal_locale=locale,
            encoding=telemetry.encoding,
            dialect=telemetry.dialect,
            examples=tuple(examples),
        ),
        schema_detection=SchemaDetection(
            columns=tuple(all_rows[:limit]),
            total_columns=len(all_rows),
            omitted_columns=max(0, len(all_rows) - limit),
        ),
        guardrails=GuardrailsSummary(
            playbook_id=playbook_id,
            compatibility_score=compatibility_score,
            is_fallback=is_fallback,
            quality_score=decision.quality_score,
            active_sections=decision.active_sections,
            disabled_sections=decision.disabled_sections,
            excluded_groups=decision.excluded_groups,
            events=tuple(events),
        ),
        limitations=limitations,
        recommendations=tuple(
            _recommendations(telemetry, decision, playbook_id, compatibility_score, is_fallback, rows, settings)
        ),
    )
