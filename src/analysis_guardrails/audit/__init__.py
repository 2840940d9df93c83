from .card import (
    AuditCard,
    ColumnMappingRow,
    IngestTelemetry,
    build_audit_card,
    ingestion_method_description,
)
from .markdown import render_audit_card_markdown

__all__ = [
    "AuditCard",
    "ColumnMappingRow",
    "IngestTelemetry",
    "build_audit_card",
    "ingestion_method_description",
    "render_audit_card_markdown",
]
