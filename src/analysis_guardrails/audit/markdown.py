from __future__ import annotations

from .card import AuditCard


def _file_lines(card: AuditCard) -> list[str]:
    fi = card.file_info
    return [
        f"- **Type:** {fi.type}",
        f"- **Size:** {fi.size_mb} MB",
        f"- **Detection confidence:** {fi.confidence}",
    ]


def _ingestion_lines(card: AuditCard) -> list[str]:
    ing = card.ingestion
    lines = [
        f"- **Method:** {ing.method}",
        f"- **Rows processed:** {ing.rows_processed}",
    ]
    if ing.rows_discarded > 0:
        lines.append(f"- **Rows discarded:** {ing.rows_discarded} (empty rows)")
    lines.append(f"- **Columns detected:** {ing.columns_detected}")
    if ing.warnings:
        lines.append("")
        lines.append("**Warnings:**")
        lines.extend(f"- {w}" for w in ing.warnings)
    return lines


def _schema_lines(card: AuditCard) -> list[str]:
    sd = card.schema_detection
    lines = [
        "| Original column | Normalized column | Detected type | Canonical name |",
        "|---|---|---|---|",
    ]
    for row in sd.columns:
        canonical = row.canonical or "-"
        if row.note:
            canonical = f"{canonical} ({row.note})"
        lines.append(f"| {row.original} | {row.normalized} | {row.type} | {canonical} |")
    if sd.omitted_columns:
        lines.append("")
        lines.append(f"*... and {sd.omitted_columns} more columns*")
    return lines


def _guardrail_lines(card: AuditCard) -> list[str]:
    g = card.guardrails
    playbook = f"{g.playbook_id} (fallback)" if g.is_fallback else g.playbook_id
    lines = [
        f"- **Playbook:** {playbook}",
        f"- **Compatibility score:** {g.compatibility_score}%",
        f"- **Quality score:** {g.quality_score}/100",
        f"- **Active sections:** {len(g.active_sections)}",
    ]
    if g.events:
        lines.extend(f"- **Event:** {e}" for e in g.events)
    if g.disabled_sections:
        lines.append(f"- **Disabled sections:** {len(g.disabled_sections)}")
        lines.append("")
        lines.append("**Reasons:**")
        for ds in g.disabled_sections:
            lines.append(f"- **{ds.section}:** {ds.reason}. Missing: {ds.missing_requirement}. {ds.call_to_action}")
    if g.excluded_groups:
        lines.append("")
        lines.append("**Groups left out (too few rows):**")
        for ex in g.excluded_groups:
            groups = ", ".join(ex.excluded_groups)
            lines.append(f"- **{ex.section}** ({ex.column}, fewer than {ex.min_group_n} rows): {groups}")
    return lines


def render_audit_card_markdown(card: AuditCard) -> str:
    """Markdown view of the card. A sub-section is rendered only when it has content."""
    blocks: list[tuple[str, list[str]]] = [
        ("File information", _file_lines(card)),
        ("Ingestion", _ingestion_lines(card)),
        ("Normalizations applied", [f"- {ex}" for ex in card.normalizations.examples]),
        ("Detected schema", _schema_lines(card) if card.schema_detection.columns else []),
        ("Guardrails", _guardrail_lines(card)),
        ("Limitations", [f"- {lim}" for lim in card.limitations]),
        ("Recommendations", [f"- {rec}" for rec in card.recommendations]),
    ]

    out = ["## Analysis audit card", ""]
    for title, lines in blocks:
        if not lines:
            continue
        out.append(f"### {title}")
        out.append("")
        out.extend(lines)
        out.append("")
    return "\n".join(out).rstrip() + "\n"
