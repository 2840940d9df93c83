from __future__ import annotations

from typing import Sequence

from ..models import ColumnType, DisabledSection, EnrichedSchema, GuardrailDecision

MAX_SUGGESTIONS = 5

SECTION_NAMES = {
    "temporal_trend": "Temporal analysis",
    "relationship": "Correlation analysis",
    "by_category": "Analysis by category",
    "by_location": "Analysis by location",
    "overview": "Overview",
    "distribution": "Distribution analysis",
    "significance": "Statistical significance",
}


def format_section_name(section: str) -> str:
    return SECTION_NAMES.get(section) or section.replace("_", " ").title()


def format_limitations_section(disabled: Sequence[DisabledSection]) -> str:
    """Markdown block the narrative layer must surface verbatim."""
    if not disabled:
        return "**All analysis sections are available for this dataset.**"

    lines = [
        "## Analysis limitations",
        "",
        "The following sections could not be produced because their requirements are not met:",
        "",
    ]
    for i, ds in enumerate(disabled, start=1):
        lines.append(f"**{i}. {format_section_name(ds.section)}**")
        lines.append(f"- **Reason:** {ds.reason}")
        lines.append(f"- **Missing requirement:** {ds.missing_requirement}")
        lines.append(f"- {ds.call_to_action}")
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


def data_improvement_suggestions(decision: GuardrailDecision, schema: EnrichedSchema) -> list[str]:
    """Top suggestions for enriching the dataset, most general first."""
    suggestions: list[str] = []

    if not schema.of_type(ColumnType.DATE):
        suggestions.append("Add a date column to enable trend analysis over time.")
    if len(schema.of_type(ColumnType.NUMERIC)) < 2:
        suggestions.append("Add more numeric columns to enable correlation analysis.")

    for ds in decision.disabled_sections:
        if ds.call_to_action not in suggestions:
            suggestions.append(ds.call_to_action)

    return suggestions[:MAX_SUGGESTIONS]
