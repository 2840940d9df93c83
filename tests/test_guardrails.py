from __future__ import annotations

import pandas as pd
import pytest

from analysis_guardrails.config import GuardrailSettings
from analysis_guardrails.guardrails import (
    DatasetStats,
    check_section,
    compute_quality_score,
    data_improvement_suggestions,
    derive_forbidden_terms,
    evaluate_guardrails,
    find_forbidden_terms,
    format_limitations_section,
    rank_groups,
    resolve_group_column,
    small_groups,
)
from analysis_guardrails.models import (
    ColumnRequirement,
    ColumnType,
    CompatibilityResult,
    DisabledSection,
    GuardrailDecision,
    Playbook,
    SectionSpec,
)
from analysis_guardrails.playbooks.scoring import score_playbook


def _sales_playbook() -> Playbook:
    return Playbook(
        id="pb_sales_v1",
        name="Sales",
        required_columns=(
            ColumnRequirement(name="product", type="text"),
            ColumnRequirement(name="quantity", type="numeric"),
        ),
        sections=(
            SectionSpec(name="overview", columns=(ColumnRequirement(name="quantity", type="numeric"),)),
            SectionSpec(
                name="by_product",
                columns=(ColumnRequirement(name="product", type="text"),),
                group_by=("product",),
            ),
            SectionSpec(
                name="temporal_trend",
                columns=(ColumnRequirement(name="order_date", type="date"),),
                min_rows=24,
                call_to_action="Add a column with order dates.",
            ),
            SectionSpec(name="relationship", min_numeric_columns=2, min_rows=30),
        ),
    )


def test_missing_date_disables_temporal_section(make_schema) -> None:
    pb = _sales_playbook()
    schema = make_schema(("produto", "text", "product"), ("qtd", "numeric", "quantity"))
    compat = score_playbook(pb, schema, 80)

    decision = evaluate_guardrails(pb, compat, schema, DatasetStats(row_count=80))
    assert decision.active_sections == ("overview", "by_product")
    disabled = {d.section: d for d in decision.disabled_sections}
    assert set(disabled) == {"temporal_trend", "relationship"}
    assert disabled["temporal_trend"].missing_requirement == "order_date"
    assert disabled["temporal_trend"].call_to_action == "Add a column with order dates."
    assert disabled["temporal_trend"].missing_columns == ("order_date",)
    assert "numeric column" in disabled["relationship"].reason


def test_date_named_column_with_wrong_type_still_disables(make_schema) -> None:
    pb = _sales_playbook()
    schema = make_schema(
        ("produto", "text", "product"),
        ("qtd", "numeric", "quantity"),
        ("data", "numeric", "order_date"),
    )
    check = check_section(pb.sections[2], schema, row_count=80)
    assert check.failed
    assert "read as numeric, not date" in check.reasons[0]


def test_all_unmet_conditions_are_reported_together(make_schema) -> None:
    section = SectionSpec(
        name="temporal_trend",
        columns=(ColumnRequirement(name="order_date", type="date"),),
        min_rows=24,
    )
    schema = make_schema(("qtd", "numeric", "quantity"))
    disabled = check_section(section, schema, row_count=10).to_disabled(section)
    assert disabled.missing_requirement == "order_date, at least 24 rows"
    assert "Sample too small (10 < 24 rows)" in disabled.reason


def test_requires_types_and_any_of(make_schema) -> None:
    by_location = SectionSpec(
        name="by_location",
        any_of=(ColumnRequirement(name="aisle", type="text"), ColumnRequirement(name="location", type="text")),
    )
    trend = SectionSpec(name="temporal_trend", requires_types=(ColumnType.DATE,))
    schema = make_schema(("rua", "text", "aisle"), ("qtd", "numeric"))

    assert not check_section(by_location, schema, 50).failed
    failed = check_section(trend, schema, 50)
    assert failed.requirements == ["a date column"]


def test_small_groups_are_excluded_but_section_stays_active(make_schema) -> None:
    pb = _sales_playbook()
    schema = make_schema(("produto", "text", "product"), ("qtd", "numeric", "quantity"))
    frame = pd.DataFrame({
        "produto": ["Cafe"] * 30 + ["Arroz"] * 12 + ["Sal"] * 3,
        "qtd": range(45),
    })
    compat = score_playbook(pb, schema, len(frame))
    decision = evaluate_guardrails(pb, compat, schema, DatasetStats.from_frame(frame), frame=frame)

    assert decision.is_active("by_product")
    assert len(decision.excluded_groups) == 1
    ex = decision.excluded_groups[0]
    assert ex.column == "produto"
    assert ex.excluded_groups == ("Sal",)
    assert ex.min_group_n == 10


def test_grouping_section_disabled_when_every_group_is_small(make_schema) -> None:
    pb = _sales_playbook()
    schema = make_schema(("produto", "text", "product"), ("qtd", "numeric", "quantity"))
    frame = pd.DataFrame({"produto": [f"P{i % 5}" for i in range(40)], "qtd": range(40)})
    compat = score_playbook(pb, schema, len(frame))
    decision = evaluate_guardrails(pb, compat, schema, DatasetStats.from_frame(frame), frame=frame)

    assert "by_product" in decision.disabled_names()
    assert not decision.is_active("by_product")


def test_decision_is_deterministic(make_schema) -> None:
    pb = _sales_playbook()
    schema = make_schema(("produto", "text", "product"), ("qtd", "numeric", "quantity", 5))
    compat = score_playbook(pb, schema, 80)
    a = evaluate_guardrails(pb, compat, schema, DatasetStats(row_count=80))
    b = evaluate_guardrails(pb, compat, schema, DatasetStats(row_count=80))
    assert a == b


def test_sections_are_active_or_disabled_never_both() -> None:
    with pytest.raises(ValueError):
        GuardrailDecision(
            playbook_id="x",
            active_sections=("overview",),
            disabled_sections=(
                DisabledSection(section="overview", reason="r", missing_requirement="m", call_to_action="c"),
            ),
        )


def test_quality_score_weights_and_bounds() -> None:
    assert compute_quality_score(1.0, 100, 1.0) == 100
    assert compute_quality_score(0.0, 0, 0.0) == 0
    # 0.4 * 0.5 + 0.3 * 0.8 + 0.3 * 0.5 = 0.59
    assert compute_quality_score(0.5, 80, 0.5) == 59
    settings = GuardrailSettings(weight_completeness=1, weight_compatibility=0, weight_sections=0)
    assert compute_quality_score(0.25, 100, 1.0, settings) == 25


def test_quality_score_uses_nulls_in_matched_columns(make_schema) -> None:
    pb = _sales_playbook()
    full = make_schema(("produto", "text", "product"), ("qtd", "numeric", "quantity"))
    holes = make_schema(("produto", "text", "product", 40), ("qtd", "numeric", "quantity"))
    compat = CompatibilityResult(playbook_id=pb.id, score=100, matched_columns=("product", "quantity"))
    q_full = evaluate_guardrails(pb, compat, full, DatasetStats(row_count=80)).quality_score
    q_holes = evaluate_guardrails(pb, compat, holes, DatasetStats(row_count=80)).quality_score
    assert q_holes < q_full


def test_warnings_for_low_rows_mismatch_and_mixed(make_schema) -> None:
    pb = _sales_playbook()
    schema = make_schema(
        ("produto", "text", "product"),
        ("qtd", "mixed", "quantity"),
    )
    compat = score_playbook(pb, schema, 5)
    decision = evaluate_guardrails(pb, compat, schema, DatasetStats(row_count=5))
    text = " ".join(decision.warnings)
    assert "only 5 rows" in text
    assert "matches 'quantity' by name" in text
    assert "mixes value types" in text


def test_forbidden_terms_follow_missing_concepts(make_schema) -> None:
    pb = _sales_playbook()
    schema = make_schema(("produto", "text", "product"), ("qtd", "numeric", "quantity"))
    terms = derive_forbidden_terms(pb, schema)
    assert "sazonalidade" in terms
    assert "faturamento" in terms
    assert "por cliente" in terms
    assert "por produto" not in terms
    assert "volume" not in terms
    assert len(terms) == len(set(terms))


def test_find_forbidden_terms_ignores_case_and_accents() -> None:
    found = find_forbidden_terms("A TENDENCIA de crescimento é clara", ["tendência", "crescimento", "lucro"])
    assert found == ["tendência", "crescimento"]


def test_small_groups_split() -> None:
    frame = pd.DataFrame({"cat": ["a"] * 10 + ["b"] * 9 + [None, ""]})
    assert small_groups(frame, "cat", 10) == (["a"], ["b"])


def test_rank_groups_never_returns_small_groups() -> None:
    frame = pd.DataFrame({
        "cat": ["A"] * 10 + ["B"] * 12 + ["Tiny"] * 2,
        "valor": ["1,00"] * 10 + ["2,00"] * 12 + ["1000,00"] * 2,
    })
    top = rank_groups(frame, "cat", "valor", n=5, decimal_locale="comma")
    assert list(top["group"]) == ["B", "A"]
    assert list(top["rows"]) == [12, 10]
    assert top["value"].tolist() == pytest.approx([24.0, 10.0])


def test_limitations_section_markdown() -> None:
    assert format_limitations_section([]) == "**All analysis sections are available for this dataset.**"
    md = format_limitations_section(
        [DisabledSection(section="temporal_trend", reason="No date", missing_requirement="order_date",
                         call_to_action="Add dates.")]
    )
    assert md.startswith("## Analysis limitations")
    assert "**1. Temporal analysis**" in md
    assert "- **Missing requirement:** order_date" in md


def test_improvement_suggestions_are_capped(make_schema) -> None:
    schema = make_schema(("obs", "text"))
    disabled = tuple(
        DisabledSection(section=f"s{i}", reason="r", missing_requirement="m", call_to_action=f"Do {i}.")
        for i in range(6)
    )
    decision = GuardrailDecision(playbook_id="x", disabled_sections=disabled)
    out = data_improvement_suggestions(decision, schema)
    assert len(out) == 5
    assert out[0].startswith("Add a date column")


def test_group_column_skips_unique_and_empty_text_columns(make_schema) -> None:
    section = SectionSpec(name="by_category", requires_types=(ColumnType.TEXT,), group_by_type=ColumnType.TEXT)
    schema = make_schema(("obs", "text"), ("codigo", "text"), ("grupo", "text"), ("valor", "numeric"))
    frame = pd.DataFrame({
        "obs": [""] * 40,
        "codigo": [f"X{i:04d}" for i in range(40)],
        "grupo": ["A", "B"] * 20,
        "valor": range(40),
    })
    assert resolve_group_column(section, schema, frame, 10).original_name == "grupo"
    assert resolve_group_column(section, schema).original_name == "obs"

    only_codes = frame[["obs", "codigo"]]
    assert resolve_group_column(section, schema, only_codes, 10).original_name == "codigo"
