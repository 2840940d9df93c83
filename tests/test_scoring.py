from __future__ import annotations

from analysis_guardrails.config import GuardrailSettings
from analysis_guardrails.models import ColumnRequirement, ColumnType, Playbook
from analysis_guardrails.playbooks.registry import FALLBACK_PLAYBOOK_ID, PlaybookRegistry
from analysis_guardrails.playbooks.scoring import (
    is_type_compatible,
    rank_results,
    score_playbook,
    select_playbook,
)


def _pb(pid: str, *reqs: tuple[str, str], min_rows: int = 10) -> Playbook:
    return Playbook(
        id=pid,
        name=pid,
        required_columns=tuple(ColumnRequirement(name=n, type=t) for n, t in reqs),
        min_rows=min_rows,
    )


def test_text_requirement_accepts_any_type() -> None:
    assert is_type_compatible(ColumnType.TEXT, ColumnType.NUMERIC)
    assert is_type_compatible(ColumnType.TEXT, ColumnType.MIXED)
    assert not is_type_compatible(ColumnType.DATE, ColumnType.NUMERIC)
    assert not is_type_compatible(ColumnType.NUMERIC, ColumnType.MIXED)


def test_score_counts_only_name_and_type_matches(make_schema) -> None:
    pb = _pb(
        "pb_otif_v1",
        ("promised_date", "date"),
        ("delivery_date", "date"),
        ("qty_ordered", "numeric"),
        ("qty_delivered", "numeric"),
    )
    schema = make_schema(
        ("prazo", "numeric", "promised_date"),
        ("entrega", "numeric", "delivery_date"),
        ("qtd_prevista", "numeric", "qty_ordered"),
        ("qtd_entregue", "numeric", "qty_delivered"),
    )
    res = score_playbook(pb, schema, row_count=100)
    assert res.score == 50
    assert res.matched_columns == ("qty_ordered", "qty_delivered")
    assert res.missing_columns == ("promised_date", "delivery_date")
    assert [(m.column, m.actual) for m in res.type_mismatches] == [
        ("prazo", ColumnType.NUMERIC),
        ("entrega", ColumnType.NUMERIC),
    ]


def test_score_rounds_half_up(make_schema) -> None:
    pb = _pb("pb_three_v1", ("a", "numeric"), ("b", "numeric"), ("c", "numeric"))
    schema = make_schema(("a", "numeric", "a"), ("b", "numeric", "b"))
    assert score_playbook(pb, schema, row_count=50).score == 67

    pb8 = _pb("pb_eight_v1", *[(f"c{i}", "numeric") for i in range(8)])
    schema8 = make_schema(*[(f"c{i}", "numeric", f"c{i}") for i in range(5)])
    # 5/8 = 62.5
    assert score_playbook(pb8, schema8, row_count=50).score == 63


def test_row_gate_caps_score_below_threshold(make_schema) -> None:
    pb = _pb("pb_small_v1", ("a", "numeric"), min_rows=20)
    schema = make_schema(("a", "numeric", "a"))
    res = score_playbook(pb, schema, row_count=19)
    assert res.score == 59
    assert res.row_gate_applied
    assert score_playbook(pb, schema, row_count=20).score == 100


def test_ties_break_on_matched_count_then_declared_order(make_schema) -> None:
    first = _pb("pb_first_v1", ("a", "numeric"), ("z", "numeric"))
    second = _pb("pb_second_v1", ("a", "numeric"), ("b", "numeric"), ("y", "numeric"), ("x", "numeric"))
    third = _pb("pb_third_v1", ("b", "numeric"), ("w", "numeric"))
    registry = PlaybookRegistry([first, second, third])
    schema = make_schema(("a", "numeric", "a"), ("b", "numeric", "b"))

    results = [score_playbook(p, schema, 100) for p in registry.scorable]
    ranked = rank_results(results, registry)
    assert [r.playbook_id for r in ranked] == ["pb_second_v1", "pb_first_v1", "pb_third_v1"]


def test_select_applies_best_at_threshold(make_schema) -> None:
    pb = _pb("pb_a_v1", *[(f"c{i}", "numeric") for i in range(5)])
    other = _pb("pb_b_v1", ("c0", "numeric"), ("c1", "numeric"), ("q", "numeric"))
    registry = PlaybookRegistry([pb, other])
    schema = make_schema(*[(f"c{i}", "numeric", f"c{i}") for i in range(4)])

    sel = select_playbook(registry, schema, row_count=100)
    assert not sel.is_fallback
    assert sel.playbook.id == "pb_a_v1"
    assert sel.result.score == 80
    assert [a.playbook_id for a in sel.alternatives] == ["pb_b_v1"]
    assert sel.events == ()


def test_select_falls_back_below_threshold(make_schema) -> None:
    pb = _pb("pb_a_v1", ("a", "numeric"), ("b", "numeric"), ("c", "numeric"), ("d", "numeric"))
    registry = PlaybookRegistry([pb])
    schema = make_schema(("a", "numeric", "a"), ("b", "numeric", "b"), ("c", "numeric", "c"))

    sel = select_playbook(registry, schema, row_count=100)
    assert sel.is_fallback
    assert sel.playbook.id == FALLBACK_PLAYBOOK_ID
    assert sel.result.score == 75
    assert [a.playbook_id for a in sel.alternatives] == ["pb_a_v1"]
    assert len(sel.events) == 1
    assert "pb_a_v1" in sel.events[0]


def test_configured_threshold_is_respected(make_schema) -> None:
    pb = _pb("pb_a_v1", ("a", "numeric"), ("b", "numeric"), ("c", "numeric"), ("d", "numeric"))
    registry = PlaybookRegistry([pb])
    schema = make_schema(("a", "numeric", "a"), ("b", "numeric", "b"), ("c", "numeric", "c"))
    settings = GuardrailSettings(selection_threshold=70, alternative_threshold=50, row_gate_cap=49)

    sel = select_playbook(registry, schema, row_count=100, settings=settings)
    assert not sel.is_fallback
    assert sel.playbook.id == "pb_a_v1"


def test_every_playbook_is_scored_once(registry, make_schema) -> None:
    schema = make_schema(("x", "text"))
    sel = select_playbook(registry, schema, row_count=100)
    assert sorted(r.playbook_id for r in sel.ranked) == sorted(p.id for p in registry.scorable)
    assert all(r.score == 0 for r in sel.ranked)
    assert sel.is_fallback
