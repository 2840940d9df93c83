from __future__ import annotations

import pytest

from analysis_guardrails.models import RawColumn
from analysis_guardrails.normalize import (
    COMMA,
    DOT,
    ColumnNormalizer,
    detect_decimal_locale,
    normalize_header,
    normalize_headers,
    parse_number,
    resolve_ingest_defaults,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Saldo Anterior (Unid.)", "saldo anterior"),
        ("  Preço (R$) ", "preco"),
        ("Endereço-Rua", "endereco rua"),
        ("QTD_ENTREGUE", "qtd entregue"),
        ("Peso kg", "peso"),
        ("OTIF %", "otif pct"),
        ("Data   do   Pedido", "data do pedido"),
    ],
)
def test_normalize_header_examples(raw: str, expected: str) -> None:
    assert normalize_header(raw) == expected


def test_unit_only_header_keeps_its_last_token() -> None:
    assert normalize_header("kg") == "kg"


def test_normalize_headers_are_unique_and_never_empty() -> None:
    names = normalize_headers(["Valor", "valor ", "VALOR (R$)", "%", "(R$)"])
    assert names[:3] == ["valor", "valor_2", "valor_3"]
    assert names[3] == "pct"
    assert names[4] == "column_5"
    assert len(set(names)) == len(names)


def test_detect_decimal_locale_votes_on_decimal_strings_only() -> None:
    assert detect_decimal_locale(["1,50", "2,75", "3.10", 4.5, "abc"]) == COMMA
    assert detect_decimal_locale(["1.50", "2.75", "1.234,56"]) == DOT
    assert detect_decimal_locale(["10", 3, "texto"]) is None


@pytest.mark.parametrize(
    "value, locale, expected",
    [
        ("1.234,56", COMMA, 1234.56),
        ("1,5", COMMA, 1.5),
        ("1,234.56", DOT, 1234.56),
        ("R$ 12,90", COMMA, 12.9),
        (" 7 ", DOT, 7.0),
        (3, DOT, 3.0),
    ],
)
def test_parse_number_is_locale_aware(value, locale, expected) -> None:
    assert parse_number(value, locale) == pytest.approx(expected)


@pytest.mark.parametrize("value", [True, None, "", "abc", "1_000", float("nan"), "inf"])
def test_parse_number_rejects_non_numbers(value) -> None:
    assert parse_number(value) is None


def test_resolve_ingest_defaults_degrades_with_warnings() -> None:
    enc, dialect, locale, warnings = resolve_ingest_defaults(
        encoding="mystery-8", dialect="???", decimal_locale="space"
    )
    assert (enc, dialect, locale) == ("utf-8", "comma", DOT)
    assert len(warnings) == 3


def test_resolve_ingest_defaults_keeps_known_and_missing_values() -> None:
    enc, dialect, locale, warnings = resolve_ingest_defaults(
        encoding="latin1", dialect=None, decimal_locale=COMMA
    )
    assert (enc, dialect, locale) == ("latin1", None, COMMA)
    assert warnings == []


def test_normalizer_detected_locale_wins_over_declared() -> None:
    cols = [
        RawColumn(name="Preço (R$)", sample_values=("12,50", "3,99", "7,00")),
        RawColumn(name="Produto", sample_values=("Cafe", "Arroz")),
    ]
    out = ColumnNormalizer().normalize(cols, declared_locale=DOT)
    assert out.decimal_locale == COMMA
    assert out.names == ("preco", "produto")
    assert any("decimal locale" in w for w in out.warnings)
    assert out.example_lines() == ['"Preço (R$)" → "preco"', '"Produto" → "produto"']


def test_normalizer_without_evidence_uses_declared_then_dot() -> None:
    cols = [RawColumn(name="qtd", sample_values=(1, 2, 3))]
    assert ColumnNormalizer().normalize(cols, declared_locale=COMMA).decimal_locale == COMMA
    assert ColumnNormalizer().normalize(cols).decimal_locale == DOT


def test_normalizer_keeps_at_most_three_examples() -> None:
    cols = [RawColumn(name=f"Coluna {i} (un)") for i in range(6)]
    out = ColumnNormalizer().normalize(cols)
    assert len(out.examples) == 3
    assert out.warnings == ()
