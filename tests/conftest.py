from __future__ import annotations

import datetime as dt
from typing import Any, Callable, Optional

import pytest

from analysis_guardrails.config import GuardrailSettings
from analysis_guardrails.log import reset_logging
from analysis_guardrails.models import (
    ColumnType,
    EnrichedColumn,
    EnrichedSchema,
    NormalizedColumn,
)
from analysis_guardrails.pipeline import GuardrailEngine, ReferenceData
from analysis_guardrails.playbooks.registry import PlaybookRegistry, load_playbook_registry
from analysis_guardrails.semantic.dictionary import SemanticDictionary, load_semantic_dictionary


@pytest.fixture(autouse=True)
def _fresh_logging():
    yield
    reset_logging()


@pytest.fixture(scope="session")
def dictionary() -> SemanticDictionary:
    return load_semantic_dictionary()


@pytest.fixture(scope="session")
def registry() -> PlaybookRegistry:
    return load_playbook_registry()


@pytest.fixture(scope="session")
def reference(dictionary: SemanticDictionary, registry: PlaybookRegistry) -> ReferenceData:
    return ReferenceData(dictionary=dictionary, registry=registry, settings=GuardrailSettings())


@pytest.fixture
def engine(reference: ReferenceData) -> GuardrailEngine:
    return GuardrailEngine(reference)


def _column(
    name: str,
    ctype: ColumnType,
    canonical: Optional[str] = None,
    null_count: int = 0,
) -> EnrichedColumn:
    return EnrichedColumn(
        column=NormalizedColumn(original_name=name, normalized_name=name, inferred_type=ctype, confidence=1.0),
        canonical_name=canonical,
        null_count=null_count,
    )


@pytest.fixture
def make_schema() -> Callable[..., EnrichedSchema]:
    """make_schema(("qtd", "numeric", "quantity"), ("obs", "text")) -> EnrichedSchema"""

    def _make(*cols: tuple) -> EnrichedSchema:
        built = []
        for spec in cols:
            name, ctype = spec[0], ColumnType(spec[1])
            canonical = spec[2] if len(spec) > 2 else None
            nulls = spec[3] if len(spec) > 3 else 0
            built.append(_column(name, ctype, canonical, nulls))
        return EnrichedSchema(columns=tuple(built))

    return _make


def _payload(headers: list[str], rows: list[dict[str, Any]], **telemetry: Any) -> dict[str, Any]:
    t = {"ingest_source": "csv", "file_size_bytes": 2048, "detection_confidence": 95, "dialect": "comma"}
    t.update(telemetry)
    return {"headers": headers, "rows": rows, "telemetry": t}


@pytest.fixture
def inventory_payload() -> Callable[..., dict[str, Any]]:
    """Stock count export: sku, categoria, rua, saldo_anterior, entrada, saida, contagem_fisica."""

    def _make(n: int = 150) -> dict[str, Any]:
        categories = ["Bebidas", "Limpeza", "Mercearia"]
        aisles = ["R01", "R02", "R03", "R04", "R05"]
        rows = []
        for i in range(n):
            opening = 100 + i
            stock_in = 20 + i % 7
            stock_out = 15 + i % 5
            rows.append({
                "sku": f"SKU-A{i:03d}",
                "categoria": categories[i % len(categories)],
                "rua": aisles[i % len(aisles)],
                "saldo_anterior": opening,
                "entrada": stock_in,
                "saida": stock_out,
                "contagem_fisica": opening + stock_in - stock_out - (i % 3),
            })
        headers = ["sku", "categoria", "rua", "saldo_anterior", "entrada", "saida", "contagem_fisica"]
        return _payload(headers, rows, row_count=n, column_count=len(headers))

    return _make


@pytest.fixture
def sales_payload() -> Callable[..., dict[str, Any]]:
    """Sales lines with comma-decimal prices: produto, quantidade, valor_unit, vendedor."""

    def _make(
        n: int = 80,
        *,
        sellers: Optional[list[str]] = None,
        with_date: bool = False,
    ) -> dict[str, Any]:
        products = ["Cafe", "Acucar", "Arroz", "Feijao"]
        sellers = sellers or ["Ana", "Bruno", "Carla", "Diego"]
        start = dt.date(2024, 1, 1)
        rows = []
        for i in range(n):
            row: dict[str, Any] = {
                "produto": products[i % len(products)],
                "quantidade": 2 + i % 9,
                "valor_unit": f"{10 + i % 13},{(i * 7) % 100:02d}",
                "vendedor": sellers[i % len(sellers)],
            }
            if with_date:
                row["data_pedido"] = (start + dt.timedelta(days=i)).isoformat()
            rows.append(row)
        headers = ["produto", "quantidade", "valor_unit", "vendedor"]
        if with_date:
            headers.append("data_pedido")
        return _payload(headers, rows, decimal_locale="comma", row_count=n, column_count=len(headers))

    return _make


def _plan_action(i: int) -> dict[str, str]:
    return {
        "what": f"Implantar contagem cíclica semanal nos corredores do lote {i}",
        "why": "Reduzir divergências de inventário de 12% para 3% em 90 dias",
        "who": "Coordenador de estoque",
        "when": "Próximas 4 semanas",
        "where": "Centro de distribuição",
        "how": (
            "1. Classificar itens pela curva ABC\n"
            "2. Definir calendário de contagem por corredor\n"
            "3. Treinar conferentes no procedimento de contagem\n"
            "4. Registrar contagens no coletor de dados\n"
            "5. Comparar contagem com saldo contábil\n"
            "6. Investigar divergências acima de 5%\n"
            "7. Ajustar saldo e registrar causa raiz"
        ),
        "how_much": "R$ 4.000 em horas extras",
    }


@pytest.fixture
def good_plan() -> Callable[[int], list[dict[str, str]]]:
    def _make(n: int = 4) -> list[dict[str, str]]:
        return [_plan_action(i) for i in range(1, n + 1)]

    return _make
