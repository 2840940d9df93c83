from __future__ import annotations

from typing import Iterable

from ..models import ColumnType, EnrichedSchema, Playbook
from ..utils import strip_accents

# Vocabulary the narrative layer must not use when the backing concept is absent.
FORBIDDEN_TERMS_MAP: dict[str, tuple[str, ...]] = {
    "no_value": (
        "faturamento", "receita", "ticket médio", "ticket medio", "lucro",
        "margem", "revenue", "sales", "profit", "margin", "price", "pricing",
    ),
    "no_date": (
        "tendência", "tendencia", "sazonalidade", "crescimento", "evolução",
        "evolucao", "trend", "seasonality", "growth", "evolution", "temporal",
        "ao longo do tempo", "over time", "mês a mês", "month over month",
    ),
    "no_quantity": (
        "volume", "unidades vendidas", "itens vendidos", "quantity sold",
        "units sold", "items sold",
    ),
    "no_customer": (
        "por cliente", "by customer", "churn de cliente", "customer churn",
        "retenção de cliente", "customer retention",
    ),
    "no_product": (
        "por produto", "by product", "mix de produtos", "product mix",
    ),
}

VALUE_CONCEPTS = {"unit_price", "revenue", "total_value", "cost", "profit", "discount_value", "freight_value"}
QUANTITY_CONCEPTS = {"quantity", "qty_ordered", "qty_delivered"}
CUSTOMER_CONCEPTS = {"customer", "customer_id"}
PRODUCT_CONCEPTS = {"product", "sku"}


def derive_forbidden_terms(playbook: Playbook, schema: EnrichedSchema) -> tuple[str, ...]:
    """Terms implied by absent concepts plus the playbook's static list, deduplicated in order."""
    present = set(schema.canonical_names())
    terms: list[str] = []

    if not schema.of_type(ColumnType.DATE):
        terms.extend(FORBIDDEN_TERMS_MAP["no_date"])
    if not present & VALUE_CONCEPTS:
        terms.extend(FORBIDDEN_TERMS_MAP["no_value"])
    if not present & QUANTITY_CONCEPTS:
        terms.extend(FORBIDDEN_TERMS_MAP["no_quantity"])
    if not present & CUSTOMER_CONCEPTS:
        terms.extend(FORBIDDEN_TERMS_MAP["no_customer"])
    if not present & PRODUCT_CONCEPTS:
        terms.extend(FORBIDDEN_TERMS_MAP["no_product"])

    terms.extend(playbook.forbidden_terms)
    return tuple(dict.fromkeys(terms))


def find_forbidden_terms(text: str, terms: Iterable[str]) -> list[str]:
    """Forbidden terms present in a piece of narrative text (case and accent insensitive)."""
    haystack = strip_accents(text).lower()
    return [t for t in terms if strip_accents(t).lower() in haystack]
