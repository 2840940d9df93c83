from __future__ import annotations

import logging
import math
import numbers
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence

from .models import RawColumn
from .utils import strip_accents

logger = logging.getLogger(__name__)

COMMA = "comma"
DOT = "dot"

DEFAULT_ENCODING = "utf-8"
DEFAULT_DIALECT = "comma"
DEFAULT_DECIMAL_LOCALE = DOT

KNOWN_ENCODINGS = {
    "utf-8", "utf8", "utf-8-sig", "utf-8-bom", "ascii",
    "latin1", "latin-1", "iso-8859-1", "windows-1252", "cp1252",
}
KNOWN_DIALECTS = {"comma", "semicolon", "tab", "pipe"}

MAX_EXAMPLES = 3

# ---- Header normalization -----------------------------------------------------

_BRACKETED_RE = re.compile(r"\([^)]*\)|\[[^\]]*\]|\{[^}]*\}")
_CURRENCY_RE = re.compile(r"(?:r\$|us\$|\$|€|£)")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

# Trailing tokens treated as a unit suffix ("volume m3", "peso kg").
_UNIT_TOKENS = {"unid", "und", "un", "kg", "ton", "m3", "m2", "km", "cm", "mm", "lt", "brl", "usd", "eur"}


def normalize_header(raw: str) -> str:
    """
    Canonical column name used for matching.

    "Saldo Anterior (Unid.)" -> "saldo anterior"
    "Preço (R$)"             -> "preco"
    "Endereço-Rua"           -> "endereco rua"

    May return "" for headers made only of units/punctuation; normalize_headers()
    replaces those with a positional name.
    """
    s = strip_accents(str(raw)).lower()
    s = _BRACKETED_RE.sub(" ", s)
    s = _CURRENCY_RE.sub(" ", s)
    s = s.replace("%", " pct ")
    s = _NON_ALNUM_RE.sub(" ", s)
    tokens = s.split()
    while len(tokens) > 1 and tokens[-1] in _UNIT_TOKENS:
        tokens.pop()
    return " ".join(tokens)


def normalize_headers(headers: Sequence[str]) -> list[str]:
    """Normalize every header; empty names become column_<n>, collisions get _2, _3, ..."""
    out: list[str] = []
    used: set[str] = set()
    for i, h in enumerate(headers):
        base = normalize_header(h) or f"column_{i + 1}"
        name = base
        n = 1
        while name in used:
            n += 1
            name = f"{base}_{n}"
        used.add(name)
        out.append(name)
    return out


# ---- Numbers and decimal locale -----------------------------------------------

_COMMA_DECIMAL_RE = re.compile(r"^[-+]?(?:\d{1,3}(?:\.\d{3})+|\d+),\d+$")
_DOT_DECIMAL_RE = re.compile(r"^[-+]?(?:\d{1,3}(?:,\d{3})+|\d+)\.\d+$")
_COMMA_THOUSANDS_RE = re.compile(r"^[-+]?\d{1,3}(?:\.\d{3})+(?:,\d+)?$")
_DOT_THOUSANDS_RE = re.compile(r"^[-+]?\d{1,3}(?:,\d{3})+(?:\.\d+)?$")
_BARE_COMMA_RE = re.compile(r"^[-+]?\d+,\d+$")
_SPACES_RE = re.compile(r"[\s ]+")


def _clean_numeric_text(value: str) -> str:
    s = _CURRENCY_RE.sub("", value.strip().lower())
    return _SPACES_RE.sub("", s)


def detect_decimal_locale(values: Iterable[Any]) -> Optional[str]:
    """
    Decide the dataset-wide decimal separator.

    Only decimal-looking strings vote ("1,50" vs "1.50"). Returns "comma" when more
    than half of them use a comma, "dot" when at least one votes otherwise, and
    None when nothing in the sample looks like a decimal.
    """
    comma_votes = 0
    dot_votes = 0
    for v in values:
        if not isinstance(v, str):
            continue
        s = _clean_numeric_text(v)
        if not s:
            continue
        if _COMMA_DECIMAL_RE.match(s):
            comma_votes += 1
        elif _DOT_DECIMAL_RE.match(s):
            dot_votes += 1

    total = comma_votes + dot_votes
    if total == 0:
        return None
    return COMMA if comma_votes / total > 0.5 else DOT


def parse_number(value: Any, decimal_locale: str = DOT) -> Optional[float]:
    """Locale-aware numeric parse. Returns None for anything that is not a finite number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, numbers.Real):
        f = float(value)
        return f if math.isfinite(f) else None
    if not isinstance(value, str):
        return None

    s = _clean_numeric_text(value)
    if not s or "_" in s:
        return None

    if decimal_locale == COMMA:
        if _COMMA_THOUSANDS_RE.match(s):
            s = s.replace(".", "").replace(",", ".")
        elif _BARE_COMMA_RE.match(s):
            s = s.replace(",", ".")
    else:
        if _DOT_THOUSANDS_RE.match(s):
            s = s.replace(",", "")
        elif _BARE_COMMA_RE.match(s):
            s = s.replace(",", ".")

    try:
        f = float(s)
    except ValueError:
        return None
    return f if math.isfinite(f) else None


# ---- Ingestion defaults -------------------------------------------------------


def resolve_ingest_defaults(
    *,
    encoding: Optional[str],
    dialect: Optional[str],
    decimal_locale: Optional[str],
) -> tuple[Optional[str], Optional[str], Optional[str], list[str]]:
    """
    Degrade ambiguous ingestion hints to the most conservative interpretation.

    None means "not applicable" (e.g. no dialect for a spreadsheet) and is kept.
    Anything unrecognized becomes utf-8 / comma / dot with a recorded warning.
    """
    warnings: list[str] = []

    if encoding is not None and encoding.strip().lower() not in KNOWN_ENCODINGS:
        warnings.append(
            f"Encoding '{encoding}' could not be confirmed; assumed {DEFAULT_ENCODING.upper()}."
        )
        encoding = DEFAULT_ENCODING

    if dialect is not None and dialect.strip().lower() not in KNOWN_DIALECTS:
        warnings.append(f"Delimiter '{dialect}' is ambiguous; assumed comma-separated values.")
        dialect = DEFAULT_DIALECT

    if decimal_locale is not None and decimal_locale not in (COMMA, DOT):
        warnings.append(
            f"Decimal locale '{decimal_locale}' is not recognized; assumed dot as decimal separator."
        )
        decimal_locale = DEFAULT_DECIMAL_LOCALE

    return encoding, dialect, decimal_locale, warnings


# ---- Normalizer ---------------------------------------------------------------


@dataclass(frozen=True)
class NormalizationOutcome:
    """Header names and dataset-wide decimal locale for one request."""
    names: tuple[str, ...]
    decimal_locale: str
    examples: tuple[tuple[str, str], ...] = ()
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def example_lines(self) -> list[str]:
        return [f'"{before}" → "{after}"' for before, after in self.examples]


class ColumnNormalizer:
    """
    Cleans headers and decides the decimal locale for a whole dataset.

    Never fails the pipeline: odd headers get positional names, undecidable locales
    fall back to dot-decimal with a warning.
    """

    def normalize(
        self,
        columns: Sequence[RawColumn],
        *,
        declared_locale: Optional[str] = None,
    ) -> NormalizationOutcome:
        warnings: list[str] = []

        names = normalize_headers([c.name for c in columns])
        for c, n in zip(columns, names):
            if not normalize_header(c.name):
                warnings.append(f"Header '{c.name}' has no usable characters; renamed to '{n}'.")

        pooled = (v for c in columns for v in c.sample_values)
        detected = detect_decimal_locale(pooled)
        if detected is None:
            locale = declared_locale if declared_locale in (COMMA, DOT) else DEFAULT_DECIMAL_LOCALE
        else:
            locale = detected
            if declared_locale in (COMMA, DOT) and declared_locale != detected:
                warnings.append(
                    f"Ingestion reported decimal locale '{declared_locale}' but the values use "
                    f"'{detected}'; parsed numbers with '{detected}'."
                )

        examples = tuple(
            (c.name, n) for c, n in zip(columns, names) if c.name != n
        )[:MAX_EXAMPLES]
        if examples:
            logger.debug("Header normalization examples: %s", examples)

        return NormalizationOutcome(
            names=tuple(names),
            decimal_locale=locale,
            examples=examples,
            warnings=tuple(warnings),
        )
