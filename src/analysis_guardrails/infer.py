from __future__ import annotations

import datetime as dt
import logging
import numbers
import re
import warnings
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

import pandas as pd

from .config import DEFAULT_SETTINGS, GuardrailSettings
from .models import ColumnType, NormalizedColumn, RawColumn
from .normalize import DOT, NormalizationOutcome, parse_number
from .utils import is_null

logger = logging.getLogger(__name__)

SPREADSHEET_EPOCH = pd.Timestamp("1899-12-30")

_BOOLEAN_TOKENS = {
    "true", "false", "1", "0", "yes", "no",
    "sim", "não", "nao", "verdadeiro", "falso",
}

# Placeholder values exported by source systems for "no date".
_SENTINEL_DATES = {dt.date(1970, 1, 1), dt.date(1, 1, 1), dt.date(1900, 1, 1)}

_YEAR_TOKEN_RE = re.compile(r"(?<!\d)\d{4}(?!\d)")
_YEAR_FIRST_RE = re.compile(r"^\d{4}[-/.]")
_DATE_HINT_RE = re.compile(r"\b(data|date|dt|dia|emissao|entrega|vencimento|prazo|periodo)\b")


@dataclass(frozen=True)
class TypeInference:
    inferred_type: ColumnType
    confidence: float
    is_spreadsheet_serial: bool = False
    sampled: int = 0


def take_sample(values: Iterable[Any], size: int) -> list[Any]:
    """First `size` non-null values (None, NaN and blank strings are null)."""
    out: list[Any] = []
    for v in values:
        if is_null(v):
            continue
        out.append(v)
        if len(out) >= size:
            break
    return out


def serial_to_timestamp(serial: float) -> pd.Timestamp:
    """Spreadsheet serial day number -> timestamp (1900 date system, 1899-12-30 epoch)."""
    return SPREADSHEET_EPOCH + pd.to_timedelta(float(serial), unit="D")


# ---- Value tests --------------------------------------------------------------


def is_boolean_value(value: Any) -> bool:
    if isinstance(value, bool):
        return True
    if isinstance(value, (str, numbers.Integral)):
        return str(value).strip().lower() in _BOOLEAN_TOKENS
    return False


def is_numeric_value(value: Any, decimal_locale: str = DOT) -> bool:
    return parse_number(value, decimal_locale) is not None


def is_date_value(value: Any) -> bool:
    if isinstance(value, (dt.date, pd.Timestamp)):
        day = value.date() if isinstance(value, dt.datetime) else value
        return day not in _SENTINEL_DATES
    if not isinstance(value, str):
        return False

    s = value.strip()
    if not _YEAR_TOKEN_RE.search(s):
        return False

    ts = _parse_calendar(s)
    if ts is None:
        return False
    return ts.date() not in _SENTINEL_DATES


def _parse_calendar(s: str) -> Optional[pd.Timestamp]:
    # Year-first strings are ISO-like; anything else is read day-first (dd/mm/yyyy exports).
    dayfirst = not _YEAR_FIRST_RE.match(s)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        ts = pd.to_datetime(s, errors="coerce", dayfirst=dayfirst)
    return None if pd.isna(ts) else ts


def _classify(value: Any, decimal_locale: str) -> ColumnType:
    """Exclusive class of a single value, used to detect mixed columns."""
    if is_boolean_value(value):
        return ColumnType.BOOLEAN
    if is_numeric_value(value, decimal_locale):
        return ColumnType.NUMERIC
    if is_date_value(value):
        return ColumnType.DATE
    return ColumnType.TEXT


# ---- Column inference ---------------------------------------------------------


def infer_column_type(
    values: Sequence[Any],
    *,
    name: str = "",
    decimal_locale: str = DOT,
    settings: GuardrailSettings = DEFAULT_SETTINGS,
) -> TypeInference:
    """
    Infer the primitive type of one column.

    Tests run in order boolean -> numeric -> date; the first passed by at least
    `type_threshold` of the non-null sample wins and its pass rate is the confidence.
    Numeric columns that look like spreadsheet serial days are reclassified as date.
    """
    sample = take_sample(values, settings.sample_size)
    n = len(sample)
    if n == 0:
        return TypeInference(ColumnType.TEXT, 0.0, sampled=0)

    threshold = settings.type_threshold

    bool_rate = sum(1 for v in sample if is_boolean_value(v)) / n
    if bool_rate >= threshold:
        return TypeInference(ColumnType.BOOLEAN, round(bool_rate, 4), sampled=n)

    candidates = [parse_number(v, decimal_locale) for v in sample]
    parsed = [f for f in candidates if f is not None]
    num_rate = len(parsed) / n
    if num_rate >= threshold:
        serial = _serial_date_rate(parsed, name=name, settings=settings)
        if serial is not None:
            logger.debug("Column '%s' reclassified as date (spreadsheet serials).", name)
            return TypeInference(ColumnType.DATE, round(serial, 4), is_spreadsheet_serial=True, sampled=n)
        return TypeInference(ColumnType.NUMERIC, round(num_rate, 4), sampled=n)

    date_rate = sum(1 for v in sample if is_date_value(v)) / n
    if date_rate >= threshold:
        return TypeInference(ColumnType.DATE, round(date_rate, 4), sampled=n)

    counts: dict[ColumnType, int] = {}
    for v in sample:
        t = _classify(v, decimal_locale)
        counts[t] = counts.get(t, 0) + 1

    significant = [t for t, c in counts.items() if c / n >= settings.mixed_threshold]
    if len(significant) >= 2:
        top = max(counts.values()) / n
        return TypeInference(ColumnType.MIXED, round(top, 4), sampled=n)

    return TypeInference(ColumnType.TEXT, round(counts.get(ColumnType.TEXT, 0) / n, 4), sampled=n)


def _serial_date_rate(
    parsed: list[float],
    *,
    name: str,
    settings: GuardrailSettings,
) -> Optional[float]:
    """Fraction of serial-range values when the column qualifies as serial dates, else None."""
    in_range = [f for f in parsed if settings.serial_min <= f <= settings.serial_max]
    rate = len(in_range) / len(parsed)
    if rate < settings.type_threshold:
        return None

    if not all(f.is_integer() for f in in_range):
        return None
    # A date-like header lowers the floor; day counts such as "prazo (dias)" stay numeric.
    hinted = bool(_DATE_HINT_RE.search(name))
    floor = settings.serial_hinted_floor if hinted else settings.serial_plausible_floor
    if float(pd.Series(in_range).median()) < floor:
        return None
    return rate


def infer_columns(
    columns: Sequence[RawColumn],
    outcome: NormalizationOutcome,
    *,
    settings: GuardrailSettings = DEFAULT_SETTINGS,
) -> list[NormalizedColumn]:
    """Type every column using the dataset-wide decimal locale decided by the normalizer."""
    out: list[NormalizedColumn] = []
    for raw, normalized_name in zip(columns, outcome.names):
        inference = infer_column_type(
            raw.sample_values,
            name=normalized_name,
            decimal_locale=outcome.decimal_locale,
            settings=settings,
        )
        out.append(
            NormalizedColumn(
                original_name=raw.name,
                normalized_name=normalized_name,
                inferred_type=inference.inferred_type,
                confidence=inference.confidence,
                is_spreadsheet_serial=inference.is_spreadsheet_serial,
            )
        )
    return out
