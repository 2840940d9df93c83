from __future__ import annotations

from typing import Literal

import pandas as pd

from ..normalize import DOT, parse_number


def group_sizes(frame: pd.DataFrame, column: str) -> pd.Series:
    """Row count per group label (labels as strings), largest first then by label."""
    labels = frame[column].dropna().astype(str).str.strip()
    labels = labels[labels != ""]
    counts = labels.value_counts()
    order = sorted(counts.index, key=lambda k: (-int(counts[k]), k))
    return counts.reindex(order)


def small_groups(frame: pd.DataFrame, column: str, min_group_n: int) -> tuple[list[str], list[str]]:
    """(kept, excluded) group labels; excluded groups hold fewer than min_group_n rows."""
    sizes = group_sizes(frame, column)
    kept = sorted(str(k) for k, v in sizes.items() if v >= min_group_n)
    excluded = sorted(str(k) for k, v in sizes.items() if v < min_group_n)
    return kept, excluded


def rank_groups(
    frame: pd.DataFrame,
    group_column: str,
    value_column: str,
    *,
    n: int = 5,
    min_group_n: int = 10,
    ascending: bool = False,
    agg: Literal["sum", "mean"] = "sum",
    decimal_locale: str = DOT,
) -> pd.DataFrame:
    """
    Top (or bottom) N groups by an aggregated value.

    Groups with fewer than min_group_n rows never appear, whatever their value.
    Returns columns: group, rows, value.
    """
    work = pd.DataFrame({
        "group": frame[group_column].astype("string").str.strip(),
        "value": frame[value_column].map(lambda v: parse_number(v, decimal_locale)).astype("float64"),
    })
    work = work[work["group"].notna() & (work["group"] != "")]

    grouped = work.groupby("group", sort=True)["value"]
    summary = pd.DataFrame({"rows": grouped.size(), "value": grouped.agg(agg)}).reset_index()
    summary = summary[summary["rows"] >= min_group_n]

    summary = summary.sort_values(["value", "group"], ascending=[ascending, True], kind="mergesort")
    return summary.head(n).reset_index(drop=True)
