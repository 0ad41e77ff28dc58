"""Month bucketing helpers.

Periods are ``YYYY-MM`` strings taken straight from the record's date
components. When a key has to become a date again (labels, range checks) it is
rebuilt on the 15th so no timezone shift can push it into a neighbouring month.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, Iterable, List, Tuple

import pandas as pd

MID_MONTH_DAY = 15

MONTH_NAMES = (
    "Enero",
    "Febrero",
    "Marzo",
    "Abril",
    "Mayo",
    "Junio",
    "Julio",
    "Agosto",
    "Septiembre",
    "Octubre",
    "Noviembre",
    "Diciembre",
)


def period_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def period_date(key: str) -> date:
    year, month = key.split("-")[:2]
    return date(int(year), int(month), MID_MONTH_DAY)


def month_name(month: int) -> str:
    return MONTH_NAMES[int(month) - 1]


def period_label(key: str) -> str:
    d = period_date(key)
    return f"{month_name(d.month)} {d.year}"


def sort_periods(keys: Iterable[str]) -> List[str]:
    # zero-padded YYYY-MM sorts chronologically as text
    return sorted(set(keys))


def monthly_series(frame: pd.DataFrame, value: str) -> pd.DataFrame:
    """Sum ``value`` per period; chronological, one row per period present."""
    if frame.empty:
        return pd.DataFrame({"period": pd.Series(dtype=object), "total": pd.Series(dtype=float)})
    series = (
        frame.groupby("period")[value]
        .sum()
        .reset_index()
        .rename(columns={value: "total"})
    )
    series["total"] = series["total"].astype(float)
    order = sort_periods(series["period"])
    return series.set_index("period").loc[order].reset_index()


def month_over_month_change(series: pd.DataFrame) -> float:
    """Percent change between the last two buckets present (0 when undefined)."""
    if len(series) < 2:
        return 0.0
    last = float(series["total"].iloc[-1])
    prev = float(series["total"].iloc[-2])
    if prev == 0:
        return 0.0
    return (last - prev) / prev * 100


def top_period(series: pd.DataFrame) -> Dict[str, Any]:
    if series.empty:
        return {"name": "-", "total": 0.0}
    best = series.sort_values("total", ascending=False, kind="stable").iloc[0]
    return {"name": period_label(str(best["period"])), "total": float(best["total"])}


def series_records(series: pd.DataFrame) -> List[Dict[str, Any]]:
    return [
        {"date": str(row.period), "label": period_label(str(row.period)), "total": float(row.total)}
        for row in series.itertuples(index=False)
    ]


def year_month_matrix(frame: pd.DataFrame, value: str) -> Tuple[List[Dict[str, Any]], List[str]]:
    """Pivot a dated frame into 12 month rows with one column per year."""
    if frame.empty:
        return [], []
    pivot = frame.pivot_table(index="month", columns="year", values=value, aggfunc="sum", fill_value=0.0)
    pivot = pivot.reindex(range(1, 13), fill_value=0.0)
    years = [str(int(y)) for y in sorted(pivot.columns)]
    rows: List[Dict[str, Any]] = []
    for month, values in pivot.iterrows():
        row: Dict[str, Any] = {"month": month_name(int(month))}
        for year in sorted(pivot.columns):
            row[str(int(year))] = float(values[year])
        rows.append(row)
    return rows, years
