from __future__ import annotations

from typing import Any, Dict, Hashable, List, Sequence, Tuple

import pandas as pd

MISSING_LABEL = "N/A"
OTHER_LABEL = "Otros"

TABLE_COLUMNS = ["name", "total", "count"]


def empty_table(with_percentage: bool = False) -> pd.DataFrame:
    cols = TABLE_COLUMNS + (["percentage"] if with_percentage else [])
    return pd.DataFrame({c: pd.Series(dtype=object if c == "name" else float) for c in cols})


def safe_divide(numerator: float, denominator: float) -> float:
    if not denominator or pd.isna(denominator):
        return 0.0
    return float(numerator) / float(denominator)


def pct(numerator: float, denominator: float) -> float:
    return safe_divide(numerator, denominator) * 100


def group_keys(values: pd.Series) -> pd.Series:
    """Grouping labels: stripped text, with blanks and missing values as ``MISSING_LABEL``."""
    return values.fillna(MISSING_LABEL).astype(str).str.strip().replace("", MISSING_LABEL)


def group_totals(frame: pd.DataFrame, by: str, value: str) -> pd.DataFrame:
    """Sum and count ``value`` per ``by`` key, keys in first-encountered order."""
    if frame.empty:
        return empty_table()
    keys = group_keys(frame[by])
    grouped = (
        frame.assign(_key=keys)
        .groupby("_key", sort=False)[value]
        .agg(total="sum", count="size")
        .reset_index()
        .rename(columns={"_key": "name"})
    )
    grouped["total"] = grouped["total"].astype(float)
    grouped["count"] = grouped["count"].astype(int)
    return grouped


def rank(table: pd.DataFrame) -> pd.DataFrame:
    # stable sort: equal totals keep first-encountered order
    return table.sort_values("total", ascending=False, kind="stable").reset_index(drop=True)


def aggregate(frame: pd.DataFrame, by: str, value: str) -> pd.DataFrame:
    return rank(group_totals(frame, by, value))


def with_shares(table: pd.DataFrame) -> pd.DataFrame:
    """Add ``percentage`` as a fraction of the table total; empty when the total is zero."""
    if table.empty:
        return empty_table(with_percentage=True)
    total = float(table["total"].sum())
    if total == 0:
        return empty_table(with_percentage=True)
    out = table.copy()
    out["percentage"] = out["total"] / total
    return out


def top_n_with_other(table: pd.DataFrame, n: int, label: str = OTHER_LABEL) -> pd.DataFrame:
    """Keep the first ``n`` ranked rows and fold the rest into one ``label`` row.

    The remainder total is computed as grand total minus the kept rows, so the
    result always sums back to the original table. A ``label`` row already in
    the table is never ranked; it goes into the remainder.
    """
    carried = table[table["name"] == label]
    ranked = rank(table[table["name"] != label])
    if len(ranked) <= n and carried.empty:
        return ranked
    head = ranked.head(n)
    grand_total = float(table["total"].sum())
    rest = ranked.iloc[n:]
    other = pd.DataFrame(
        [
            {
                "name": label,
                "total": grand_total - float(head["total"].sum()),
                "count": int(rest["count"].sum()) + int(carried["count"].sum()),
            }
        ]
    )
    return pd.concat([head[TABLE_COLUMNS], other], ignore_index=True)


def totals_index(frame: pd.DataFrame, keys: Sequence[str], value: str) -> Dict[Tuple[Hashable, ...], float]:
    """Build a ``{(key, ...): total}`` lookup once, for joins on composite keys."""
    if frame.empty:
        return {}
    grouped = frame.groupby(list(keys))[value].sum()
    index: Dict[Tuple[Hashable, ...], float] = {}
    for key, total in grouped.items():
        key_tuple = key if isinstance(key, tuple) else (key,)
        index[tuple(_plain(k) for k in key_tuple)] = float(total)
    return index


def _plain(value: Any) -> Any:
    if hasattr(value, "item"):
        return value.item()
    return value


def table_records(table: pd.DataFrame) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for row in table.to_dict(orient="records"):
        out.append({k: _plain(v) for k, v in row.items()})
    return out


def top_entry(table: pd.DataFrame) -> Dict[str, Any] | None:
    if table.empty:
        return None
    first = rank(table).iloc[0]
    return {"name": str(first["name"]), "total": float(first["total"])}
