"""Stock valuation and its cross-domain context.

The snapshot is the latest period present in the filtered stock records. The
context rows relate each stock period (and branch) to the sales, purchases,
expenses and headcount of the same month. Each of those datasets is reduced
once to a lookup keyed by ``(year, month[, branch])``; records from different
domains never meet on anything but that key.
"""

from __future__ import annotations

from typing import Any, Dict, Hashable, List, Optional, Sequence, Tuple

import pandas as pd

from pizarro.aggregate import aggregate, pct, safe_divide, table_records, top_entry, top_n_with_other, totals_index, with_shares
from pizarro.charts import breakdown_chart, share_chart, to_vega_spec, trend_chart, yearly_chart
from pizarro.filters import StockFilters, apply_filters, filters_payload
from pizarro.records import ExpenseRecord, HRRecord, PurchaseRecord, SaleRecord, StockRecord, records_frame
from pizarro.signs import signed_sales_frame
from pizarro.timebuckets import monthly_series, period_label, sort_periods, year_month_matrix

Index = Dict[Tuple[Hashable, ...], float]


def headcount_index(hr: Sequence[HRRecord]) -> Index:
    """Distinct employees with at least one record in each (year, month)."""
    df = records_frame(hr, HRRecord)
    if df.empty:
        return {}
    counts = df.groupby(["year", "month"])["employee"].nunique()
    return {(int(y), int(m)): float(n) for (y, m), n in counts.items()}


def snapshot_totals(frame: pd.DataFrame) -> Dict[str, float]:
    if frame.empty:
        return {
            "total_cost": 0.0,
            "valued_usd_system": 0.0,
            "valued_usd_official": 0.0,
            "valued_ars_official": 0.0,
            "system_rate": 0.0,
            "official_rate": 0.0,
            "exchange_gap_pct": 0.0,
        }
    system_rate = float(frame["system_rate"].mean())
    official_rate = float(frame["official_rate"].mean())
    return {
        "total_cost": float(frame["cost"].sum()),
        "valued_usd_system": float(frame["valued_usd_system"].sum()),
        "valued_usd_official": float(frame["valued_usd_official"].sum()),
        "valued_ars_official": float(frame["valued_ars_official"].sum()),
        "system_rate": system_rate,
        "official_rate": official_rate,
        "exchange_gap_pct": pct(system_rate - official_rate, official_rate),
    }


def previous_period(periods: Sequence[str], current: str) -> Optional[str]:
    earlier = [p for p in sort_periods(periods) if p < current]
    return earlier[-1] if earlier else None


def stock_context(
    stock: pd.DataFrame,
    all_sales: Sequence[SaleRecord],
    all_purchases: Sequence[PurchaseRecord],
    all_expenses: Sequence[ExpenseRecord],
    all_hr: Sequence[HRRecord],
) -> Dict[str, List[Dict[str, Any]]]:
    if stock.empty:
        return {"branches": [], "periods": []}

    sales = signed_sales_frame(all_sales)
    sales_by_branch = totals_index(sales, ["year", "month", "branch"], "signed_total")
    sales_by_month = totals_index(sales, ["year", "month"], "signed_total")
    purchases_by_month = totals_index(records_frame(all_purchases, PurchaseRecord), ["year", "month"], "net_amount")
    expenses_by_month = totals_index(records_frame(all_expenses, ExpenseRecord), ["year", "month"], "amount")
    headcount = headcount_index(all_hr)

    branch_rows: List[Dict[str, Any]] = []
    per_branch = stock.groupby(["period", "year", "month", "branch"])["cost"].sum().reset_index().sort_values(["period", "branch"])
    for row in per_branch.itertuples(index=False):
        sales_total = sales_by_branch.get((int(row.year), int(row.month), str(row.branch)), 0.0)
        branch_rows.append(
            {
                "period": str(row.period),
                "label": period_label(str(row.period)),
                "branch": str(row.branch),
                "stock_cost": float(row.cost),
                "sales": sales_total,
                "months_of_cover": safe_divide(float(row.cost), sales_total),
            }
        )

    period_rows: List[Dict[str, Any]] = []
    per_period = stock.groupby(["period", "year", "month"])["cost"].sum().reset_index().sort_values("period")
    for row in per_period.itertuples(index=False):
        key = (int(row.year), int(row.month))
        sales_total = sales_by_month.get(key, 0.0)
        purchases_total = purchases_by_month.get(key, 0.0)
        employees = headcount.get(key, 0.0)
        period_rows.append(
            {
                "period": str(row.period),
                "label": period_label(str(row.period)),
                "stock_cost": float(row.cost),
                "sales": sales_total,
                "purchases": purchases_total,
                "expenses": expenses_by_month.get(key, 0.0),
                "headcount": int(employees),
                "months_of_cover": safe_divide(float(row.cost), sales_total),
                "stock_to_purchases": safe_divide(float(row.cost), purchases_total),
                "sales_per_employee": safe_divide(sales_total, employees),
            }
        )
    return {"branches": branch_rows, "periods": period_rows}


def compute_stock(
    filtered: Sequence[StockRecord],
    filters: StockFilters,
    all_stock: Sequence[StockRecord],
    all_sales: Sequence[SaleRecord] = (),
    all_purchases: Sequence[PurchaseRecord] = (),
    all_expenses: Sequence[ExpenseRecord] = (),
    all_hr: Sequence[HRRecord] = (),
    *,
    top_n: int = 10,
) -> Optional[Dict[str, Any]]:
    if not all_stock:
        return None

    df = records_frame(filtered, StockRecord)
    snapshot_period = str(df["period"].max()) if not df.empty else None
    snapshot = df[df["period"] == snapshot_period] if snapshot_period else df

    # the previous snapshot ignores the period filters, otherwise a single selected month has nothing to compare to
    history = records_frame(apply_filters(all_stock, filters.without_period()), StockRecord)
    prev_period = previous_period(history["period"].tolist(), snapshot_period) if snapshot_period else None
    prev_cost = float(history.loc[history["period"] == prev_period, "cost"].sum()) if prev_period else 0.0

    totals = snapshot_totals(snapshot)
    kpis = {
        **totals,
        "snapshot_period": snapshot_period,
        "snapshot_label": period_label(snapshot_period) if snapshot_period else None,
        "previous_period": prev_period,
        "cost_change": pct(totals["total_cost"] - prev_cost, prev_cost) if prev_period else 0.0,
        "branch_count": int(snapshot["branch"].nunique()),
        "rubro_count": int(snapshot["rubro"].nunique()),
    }

    by_branch = with_shares(aggregate(snapshot, "branch", "cost"))
    by_rubro = with_shares(aggregate(snapshot, "rubro", "cost"))
    top_rubros = with_shares(top_n_with_other(aggregate(snapshot, "rubro", "cost"), top_n))
    kpis["top_rubro"] = top_entry(by_rubro)

    cost_series = monthly_series(df, "cost")
    usd_series = monthly_series(df, "valued_usd_official")
    series = [
        {"date": str(c.period), "label": period_label(str(c.period)), "cost": float(c.total), "usd_official": float(u.total)}
        for c, u in zip(cost_series.itertuples(index=False), usd_series.itertuples(index=False))
    ]
    trend_rows, trend_years = year_month_matrix(history, "cost")

    charts = {
        "cost_trend": to_vega_spec(trend_chart(cost_series, title="Costo")),
        "usd_trend": to_vega_spec(trend_chart(usd_series, title="USD oficial")),
        "branch_breakdown": to_vega_spec(breakdown_chart(by_branch, title="Sucursal")),
        "rubro_share": to_vega_spec(share_chart(top_rubros)),
        "yearly_trend": to_vega_spec(yearly_chart(trend_rows, trend_years)),
    }

    return {
        "filters": filters_payload(filters),
        "has_snapshot": snapshot_period is not None,
        "kpis": kpis,
        "series": series,
        "tables": {
            "branch": table_records(by_branch),
            "rubro": table_records(by_rubro),
        },
        "top": {"rubros": table_records(top_rubros)},
        "context": stock_context(df, all_sales, all_purchases, all_expenses, all_hr),
        "yearly_trend": {"rows": trend_rows, "years": trend_years},
        "charts": charts,
    }
