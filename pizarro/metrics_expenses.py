from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

import pandas as pd

from pizarro.aggregate import aggregate, table_records, top_entry, top_n_with_other, with_shares
from pizarro.charts import breakdown_chart, share_chart, to_vega_spec, trend_chart, yearly_chart
from pizarro.drilldown import DrillDown
from pizarro.filters import ExpensesFilters, apply_filters, filters_payload
from pizarro.records import ExpenseRecord, records_frame
from pizarro.timebuckets import month_over_month_change, monthly_series, series_records, top_period, year_month_matrix

EXPENSE_LEVELS = ("category", "subcategory", "detail")

TAX_CATEGORIES = frozenset(
    {
        "TRIBUTOS Y TASAS",
        "TRIBUTOS MUNICIPALES",
        "TRIBUTOS NACIONALES",
        "TRIBUTOS PROVINCIALES",
    }
)


def expenses_drilldown() -> DrillDown:
    return DrillDown(EXPENSE_LEVELS)


def is_tax_category(category: str) -> bool:
    return str(category or "").strip().upper() in TAX_CATEGORIES


def tax_mask(frame: pd.DataFrame) -> pd.Series:
    return frame["category"].fillna("").astype(str).str.strip().str.upper().isin(TAX_CATEGORIES)


def compute_expenses(
    filtered: Sequence[ExpenseRecord],
    filters: ExpensesFilters,
    all_expenses: Sequence[ExpenseRecord],
    *,
    drill: Optional[DrillDown] = None,
    top_n: int = 10,
) -> Optional[Dict[str, Any]]:
    if not filtered:
        return None
    drill = drill or expenses_drilldown()

    df = records_frame(filtered, ExpenseRecord)
    scoped = drill.scope(df)

    total_expenses = float(scoped["amount"].sum())
    tax_total = float(scoped.loc[tax_mask(scoped), "amount"].sum())
    series = monthly_series(scoped, "amount")

    # the category table stays on the whole filtered set so every category remains clickable
    by_category = with_shares(aggregate(df, "category", "amount"))
    by_subcategory = drill.table(df, "subcategory", "amount")
    by_detail = drill.table(df, "detail", "amount")
    distribution = with_shares(top_n_with_other(aggregate(scoped, drill.distribution_level, "amount"), top_n))

    top_level = "detail" if drill.depth >= 2 else "subcategory"
    top_rows = aggregate(scoped, top_level, "amount").head(top_n)

    trend_source = records_frame(apply_filters(all_expenses, filters.without_period()), ExpenseRecord)
    trend_source = drill.scope(trend_source)
    trend_rows, trend_years = year_month_matrix(trend_source, "amount")

    kpis = {
        "total_expenses": total_expenses,
        "total_expenses_change": month_over_month_change(series),
        "opex_total": total_expenses - tax_total,
        "tax_total": tax_total,
        "top_month": top_period(series),
        "top_category": top_entry(aggregate(scoped, "category", "amount")),
    }

    charts = {
        "expenses_trend": to_vega_spec(trend_chart(series, title="Gastos")),
        "category_breakdown": to_vega_spec(breakdown_chart(by_category, title="Categoría")),
        "distribution": to_vega_spec(share_chart(distribution)),
        "yearly_trend": to_vega_spec(yearly_chart(trend_rows, trend_years)),
    }

    return {
        "filters": filters_payload(filters),
        "drill": {"levels": list(drill.levels), "selected": list(drill.selected), "label": drill.label},
        "kpis": kpis,
        "series": series_records(series),
        "tables": {
            "category": table_records(by_category),
            "subcategory": table_records(by_subcategory),
            "detail": table_records(by_detail),
        },
        "distribution": {"level": drill.distribution_level, "rows": table_records(distribution)},
        "top": {"level": top_level, "rows": table_records(top_rows)},
        "yearly_trend": {"rows": trend_rows, "years": trend_years},
        "charts": charts,
    }
