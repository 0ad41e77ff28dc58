from __future__ import annotations

from typing import Any, Dict, Iterable, Optional, Sequence

from pizarro.aggregate import aggregate, safe_divide, table_records, top_entry, top_n_with_other, with_shares
from pizarro.charts import breakdown_chart, share_chart, to_vega_spec, trend_chart, yearly_chart
from pizarro.drilldown import DrillDown
from pizarro.filters import SalesFilters, apply_filters, filters_payload
from pizarro.goals import goal_kpis
from pizarro.records import DECLARED, UNDECLARED, SaleRecord, SalesGoal
from pizarro.signs import DocumentKind, signed_sales_frame
from pizarro.timebuckets import month_over_month_change, monthly_series, series_records, top_period, year_month_matrix

SALES_LEVELS = ("branch", "salesperson", "client")


def sales_drilldown() -> DrillDown:
    return DrillDown(SALES_LEVELS)


def compute_sales(
    filtered: Sequence[SaleRecord],
    filters: SalesFilters,
    all_sales: Sequence[SaleRecord],
    *,
    goals: Iterable[SalesGoal] = (),
    drill: Optional[DrillDown] = None,
    top_n: int = 10,
) -> Optional[Dict[str, Any]]:
    if not filtered:
        return None
    drill = drill or sales_drilldown()

    docs = signed_sales_frame(filtered, keep_debit_notes=True)
    debit_count = int((docs["kind"] == DocumentKind.DEBIT_NOTE.value).sum())
    df = docs[docs["kind"] != DocumentKind.DEBIT_NOTE.value]
    credit = df[df["kind"] == DocumentKind.CREDIT_NOTE.value]

    scoped = drill.scope(df)
    total_sales = float(scoped["signed_total"].sum())
    transactions = int(len(scoped))
    declared_total = float(scoped.loc[scoped["fiscal_type"] == DECLARED, "signed_total"].sum())
    undeclared_total = float(scoped.loc[scoped["fiscal_type"] == UNDECLARED, "signed_total"].sum())

    series = monthly_series(scoped, "signed_total")
    by_branch = aggregate(df, "branch", "signed_total")
    by_salesperson = drill.table(df, "salesperson", "signed_total")
    by_client = drill.table(df, "client", "signed_total")
    by_fiscal_type = with_shares(aggregate(scoped, "fiscal_type", "signed_total"))
    distribution = with_shares(top_n_with_other(aggregate(scoped, drill.distribution_level, "signed_total"), top_n))

    # year-over-year ignores the period filters so every year stays comparable
    trend_source = signed_sales_frame(apply_filters(all_sales, filters.without_period()))
    trend_rows, trend_years = year_month_matrix(trend_source, "signed_total")

    kpis = {
        "total_sales": total_sales,
        "total_sales_change": month_over_month_change(series),
        "total_quantity": int(scoped["quantity"].sum()),
        "transactions": transactions,
        "average_ticket": safe_divide(total_sales, transactions),
        "credit_notes_total": float(credit["signed_total"].sum()),
        "credit_notes_count": int(len(credit)),
        "debit_notes_count": debit_count,
        "declared_total": declared_total,
        "undeclared_total": undeclared_total,
        "declared_share": safe_divide(declared_total, declared_total + undeclared_total),
        "top_branch": top_entry(aggregate(scoped, "branch", "signed_total")),
        "top_salesperson": top_entry(aggregate(scoped, "salesperson", "signed_total")),
        "top_client": top_entry(aggregate(scoped, "client", "signed_total")),
        "top_month": top_period(series),
    }

    charts = {
        "sales_trend": to_vega_spec(trend_chart(series, title="Ventas")),
        "branch_breakdown": to_vega_spec(breakdown_chart(by_branch, title="Sucursal")),
        "distribution": to_vega_spec(share_chart(distribution)),
        "yearly_trend": to_vega_spec(yearly_chart(trend_rows, trend_years)),
    }

    return {
        "filters": filters_payload(filters),
        "drill": {"levels": list(drill.levels), "selected": list(drill.selected), "label": drill.label},
        "kpis": kpis,
        "goal_kpis": goal_kpis(goals, all_sales, filters),
        "series": series_records(series),
        "tables": {
            "branch": table_records(by_branch),
            "salesperson": table_records(by_salesperson),
            "client": table_records(by_client),
            "fiscal_type": table_records(by_fiscal_type),
        },
        "distribution": {"level": drill.distribution_level, "rows": table_records(distribution)},
        "top": {
            "clients": table_records(with_shares(top_n_with_other(aggregate(scoped, "client", "signed_total"), top_n))),
            "salespeople": table_records(aggregate(scoped, "salesperson", "signed_total").head(top_n)),
        },
        "yearly_trend": {"rows": trend_rows, "years": trend_years},
        "charts": charts,
    }
