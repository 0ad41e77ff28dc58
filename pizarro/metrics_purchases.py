from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import altair as alt
import pandas as pd

from pizarro.aggregate import aggregate, safe_divide, table_records, top_entry, top_n_with_other, totals_index, with_shares
from pizarro.charts import breakdown_chart, share_chart, to_vega_spec, trend_chart, yearly_chart
from pizarro.filters import PurchasesFilters, apply_filters, filters_payload
from pizarro.records import DECLARED, UNDECLARED, PurchaseRecord, SaleRecord, records_frame
from pizarro.signs import signed_sales_frame
from pizarro.timebuckets import month_over_month_change, monthly_series, period_label, series_records, top_period, year_month_matrix


def purchases_vs_sales(purchases: pd.DataFrame, sales_index: Dict[tuple, float]) -> List[Dict[str, Any]]:
    """Net purchases per period next to signed sales of the same (year, month)."""
    if purchases.empty:
        return []
    grouped = purchases.groupby(["period", "year", "month"])["net_amount"].sum().reset_index().sort_values("period")
    rows: List[Dict[str, Any]] = []
    for row in grouped.itertuples(index=False):
        sales = sales_index.get((int(row.year), int(row.month)), 0.0)
        rows.append(
            {
                "date": str(row.period),
                "label": period_label(str(row.period)),
                "purchases": float(row.net_amount),
                "sales": sales,
                "ratio": safe_divide(float(row.net_amount), sales),
            }
        )
    return rows


def _comparison_chart(rows: List[Dict[str, Any]]) -> alt.Chart:
    long_df = (
        pd.DataFrame(rows).melt(id_vars=["date"], value_vars=["purchases", "sales"], var_name="serie", value_name="total")
        if rows
        else pd.DataFrame(columns=["date", "serie", "total"])
    )
    long_df["serie"] = long_df["serie"].map({"purchases": "Compras", "sales": "Ventas"})
    return (
        alt.Chart(long_df)
        .mark_bar()
        .encode(
            x=alt.X("date:O", title="Mes", axis=alt.Axis(grid=False)),
            xOffset="serie:N",
            y=alt.Y("total:Q", axis=alt.Axis(format="$~s", gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color("serie:N", title=None),
            tooltip=["date", "serie", alt.Tooltip("total:Q", format="$,.0f")],
        )
        .properties(height=260)
    )


def compute_purchases(
    filtered: Sequence[PurchaseRecord],
    filters: PurchasesFilters,
    all_purchases: Sequence[PurchaseRecord],
    all_sales: Sequence[SaleRecord] = (),
    *,
    top_n: int = 10,
) -> Optional[Dict[str, Any]]:
    if not filtered:
        return None

    df = records_frame(filtered, PurchaseRecord)
    total_gross = float(df["gross_amount"].sum())
    total_net = float(df["net_amount"].sum())
    total_vat = float(df["vat"].sum())
    total_other_taxes = float(df["other_taxes"].sum())

    series = monthly_series(df, "gross_amount")
    by_provider = aggregate(df, "provider", "gross_amount")
    by_modality = with_shares(aggregate(df, "modality", "gross_amount"))
    top_providers = with_shares(top_n_with_other(by_provider, top_n))

    # one index per call; purchases only ever match sales on (year, month)
    sales_index = totals_index(signed_sales_frame(all_sales), ["year", "month"], "signed_total")
    comparison = purchases_vs_sales(df, sales_index)
    sales_in_period = sum(row["sales"] for row in comparison)

    trend_source = records_frame(apply_filters(all_purchases, filters.without_period()), PurchaseRecord)
    trend_rows, trend_years = year_month_matrix(trend_source, "gross_amount")

    declared_total = float(df.loc[df["modality"] == DECLARED, "gross_amount"].sum())
    undeclared_total = float(df.loc[df["modality"] == UNDECLARED, "gross_amount"].sum())

    kpis = {
        "total_gross": total_gross,
        "total_net": total_net,
        "total_vat": total_vat,
        "total_other_taxes": total_other_taxes,
        "tax_burden_share": safe_divide(total_vat + total_other_taxes, total_gross),
        "total_gross_change": month_over_month_change(series),
        "declared_total": declared_total,
        "undeclared_total": undeclared_total,
        "provider_count": int(df["provider"].nunique()),
        "top_provider": top_entry(by_provider),
        "top_month": top_period(series),
        "sales_in_period": sales_in_period,
        "purchases_to_sales": safe_divide(total_net, sales_in_period),
    }

    charts = {
        "purchases_trend": to_vega_spec(trend_chart(series, title="Compras")),
        "purchases_vs_sales": to_vega_spec(_comparison_chart(comparison)),
        "provider_breakdown": to_vega_spec(breakdown_chart(by_provider.head(top_n), title="Proveedor")),
        "modality_share": to_vega_spec(share_chart(by_modality)),
        "yearly_trend": to_vega_spec(yearly_chart(trend_rows, trend_years)),
    }

    return {
        "filters": filters_payload(filters),
        "kpis": kpis,
        "series": series_records(series),
        "purchases_vs_sales": comparison,
        "tables": {
            "provider": table_records(by_provider),
            "modality": table_records(by_modality),
        },
        "top": {"providers": table_records(top_providers)},
        "yearly_trend": {"rows": trend_rows, "years": trend_years},
        "charts": charts,
    }
