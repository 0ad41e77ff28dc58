from __future__ import annotations

from typing import Any, Dict, List

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.TopLevelMixin) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def trend_chart(series: pd.DataFrame, *, title: str = "Total", currency: bool = True) -> alt.Chart:
    axis_format = "$~s" if currency else "~s"
    hover = alt.selection_point(fields=["period"], on="mouseover", empty="all")
    return (
        alt.Chart(series)
        .mark_area(line=True, point={"filled": True, "size": 50}, opacity=0.35)
        .encode(
            x=alt.X("period:O", title="Mes", axis=alt.Axis(grid=False)),
            y=alt.Y("total:Q", title=title, axis=alt.Axis(format=axis_format, gridDash=[4, 4], domain=False, ticks=False)),
            tooltip=["period", alt.Tooltip("total:Q", title=title, format="$,.0f" if currency else ",")],
        )
        .add_params(hover)
        .properties(height=260)
    )


def breakdown_chart(table: pd.DataFrame, *, title: str) -> alt.Chart:
    hover = alt.selection_point(fields=["name"], on="mouseover", empty="all")
    return (
        alt.Chart(table)
        .mark_bar()
        .encode(
            x=alt.X("name:N", title=title, sort="-y", axis=alt.Axis(grid=False, labelAngle=-45)),
            y=alt.Y("total:Q", axis=alt.Axis(format="$~s", gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color("name:N", legend=None),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.6)),
            tooltip=[alt.Tooltip("name:N", title=title), alt.Tooltip("total:Q", format="$,.0f"), "count"],
        )
        .add_params(hover)
    )


def share_chart(table: pd.DataFrame) -> alt.Chart:
    return (
        alt.Chart(table)
        .mark_arc(innerRadius=60)
        .encode(
            theta=alt.Theta("total:Q"),
            color=alt.Color("name:N", title=None),
            tooltip=["name", alt.Tooltip("total:Q", format="$,.0f"), alt.Tooltip("percentage:Q", format=".2%")],
        )
    )


def yearly_chart(rows: List[Dict[str, Any]], years: List[str]) -> alt.Chart:
    long_df = pd.DataFrame(rows).melt(id_vars="month", value_vars=years, var_name="year", value_name="total") if rows else pd.DataFrame(columns=["month", "year", "total"])
    hover = alt.selection_point(fields=["year"], on="mouseover", empty="all")
    return (
        alt.Chart(long_df)
        .mark_line(point={"filled": True, "size": 60})
        .encode(
            x=alt.X("month:N", title="Mes", sort=None, axis=alt.Axis(grid=False)),
            y=alt.Y("total:Q", axis=alt.Axis(format="$~s", gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color("year:N", title="Año"),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.2)),
            tooltip=["year", "month", alt.Tooltip("total:Q", format="$,.0f")],
        )
        .add_params(hover)
        .properties(height=260)
    )
