"""HR analytics.

Two independent views are returned. The roster view is computed from every
record on file (one row per employee, latest record wins) and does not move
with the period filters. The activity view covers only the filtered records.
An empty filtered set therefore still yields a payload, with ``has_activity``
set to False.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from pizarro.aggregate import aggregate, pct, safe_divide, table_records, with_shares
from pizarro.charts import breakdown_chart, share_chart, to_vega_spec, trend_chart, yearly_chart
from pizarro.filters import HRFilters, apply_filters, filters_payload, matches, within
from pizarro.records import HRRecord, records_frame
from pizarro.timebuckets import month_over_month_change, monthly_series, series_records, top_period, year_month_matrix

DAYS_PER_YEAR = 365.25

TENURE_BANDS: Tuple[Tuple[str, float], ...] = (
    ("< 1 año", 1),
    ("1-3 años", 3),
    ("3-5 años", 5),
    ("5-10 años", 10),
    ("10+ años", float("inf")),
)

AGE_BANDS: Tuple[Tuple[str, float], ...] = (
    ("< 25", 25),
    ("25-34", 35),
    ("35-44", 45),
    ("45-54", 55),
    ("55+", float("inf")),
)


def _years_between(start: Optional[date], end: date) -> Optional[float]:
    if start is None:
        return None
    return (end - start).days / DAYS_PER_YEAR


def _band(value: float, bands: Tuple[Tuple[str, float], ...]) -> str:
    for label, upper in bands:
        if value < upper:
            return label
    return bands[-1][0]


def _band_counts(values: List[float], bands: Tuple[Tuple[str, float], ...]) -> List[Dict[str, Any]]:
    counts = {label: 0 for label, _ in bands}
    for v in values:
        counts[_band(v, bands)] += 1
    return [{"name": label, "count": n} for label, n in counts.items()]


def roster(all_hr: Sequence[HRRecord]) -> Tuple[HRRecord, ...]:
    """One record per employee: the most recent one (ties keep the later row)."""
    latest: Dict[str, HRRecord] = {}
    for r in all_hr:
        current = latest.get(r.employee)
        if current is None or r.date >= current.date:
            latest[r.employee] = r
    return tuple(latest.values())


def is_active(record: HRRecord, on: date) -> bool:
    return record.termination_date is None or record.termination_date > on


def roster_metrics(all_hr: Sequence[HRRecord]) -> Dict[str, Any]:
    employees = roster(all_hr)
    if not employees:
        return {
            "reference_date": None,
            "total_employees": 0,
            "active_employees": 0,
            "terminated_employees": 0,
            "average_tenure_years": 0.0,
            "average_age": 0.0,
            "turnover_rate": 0.0,
            "headcount_by_area": [],
            "tenure_bands": _band_counts([], TENURE_BANDS),
            "age_bands": _band_counts([], AGE_BANDS),
        }

    reference = max(r.date for r in all_hr)
    active = [r for r in employees if is_active(r, reference)]
    terminated = len(employees) - len(active)

    tenures = [t for t in (_years_between(r.entry_date, reference) for r in active) if t is not None and t >= 0]
    ages = [a for a in (_years_between(r.birth_date, reference) for r in active) if a is not None and a >= 0]

    area_frame = pd.DataFrame({"area": [r.area for r in active], "headcount": [1] * len(active)})
    by_area = with_shares(aggregate(area_frame, "area", "headcount"))

    return {
        "reference_date": reference.isoformat(),
        "total_employees": len(employees),
        "active_employees": len(active),
        "terminated_employees": terminated,
        "average_tenure_years": safe_divide(sum(tenures), len(tenures)),
        "average_age": safe_divide(sum(ages), len(ages)),
        "turnover_rate": pct(terminated, len(employees)),
        "headcount_by_area": table_records(by_area),
        "tenure_bands": _band_counts(tenures, TENURE_BANDS),
        "age_bands": _band_counts(ages, AGE_BANDS),
    }


def _in_selection(value: Optional[date], filters: HRFilters) -> bool:
    if value is None:
        return False
    return (
        matches(filters.years, value.year)
        and matches(filters.months, value.month)
        and within(value, filters.start_date, filters.end_date)
    )


def movements(all_hr: Sequence[HRRecord], filters: HRFilters) -> Dict[str, int]:
    """Hires and terminations whose own dates fall inside the selected period."""
    employees = roster(all_hr)
    selected = [
        r
        for r in employees
        if matches(filters.areas, r.area) and matches(filters.activities, r.activity) and matches(filters.types, r.type)
    ]
    return {
        "hires_in_period": sum(1 for r in selected if _in_selection(r.entry_date, filters)),
        "terminations_in_period": sum(1 for r in selected if _in_selection(r.termination_date, filters)),
    }


def compute_hr(filtered: Sequence[HRRecord], filters: HRFilters, all_hr: Sequence[HRRecord]) -> Dict[str, Any]:
    df = records_frame(filtered, HRRecord)
    df["events"] = 1

    series = monthly_series(df, "events")
    by_type = with_shares(aggregate(df, "type", "events"))
    by_activity = with_shares(aggregate(df, "activity", "events"))
    by_area = with_shares(aggregate(df, "area", "events"))

    kpis = {
        "total_events": int(len(df)),
        "events_change": month_over_month_change(series),
        "top_month": top_period(series),
        **movements(all_hr, filters),
    }
    roster_kpis = roster_metrics(all_hr)

    trend_source = records_frame(apply_filters(all_hr, filters.without_period()), HRRecord)
    trend_source["events"] = 1
    trend_rows, trend_years = year_month_matrix(trend_source, "events")

    charts = {
        "events_trend": to_vega_spec(trend_chart(series, title="Novedades", currency=False)),
        "type_share": to_vega_spec(share_chart(by_type)),
        "yearly_trend": to_vega_spec(yearly_chart(trend_rows, trend_years)),
        "headcount_by_area": to_vega_spec(
            breakdown_chart(
                pd.DataFrame(roster_kpis["headcount_by_area"], columns=["name", "total", "count", "percentage"]),
                title="Área",
            )
        ),
    }

    return {
        "filters": filters_payload(filters),
        "has_activity": bool(filtered),
        "has_roster": roster_kpis["total_employees"] > 0,
        "kpis": kpis,
        "roster": roster_kpis,
        "series": series_records(series),
        "tables": {
            "type": table_records(by_type),
            "activity": table_records(by_activity),
            "area": table_records(by_area),
        },
        "yearly_trend": {"rows": trend_rows, "years": trend_years},
        "charts": charts,
    }
