"""Memoized entry points over the analyzers.

Every argument is immutable (record tuples, frozen filters, frozen drill
state), so identical inputs map to the same cached payload. Callers must treat
the returned dicts as read-only.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from pizarro.drilldown import DrillDown
from pizarro.filters import DomainFilters, apply_filters
from pizarro.goals import compliance_table, relevant_goals, summarize_goals, with_actuals
from pizarro.metrics_expenses import compute_expenses
from pizarro.metrics_hr import compute_hr
from pizarro.metrics_purchases import compute_purchases
from pizarro.metrics_sales import compute_sales
from pizarro.metrics_stock import compute_stock
from pizarro.records import DOMAINS, SalesGoal

Datasets = Mapping[str, Tuple[Any, ...]]

CACHE_SIZE = 64


@lru_cache(maxsize=CACHE_SIZE)
def filtered(records: Tuple[Any, ...], filters: DomainFilters) -> Tuple[Any, ...]:
    return apply_filters(records, filters)


@lru_cache(maxsize=CACHE_SIZE)
def sales_results(all_sales, filters, goals=(), drill=None, top_n=10) -> Optional[Dict[str, Any]]:
    return compute_sales(filtered(all_sales, filters), filters, all_sales, goals=goals, drill=drill, top_n=top_n)


@lru_cache(maxsize=CACHE_SIZE)
def purchases_results(all_purchases, filters, all_sales=(), top_n=10) -> Optional[Dict[str, Any]]:
    return compute_purchases(filtered(all_purchases, filters), filters, all_purchases, all_sales, top_n=top_n)


@lru_cache(maxsize=CACHE_SIZE)
def expenses_results(all_expenses, filters, drill=None, top_n=10) -> Optional[Dict[str, Any]]:
    return compute_expenses(filtered(all_expenses, filters), filters, all_expenses, drill=drill, top_n=top_n)


@lru_cache(maxsize=CACHE_SIZE)
def hr_results(all_hr, filters) -> Dict[str, Any]:
    return compute_hr(filtered(all_hr, filters), filters, all_hr)


@lru_cache(maxsize=CACHE_SIZE)
def stock_results(all_stock, filters, all_sales=(), all_purchases=(), all_expenses=(), all_hr=(), top_n=10) -> Optional[Dict[str, Any]]:
    return compute_stock(
        filtered(all_stock, filters),
        filters,
        all_stock,
        all_sales,
        all_purchases,
        all_expenses,
        all_hr,
        top_n=top_n,
    )


@lru_cache(maxsize=CACHE_SIZE)
def goals_results(goals: Tuple[SalesGoal, ...], all_sales, filters) -> Dict[str, Any]:
    refreshed = with_actuals(goals, all_sales)
    relevant = relevant_goals(refreshed, filters)
    summary = summarize_goals(relevant)
    return {
        "summary": summary.as_dict() if summary is not None else None,
        "compliance": compliance_table(relevant),
    }


def analyze(
    domain: str,
    datasets: Datasets,
    filters: DomainFilters,
    *,
    goals: Sequence[SalesGoal] = (),
    drill: Optional[DrillDown] = None,
    top_n: int = 10,
) -> Optional[Dict[str, Any]]:
    """Results for one domain; ``datasets`` maps each domain to its full record tuple."""
    data = {d: tuple(datasets.get(d, ())) for d in DOMAINS}
    if domain == "sales":
        return sales_results(data["sales"], filters, tuple(goals), drill, top_n)
    if domain == "purchases":
        return purchases_results(data["purchases"], filters, data["sales"], top_n)
    if domain == "expenses":
        return expenses_results(data["expenses"], filters, drill, top_n)
    if domain == "hr":
        return hr_results(data["hr"], filters)
    if domain == "stock":
        return stock_results(
            data["stock"], filters, data["sales"], data["purchases"], data["expenses"], data["hr"], top_n
        )
    raise KeyError(f"Unknown domain '{domain}'")


def clear_caches() -> None:
    for fn in (filtered, sales_results, purchases_results, expenses_results, hr_results, stock_results, goals_results):
        fn.cache_clear()
