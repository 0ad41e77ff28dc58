"""Filter definitions and the predicates compiled from them.

Selection rule shared by every domain (and by goals): an empty selection
means "no restriction". Selecting nothing in a multi-select control is the
same as selecting everything, so ``matches(frozenset(), value)`` is always True.
Date bounds are inclusive and ``None`` leaves that side open.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple, TypeVar, Union

R = TypeVar("R")

Selection = FrozenSet[Any]


def matches(selection: Selection, value: Any) -> bool:
    return not selection or value in selection


def within(value: date, start: Optional[date], end: Optional[date]) -> bool:
    if start is not None and value < start:
        return False
    if end is not None and value > end:
        return False
    return True


@dataclass(frozen=True)
class SalesFilters:
    branches: FrozenSet[str] = frozenset()
    salespeople: FrozenSet[str] = frozenset()
    years: FrozenSet[int] = frozenset()
    months: FrozenSet[int] = frozenset()
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def selections(self) -> List[Tuple[Selection, Callable[[Any], Any]]]:
        return [
            (self.branches, lambda r: r.branch),
            (self.salespeople, lambda r: r.salesperson),
            (self.years, lambda r: r.date.year),
            (self.months, lambda r: r.date.month),
        ]

    def without_period(self) -> "SalesFilters":
        return SalesFilters(branches=self.branches, salespeople=self.salespeople)


@dataclass(frozen=True)
class PurchasesFilters:
    providers: FrozenSet[str] = frozenset()
    years: FrozenSet[int] = frozenset()
    months: FrozenSet[int] = frozenset()
    modalities: FrozenSet[str] = frozenset()
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def selections(self) -> List[Tuple[Selection, Callable[[Any], Any]]]:
        return [
            (self.providers, lambda r: r.provider),
            (self.years, lambda r: r.date.year),
            (self.months, lambda r: r.date.month),
            (self.modalities, lambda r: r.modality),
        ]

    def without_period(self) -> "PurchasesFilters":
        return PurchasesFilters(providers=self.providers, modalities=self.modalities)


@dataclass(frozen=True)
class ExpensesFilters:
    categories: FrozenSet[str] = frozenset()
    subcategories: FrozenSet[str] = frozenset()
    years: FrozenSet[int] = frozenset()
    months: FrozenSet[int] = frozenset()
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def selections(self) -> List[Tuple[Selection, Callable[[Any], Any]]]:
        return [
            (self.categories, lambda r: r.category),
            (self.subcategories, lambda r: r.subcategory),
            (self.years, lambda r: r.date.year),
            (self.months, lambda r: r.date.month),
        ]

    def without_period(self) -> "ExpensesFilters":
        return ExpensesFilters(categories=self.categories, subcategories=self.subcategories)


@dataclass(frozen=True)
class HRFilters:
    years: FrozenSet[int] = frozenset()
    months: FrozenSet[int] = frozenset()
    areas: FrozenSet[str] = frozenset()
    activities: FrozenSet[str] = frozenset()
    types: FrozenSet[str] = frozenset()
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def selections(self) -> List[Tuple[Selection, Callable[[Any], Any]]]:
        return [
            (self.years, lambda r: r.date.year),
            (self.months, lambda r: r.date.month),
            (self.areas, lambda r: r.area),
            (self.activities, lambda r: r.activity),
            (self.types, lambda r: r.type),
        ]

    def without_period(self) -> "HRFilters":
        return HRFilters(areas=self.areas, activities=self.activities, types=self.types)


@dataclass(frozen=True)
class StockFilters:
    years: FrozenSet[int] = frozenset()
    months: FrozenSet[int] = frozenset()
    branches: FrozenSet[str] = frozenset()
    rubros: FrozenSet[str] = frozenset()
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def selections(self) -> List[Tuple[Selection, Callable[[Any], Any]]]:
        return [
            (self.years, lambda r: r.date.year),
            (self.months, lambda r: r.date.month),
            (self.branches, lambda r: r.branch),
            (self.rubros, lambda r: r.rubro),
        ]

    def without_period(self) -> "StockFilters":
        return StockFilters(branches=self.branches, rubros=self.rubros)


DomainFilters = Union[SalesFilters, PurchasesFilters, ExpensesFilters, HRFilters, StockFilters]

FILTER_TYPES = {
    "sales": SalesFilters,
    "purchases": PurchasesFilters,
    "expenses": ExpensesFilters,
    "hr": HRFilters,
    "stock": StockFilters,
}

# filter field -> record attribute, used for the option lists shown next to each control
OPTION_FIELDS: Dict[str, Dict[str, Callable[[Any], Any]]] = {
    "sales": {"branches": lambda r: r.branch, "salespeople": lambda r: r.salesperson, "clients": lambda r: r.client},
    "purchases": {"providers": lambda r: r.provider, "modalities": lambda r: r.modality},
    "expenses": {"categories": lambda r: r.category, "subcategories": lambda r: r.subcategory},
    "hr": {"areas": lambda r: r.area, "activities": lambda r: r.activity, "types": lambda r: r.type},
    "stock": {"branches": lambda r: r.branch, "rubros": lambda r: r.rubro},
}


def build_predicate(filters: DomainFilters) -> Callable[[Any], bool]:
    """Compile ``filters`` into a conjunctive per-record test."""
    active = [(selection, get) for selection, get in filters.selections() if selection]
    start, end = filters.start_date, filters.end_date

    def predicate(record: Any) -> bool:
        for selection, get in active:
            if not matches(selection, get(record)):
                return False
        return within(record.date, start, end)

    return predicate


def apply_filters(records: Iterable[R], filters: DomainFilters) -> Tuple[R, ...]:
    predicate = build_predicate(filters)
    return tuple(r for r in records if predicate(r))


# ---------------- Normalization of loose filter input ----------------
def _as_int_set(values: Optional[Iterable[object]], *, lo: Optional[int] = None, hi: Optional[int] = None) -> FrozenSet[int]:
    if not values:
        return frozenset()
    if isinstance(values, (str, int)):
        values = [values]
    out = set()
    for v in values:
        try:
            n = int(v)
        except (TypeError, ValueError):
            continue
        if lo is not None and n < lo:
            continue
        if hi is not None and n > hi:
            continue
        out.add(n)
    return frozenset(out)


def _as_str_set(values: Optional[Iterable[object]]) -> FrozenSet[str]:
    if not values:
        return frozenset()
    if isinstance(values, str):
        values = [values]
    return frozenset(str(v) for v in values if v is not None and str(v) != "")


def _as_date(value: object) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


INT_FIELDS = {"years": (None, None), "months": (1, 12)}
DATE_FIELDS = ("start_date", "end_date")


def normalize_filters(domain: str, raw: Optional[Dict[str, Any]] = None) -> DomainFilters:
    """Build the ``domain`` filter object from a loose mapping; unknown keys are ignored."""
    filter_type = FILTER_TYPES[domain]
    raw = raw or {}
    kwargs: Dict[str, Any] = {}
    for name in filter_type.__dataclass_fields__:
        if name not in raw:
            continue
        value = raw.get(name)
        if name in INT_FIELDS:
            lo, hi = INT_FIELDS[name]
            kwargs[name] = _as_int_set(value, lo=lo, hi=hi)
        elif name in DATE_FIELDS:
            kwargs[name] = _as_date(value)
        else:
            kwargs[name] = _as_str_set(value)
    return filter_type(**kwargs)


def filters_payload(filters: DomainFilters) -> Dict[str, Any]:
    """JSON-friendly view of a filter object (sets as sorted lists, dates as ISO strings)."""
    out: Dict[str, Any] = {}
    for name in filters.__dataclass_fields__:
        value = getattr(filters, name)
        if isinstance(value, frozenset):
            out[name] = sorted(value)
        else:
            out[name] = value.isoformat() if value is not None else None
    return out


def filter_options(domain: str, records: Sequence[Any]) -> Dict[str, List[Any]]:
    if not records:
        return {"years": [], **{name: [] for name in OPTION_FIELDS[domain]}}
    options: Dict[str, List[Any]] = {"years": sorted({r.date.year for r in records}, reverse=True)}
    for name, get in OPTION_FIELDS[domain].items():
        options[name] = sorted({str(get(r)) for r in records})
    return options


def latest_period_filters(domain: str, records: Sequence[Any]) -> Optional[DomainFilters]:
    """Filters preselecting the year and month of the most recent record."""
    if not records:
        return None
    latest = max(records, key=lambda r: r.date)
    return FILTER_TYPES[domain](years=frozenset({latest.date.year}), months=frozenset({latest.date.month}))
