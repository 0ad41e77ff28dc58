from __future__ import annotations

from dataclasses import astuple, dataclass, fields
from datetime import date
from typing import Iterable, Optional, Tuple, Type

import pandas as pd

DECLARED = "Blanco"
UNDECLARED = "Negro"

DOMAINS = ("sales", "purchases", "expenses", "hr", "stock")


@dataclass(frozen=True)
class SaleRecord:
    branch: str
    document_type: str
    quantity: int
    date: date
    total: float
    client: str
    salesperson_id: int
    salesperson: str
    fiscal_type: str = DECLARED

    @property
    def year(self) -> int:
        return self.date.year

    @property
    def month(self) -> int:
        return self.date.month


@dataclass(frozen=True)
class PurchaseRecord:
    date: date
    modality: str
    provider: str
    net_amount: float
    other_taxes: float
    vat: float
    gross_amount: float

    @property
    def year(self) -> int:
        return self.date.year

    @property
    def month(self) -> int:
        return self.date.month


@dataclass(frozen=True)
class ExpenseRecord:
    date: date
    category: str
    subcategory: str
    detail: str
    amount: float

    @property
    def year(self) -> int:
        return self.date.year

    @property
    def month(self) -> int:
        return self.date.month


@dataclass(frozen=True)
class HRRecord:
    date: date
    employee: str
    area: str
    activity: str
    type: str
    entry_date: date
    birth_date: date
    termination_date: Optional[date] = None

    @property
    def year(self) -> int:
        return self.date.year

    @property
    def month(self) -> int:
        return self.date.month


@dataclass(frozen=True)
class StockRecord:
    date: date
    branch: str
    rubro: str
    cost: float
    system_rate: float
    official_rate: float
    valued_usd_system: float
    valued_usd_official: float
    valued_ars_official: float

    @property
    def year(self) -> int:
        return self.date.year

    @property
    def month(self) -> int:
        return self.date.month


@dataclass(frozen=True)
class SalesGoal:
    branch: str
    year: int
    month: int
    goal_amount: float
    actual_amount: float = 0.0

    @property
    def goal_id(self) -> str:
        return goal_key(self.branch, self.year, self.month)

    @property
    def key(self) -> Tuple[str, int, int]:
        return (self.branch, self.year, self.month)


RECORD_TYPES = {
    "sales": SaleRecord,
    "purchases": PurchaseRecord,
    "expenses": ExpenseRecord,
    "hr": HRRecord,
    "stock": StockRecord,
}


def goal_key(branch: str, year: int, month: int) -> str:
    return f"{branch}-{int(year)}-{int(month)}"


def record_columns(record_type: Type) -> Tuple[str, ...]:
    return tuple(f.name for f in fields(record_type))


def records_frame(records: Iterable[object], record_type: Type) -> pd.DataFrame:
    """Build a DataFrame with one column per record field plus ``year``, ``month`` and ``period``.

    The column set is fixed by the record type, so an empty collection still
    yields a frame every analyzer can group on.
    """
    columns = list(record_columns(record_type))
    df = pd.DataFrame([astuple(r) for r in records], columns=columns)
    if df.empty:
        for col in ["year", "month", "period"]:
            df[col] = pd.Series(dtype="int64" if col != "period" else object)
        return df
    dates = pd.to_datetime(df["date"])
    df["year"] = dates.dt.year.astype("int64")
    df["month"] = dates.dt.month.astype("int64")
    df["period"] = dates.dt.strftime("%Y-%m")
    return df
