from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _FiltersModel(BaseModel):
    # unknown keys are dropped, not rejected
    model_config = ConfigDict(extra="ignore")

    years: List[int] = Field(default_factory=list)
    months: List[int] = Field(default_factory=list)
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class SalesFiltersModel(_FiltersModel):
    branches: List[str] = Field(default_factory=list)
    salespeople: List[str] = Field(default_factory=list)


class PurchasesFiltersModel(_FiltersModel):
    providers: List[str] = Field(default_factory=list)
    modalities: List[str] = Field(default_factory=list)


class ExpensesFiltersModel(_FiltersModel):
    categories: List[str] = Field(default_factory=list)
    subcategories: List[str] = Field(default_factory=list)


class HRFiltersModel(_FiltersModel):
    areas: List[str] = Field(default_factory=list)
    activities: List[str] = Field(default_factory=list)
    types: List[str] = Field(default_factory=list)


class StockFiltersModel(_FiltersModel):
    branches: List[str] = Field(default_factory=list)
    rubros: List[str] = Field(default_factory=list)


class GoalModel(BaseModel):
    branch: str
    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)
    goal_amount: float = Field(gt=0)


class GoalUpdateModel(BaseModel):
    goal_amount: float = Field(gt=0)


class ColorModel(BaseModel):
    color: str = Field(pattern=r"^#[0-9a-fA-F]{6}$")


FILTER_MODELS = {
    "sales": SalesFiltersModel,
    "purchases": PurchasesFiltersModel,
    "expenses": ExpensesFiltersModel,
    "hr": HRFiltersModel,
    "stock": StockFiltersModel,
}
