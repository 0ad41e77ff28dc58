"""Sales goals: actuals, relevance under the active sales filters and compliance."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pizarro.aggregate import pct, totals_index
from pizarro.filters import SalesFilters, matches, within
from pizarro.records import SaleRecord, SalesGoal, goal_key
from pizarro.signs import signed_sales_frame
from pizarro.timebuckets import MID_MONTH_DAY, month_name

PeriodKey = Tuple[str, int, int]


class GoalError(ValueError):
    pass


@dataclass(frozen=True)
class GoalSummary:
    total_goal: float
    total_actual: float
    achievement: float
    difference: float

    def as_dict(self) -> Dict[str, float]:
        return {
            "total_goal": self.total_goal,
            "total_actual": self.total_actual,
            "achievement": self.achievement,
            "difference": self.difference,
        }


def sales_by_period(sales: Iterable[SaleRecord]) -> Dict[PeriodKey, float]:
    """Signed sales per (branch, year, month)."""
    return totals_index(signed_sales_frame(sales), ["branch", "year", "month"], "signed_total")


def with_actuals(goals: Iterable[SalesGoal], sales: Iterable[SaleRecord]) -> Tuple[SalesGoal, ...]:
    by_period = sales_by_period(sales)
    return tuple(replace(g, actual_amount=by_period.get(g.key, 0.0)) for g in goals)


def goal_date(goal: SalesGoal) -> date:
    # representative day used against the sales date range
    return date(goal.year, goal.month, MID_MONTH_DAY)


def relevant_goals(goals: Iterable[SalesGoal], filters: SalesFilters) -> Tuple[SalesGoal, ...]:
    return tuple(
        g
        for g in goals
        if matches(filters.branches, g.branch)
        and matches(filters.years, g.year)
        and matches(filters.months, g.month)
        and within(goal_date(g), filters.start_date, filters.end_date)
    )


def summarize_goals(goals: Iterable[SalesGoal]) -> Optional[GoalSummary]:
    goals = tuple(goals)
    if not goals:
        return None
    total_goal = sum(g.goal_amount for g in goals)
    total_actual = sum(g.actual_amount for g in goals)
    return GoalSummary(
        total_goal=total_goal,
        total_actual=total_actual,
        achievement=pct(total_actual, total_goal) if total_goal > 0 else 0.0,
        difference=total_actual - total_goal,
    )


def goal_kpis(goals: Iterable[SalesGoal], sales: Iterable[SaleRecord], filters: SalesFilters) -> Optional[Dict[str, float]]:
    summary = summarize_goals(relevant_goals(with_actuals(goals, sales), filters))
    return summary.as_dict() if summary is not None else None


def compliance_table(goals: Iterable[SalesGoal]) -> List[Dict[str, Any]]:
    ordered = sorted(goals, key=lambda g: (-g.year, -g.month, g.branch))
    return [
        {
            "id": g.goal_id,
            "branch": g.branch,
            "year": g.year,
            "month": g.month,
            "month_name": month_name(g.month),
            "goal_amount": g.goal_amount,
            "actual_amount": g.actual_amount,
            "achievement": pct(g.actual_amount, g.goal_amount) if g.goal_amount > 0 else 0.0,
            "difference": g.actual_amount - g.goal_amount,
            "met": g.actual_amount >= g.goal_amount,
        }
        for g in ordered
    ]


@dataclass(frozen=True)
class GoalBook:
    """Immutable goal list keyed by (branch, year, month)."""

    goals: Tuple[SalesGoal, ...] = ()

    def get(self, goal_id: str) -> Optional[SalesGoal]:
        for g in self.goals:
            if g.goal_id == goal_id:
                return g
        return None

    def add(self, goal: SalesGoal) -> "GoalBook":
        if not goal.branch or goal.goal_amount <= 0:
            raise GoalError("Goal needs a branch and a target greater than zero.")
        if not 1 <= goal.month <= 12:
            raise GoalError(f"Invalid month {goal.month}.")
        if self.get(goal.goal_id) is not None:
            raise GoalError(f"A goal for {goal.branch} in {goal.month}/{goal.year} already exists.")
        return GoalBook(self.goals + (goal,))

    def update_target(self, goal_id: str, goal_amount: float) -> "GoalBook":
        """Change the target only; branch/year/month are the goal's identity."""
        if goal_amount <= 0:
            raise GoalError("Goal target must be greater than zero.")
        if self.get(goal_id) is None:
            raise GoalError(f"Unknown goal {goal_id}.")
        return GoalBook(tuple(replace(g, goal_amount=goal_amount) if g.goal_id == goal_id else g for g in self.goals))

    def delete(self, goal_id: str) -> "GoalBook":
        if self.get(goal_id) is None:
            raise GoalError(f"Unknown goal {goal_id}.")
        return GoalBook(tuple(g for g in self.goals if g.goal_id != goal_id))

    def merge(self, imported: Iterable[SalesGoal]) -> "GoalBook":
        """Import goals; an imported goal replaces an existing one with the same id."""
        by_id: Dict[str, SalesGoal] = {g.goal_id: g for g in self.goals}
        for g in imported:
            if g.goal_amount <= 0:
                raise GoalError(f"Goal for {g.branch} in {g.month}/{g.year} needs a target greater than zero.")
            by_id[goal_key(g.branch, g.year, g.month)] = g
        return GoalBook(tuple(by_id.values()))

    def refresh(self, sales: Iterable[SaleRecord]) -> "GoalBook":
        return GoalBook(with_actuals(self.goals, sales))
