"""Explicit dashboard state: datasets, goals, colours and the applied filters.

The analyzers hold nothing between calls. Whatever has to survive (the
uploaded datasets, the goal list, the colour map) lives in a
``DashboardSession`` and is written through to the store on every change.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from pizarro import engine
from pizarro.colors import generate_color_map
from pizarro.drilldown import DrillDown
from pizarro.filters import FILTER_TYPES, DomainFilters, filter_options, latest_period_filters
from pizarro.goals import GoalBook
from pizarro.ingest import IngestionError, load_goals, load_records
from pizarro.records import DOMAINS, SalesGoal
from pizarro.store import JsonStore

logger = logging.getLogger(__name__)

# domains whose filters jump to the most recent month after an upload
LATEST_PERIOD_DOMAINS = ("expenses", "hr", "stock")


class Debouncer:
    """Run only the last of a burst of calls, ``delay`` seconds after it was made.

    A superseded call is dropped, never interrupted: it simply never runs. With a
    delay of zero every call runs synchronously.
    """

    def __init__(self, delay: float):
        self.delay = delay
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._pending: Optional[Tuple[Callable[..., Any], tuple, dict]] = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        if self.delay <= 0:
            self.cancel()
            fn(*args, **kwargs)
            return
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            self._pending = (fn, args, kwargs)
            self._timer = threading.Timer(self.delay, self._fire, args=(self._generation,))
            self._timer.daemon = True
            self._timer.start()

    def _take(self, generation: Optional[int] = None) -> Optional[Tuple[Callable[..., Any], tuple, dict]]:
        with self._lock:
            if generation is not None and generation != self._generation:
                return None
            pending, self._pending = self._pending, None
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            return pending

    def _fire(self, generation: int) -> None:
        pending = self._take(generation)
        if pending is not None:
            fn, args, kwargs = pending
            fn(*args, **kwargs)

    def flush(self) -> None:
        """Run the pending call now instead of waiting for the timer."""
        pending = self._take()
        if pending is not None:
            fn, args, kwargs = pending
            fn(*args, **kwargs)

    def cancel(self) -> None:
        self._take()


class DashboardSession:
    def __init__(self, store: Optional[JsonStore] = None, *, debounce_seconds: float = 0.5, top_n: int = 10):
        self.store = store
        self.top_n = top_n
        self.datasets: Dict[str, Tuple[Any, ...]] = {d: () for d in DOMAINS}
        self.goal_book = GoalBook()
        self.colors: Dict[str, str] = {}
        self.filters: Dict[str, DomainFilters] = {d: FILTER_TYPES[d]() for d in DOMAINS}
        self.debouncer = Debouncer(debounce_seconds)

    @classmethod
    def from_store(cls, store: JsonStore, **kwargs: Any) -> "DashboardSession":
        session = cls(store, **kwargs)
        session.datasets.update(store.load_all())
        session.goal_book = GoalBook(store.load_goals()).refresh(session.datasets["sales"])
        session.colors = store.load_colors()
        for domain in LATEST_PERIOD_DOMAINS:
            latest = latest_period_filters(domain, session.datasets[domain])
            if latest is not None:
                session.filters[domain] = latest
        return session

    # ---------------- Datasets ----------------
    def upload(self, domain: str, source: Any, filename: Optional[str] = None) -> Tuple[Any, ...]:
        """Parse and install a new dataset; on ``IngestionError`` the current one is kept."""
        try:
            records = load_records(domain, source, filename)
        except IngestionError:
            logger.warning("Rejected %s upload %s", domain, filename or "", exc_info=True)
            raise
        self.replace_dataset(domain, records)
        return records

    def replace_dataset(self, domain: str, records: Iterable[Any]) -> None:
        records = tuple(records)
        self.datasets[domain] = records
        if self.store is not None:
            self.store.save_records(domain, records)

        if domain == "sales":
            self.goal_book = self.goal_book.refresh(records)
            self._save_goals()
            names = [r.branch for r in records] + [r.salesperson for r in records] + [r.client for r in records]
            self.colors = generate_color_map(names, self.colors)
            if self.store is not None:
                self.store.save_colors(self.colors)

        if domain in LATEST_PERIOD_DOMAINS:
            self.filters[domain] = latest_period_filters(domain, records) or FILTER_TYPES[domain]()
        else:
            self.filters[domain] = FILTER_TYPES[domain]()
        logger.info("Loaded %d %s records", len(records), domain)

    # ---------------- Filters ----------------
    def set_filters(self, domain: str, filters: DomainFilters) -> None:
        self.debouncer.call(self._apply_filters, domain, filters)

    def _apply_filters(self, domain: str, filters: DomainFilters) -> None:
        self.filters[domain] = filters

    def flush(self) -> None:
        self.debouncer.flush()

    def reset_filters(self, domain: str) -> None:
        self.debouncer.cancel()
        self.filters[domain] = FILTER_TYPES[domain]()

    def options(self, domain: str) -> Dict[str, Any]:
        return filter_options(domain, self.datasets[domain])

    # ---------------- Results ----------------
    def results(
        self, domain: str, drill: Optional[DrillDown] = None, filters: Optional[DomainFilters] = None
    ) -> Optional[Dict[str, Any]]:
        """Analyze ``domain`` with the session filters, or with ``filters`` when given."""
        return engine.analyze(
            domain,
            self.datasets,
            self.filters[domain] if filters is None else filters,
            goals=self.goal_book.goals,
            drill=drill,
            top_n=self.top_n,
        )

    def goal_results(self, filters: Optional[DomainFilters] = None) -> Dict[str, Any]:
        return engine.goals_results(self.goal_book.goals, self.datasets["sales"], filters or self.filters["sales"])

    # ---------------- Goals ----------------
    @property
    def goals(self) -> Tuple[SalesGoal, ...]:
        return self.goal_book.goals

    def _save_goals(self) -> None:
        if self.store is not None:
            self.store.save_goals(self.goal_book.goals)

    def add_goal(self, goal: SalesGoal) -> SalesGoal:
        self.goal_book = self.goal_book.add(goal).refresh(self.datasets["sales"])
        self._save_goals()
        return self.goal_book.get(goal.goal_id)

    def update_goal(self, goal_id: str, goal_amount: float) -> SalesGoal:
        self.goal_book = self.goal_book.update_target(goal_id, goal_amount)
        self._save_goals()
        return self.goal_book.get(goal_id)

    def delete_goal(self, goal_id: str) -> None:
        self.goal_book = self.goal_book.delete(goal_id)
        self._save_goals()

    def import_goals(self, source: Any, filename: Optional[str] = None) -> int:
        imported = load_goals(source, filename)
        self.goal_book = self.goal_book.merge(imported).refresh(self.datasets["sales"])
        self._save_goals()
        return len(imported)

    # ---------------- Colours ----------------
    def set_color(self, name: str, color: str) -> None:
        self.colors = {**self.colors, name: color}
        if self.store is not None:
            self.store.save_colors(self.colors)
