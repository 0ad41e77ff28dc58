from datetime import date

from pizarro.filters import (
    ExpensesFilters,
    SalesFilters,
    apply_filters,
    filter_options,
    filters_payload,
    latest_period_filters,
    matches,
    normalize_filters,
)


def test_empty_selection_matches_everything():
    """Selecting nothing is the same as selecting everything."""
    assert matches(frozenset(), "anything")
    assert matches(frozenset({"A"}), "A")
    assert not matches(frozenset({"A"}), "B")


def test_empty_filters_keep_full_dataset(sales):
    assert apply_filters(sales, SalesFilters()) == sales


def test_filters_are_conjunctive(sales):
    f = SalesFilters(branches=frozenset({"A"}), years=frozenset({2024}), months=frozenset({1}))
    out = apply_filters(sales, f)
    assert len(out) == 3
    assert all(r.branch == "A" and r.date.month == 1 and r.date.year == 2024 for r in out)


def test_date_range_is_inclusive(sales):
    f = SalesFilters(start_date=date(2024, 1, 5), end_date=date(2024, 1, 12))
    out = apply_filters(sales, f)
    assert {r.date for r in out} == {date(2024, 1, 5), date(2024, 1, 12)}


def test_normalize_filters_ignores_unknown_keys_and_bad_months():
    f = normalize_filters(
        "sales",
        {"branches": ["A", ""], "months": [0, 1, "2", 13, "x"], "years": 2024, "start_date": "2024-01-01", "foo": 1},
    )
    assert f.branches == frozenset({"A"})
    assert f.months == frozenset({1, 2})
    assert f.years == frozenset({2024})
    assert f.start_date == date(2024, 1, 1)
    assert f.end_date is None


def test_normalize_filters_defaults_when_empty():
    assert normalize_filters("expenses", None) == ExpensesFilters()


def test_filters_payload_is_json_friendly():
    payload = filters_payload(SalesFilters(branches=frozenset({"B", "A"}), end_date=date(2024, 3, 1)))
    assert payload["branches"] == ["A", "B"]
    assert payload["end_date"] == "2024-03-01"
    assert payload["start_date"] is None


def test_filter_options_sorted(sales):
    options = filter_options("sales", sales)
    assert options["years"] == [2024, 2023]
    assert options["branches"] == ["A", "B"]
    assert options["clients"] == ["ACME", "GLOBEX", "INITECH"]


def test_filter_options_for_empty_dataset():
    assert filter_options("stock", ()) == {"years": [], "branches": [], "rubros": []}


def test_latest_period_filters(expenses):
    f = latest_period_filters("expenses", expenses)
    assert f == ExpensesFilters(years=frozenset({2024}), months=frozenset({2}))
    assert latest_period_filters("expenses", ()) is None


def test_without_period_keeps_dimension_selections():
    f = SalesFilters(branches=frozenset({"A"}), years=frozenset({2024}), start_date=date(2024, 1, 1))
    assert f.without_period() == SalesFilters(branches=frozenset({"A"}))
