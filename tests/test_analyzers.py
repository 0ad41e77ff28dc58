"""Payload checks for the per-domain analyzers, run through the memoized engine."""
import pytest

from pizarro.drilldown import DrillDown
from pizarro.engine import analyze, clear_caches
from pizarro.filters import ExpensesFilters, HRFilters, PurchasesFilters, SalesFilters, StockFilters
from pizarro.metrics_expenses import EXPENSE_LEVELS, is_tax_category
from pizarro.metrics_hr import roster, roster_metrics
from pizarro.metrics_sales import SALES_LEVELS


@pytest.fixture
def datasets(sales, purchases, expenses, hr_records, stock):
    clear_caches()
    return {"sales": sales, "purchases": purchases, "expenses": expenses, "hr": hr_records, "stock": stock}


# ---------------- Sales ----------------
def test_sales_kpis(datasets, goals):
    out = analyze("sales", datasets, SalesFilters(), goals=goals)
    kpis = out["kpis"]
    assert kpis["total_sales"] == pytest.approx(2700.0)
    assert kpis["transactions"] == 6
    assert kpis["credit_notes_count"] == 1
    assert kpis["credit_notes_total"] == pytest.approx(-500.0)
    assert kpis["debit_notes_count"] == 1
    assert kpis["undeclared_total"] == pytest.approx(300.0)
    assert kpis["top_branch"] == {"name": "A", "total": 2000.0}
    assert kpis["top_month"]["name"] == "Febrero 2024"
    assert kpis["total_sales_change"] == pytest.approx((1200 - 1100) / 1100 * 100)
    assert out["goal_kpis"]["total_goal"] == 2500.0


def test_sales_period_filter(datasets):
    out = analyze("sales", datasets, SalesFilters(years=frozenset({2024}), months=frozenset({1})))
    assert out["kpis"]["total_sales"] == pytest.approx(1100.0)
    assert [row["name"] for row in out["tables"]["branch"]] == ["A", "B"]
    # the year-over-year view keeps every year
    assert out["yearly_trend"]["years"] == ["2023", "2024"]


def test_sales_drilldown_scopes_kpis_and_tables(datasets):
    drill = DrillDown.from_path(SALES_LEVELS, ["A"])
    out = analyze("sales", datasets, SalesFilters(), drill=drill)
    assert out["kpis"]["total_sales"] == pytest.approx(2000.0)
    assert out["drill"]["label"] == "A"
    assert [(r["name"], r["total"]) for r in out["tables"]["salesperson"]] == [("ANA", 1200.0), ("BETO", 800.0)]
    # branch table stays complete so the selection can be changed
    assert len(out["tables"]["branch"]) == 2
    assert out["distribution"]["level"] == "salesperson"


def test_sales_empty_selection_returns_none(datasets):
    assert analyze("sales", datasets, SalesFilters(branches=frozenset({"Z"}))) is None


def test_sales_payload_has_vega_specs(datasets):
    charts = analyze("sales", datasets, SalesFilters())["charts"]
    assert set(charts) == {"sales_trend", "branch_breakdown", "distribution", "yearly_trend"}
    assert all("$schema" in spec for spec in charts.values())


# ---------------- Purchases ----------------
def test_purchases_kpis(datasets):
    kpis = analyze("purchases", datasets, PurchasesFilters())["kpis"]
    assert kpis["total_gross"] == pytest.approx(699.0)
    assert kpis["total_net"] == pytest.approx(600.0)
    assert kpis["tax_burden_share"] == pytest.approx(99.0 / 699.0)
    assert kpis["declared_total"] == pytest.approx(499.0)
    assert kpis["undeclared_total"] == pytest.approx(200.0)
    assert kpis["provider_count"] == 2
    assert kpis["sales_in_period"] == pytest.approx(2300.0)
    assert kpis["purchases_to_sales"] == pytest.approx(600.0 / 2300.0)


def test_purchases_vs_sales_rows(datasets):
    rows = analyze("purchases", datasets, PurchasesFilters())["purchases_vs_sales"]
    assert [(r["date"], r["purchases"], r["sales"]) for r in rows] == [
        ("2024-01", 300.0, 1100.0),
        ("2024-02", 300.0, 1200.0),
    ]


def test_purchases_empty_selection(datasets):
    assert analyze("purchases", datasets, PurchasesFilters(providers=frozenset({"NADIE"}))) is None


# ---------------- Expenses ----------------
def test_expenses_kpis_split_taxes(datasets):
    out = analyze("expenses", datasets, ExpensesFilters())
    kpis = out["kpis"]
    assert kpis["total_expenses"] == pytest.approx(790.0)
    assert kpis["tax_total"] == pytest.approx(30.0)
    assert kpis["opex_total"] == pytest.approx(760.0)
    assert [r["name"] for r in out["tables"]["category"]] == ["SUELDOS", "SERVICIOS", "Tributos Municipales"]
    assert sum(r["percentage"] for r in out["tables"]["category"]) == pytest.approx(1.0)


def test_expenses_drilldown(datasets):
    drill = DrillDown.from_path(EXPENSE_LEVELS, ["SERVICIOS"])
    out = analyze("expenses", datasets, ExpensesFilters(), drill=drill)
    assert out["kpis"]["total_expenses"] == pytest.approx(360.0)
    assert [(r["name"], r["total"]) for r in out["tables"]["subcategory"]] == [("LUZ", 310.0), ("GAS", 50.0)]
    assert out["top"]["level"] == "subcategory"
    # category table is not narrowed by its own selection
    assert len(out["tables"]["category"]) == 3

    deeper = analyze("expenses", datasets, ExpensesFilters(), drill=drill.toggle("subcategory", "LUZ"))
    assert deeper["top"] == {"level": "detail", "rows": [{"name": "EDENOR", "total": 310.0, "count": 3}]}
    assert deeper["distribution"]["level"] == "detail"


def test_tax_category_matching_ignores_case():
    assert is_tax_category(" tributos nacionales ")
    assert not is_tax_category("SERVICIOS")


# ---------------- HR ----------------
def test_roster_keeps_latest_record(hr_records):
    people = {r.employee: r for r in roster(hr_records)}
    assert len(people) == 4
    assert people["PEREZ"].date.month == 2


def test_roster_metrics(hr_records):
    metrics = roster_metrics(hr_records)
    assert metrics["reference_date"] == "2024-02-29"
    assert metrics["active_employees"] == 3
    assert metrics["terminated_employees"] == 1
    assert metrics["turnover_rate"] == pytest.approx(25.0)
    assert {r["name"]: r["total"] for r in metrics["headcount_by_area"]} == {"ADMIN": 2.0, "VENTAS": 1.0}
    assert sum(b["count"] for b in metrics["tenure_bands"]) == 3


def test_hr_movements_in_period(datasets):
    out = analyze("hr", datasets, HRFilters(years=frozenset({2024}), months=frozenset({2})))
    assert out["kpis"]["total_events"] == 3
    assert out["kpis"]["hires_in_period"] == 1
    assert out["kpis"]["terminations_in_period"] == 1


def test_hr_movements_follow_type_filter(datasets):
    out = analyze("hr", datasets, HRFilters(years=frozenset({2024}), months=frozenset({2}), types=frozenset({"ALTA"})))
    assert out["kpis"]["hires_in_period"] == 1
    assert out["kpis"]["terminations_in_period"] == 0

    none = analyze("hr", datasets, HRFilters(years=frozenset({2024}), months=frozenset({2}), types=frozenset({"NO-EXISTE"})))
    assert none["has_activity"] is False
    assert none["kpis"]["total_events"] == 0
    assert none["kpis"]["hires_in_period"] == 0
    assert none["kpis"]["terminations_in_period"] == 0


def test_hr_roster_survives_empty_selection(datasets):
    out = analyze("hr", datasets, HRFilters(years=frozenset({2030})))
    assert out["has_activity"] is False
    assert out["has_roster"] is True
    assert out["kpis"]["total_events"] == 0
    assert out["roster"]["total_employees"] == 4


def test_hr_without_data(datasets):
    out = analyze("hr", {**datasets, "hr": ()}, HRFilters())
    assert out["has_roster"] is False
    assert out["roster"]["reference_date"] is None


# ---------------- Stock ----------------
def test_stock_snapshot_is_latest_period(datasets):
    out = analyze("stock", datasets, StockFilters())
    kpis = out["kpis"]
    assert kpis["snapshot_period"] == "2024-02"
    assert kpis["total_cost"] == pytest.approx(3000.0)
    assert kpis["previous_period"] == "2024-01"
    assert kpis["cost_change"] == pytest.approx(100.0)
    assert kpis["exchange_gap_pct"] == pytest.approx(25.0)
    assert kpis["top_rubro"]["name"] == "BEBIDAS"
    assert [(r["name"], r["total"]) for r in out["tables"]["branch"]] == [("A", 2100.0), ("B", 900.0)]


def test_stock_context_joins_other_domains(datasets):
    context = analyze("stock", datasets, StockFilters())["context"]
    feb = [r for r in context["periods"] if r["period"] == "2024-02"][0]
    assert feb["sales"] == 1200.0
    assert feb["purchases"] == 300.0
    assert feb["expenses"] == 520.0
    assert feb["headcount"] == 3
    assert feb["sales_per_employee"] == pytest.approx(400.0)
    assert feb["months_of_cover"] == pytest.approx(2.5)

    branch_a = [r for r in context["branches"] if r["period"] == "2024-02" and r["branch"] == "A"][0]
    assert branch_a["stock_cost"] == 2100.0
    assert branch_a["sales"] == 1200.0


def test_stock_single_month_has_no_previous(datasets):
    kpis = analyze("stock", datasets, StockFilters(years=frozenset({2024}), months=frozenset({1})))["kpis"]
    assert kpis["snapshot_period"] == "2024-01"
    assert kpis["previous_period"] is None
    assert kpis["cost_change"] == 0.0


def test_stock_empty_selection_keeps_payload(datasets):
    out = analyze("stock", datasets, StockFilters(months=frozenset({7})))
    assert out["has_snapshot"] is False
    assert out["kpis"]["total_cost"] == 0.0
    assert analyze("stock", {**datasets, "stock": ()}, StockFilters()) is None


def test_unknown_domain(datasets):
    with pytest.raises(KeyError):
        analyze("inventory", datasets, StockFilters())
