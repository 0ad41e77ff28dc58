import threading

import pytest

from pizarro.engine import clear_caches
from pizarro.filters import ExpensesFilters, SalesFilters
from pizarro.goals import GoalError
from pizarro.ingest import IngestionError
from pizarro.records import SalesGoal
from pizarro.session import DashboardSession, Debouncer
from pizarro.store import JsonStore

from tests.conftest import SALES_CSV


@pytest.fixture
def session(tmp_path):
    clear_caches()
    return DashboardSession(JsonStore(tmp_path), debounce_seconds=0)


# ---------------- Debouncer ----------------
def test_debouncer_without_delay_runs_immediately():
    calls = []
    Debouncer(0).call(calls.append, 1)
    assert calls == [1]


def test_debouncer_keeps_only_last_call():
    calls = []
    debouncer = Debouncer(60)
    debouncer.call(calls.append, "first")
    debouncer.call(calls.append, "second")
    assert calls == []
    assert debouncer.pending
    debouncer.flush()
    assert calls == ["second"]
    assert not debouncer.pending


def test_debouncer_cancel_drops_pending_call():
    calls = []
    debouncer = Debouncer(60)
    debouncer.call(calls.append, "x")
    debouncer.cancel()
    debouncer.flush()
    assert calls == []


def test_debouncer_fires_after_delay():
    done = threading.Event()
    calls = []

    def record(value):
        calls.append(value)
        done.set()

    debouncer = Debouncer(0.2)
    debouncer.call(record, "a")
    debouncer.call(record, "b")
    assert done.wait(5)
    assert calls == ["b"]


# ---------------- Session ----------------
def test_debounced_filters_apply_on_flush(tmp_path):
    session = DashboardSession(JsonStore(tmp_path), debounce_seconds=60)
    f = SalesFilters(branches=frozenset({"A"}))
    session.set_filters("sales", f)
    assert session.filters["sales"] == SalesFilters()
    session.flush()
    assert session.filters["sales"] == f


def test_upload_installs_dataset_and_colors(session):
    records = session.upload("sales", SALES_CSV.encode("utf-8"), "ventas.csv")
    assert session.datasets["sales"] == records
    assert set(session.colors) >= {"CENTRO", "NORTE", "ANA", "BETO", "ACME", "GLOBEX"}
    assert session.results("sales")["kpis"]["transactions"] == 2


def test_failed_upload_keeps_previous_dataset(session):
    records = session.upload("sales", SALES_CSV.encode("utf-8"), "ventas.csv")
    with pytest.raises(IngestionError):
        session.upload("sales", b"Suc;Total\nA;1\n", "ventas.csv")
    assert session.datasets["sales"] == records


def test_upload_jumps_to_latest_period(session, expenses):
    session.replace_dataset("expenses", expenses)
    assert session.filters["expenses"] == ExpensesFilters(years=frozenset({2024}), months=frozenset({2}))
    session.reset_filters("expenses")
    assert session.filters["expenses"] == ExpensesFilters()


def test_goal_lifecycle_persists(tmp_path, sales):
    store = JsonStore(tmp_path)
    session = DashboardSession(store, debounce_seconds=0)
    session.replace_dataset("sales", sales)

    goal = session.add_goal(SalesGoal("A", 2024, 1, 1000.0))
    assert goal.actual_amount == 800.0
    with pytest.raises(GoalError):
        session.add_goal(SalesGoal("A", 2024, 1, 5.0))
    session.update_goal(goal.goal_id, 900.0)

    reloaded = DashboardSession.from_store(store, debounce_seconds=0)
    assert [(g.goal_id, g.goal_amount, g.actual_amount) for g in reloaded.goals] == [("A-2024-1", 900.0, 800.0)]
    assert reloaded.goal_results()["summary"]["achievement"] == pytest.approx(800 / 900 * 100)

    reloaded.delete_goal(goal.goal_id)
    assert DashboardSession.from_store(store).goals == ()


def test_import_goals_recomputes_actuals(session, sales):
    session.replace_dataset("sales", sales)
    csv = "Sucursal;Año;Mes;Objetivo de ventas;Venta final con impuestos\nA;2024;2;1000;1\n"
    assert session.import_goals(csv.encode("utf-8"), "objetivos.csv") == 1
    assert session.goals[0].actual_amount == 1200.0


def test_from_store_restores_latest_period_filters(tmp_path, stock):
    store = JsonStore(tmp_path)
    store.save_records("stock", stock)
    store.save_colors({"A": "#000000"})
    session = DashboardSession.from_store(store, debounce_seconds=0)
    assert session.filters["stock"].months == frozenset({2})
    assert session.colors == {"A": "#000000"}
    session.set_color("B", "#ffffff")
    assert store.load_colors() == {"A": "#000000", "B": "#ffffff"}
