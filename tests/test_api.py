import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from fastapi.testclient import TestClient

import api.main as main
from pizarro import engine
from pizarro.engine import clear_caches
from pizarro.session import DashboardSession
from pizarro.store import JsonStore

from tests.conftest import SALES_CSV


@pytest.fixture
def session(tmp_path, sales, expenses, stock):
    clear_caches()
    s = DashboardSession(JsonStore(tmp_path), debounce_seconds=0)
    s.replace_dataset("sales", sales)
    s.replace_dataset("expenses", expenses)
    s.replace_dataset("stock", stock)
    return s


@pytest.fixture
def client(session, monkeypatch):
    monkeypatch.setattr(main, "get_session", lambda: session)
    return TestClient(main.app)


def test_meta(client):
    resp = client.get("/meta/sales")
    assert resp.status_code == 200
    body = resp.json()
    assert body["records"] == 7
    assert body["options"]["branches"] == ["A", "B"]


def test_meta_unknown_domain(client):
    assert client.get("/meta/inventory").status_code == 422


def test_sales_endpoint_with_filters_and_drill(client):
    resp = client.post("/sales", params={"drill": ["A"]}, json={"years": [2024], "months": [1], "unknown": 1})
    assert resp.status_code == 200
    results = resp.json()["results"]
    assert results["kpis"]["total_sales"] == pytest.approx(800.0)
    assert results["drill"]["selected"] == ["A"]
    assert results["filters"]["months"] == [1]


def test_concurrent_requests_keep_their_own_filters(client, session, monkeypatch):
    before = session.filters["sales"]
    both_inside = threading.Barrier(2, timeout=5)
    analyze = engine.analyze

    def analyze_together(*args, **kwargs):
        both_inside.wait()
        return analyze(*args, **kwargs)

    monkeypatch.setattr(engine, "analyze", analyze_together)

    def post(branch):
        return client.post("/sales", json={"branches": [branch]}).json()["results"]

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = dict(zip(["A", "B"], pool.map(post, ["A", "B"])))

    for branch, out in results.items():
        assert out["filters"]["branches"] == [branch]
        assert [r["name"] for r in out["tables"]["branch"]] == [branch]
    assert session.filters["sales"] == before


def test_empty_selection_returns_null_results(client):
    resp = client.post("/purchases", json={})
    assert resp.status_code == 200
    assert resp.json()["results"] is None


def test_expenses_drill(client):
    resp = client.post("/expenses", params={"drill": ["SERVICIOS", "LUZ"]}, json={})
    results = resp.json()["results"]
    assert results["kpis"]["total_expenses"] == pytest.approx(310.0)
    assert results["top"]["level"] == "detail"


def test_stock_endpoint(client):
    kpis = client.post("/stock", json={}).json()["results"]["kpis"]
    assert kpis["snapshot_period"] == "2024-02"


def test_hr_endpoint_without_data(client):
    results = client.post("/hr", json={}).json()["results"]
    assert results["has_roster"] is False


def test_goal_crud(client):
    created = client.post("/goals", json={"branch": "a", "year": 2024, "month": 1, "goal_amount": 1000})
    assert created.status_code == 201
    assert created.json()["actual_amount"] == 800.0
    goal_id = created.json()["id"]

    duplicate = client.post("/goals", json={"branch": "A", "year": 2024, "month": 1, "goal_amount": 10})
    assert duplicate.status_code == 400
    assert duplicate.json()["type"] == "GoalError"

    assert client.put(f"/goals/{goal_id}", json={"goal_amount": 2000}).json()["goal_amount"] == 2000.0
    summary = client.post("/goals/summary", json={"branches": ["A"]}).json()
    assert summary["summary"]["achievement"] == pytest.approx(40.0)

    assert client.delete(f"/goals/{goal_id}").status_code == 204
    assert client.get("/goals").json() == {"goals": []}
    assert client.delete(f"/goals/{goal_id}").status_code == 400


def test_goal_validation(client):
    assert client.post("/goals", json={"branch": "A", "year": 2024, "month": 13, "goal_amount": 1}).status_code == 422


def test_upload(client, session):
    resp = client.post("/upload/sales", params={"filename": "ventas.csv"}, content=SALES_CSV.encode("utf-8"))
    assert resp.json() == {"domain": "sales", "records": 2}
    assert len(session.datasets["sales"]) == 2


def test_upload_rejected_keeps_data(client, session):
    resp = client.post("/upload/sales", params={"filename": "ventas.csv"}, content=b"Suc;Total\nA;1\n")
    assert resp.status_code == 400
    assert resp.json()["type"] == "IngestionError"
    assert len(session.datasets["sales"]) == 7


def test_import_goals(client):
    csv = "Sucursal;Año;Mes;Objetivo de ventas\nB;2024;1;600\n"
    resp = client.post("/goals/import", params={"filename": "objetivos.csv"}, content=csv.encode("utf-8"))
    assert resp.json() == {"imported": 1}
    goals = client.get("/goals").json()["goals"]
    assert goals[0]["actual_amount"] == 300.0


def test_import_goals_rejects_zero_target(client):
    csv = "Sucursal;Año;Mes;Objetivo de ventas\nB;2024;1;0\n"
    resp = client.post("/goals/import", params={"filename": "objetivos.csv"}, content=csv.encode("utf-8"))
    assert resp.status_code == 400
    assert client.get("/goals").json() == {"goals": []}


def test_colors(client):
    colors = client.get("/colors").json()["colors"]
    assert "A" in colors
    assert client.put("/colors/A", json={"color": "#123456"}).json()["colors"]["A"] == "#123456"
    assert client.put("/colors/A", json={"color": "blue"}).status_code == 422


def test_export_csv(client):
    resp = client.post("/export/expenses", json={"categories": ["SERVICIOS"]})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    lines = resp.text.strip().splitlines()
    assert lines[0].startswith("date,category,subcategory,detail,amount")
    assert len(lines) == 5
