"""Shared fixtures: small hand-made datasets for every domain."""
from datetime import date

import pytest

from pizarro.records import (
    DECLARED,
    UNDECLARED,
    ExpenseRecord,
    HRRecord,
    PurchaseRecord,
    SaleRecord,
    SalesGoal,
    StockRecord,
)


SALES_CSV = (
    "Suc;Tipo;Tipo Comp.;Cant;Fecha;Total;Cliente;ID VENDEDOR;Vendedor\n"
    "centro;Blanco;FA;2;05/01/2024;1.234,50;ACME;7;ana\n"
    "norte;Negro;NC;1;20/01/2024;100,00;GLOBEX;;beto\n"
)


def sale(branch="A", total=100.0, when=date(2024, 1, 10), doc="FA", client="CLIENTE 1", seller="ANA", fiscal=DECLARED, qty=1):
    return SaleRecord(
        branch=branch,
        document_type=doc,
        quantity=qty,
        date=when,
        total=total,
        client=client,
        salesperson_id=1,
        salesperson=seller,
        fiscal_type=fiscal,
    )


@pytest.fixture
def sales():
    return (
        sale("A", 500.0, date(2024, 1, 5), client="ACME", seller="ANA"),
        sale("A", 500.0, date(2024, 1, 20), doc="NC", client="ACME", seller="ANA"),
        sale("A", 800.0, date(2024, 1, 25), client="GLOBEX", seller="BETO"),
        sale("B", 300.0, date(2024, 1, 12), client="INITECH", seller="CARLA", fiscal=UNDECLARED),
        sale("B", 999.0, date(2024, 1, 13), doc="ND", client="INITECH", seller="CARLA"),
        sale("A", 1200.0, date(2024, 2, 3), client="ACME", seller="ANA"),
        sale("B", 400.0, date(2023, 2, 8), client="GLOBEX", seller="CARLA"),
    )


@pytest.fixture
def purchases():
    return (
        PurchaseRecord(date(2024, 1, 3), DECLARED, "PROV 1", 100.0, 5.0, 21.0, 126.0),
        PurchaseRecord(date(2024, 1, 18), UNDECLARED, "PROV 2", 200.0, 0.0, 0.0, 200.0),
        PurchaseRecord(date(2024, 2, 7), DECLARED, "PROV 1", 300.0, 10.0, 63.0, 373.0),
    )


@pytest.fixture
def expenses():
    return (
        ExpenseRecord(date(2024, 1, 4), "SERVICIOS", "LUZ", "EDENOR", 100.0),
        ExpenseRecord(date(2024, 1, 9), "SERVICIOS", "GAS", "METROGAS", 50.0),
        ExpenseRecord(date(2024, 1, 15), "Tributos Municipales", "TASA", "ABL", 30.0),
        ExpenseRecord(date(2024, 2, 2), "SUELDOS", "HABERES", "ENERO", 400.0),
        ExpenseRecord(date(2024, 2, 20), "SERVICIOS", "LUZ", "EDENOR", 120.0),
        ExpenseRecord(date(2023, 2, 20), "SERVICIOS", "LUZ", "EDENOR", 90.0),
    )


@pytest.fixture
def hr_records():
    return (
        HRRecord(date(2024, 1, 31), "PEREZ", "VENTAS", "VENDEDOR", "LIQUIDACION", date(2020, 3, 1), date(1990, 5, 1)),
        HRRecord(date(2024, 1, 31), "GOMEZ", "ADMIN", "CONTADOR", "LIQUIDACION", date(2023, 6, 1), date(1985, 1, 1)),
        HRRecord(
            date(2024, 2, 29),
            "DIAZ",
            "VENTAS",
            "VENDEDOR",
            "BAJA",
            date(2022, 1, 10),
            date(2000, 7, 7),
            termination_date=date(2024, 2, 15),
        ),
        HRRecord(date(2024, 2, 29), "PEREZ", "VENTAS", "VENDEDOR", "LIQUIDACION", date(2020, 3, 1), date(1990, 5, 1)),
        HRRecord(date(2024, 2, 29), "LOPEZ", "ADMIN", "CAJERO", "ALTA", date(2024, 2, 1), date(1999, 9, 9)),
    )


def stock_row(when, branch, rubro, cost, system_rate=1000.0, official_rate=800.0):
    return StockRecord(
        date=when,
        branch=branch,
        rubro=rubro,
        cost=cost,
        system_rate=system_rate,
        official_rate=official_rate,
        valued_usd_system=cost / system_rate,
        valued_usd_official=cost / official_rate,
        valued_ars_official=cost,
    )


@pytest.fixture
def stock():
    return (
        stock_row(date(2024, 1, 31), "A", "BEBIDAS", 1000.0),
        stock_row(date(2024, 1, 31), "B", "ALMACEN", 500.0),
        stock_row(date(2024, 2, 29), "A", "BEBIDAS", 1500.0),
        stock_row(date(2024, 2, 29), "A", "ALMACEN", 600.0),
        stock_row(date(2024, 2, 29), "B", "ALMACEN", 900.0),
    )


@pytest.fixture
def goals():
    return (
        SalesGoal(branch="A", year=2024, month=1, goal_amount=1000.0),
        SalesGoal(branch="B", year=2024, month=1, goal_amount=500.0),
        SalesGoal(branch="A", year=2024, month=2, goal_amount=1000.0),
    )
