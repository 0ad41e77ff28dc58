"""Spreadsheet ingestion: one loader per domain turning an uploaded file into typed records.

A batch is all or nothing. The first invalid row raises ``IngestionError``
naming the spreadsheet row (header is row 1), and the caller keeps whatever
dataset it had before.
"""

from __future__ import annotations

import io
import logging
import math
import unicodedata
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd

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
from pizarro.timebuckets import MONTH_NAMES

logger = logging.getLogger(__name__)

Source = Union[str, Path, bytes]

EXCEL_SUFFIXES = {".xlsx", ".xlsm"}
EXCEL_EPOCH = "1899-12-30"
EXCEL_MAX_SERIAL = 2958466

SALES_COLUMNS = ["Suc", "Tipo", "Tipo Comp.", "Cant", "Fecha", "Total", "Cliente", "ID VENDEDOR", "Vendedor"]
PURCHASES_COLUMNS = ["Fecha", "Modalidad", "Proveedor", "Sin Impuestos", "Otros Tributos", "IVA", "Con Impuestos"]
EXPENSES_COLUMNS = ["Fecha", "Categoría", "Subcategoría", "Detalle", "Monto_ars"]
HR_COLUMNS = ["Fecha", "Empleado", "Area", "Actividad", "Tipo", "Fecha Ingreso", "Fecha de Nacimiento", "Fecha Baja"]
STOCK_COLUMNS = [
    "Fecha",
    "Rubro productos",
    "Costo sin imp en $",
    "Suc",
    "Cotizacion Dolar Sistema",
    "Cotizacion Dolar Oficial",
    "Valorizado en USD SISTEMA",
    "Valorizado en USD OFICIAL",
    "Valorizado en $ a dolar oficial",
]
GOALS_COLUMNS = ["Sucursal", "Año", "Mes", "Objetivo de ventas"]
GOALS_OPTIONAL = ["Venta final con impuestos"]

MONTH_NUMBERS = {name.lower(): i for i, name in enumerate(MONTH_NAMES, start=1)}


class IngestionError(ValueError):
    pass


# ---------------- Low-level parsing ----------------
def _fold_header(value: object) -> str:
    decomposed = unicodedata.normalize("NFKD", str(value))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.split()).casefold()


def is_blank(value: Any) -> bool:
    if value is None or value is pd.NaT:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value.strip() == ""


def text(value: Any, default: str = "") -> str:
    if is_blank(value):
        return default
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_local_number(value: Any) -> float:
    """Parse an es-AR number (``1.234,56``); dots are thousands separators, the comma is decimal."""
    if isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            raise ValueError("empty number")
        return float(value)
    if is_blank(value):
        raise ValueError("empty number")
    cleaned = str(value).strip().replace("$", "").replace(" ", "")
    cleaned = cleaned.replace(".", "").replace(",", ".")
    return float(cleaned)


def parse_date(value: Any) -> date:
    """Accept datetimes, Excel serial numbers and day-first strings."""
    if is_blank(value):
        raise ValueError("empty date")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if not 0 < float(value) < EXCEL_MAX_SERIAL:
            raise ValueError(f"date serial out of range: {value!r}")
        return pd.to_datetime(float(value), unit="D", origin=EXCEL_EPOCH).date()
    raw = str(value).strip()
    if raw.replace(".", "", 1).isdigit():
        return parse_date(float(raw))
    parsed = pd.to_datetime(raw, dayfirst=True, errors="coerce")
    if pd.isna(parsed):
        raise ValueError(f"unrecognized date: {raw!r}")
    return parsed.date()


def parse_optional_date(value: Any) -> Optional[date]:
    return None if is_blank(value) else parse_date(value)


def fiscal_type(value: Any) -> str:
    return DECLARED if text(value).lower() == DECLARED.lower() else UNDECLARED


# ---------------- Tables ----------------
def read_table(source: Source, filename: Optional[str] = None) -> pd.DataFrame:
    """Read the first sheet of an Excel workbook, or a CSV file, keeping raw cell values."""
    name = filename or (str(source) if isinstance(source, (str, Path)) else "")
    suffix = Path(name).suffix.lower()
    handle = io.BytesIO(source) if isinstance(source, bytes) else source
    try:
        if suffix in EXCEL_SUFFIXES:
            df = pd.read_excel(handle, sheet_name=0, dtype=object, engine="openpyxl")
        else:
            df = pd.read_csv(handle, dtype=str, sep=None, engine="python", keep_default_na=False, encoding="utf-8-sig")
    except Exception as exc:
        raise IngestionError(f"Could not read {name or 'the file'}: {exc}") from exc
    df = df.dropna(how="all")
    if df.empty:
        raise IngestionError("The file is empty or has no data rows.")
    return df


def resolve_headers(columns: Iterable[object], required: Sequence[str], optional: Sequence[str] = ()) -> Dict[str, str]:
    """Map each expected header to the file's header, ignoring case, accents and spacing."""
    available = {_fold_header(c): c for c in columns}
    resolved: Dict[str, str] = {}
    missing: List[str] = []
    for header in list(required) + list(optional):
        found = available.get(_fold_header(header))
        if found is not None:
            resolved[header] = found
        elif header in required:
            missing.append(header)
    if missing:
        found_headers = ", ".join(str(c) for c in columns)
        raise IngestionError(f"Missing required columns: {', '.join(missing)}. Found headers: {found_headers}")
    return resolved


def parse_rows(
    df: pd.DataFrame,
    required: Sequence[str],
    build: Callable[[Callable[[str], Any]], Any],
    optional: Sequence[str] = (),
) -> Tuple[Any, ...]:
    headers = resolve_headers(df.columns, required, optional)
    out: List[Any] = []
    for index, row in zip(df.index, df.to_dict(orient="records")):

        def cell(name: str, _row: Dict[Any, Any] = row) -> Any:
            header = headers.get(name)
            return _row.get(header) if header is not None else None

        try:
            out.append(build(cell))
        except (TypeError, ValueError) as exc:
            # +2: one for the header row, one for 1-based spreadsheet numbering
            raise IngestionError(f"Invalid data in row {int(index) + 2}: {exc}") from exc
    return tuple(out)


def _number(cell: Callable[[str], Any], name: str) -> float:
    try:
        return parse_local_number(cell(name))
    except ValueError as exc:
        raise ValueError(f"'{name}' must be a number ({exc})") from exc


def _date(cell: Callable[[str], Any], name: str) -> date:
    try:
        return parse_date(cell(name))
    except ValueError as exc:
        raise ValueError(f"'{name}' has an invalid date ({exc})") from exc


# ---------------- Domain loaders ----------------
def _sale(cell: Callable[[str], Any]) -> SaleRecord:
    quantity = _number(cell, "Cant")
    if not float(quantity).is_integer():
        raise ValueError("'Cant' must be a whole number")
    try:
        salesperson_id = int(parse_local_number(cell("ID VENDEDOR")))
    except ValueError:
        salesperson_id = 0
    return SaleRecord(
        branch=text(cell("Suc")).upper(),
        document_type=text(cell("Tipo Comp.")),
        quantity=int(quantity),
        date=_date(cell, "Fecha"),
        total=_number(cell, "Total"),
        client=text(cell("Cliente")),
        salesperson_id=salesperson_id,
        salesperson=text(cell("Vendedor")).upper(),
        fiscal_type=fiscal_type(cell("Tipo")),
    )


def _purchase(cell: Callable[[str], Any]) -> PurchaseRecord:
    return PurchaseRecord(
        date=_date(cell, "Fecha"),
        modality=fiscal_type(cell("Modalidad")),
        provider=text(cell("Proveedor"), "N/A").upper(),
        net_amount=_number(cell, "Sin Impuestos"),
        other_taxes=_number(cell, "Otros Tributos"),
        vat=_number(cell, "IVA"),
        gross_amount=_number(cell, "Con Impuestos"),
    )


def _expense(cell: Callable[[str], Any]) -> ExpenseRecord:
    return ExpenseRecord(
        date=_date(cell, "Fecha"),
        category=text(cell("Categoría"), "N/A"),
        subcategory=text(cell("Subcategoría"), "N/A"),
        detail=text(cell("Detalle"), "N/A"),
        amount=_number(cell, "Monto_ars"),
    )


def _hr(cell: Callable[[str], Any]) -> HRRecord:
    employee = text(cell("Empleado"))
    if not employee:
        raise ValueError("'Empleado' is required")
    try:
        termination = parse_optional_date(cell("Fecha Baja"))
    except ValueError as exc:
        raise ValueError(f"'Fecha Baja' has an invalid date ({exc})") from exc
    return HRRecord(
        date=_date(cell, "Fecha"),
        employee=employee,
        area=text(cell("Area"), "N/A"),
        activity=text(cell("Actividad"), "N/A"),
        type=text(cell("Tipo"), "N/A"),
        entry_date=_date(cell, "Fecha Ingreso"),
        birth_date=_date(cell, "Fecha de Nacimiento"),
        termination_date=termination,
    )


def _stock(cell: Callable[[str], Any]) -> StockRecord:
    return StockRecord(
        date=_date(cell, "Fecha"),
        branch=text(cell("Suc"), "N/A").upper(),
        rubro=text(cell("Rubro productos"), "N/A"),
        cost=_number(cell, "Costo sin imp en $"),
        system_rate=_number(cell, "Cotizacion Dolar Sistema"),
        official_rate=_number(cell, "Cotizacion Dolar Oficial"),
        valued_usd_system=_number(cell, "Valorizado en USD SISTEMA"),
        valued_usd_official=_number(cell, "Valorizado en USD OFICIAL"),
        valued_ars_official=_number(cell, "Valorizado en $ a dolar oficial"),
    )


def parse_month(value: Any) -> int:
    """Month as 1-12 or as its Spanish name (``Enero``)."""
    if isinstance(value, str) and value.strip().lower() in MONTH_NUMBERS:
        return MONTH_NUMBERS[value.strip().lower()]
    month = int(parse_local_number(value))
    if not 1 <= month <= 12:
        raise ValueError(f"month out of range: {value!r}")
    return month


def _goal(cell: Callable[[str], Any]) -> SalesGoal:
    branch = text(cell("Sucursal")).upper()
    if not branch:
        raise ValueError("'Sucursal' is required")
    year = int(_number(cell, "Año"))
    if not 2000 <= year <= 2100:
        raise ValueError(f"'Año' out of range: {year}")
    try:
        month = parse_month(cell("Mes"))
    except ValueError as exc:
        raise ValueError(f"'Mes' must be 1-12 or a month name like 'Enero' ({exc})") from exc
    goal_amount = _number(cell, "Objetivo de ventas")
    if goal_amount <= 0:
        raise ValueError("'Objetivo de ventas' must be greater than zero")
    actual_raw = cell("Venta final con impuestos")
    actual = 0.0 if is_blank(actual_raw) else _number(cell, "Venta final con impuestos")
    return SalesGoal(branch=branch, year=year, month=month, goal_amount=goal_amount, actual_amount=actual)


LOADERS: Dict[str, Tuple[Sequence[str], Callable[[Callable[[str], Any]], Any]]] = {
    "sales": (SALES_COLUMNS, _sale),
    "purchases": (PURCHASES_COLUMNS, _purchase),
    "expenses": (EXPENSES_COLUMNS, _expense),
    "hr": (HR_COLUMNS, _hr),
    "stock": (STOCK_COLUMNS, _stock),
}


def load_records(domain: str, source: Source, filename: Optional[str] = None) -> Tuple[Any, ...]:
    if domain not in LOADERS:
        raise IngestionError(f"Unknown domain '{domain}'.")
    columns, build = LOADERS[domain]
    records = parse_rows(read_table(source, filename), columns, build)
    logger.info("Parsed %d %s records from %s", len(records), domain, filename or "upload")
    return records


def load_sales(source: Source, filename: Optional[str] = None) -> Tuple[SaleRecord, ...]:
    return load_records("sales", source, filename)


def load_purchases(source: Source, filename: Optional[str] = None) -> Tuple[PurchaseRecord, ...]:
    return load_records("purchases", source, filename)


def load_expenses(source: Source, filename: Optional[str] = None) -> Tuple[ExpenseRecord, ...]:
    return load_records("expenses", source, filename)


def load_hr(source: Source, filename: Optional[str] = None) -> Tuple[HRRecord, ...]:
    return load_records("hr", source, filename)


def load_stock(source: Source, filename: Optional[str] = None) -> Tuple[StockRecord, ...]:
    return load_records("stock", source, filename)


def load_goals(source: Source, filename: Optional[str] = None) -> Tuple[SalesGoal, ...]:
    goals = parse_rows(read_table(source, filename), GOALS_COLUMNS, _goal, optional=GOALS_OPTIONAL)
    logger.info("Parsed %d goals", len(goals))
    return goals
