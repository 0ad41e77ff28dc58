import logging
from contextlib import contextmanager
from datetime import date
from typing import Any, Dict, List, Optional

import pandas as pd
import streamlit as st

from pizarro.config import settings
from pizarro.drilldown import DrillDown
from pizarro.filters import normalize_filters
from pizarro.goals import GoalError
from pizarro.ingest import IngestionError
from pizarro.metrics_expenses import expenses_drilldown
from pizarro.metrics_sales import sales_drilldown
from pizarro.records import SalesGoal
from pizarro.session import DashboardSession
from pizarro.store import JsonStore
from pizarro.timebuckets import MONTH_NAMES

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

PAGES = {
    "Ventas": "sales",
    "Compras": "purchases",
    "Gastos": "expenses",
    "RRHH": "hr",
    "Stock": "stock",
}

# filter field -> sidebar label, per domain
FILTER_LABELS: Dict[str, Dict[str, str]] = {
    "sales": {"branches": "Sucursal", "salespeople": "Vendedor"},
    "purchases": {"providers": "Proveedor", "modalities": "Modalidad"},
    "expenses": {"categories": "Categoría", "subcategories": "Subcategoría"},
    "hr": {"areas": "Área", "activities": "Actividad", "types": "Tipo"},
    "stock": {"branches": "Sucursal", "rubros": "Rubro"},
}


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header">
            <div class="card-title">{title}</div>
          </div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_money(value: Optional[float]) -> str:
    if value is None:
        return "N/A"
    # es-AR grouping: dots for thousands
    return "$ " + f"{value:,.0f}".replace(",", ".")


def format_pct(value: Optional[float], ratio: bool = False) -> str:
    if value is None:
        return "N/A"
    return f"{value * 100 if ratio else value:.1f}%".replace(".", ",")


def format_filter_summary(filters: Dict[str, Any]) -> str:
    chips = []
    for name, value in filters.items():
        if not value:
            continue
        if isinstance(value, list):
            shown = ", ".join(str(v) for v in value[:3]) + ("…" if len(value) > 3 else "")
        else:
            shown = str(value)
        chips.append(f"{name}: {shown}")
    if not chips:
        chips = ["Sin filtros"]
    return "".join(f"<span class='chip'>{txt}</span>" for txt in chips)


def render_page_header(title: str, breadcrumb: str, payload: Optional[Dict[str, Any]] = None):
    inject_base_styles()
    st.markdown(
        f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
        unsafe_allow_html=True,
    )
    if payload is not None:
        st.markdown(f"<div class='chip-row'>{format_filter_summary(payload.get('filters', {}))}</div>", unsafe_allow_html=True)


def render_chart(payload: Dict[str, Any], name: str):
    spec = payload.get("charts", {}).get(name)
    if spec:
        st.vega_lite_chart(spec, use_container_width=True)


def render_table(rows: List[Dict[str, Any]], *, money_cols=("total",), pct_cols=("percentage",)):
    if not rows:
        st.info("Sin datos para los filtros seleccionados.")
        return
    df = pd.DataFrame(rows)
    for col in money_cols:
        if col in df.columns:
            df[col] = df[col].map(format_money)
    for col in pct_cols:
        if col in df.columns:
            df[col] = df[col].map(lambda v: format_pct(v, ratio=True))
    st.dataframe(df, hide_index=True, use_container_width=True)


def top_name(entry: Optional[Dict[str, Any]]) -> str:
    return entry["name"] if entry else "N/A"


# ---------- Session ----------
def get_session() -> DashboardSession:
    if "dashboard" not in st.session_state:
        # a rerun already batches widget changes, so each run flushes its filters
        st.session_state["dashboard"] = DashboardSession.from_store(
            JsonStore(settings.DATA_DIR), debounce_seconds=settings.debounce_seconds, top_n=settings.TOP_N
        )
    return st.session_state["dashboard"]


def get_drill(domain: str) -> DrillDown:
    key = f"drill_{domain}"
    if key not in st.session_state:
        st.session_state[key] = sales_drilldown() if domain == "sales" else expenses_drilldown()
    return st.session_state[key]


def toggle_drill(domain: str, level: str, value: str):
    st.session_state[f"drill_{domain}"] = get_drill(domain).toggle(level, value)


# ---------- UI setup ----------
st.set_page_config(page_title="Pizarro · Tablero de gestión", layout="wide")
inject_base_styles()
st.title("Pizarro · Tablero de gestión")
st.caption("Ventas, compras, gastos, RRHH y stock a partir de las planillas exportadas.")

session = get_session()

# ----- Sidebar: navigation + uploads + filters -----
with st.sidebar:
    st.markdown("### Navegar")
    nav_choice = st.radio("Navegar", list(PAGES) + ["Objetivos", "Colores"], index=0)

    st.markdown("---")
    with st.expander("Cargar archivos", expanded=not any(session.datasets.values())):
        upload_domain = st.selectbox("Tipo de archivo", list(PAGES), key="upload_domain")
        uploaded = st.file_uploader("Archivo (.xlsx o .csv)", type=["xlsx", "csv"], key="upload_file")
        if uploaded is not None and st.button("Procesar archivo"):
            try:
                records = session.upload(PAGES[upload_domain], uploaded.getvalue(), uploaded.name)
                st.success(f"{len(records)} registros cargados.")
            except IngestionError as exc:
                st.error(f"Error al procesar el archivo: {exc}")


def sidebar_filters(domain: str) -> None:
    options = session.options(domain)
    current = session.filters[domain]
    with st.sidebar:
        st.markdown("---")
        st.markdown("### Filtros")
        raw: Dict[str, Any] = {}
        for field, label in FILTER_LABELS[domain].items():
            opts = options.get(field, [])
            raw[field] = st.multiselect(label, options=opts, default=[v for v in sorted(getattr(current, field)) if v in opts], key=f"{domain}_{field}")
        years = options.get("years", [])
        raw["years"] = st.multiselect("Año", options=years, default=[y for y in sorted(current.years) if y in years], key=f"{domain}_years")
        raw["months"] = st.multiselect(
            "Mes",
            options=list(range(1, 13)),
            default=sorted(current.months),
            format_func=lambda m: MONTH_NAMES[m - 1],
            key=f"{domain}_months",
        )
        c1, c2 = st.columns(2)
        raw["start_date"] = c1.date_input("Desde", value=current.start_date, key=f"{domain}_start", format="DD/MM/YYYY")
        raw["end_date"] = c2.date_input("Hasta", value=current.end_date, key=f"{domain}_end", format="DD/MM/YYYY")
        if st.button("Limpiar filtros", key=f"{domain}_reset"):
            session.reset_filters(domain)
            for key in list(st.session_state):
                if key.startswith(f"{domain}_"):
                    del st.session_state[key]
            st.rerun()
    session.set_filters(domain, normalize_filters(domain, raw))
    session.flush()


# ---------- Pages ----------
def render_sales_page():
    drill = get_drill("sales")
    payload = session.results("sales", drill)
    render_page_header("Análisis de Ventas", "Inicio / Ventas", payload)
    if payload is None:
        st.info("No hay ventas para los filtros seleccionados.")
        return
    k = payload["kpis"]
    cols = st.columns(5)
    cols[0].metric("Ventas netas", format_money(k["total_sales"]), delta=format_pct(k["total_sales_change"]))
    cols[1].metric("Operaciones", f"{k['transactions']:,}".replace(",", "."))
    cols[2].metric("Ticket promedio", format_money(k["average_ticket"]))
    cols[3].metric("Notas de crédito", format_money(k["credit_notes_total"]), help=f"{k['credit_notes_count']} comprobantes")
    cols[4].metric("Mejor mes", k["top_month"]["name"], help=format_money(k["top_month"]["total"]))

    goal_kpis = payload.get("goal_kpis")
    if goal_kpis:
        g = st.columns(4)
        g[0].metric("Objetivo", format_money(goal_kpis["total_goal"]))
        g[1].metric("Real", format_money(goal_kpis["total_actual"]))
        g[2].metric("Cumplimiento", format_pct(goal_kpis["achievement"]))
        g[3].metric("Diferencia", format_money(goal_kpis["difference"]))

    c1, c2 = st.columns(2)
    with c1:
        with card("Evolución mensual"):
            render_chart(payload, "sales_trend")
    with c2:
        with card(f"Distribución por {payload['distribution']['level']}"):
            render_chart(payload, "distribution")

    with card("Ventas por sucursal"):
        render_chart(payload, "branch_breakdown")
        branch_cols = st.columns(min(len(payload["tables"]["branch"]), 6) or 1)
        for i, row in enumerate(payload["tables"]["branch"][:6]):
            selected = drill.selected[:1] == (row["name"],)
            if branch_cols[i].button(("✓ " if selected else "") + row["name"], key=f"sales_branch_{row['name']}"):
                toggle_drill("sales", "branch", row["name"])
                st.rerun()
    c3, c4 = st.columns(2)
    with c3:
        with card("Vendedores"):
            render_table(payload["tables"]["salesperson"])
    with c4:
        with card("Clientes principales"):
            render_table(payload["top"]["clients"])
    with card("Comparativo interanual"):
        render_chart(payload, "yearly_trend")


def render_purchases_page():
    payload = session.results("purchases")
    render_page_header("Análisis de Compras", "Inicio / Compras", payload)
    if payload is None:
        st.info("No hay compras para los filtros seleccionados.")
        return
    k = payload["kpis"]
    cols = st.columns(5)
    cols[0].metric("Compras con impuestos", format_money(k["total_gross"]), delta=format_pct(k["total_gross_change"]))
    cols[1].metric("Compras sin impuestos", format_money(k["total_net"]))
    cols[2].metric("IVA", format_money(k["total_vat"]))
    cols[3].metric("Carga impositiva", format_pct(k["tax_burden_share"], ratio=True))
    cols[4].metric("Compras / Ventas", format_pct(k["purchases_to_sales"], ratio=True))
    c1, c2 = st.columns(2)
    with c1:
        with card("Compras vs. ventas"):
            render_chart(payload, "purchases_vs_sales")
    with c2:
        with card("Modalidad"):
            render_chart(payload, "modality_share")
    with card("Proveedores"):
        render_chart(payload, "provider_breakdown")
        render_table(payload["top"]["providers"])
    with card("Comparativo interanual"):
        render_chart(payload, "yearly_trend")


def render_expenses_page():
    drill = get_drill("expenses")
    payload = session.results("expenses", drill)
    render_page_header("Análisis de Gastos", "Inicio / Gastos", payload)
    if payload is None:
        st.info("No hay gastos para los filtros seleccionados.")
        return
    k = payload["kpis"]
    cols = st.columns(4)
    cols[0].metric("Gastos totales", format_money(k["total_expenses"]), delta=format_pct(k["total_expenses_change"]))
    cols[1].metric("Gastos operativos", format_money(k["opex_total"]))
    cols[2].metric("Impuestos y tasas", format_money(k["tax_total"]))
    cols[3].metric("Mes de mayor gasto", k["top_month"]["name"], help=format_money(k["top_month"]["total"]))

    if drill.is_active:
        st.markdown(" › ".join(drill.selected))
        if st.button("Quitar selección", key="expenses_drill_clear"):
            st.session_state["drill_expenses"] = drill.clear()
            st.rerun()

    c1, c2 = st.columns(2)
    with c1:
        with card("Categorías"):
            for row in payload["tables"]["category"]:
                selected = drill.selected[:1] == (row["name"],)
                label = f"{'✓ ' if selected else ''}{row['name']} · {format_money(row['total'])}"
                if st.button(label, key=f"exp_cat_{row['name']}"):
                    toggle_drill("expenses", "category", row["name"])
                    st.rerun()
    with c2:
        with card(f"Distribución por {payload['distribution']['level']}"):
            render_chart(payload, "distribution")

    if drill.depth >= 1:
        with card(f"Subcategorías de {drill.selected[0]}"):
            for row in payload["tables"]["subcategory"]:
                selected = drill.selected[1:2] == (row["name"],)
                label = f"{'✓ ' if selected else ''}{row['name']} · {format_money(row['total'])}"
                if st.button(label, key=f"exp_sub_{row['name']}"):
                    toggle_drill("expenses", "subcategory", row["name"])
                    st.rerun()
    if drill.depth >= 2:
        with card(f"Detalle de {drill.selected[1]}"):
            render_table(payload["tables"]["detail"])

    with card("Evolución mensual"):
        render_chart(payload, "expenses_trend")
    with card("Comparativo interanual"):
        render_chart(payload, "yearly_trend")


def render_hr_page():
    payload = session.results("hr")
    render_page_header("Análisis de RRHH", "Inicio / RRHH", payload)
    roster = payload["roster"]
    if not payload["has_roster"]:
        st.info("Todavía no se cargó el padrón de empleados.")
        return
    cols = st.columns(5)
    cols[0].metric("Empleados activos", roster["active_employees"], help=f"{roster['total_employees']} en el padrón")
    cols[1].metric("Bajas", roster["terminated_employees"])
    cols[2].metric("Antigüedad promedio", f"{roster['average_tenure_years']:.1f} años")
    cols[3].metric("Edad promedio", f"{roster['average_age']:.1f}")
    cols[4].metric("Rotación", format_pct(roster["turnover_rate"]))

    if not payload["has_activity"]:
        st.info("Sin novedades para el período seleccionado.")
    else:
        k = payload["kpis"]
        p = st.columns(3)
        p[0].metric("Novedades", k["total_events"], delta=format_pct(k["events_change"]))
        p[1].metric("Ingresos", k["hires_in_period"])
        p[2].metric("Egresos", k["terminations_in_period"])
        c1, c2 = st.columns(2)
        with c1:
            with card("Novedades por mes"):
                render_chart(payload, "events_trend")
        with c2:
            with card("Novedades por tipo"):
                render_chart(payload, "type_share")
    with card("Dotación por área"):
        render_chart(payload, "headcount_by_area")
    c3, c4 = st.columns(2)
    with c3:
        with card("Antigüedad"):
            st.dataframe(pd.DataFrame(roster["tenure_bands"]), hide_index=True, use_container_width=True)
    with c4:
        with card("Edades"):
            st.dataframe(pd.DataFrame(roster["age_bands"]), hide_index=True, use_container_width=True)


def render_stock_page():
    payload = session.results("stock")
    render_page_header("Análisis de Stock", "Inicio / Stock", payload)
    if payload is None:
        st.info("Todavía no se cargó un archivo de stock.")
        return
    if not payload["has_snapshot"]:
        st.info("No hay stock para los filtros seleccionados.")
        return
    k = payload["kpis"]
    st.caption(f"Foto al {k['snapshot_label']}")
    cols = st.columns(5)
    cols[0].metric("Costo sin impuestos", format_money(k["total_cost"]), delta=format_pct(k["cost_change"]))
    cols[1].metric("USD oficial", f"US{format_money(k['valued_usd_official'])}")
    cols[2].metric("USD sistema", f"US{format_money(k['valued_usd_system'])}")
    cols[3].metric("Brecha cambiaria", format_pct(k["exchange_gap_pct"]))
    cols[4].metric("Rubro principal", top_name(k.get("top_rubro")))
    c1, c2 = st.columns(2)
    with c1:
        with card("Stock por sucursal"):
            render_chart(payload, "branch_breakdown")
    with c2:
        with card("Rubros"):
            render_chart(payload, "rubro_share")
    with card("Contexto del período"):
        periods = pd.DataFrame(payload["context"]["periods"])
        if periods.empty:
            st.info("Sin datos de contexto.")
        else:
            st.dataframe(periods.drop(columns=["period"]), hide_index=True, use_container_width=True)
        with st.expander("Cobertura por sucursal"):
            st.dataframe(pd.DataFrame(payload["context"]["branches"]), hide_index=True, use_container_width=True)
    with card("Evolución del costo"):
        render_chart(payload, "cost_trend")


def render_goals_page():
    render_page_header("Análisis de Objetivos", "Inicio / Objetivos")
    results = session.goal_results()
    summary = results["summary"]
    if summary is None:
        st.info("No hay objetivos para los filtros de ventas seleccionados.")
    else:
        cols = st.columns(4)
        cols[0].metric("Objetivo", format_money(summary["total_goal"]))
        cols[1].metric("Real", format_money(summary["total_actual"]))
        cols[2].metric("Cumplimiento", format_pct(summary["achievement"]))
        cols[3].metric("Diferencia", format_money(summary["difference"]))
    with card("Cumplimiento por sucursal y mes"):
        render_table(results["compliance"], money_cols=("goal_amount", "actual_amount", "difference"), pct_cols=())

    with card("Nuevo objetivo"):
        branches = session.options("sales").get("branches", [])
        c1, c2, c3, c4 = st.columns(4)
        branch = c1.selectbox("Sucursal", branches) if branches else c1.text_input("Sucursal")
        year = c2.number_input("Año", min_value=2000, max_value=2100, value=date.today().year, step=1)
        month = c3.selectbox("Mes", list(range(1, 13)), format_func=lambda m: MONTH_NAMES[m - 1])
        amount = c4.number_input("Monto del objetivo ($)", min_value=0.0, step=1000.0)
        if st.button("Agregar objetivo"):
            try:
                session.add_goal(SalesGoal(branch=str(branch).strip().upper(), year=int(year), month=int(month), goal_amount=float(amount)))
                st.rerun()
            except GoalError as exc:
                st.error(str(exc))

    with card("Objetivos existentes"):
        for goal in session.goals:
            c1, c2, c3 = st.columns([4, 3, 1])
            c1.write(f"{goal.branch} · {MONTH_NAMES[goal.month - 1]} {goal.year}")
            new_amount = c2.number_input("Objetivo", value=float(goal.goal_amount), key=f"goal_{goal.goal_id}", label_visibility="collapsed")
            if new_amount != goal.goal_amount and new_amount > 0:
                session.update_goal(goal.goal_id, new_amount)
            if c3.button("✕", key=f"del_{goal.goal_id}"):
                session.delete_goal(goal.goal_id)
                st.rerun()

    with st.expander("Importar objetivos"):
        goals_file = st.file_uploader("Sucursal, Año, Mes, Objetivo de ventas", type=["xlsx", "csv"], key="goals_file")
        if goals_file is not None and st.button("Importar"):
            try:
                count = session.import_goals(goals_file.getvalue(), goals_file.name)
                st.success(f"{count} objetivos importados/actualizados correctamente.")
            except IngestionError as exc:
                st.error(f"Error al importar: {exc}")


def render_colors_page():
    render_page_header("Configuración de Colores", "Inicio / Colores")
    if not session.colors:
        st.info("Los colores se asignan al cargar ventas.")
        return
    for name, color in sorted(session.colors.items()):
        picked = st.color_picker(name, value=color, key=f"color_{name}")
        if picked != color:
            session.set_color(name, picked)


if nav_choice in PAGES:
    sidebar_filters(PAGES[nav_choice])
elif nav_choice == "Objetivos":
    sidebar_filters("sales")

if nav_choice == "Ventas":
    render_sales_page()
elif nav_choice == "Compras":
    render_purchases_page()
elif nav_choice == "Gastos":
    render_expenses_page()
elif nav_choice == "RRHH":
    render_hr_page()
elif nav_choice == "Stock":
    render_stock_page()
elif nav_choice == "Objetivos":
    render_goals_page()
else:
    render_colors_page()
