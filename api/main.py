from __future__ import annotations

import logging
import math
from functools import lru_cache
from typing import List, Literal

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from api.schemas import (
    FILTER_MODELS,
    ColorModel,
    ExpensesFiltersModel,
    GoalModel,
    GoalUpdateModel,
    HRFiltersModel,
    PurchasesFiltersModel,
    SalesFiltersModel,
    StockFiltersModel,
)
from pizarro.config import settings
from pizarro.drilldown import DrillDown
from pizarro.engine import filtered
from pizarro.filters import normalize_filters
from pizarro.goals import GoalError
from pizarro.ingest import IngestionError
from pizarro.metrics_expenses import EXPENSE_LEVELS
from pizarro.metrics_sales import SALES_LEVELS
from pizarro.records import RECORD_TYPES, SalesGoal, records_frame
from pizarro.session import DashboardSession
from pizarro.store import JsonStore

Domain = Literal["sales", "purchases", "expenses", "hr", "stock"]

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

app = FastAPI(title="Pizarro Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_session() -> DashboardSession:
    # requests carry their own filters; session filters belong to the Streamlit UI
    return DashboardSession.from_store(JsonStore(settings.DATA_DIR), debounce_seconds=0, top_n=settings.TOP_N)


def _filters(domain: str, model: BaseModel):
    return normalize_filters(domain, model.model_dump())


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _goal_json(goal: SalesGoal) -> dict:
    return {
        "id": goal.goal_id,
        "branch": goal.branch,
        "year": goal.year,
        "month": goal.month,
        "goal_amount": goal.goal_amount,
        "actual_amount": goal.actual_amount,
    }


@app.get("/meta/{domain}")
def meta(domain: Domain):
    try:
        session = get_session()
        return _json({"domain": domain, "records": len(session.datasets[domain]), "options": session.options(domain)})
    except Exception as exc:
        logger.exception("meta failed")
        return _error(exc)


def _analyze(domain: str, model: BaseModel, drill: DrillDown | None = None) -> JSONResponse:
    results = get_session().results(domain, drill, filters=_filters(domain, model))
    return _json({"domain": domain, "results": results})


@app.post("/sales")
def sales(filters: SalesFiltersModel, drill: List[str] = Query(default=[])):
    try:
        return _analyze("sales", filters, DrillDown.from_path(SALES_LEVELS, drill))
    except Exception as exc:
        logger.exception("sales failed")
        return _error(exc)


@app.post("/purchases")
def purchases(filters: PurchasesFiltersModel):
    try:
        return _analyze("purchases", filters)
    except Exception as exc:
        logger.exception("purchases failed")
        return _error(exc)


@app.post("/expenses")
def expenses(filters: ExpensesFiltersModel, drill: List[str] = Query(default=[])):
    try:
        return _analyze("expenses", filters, DrillDown.from_path(EXPENSE_LEVELS, drill))
    except Exception as exc:
        logger.exception("expenses failed")
        return _error(exc)


@app.post("/hr")
def hr(filters: HRFiltersModel):
    try:
        return _analyze("hr", filters)
    except Exception as exc:
        logger.exception("hr failed")
        return _error(exc)


@app.post("/stock")
def stock(filters: StockFiltersModel):
    try:
        return _analyze("stock", filters)
    except Exception as exc:
        logger.exception("stock failed")
        return _error(exc)


@app.get("/goals")
def list_goals():
    try:
        return _json({"goals": [_goal_json(g) for g in get_session().goals]})
    except Exception as exc:
        logger.exception("list_goals failed")
        return _error(exc)


@app.post("/goals")
def create_goal(goal: GoalModel):
    try:
        created = get_session().add_goal(
            SalesGoal(branch=goal.branch.strip().upper(), year=goal.year, month=goal.month, goal_amount=goal.goal_amount)
        )
        return JSONResponse(status_code=201, content=jsonable_encoder(_goal_json(created)))
    except GoalError as exc:
        return _error(exc, 400)
    except Exception as exc:
        logger.exception("create_goal failed")
        return _error(exc)


@app.put("/goals/{goal_id}")
def update_goal(goal_id: str, body: GoalUpdateModel):
    try:
        return _json(_goal_json(get_session().update_goal(goal_id, body.goal_amount)))
    except GoalError as exc:
        return _error(exc, 400)
    except Exception as exc:
        logger.exception("update_goal failed")
        return _error(exc)


@app.delete("/goals/{goal_id}")
def delete_goal(goal_id: str):
    try:
        get_session().delete_goal(goal_id)
        return Response(status_code=204)
    except GoalError as exc:
        return _error(exc, 400)
    except Exception as exc:
        logger.exception("delete_goal failed")
        return _error(exc)


@app.post("/goals/summary")
def goals_summary(filters: SalesFiltersModel):
    try:
        return _json(get_session().goal_results(_filters("sales", filters)))
    except Exception as exc:
        logger.exception("goals_summary failed")
        return _error(exc)


@app.post("/goals/import")
async def import_goals(request: Request, filename: str = Query(default="objetivos.xlsx")):
    try:
        body = await request.body()
        count = get_session().import_goals(body, filename)
        return _json({"imported": count})
    except (IngestionError, GoalError) as exc:
        return _error(exc, 400)
    except Exception as exc:
        logger.exception("import_goals failed")
        return _error(exc)


@app.post("/upload/{domain}")
async def upload(domain: Domain, request: Request, filename: str = Query(...)):
    try:
        body = await request.body()
        records = get_session().upload(domain, body, filename)
        return _json({"domain": domain, "records": len(records)})
    except IngestionError as exc:
        return _error(exc, 400)
    except Exception as exc:
        logger.exception("upload failed")
        return _error(exc)


@app.get("/colors")
def colors():
    try:
        return _json({"colors": get_session().colors})
    except Exception as exc:
        logger.exception("colors failed")
        return _error(exc)


@app.put("/colors/{name}")
def set_color(name: str, body: ColorModel):
    try:
        session = get_session()
        session.set_color(name, body.color)
        return _json({"colors": session.colors})
    except Exception as exc:
        logger.exception("set_color failed")
        return _error(exc)


@app.post("/export/{domain}")
def export_domain(domain: Domain, filters: dict):
    session = get_session()
    f = normalize_filters(domain, FILTER_MODELS[domain].model_validate(filters).model_dump())
    export_df = records_frame(filtered(session.datasets[domain], f), RECORD_TYPES[domain])
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    filename = f"{domain}.csv"
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})
