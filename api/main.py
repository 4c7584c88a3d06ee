from __future__ import annotations

from dataclasses import asdict
import logging
import math

import numpy as np
import pandas as pd
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder

from api.schemas import (
    DimensionModel,
    DimensionsResponse,
    EvaluateRequestModel,
    GuidanceModel,
    PivotRequestModel,
    RecordsModel,
    SummaryRequestModel,
)
from forecast_core.dimensions import AVAILABLE_DIMENSIONS, FILTERABLE_DIMENSIONS
from forecast_core.evaluator import evaluate, evaluate_monthly, evaluate_multi
from forecast_core.filters import normalize_pivot_request
from forecast_core.guidance import (
    DEFAULT_GUIDANCE,
    GuidanceDefinition,
    default_guidance_catalog,
    load_guidance_catalog,
    parse_guidance,
)
from forecast_core.metrics_report import compute_filter_options, compute_report
from forecast_core.metrics_summary import compute_summary


app = FastAPI(title="Forecast Report API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _guidance_from_models(models: list[GuidanceModel]) -> list[GuidanceDefinition]:
    return load_guidance_catalog([m.model_dump() for m in models])


def _error(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
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
            },
        )
    )


@app.get("/meta/dimensions")
def meta_dimensions():
    payload = DimensionsResponse(
        dimensions=[DimensionModel(**asdict(d)) for d in AVAILABLE_DIMENSIONS],
        filterable=[d.id for d in FILTERABLE_DIMENSIONS],
    )
    return _json(payload.model_dump())


@app.get("/meta/guidance")
def meta_guidance():
    return _json({"guidance": DEFAULT_GUIDANCE})


@app.post("/meta/values")
def meta_values(body: RecordsModel):
    try:
        return _json(compute_filter_options(body.records))
    except Exception as exc:
        logger.exception("meta_values failed")
        return _error(exc)


@app.post("/report")
def report(body: PivotRequestModel):
    try:
        request = normalize_pivot_request(body.model_dump(exclude={"records"}))
        return _json(compute_report(body.records, request))
    except Exception as exc:
        logger.exception("report failed")
        return _error(exc)


@app.post("/summary")
def summary(body: SummaryRequestModel):
    try:
        guidance = _guidance_from_models(body.guidance) if body.guidance else default_guidance_catalog()
        row_guidance = _guidance_from_models(body.row_guidance)
        payload = compute_summary(
            body.records,
            guidance,
            row_guidance,
            parent_field=body.parent_field,
            drop_empty=body.drop_empty,
        )
        return _json(payload)
    except Exception as exc:
        logger.exception("summary failed")
        return _error(exc)


@app.post("/guidance/evaluate")
def guidance_evaluate(body: EvaluateRequestModel):
    try:
        definition = parse_guidance(body.guidance.model_dump())
        payload = {
            "id": definition.id,
            "kind": definition.kind,
            "total": evaluate(body.record, definition, last_actual_index=body.last_actual_index),
            "monthly": None,
            "multi": evaluate_multi(body.record, definition, last_actual_index=body.last_actual_index),
        }
        if body.monthly:
            payload["monthly"] = evaluate_monthly(body.record, definition, last_actual_index=body.last_actual_index)
        return _json(payload)
    except Exception as exc:
        logger.exception("guidance_evaluate failed")
        return _error(exc)
