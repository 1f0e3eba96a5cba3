from __future__ import annotations

import logging
import math
import os
from typing import Any, Dict, List, Optional, Set

import numpy as np
import pandas as pd
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.responses import Response
from fastapi.encoders import jsonable_encoder

from api.schemas import ChartRequest, FieldsRequest, PivotRequest, ValidateRequest, ViewsRequest
from pivotcore.assembly import PivotResult
from pivotcore.charts import pivot_chart_frame, pivot_chart_spec
from pivotcore.config import PivotConfig, PivotOptions, normalize_config, normalize_options
from pivotcore.data import distinct_values, field_headers, rows_to_frame
from pivotcore.engine import compute_pivot_frame, compute_views
from pivotcore.errors import ConfigValidationError, PivotInputError
from pivotcore.export import export_pivot_csv, export_pivot_json, export_pivot_xlsx
from pivotcore.layout import initial_collapsed_keys
from pivotcore.validation import validate_config

DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]

EXPORTERS = {
    "csv": (export_pivot_csv, "text/csv"),
    "json": (export_pivot_json, "application/json"),
    "xlsx": (export_pivot_xlsx, "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"),
}


def cors_origins() -> List[str]:
    raw = os.environ.get("PIVOT_CORS_ORIGINS", "")
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or list(DEFAULT_CORS_ORIGINS)


app = FastAPI(title="Pivot Engine API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


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
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    content: Dict[str, Any] = {"error": str(exc), "type": type(exc).__name__}
    if isinstance(exc, ConfigValidationError):
        content["issues"] = list(exc.issues)
    return JSONResponse(status_code=status_code, content=content)


def _config_and_options(req: PivotRequest) -> tuple[PivotConfig, PivotOptions]:
    return normalize_config(req.config.model_dump()), normalize_options(req.options.model_dump())


def _compute(req: PivotRequest) -> tuple[PivotResult, PivotConfig, Optional[Set[str]]]:
    config, options = _config_and_options(req)
    result = compute_pivot_frame(rows_to_frame(req.rows), config, options)
    collapsed = set(req.collapsed) if req.collapsed is not None else initial_collapsed_keys(result, options)
    return result, config, collapsed


@app.get("/health")
def health():
    return _json({"status": "ok"})


@app.post("/meta/fields")
def meta_fields(req: FieldsRequest):
    try:
        headers = field_headers(req.rows)
        values = {name: distinct_values(req.rows, name)[: max(0, req.max_values)] for name in headers}
        return _json({"headers": headers, "values": values})
    except PivotInputError as exc:
        return _error(exc, 400)
    except Exception as exc:
        logger.exception("meta_fields failed")
        return _error(exc)


@app.post("/pivot")
def pivot(req: PivotRequest):
    try:
        config, options = _config_and_options(req)
        result = compute_pivot_frame(rows_to_frame(req.rows), config, options)
        payload = result.to_dict()
        payload["measures"] = config.measure_keys()
        payload["collapsed_keys"] = sorted(initial_collapsed_keys(result, options))
        return _json(payload)
    except PivotInputError as exc:
        return _error(exc, 400)
    except Exception as exc:
        logger.exception("pivot failed")
        return _error(exc)


@app.post("/pivot/validate")
def pivot_validate(req: ValidateRequest):
    try:
        headers = req.headers
        if headers is None and req.rows is not None:
            headers = field_headers(req.rows)
        issues = validate_config(req.config.model_dump(), headers)
        return _json({"valid": not issues, "issues": issues})
    except Exception as exc:
        logger.exception("pivot_validate failed")
        return _error(exc)


@app.post("/pivot/views")
def pivot_views(req: ViewsRequest):
    try:
        views = [view.model_dump() for view in req.views]
        results = compute_views(req.rows, views)
        return _json({view_id: result.to_dict() for view_id, result in results.items()})
    except PivotInputError as exc:
        return _error(exc, 400)
    except Exception as exc:
        logger.exception("pivot_views failed")
        return _error(exc)


@app.post("/pivot/chart")
def pivot_chart(req: ChartRequest):
    try:
        result, config, collapsed = _compute(req)
        series = pivot_chart_frame(result, config, collapsed, include_totals=req.include_totals)
        spec = pivot_chart_spec(
            result, config, req.chart_type, collapsed, include_totals=req.include_totals, title=req.title
        )
        return _json({"series": series.to_dict(orient="records"), "spec": spec})
    except PivotInputError as exc:
        return _error(exc, 400)
    except Exception as exc:
        logger.exception("pivot_chart failed")
        return _error(exc)


@app.post("/pivot/export/{fmt}")
def pivot_export(fmt: str, req: PivotRequest, strict: bool = False):
    fmt = fmt.lower()
    if fmt not in EXPORTERS:
        return JSONResponse(
            status_code=400,
            content={"error": f"unsupported export format {fmt!r}", "type": "ValueError"},
        )
    try:
        if strict:
            issues = validate_config(req.config.model_dump(), field_headers(req.rows))
            if issues:
                raise ConfigValidationError(issues)
        result, config, collapsed = _compute(req)
        exporter, media_type = EXPORTERS[fmt]
        content = exporter(result, config, collapsed)
    except (PivotInputError, ConfigValidationError) as exc:
        return _error(exc, 400)
    except Exception as exc:
        logger.exception("pivot_export failed")
        return _error(exc)

    filename = f"pivot.{fmt}"
    return Response(content=content, media_type=media_type, headers={"Content-Disposition": f"attachment; filename={filename}"})
