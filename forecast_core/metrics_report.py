from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Iterable, Mapping

from forecast_core.charts import pivot_chart_spec
from forecast_core.dimensions import FILTERABLE_DIMENSIONS, unique_values_for_dimension
from forecast_core.filters import PivotRequest
from forecast_core.pivot import run_pivot


def _request_payload(request: PivotRequest) -> Dict[str, Any]:
    return {
        "filters": [{"id": f.dimension.id, "values": list(f.values)} for f in request.filters if f.active],
        "row": request.row.id if request.row else None,
        "column": request.column.id if request.column else None,
        "measure": request.measure.id if request.measure else None,
    }


def compute_report(records: Iterable[Mapping[str, object]], request: PivotRequest) -> Dict[str, Any]:
    records = list(records or [])
    result = run_pivot(records, request)

    chart = None
    if not result.is_empty:
        chart = pivot_chart_spec(
            result,
            row_label=request.row.label if request.row else "Total",
            column_label=request.column.label if request.column else "Total",
            value_label=request.measure.label if request.measure else "Value",
        )

    return {
        "request": _request_payload(request),
        "result": asdict(result),
        "empty": result.is_empty,
        "charts": {"pivot": chart} if chart else {},
    }


def compute_filter_options(records: Iterable[Mapping[str, object]]) -> Dict[str, Any]:
    records = list(records or [])
    return {
        "dimensions": [
            {"id": d.id, "label": d.label, "values": unique_values_for_dimension(records, d.id)}
            for d in FILTERABLE_DIMENSIONS
        ]
    }
