from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from forecast_core.data import (
    CONTROL_MARKET_AREA,
    MONTH_NAMES,
    PRIMARY_VOLUME_FIELD,
    PROJECTED_VOLUME_FIELD,
    column_as_series,
    is_missing,
    is_truthy,
    last_actual_month_index,
    month_number,
    numeric_series,
    records_frame,
    stringify,
    to_number,
)
from forecast_core.dimensions import MONTH_DIMENSION_ID, YEAR_DIMENSION_ID, Dimension
from forecast_core.filters import PivotRequest, ReportFilter


logger = logging.getLogger(__name__)

TOTAL_KEY = "__total__"
NULL_KEY = "__null__"


@dataclass
class PivotResult:
    rows: List[str] = field(default_factory=list)
    columns: List[str] = field(default_factory=list)
    data: List[List[Optional[float]]] = field(default_factory=lambda: [[]])
    value_format: str = "number"

    @property
    def is_empty(self) -> bool:
        return all(cell is None for row in self.data for cell in row)


def _numeric_sort_key(value: str) -> Tuple[int, float, str]:
    try:
        return (0, float(value), value)
    except ValueError:
        return (1, 0.0, value)


def unique_header_values(df: pd.DataFrame, dimension: Optional[Dimension]) -> List[str]:
    """Ordered header labels for one pivot axis.

    The month axis is always the full JAN..DEC sequence so sparse data still
    yields a complete, stable axis.
    """
    if dimension is None:
        return []
    if dimension.id == MONTH_DIMENSION_ID:
        return list(MONTH_NAMES)
    if df.empty or dimension.id not in df.columns:
        return []
    values = {s for s in (stringify(v) for v in column_as_series(df, dimension.id).tolist()) if s}
    if dimension.id == YEAR_DIMENSION_ID:
        return sorted(values, key=_numeric_sort_key)
    return sorted(values)


def dimension_key(value: object, dimension_id: str) -> Optional[str]:
    """String key of a record value on one axis; months key by their 1-12 number ("01" -> "1")."""
    if dimension_id == MONTH_DIMENSION_ID:
        month = month_number(value)
        if month is not None:
            return str(month)
    return stringify(value)


def apply_filters(df: pd.DataFrame, filters: Iterable[ReportFilter]) -> pd.DataFrame:
    """Keep rows whose stringified value is selected by every active filter."""
    if df.empty:
        return df
    mask = pd.Series(True, index=df.index)
    for f in filters or []:
        if not f.active:
            continue
        selected = set(f.values)
        dim_id = f.dimension.id
        col = column_as_series(df, dim_id)
        mask &= col.map(lambda v: dimension_key(v, dim_id) in selected).astype(bool)
    return df[mask]


def contribution_values(df: pd.DataFrame, measure_id: str, last_actual_index: int) -> pd.Series:
    """Per-row measure values, preferring the projection in the first non-actual month."""
    values = numeric_series(df, measure_id)
    if df.empty or measure_id != PRIMARY_VOLUME_FIELD or PROJECTED_VOLUME_FIELD not in df.columns:
        return values

    projected_raw = column_as_series(df, PROJECTED_VOLUME_FIELD)
    month_index = column_as_series(df, "month").map(to_number).astype(float) - 1
    use_projected = (
        (month_index == last_actual_index + 1)
        & column_as_series(df, "market_area_name").map(lambda v: stringify(v) != CONTROL_MARKET_AREA).astype(bool)
        & ~projected_raw.map(is_missing).astype(bool)
        & ~column_as_series(df, "is_manual_input").map(is_truthy).astype(bool)
    )
    projected = projected_raw.map(to_number).astype(float)
    return values.where(~use_projected, projected)


def _axis_keys(df: pd.DataFrame, dimension: Optional[Dimension]) -> List[str]:
    if dimension is None:
        return [TOTAL_KEY] * len(df)
    keys = (dimension_key(v, dimension.id) for v in column_as_series(df, dimension.id).tolist())
    return [k if k is not None else NULL_KEY for k in keys]


def _lookup_key(header: str, dimension: Optional[Dimension]) -> str:
    if dimension is not None and dimension.id == MONTH_DIMENSION_ID and header in MONTH_NAMES:
        return str(MONTH_NAMES.index(header) + 1)
    return header


def _sum_cells(
    df: pd.DataFrame, values: pd.Series, row: Optional[Dimension], column: Optional[Dimension]
) -> Dict[Tuple[str, str], float]:
    if df.empty:
        return {}
    frame = pd.DataFrame(
        {"row": _axis_keys(df, row), "col": _axis_keys(df, column), "value": values.to_numpy()},
        index=df.index,
    )
    sums = frame.groupby(["row", "col"], sort=False)["value"].sum()
    return {key: float(v) for key, v in sums.items()}


def aggregate(
    records: Iterable[Mapping[str, object]],
    filters: Optional[Sequence[ReportFilter]] = None,
    row_dim: Optional[Dimension] = None,
    col_dim: Optional[Dimension] = None,
    measure_dim: Optional[Dimension] = None,
) -> PivotResult:
    """Pivot raw records into a row x column matrix of summed measure values.

    A cell is ``None`` only when no filtered record maps to it. An invalid or
    missing measure is logged and yields an empty result instead of raising.
    """
    if measure_dim is None or not measure_dim.is_measure:
        logger.error("Invalid or missing measure dimension: %r", getattr(measure_dim, "id", measure_dim))
        return PivotResult(rows=[], columns=[], data=[[]], value_format="number")

    records = list(records or [])
    last_actual_index = last_actual_month_index(records)

    df = apply_filters(records_frame(records), filters or [])

    row_headers = unique_header_values(df, row_dim)
    col_headers = unique_header_values(df, col_dim)

    values = contribution_values(df, measure_dim.id, last_actual_index)
    cells = _sum_cells(df, values, row_dim, col_dim)

    row_keys = [_lookup_key(h, row_dim) for h in row_headers] if row_dim is not None else [TOTAL_KEY]
    col_keys = [_lookup_key(h, col_dim) for h in col_headers] if col_dim is not None else [TOTAL_KEY]
    data = [[cells.get((rk, ck)) for ck in col_keys] for rk in row_keys]

    return PivotResult(
        rows=row_headers,
        columns=col_headers,
        data=data,
        value_format=measure_dim.format or "number",
    )


def run_pivot(records: Iterable[Mapping[str, object]], request: PivotRequest) -> PivotResult:
    return aggregate(records, request.filters, request.row, request.column, request.measure)
