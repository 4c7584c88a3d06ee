from __future__ import annotations

from typing import Any, Dict, Optional

import altair as alt
import pandas as pd

from forecast_core.pivot import PivotResult

alt.data_transformers.disable_max_rows()

_AXIS_FORMATS = {"currency": "$,.0f", "number": ",.0f"}


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def pivot_long_frame(result: PivotResult) -> pd.DataFrame:
    """Flatten a pivot matrix into (row, column, value) records, skipping empty cells."""
    rows = result.rows or ["Total"]
    columns = result.columns or ["Total"]
    records = []
    for r_idx, row in enumerate(rows):
        cells = result.data[r_idx] if r_idx < len(result.data) else []
        for c_idx, col in enumerate(columns):
            value = cells[c_idx] if c_idx < len(cells) else None
            if value is None:
                continue
            records.append({"row": row, "column": col, "value": value})
    return pd.DataFrame(records, columns=["row", "column", "value"])


def pivot_chart_spec(
    result: PivotResult, *, row_label: str = "Row", column_label: str = "Column", value_label: str = "Value"
) -> Optional[Dict[str, Any]]:
    long_df = pivot_long_frame(result)
    if long_df.empty:
        return None

    fmt = _AXIS_FORMATS.get(result.value_format, ",.0f")
    x_field, x_title, x_sort = ("column", column_label, result.columns) if result.columns else ("row", row_label, result.rows)
    hover = alt.selection_point(fields=["row"], on="mouseover", empty="all")
    bar = (
        alt.Chart(long_df)
        .mark_bar()
        .encode(
            x=alt.X(f"{x_field}:N", title=x_title, sort=x_sort or None, axis=alt.Axis(grid=False)),
            y=alt.Y("value:Q", title=value_label, stack="zero", axis=alt.Axis(format=fmt, gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color("row:N", title=row_label),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.3)),
            tooltip=[
                alt.Tooltip("row:N", title=row_label),
                alt.Tooltip("column:N", title=column_label),
                alt.Tooltip("value:Q", title=value_label, format=fmt),
            ],
        )
        .add_params(hover)
        .properties(height=260)
    )
    return to_vega_spec(bar)
