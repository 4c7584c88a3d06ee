from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional

from forecast_core.data import stringify
from forecast_core.dimensions import Dimension, get_dimension, resolve_dimensions


logger = logging.getLogger(__name__)

DEFAULT_MEASURE_ID = "case_equivalent_volume"


@dataclass(frozen=True)
class ReportFilter:
    dimension: Dimension
    values: tuple[str, ...] = ()

    @property
    def active(self) -> bool:
        return bool(self.values)


@dataclass(frozen=True)
class PivotRequest:
    filters: List[ReportFilter] = field(default_factory=list)
    row: Optional[Dimension] = None
    column: Optional[Dimension] = None
    measure: Optional[Dimension] = None


def _as_str_tuple(values: Optional[Iterable[object]]) -> tuple[str, ...]:
    if not values:
        return ()
    if isinstance(values, (str, bytes)):
        values = [values]
    out: List[str] = []
    for v in values:
        s = stringify(v)
        if s is not None and s not in out:
            out.append(s)
    return tuple(out)


def _first_dimension(raw: Mapping[str, Any], plural: str, singular: str) -> Optional[Dimension]:
    ids = raw.get(plural)
    if ids is None and raw.get(singular) is not None:
        ids = [raw.get(singular)]
    if isinstance(ids, str):
        ids = [ids]
    dims = resolve_dimensions(ids)
    if len(dims) > 1:
        logger.info("Only one %s dimension is supported; using %s", singular, dims[0].id)
    return dims[0] if dims else None


def normalize_filters(raw: object) -> List[ReportFilter]:
    """Accept ``[{"id": ..., "values": [...]}]`` or ``{"market": [...]}`` shapes."""
    if not raw:
        return []
    if isinstance(raw, Mapping):
        entries = [{"id": k, "values": v} for k, v in raw.items()]
    else:
        entries = [e for e in raw if isinstance(e, Mapping)]

    out: List[ReportFilter] = []
    for entry in entries:
        dim_id = entry.get("id") or entry.get("dimension")
        dim = get_dimension(str(dim_id)) if dim_id is not None else None
        if dim is None:
            logger.warning("Dropping filter on unknown dimension %r", dim_id)
            continue
        values = entry.get("values")
        if values is None:
            values = entry.get("filterValues")
        out.append(ReportFilter(dimension=dim, values=_as_str_tuple(values)))
    return out


def normalize_pivot_request(raw: dict) -> PivotRequest:
    raw = raw or {}
    measure_id = raw.get("measure") or raw.get("value") or DEFAULT_MEASURE_ID
    measure = get_dimension(str(measure_id))
    if measure is None:
        logger.warning("Unknown measure %r", measure_id)

    return PivotRequest(
        filters=normalize_filters(raw.get("filters")),
        row=_first_dimension(raw, "rows", "row"),
        column=_first_dimension(raw, "columns", "column"),
        measure=measure,
    )
