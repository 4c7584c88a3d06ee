from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Literal, Mapping, Optional

from forecast_core.data import stringify


logger = logging.getLogger(__name__)

DimensionKind = Literal["dimension", "measure"]
Aggregation = Literal["sum", "avg", "count"]
ValueFormat = Literal["number", "currency", "string"]


@dataclass(frozen=True)
class Dimension:
    id: str
    label: str
    kind: DimensionKind
    aggregation: Optional[Aggregation] = None
    format: Optional[ValueFormat] = None

    @property
    def is_measure(self) -> bool:
        return self.kind == "measure"


MONTH_DIMENSION_ID = "month"
YEAR_DIMENSION_ID = "year"

AVAILABLE_DIMENSIONS: tuple[Dimension, ...] = (
    Dimension("brand", "Brand", "dimension", format="string"),
    Dimension("variant", "Variant", "dimension", format="string"),
    Dimension("market", "Market", "dimension", format="string"),
    Dimension("customer", "Customer", "dimension", format="string"),
    Dimension("variant_size_pack_desc", "Size Pack", "dimension", format="string"),
    Dimension("month", "Month", "dimension", format="number"),
    Dimension("year", "Year", "dimension", format="number"),
    Dimension("data_type", "Data Type", "dimension", format="string"),
    # Measures
    Dimension("case_equivalent_volume", "Volume (TY)", "measure", aggregation="sum", format="number"),
    Dimension("py_case_equivalent_volume", "Volume (PY)", "measure", aggregation="sum", format="number"),
    Dimension("gross_sales_value", "GSV (TY)", "measure", aggregation="sum", format="currency"),
    Dimension("py_gross_sales_value", "GSV (PY)", "measure", aggregation="sum", format="currency"),
)

_BY_ID = {d.id: d for d in AVAILABLE_DIMENSIONS}

FILTERABLE_DIMENSION_IDS = frozenset(
    {"brand", "customer", "market", "month", "variant", "variant_size_pack_desc", "year"}
)

FILTERABLE_DIMENSIONS: tuple[Dimension, ...] = tuple(
    sorted((d for d in AVAILABLE_DIMENSIONS if d.id in FILTERABLE_DIMENSION_IDS), key=lambda d: d.label)
)


def get_dimension(dimension_id: Optional[str]) -> Optional[Dimension]:
    if not dimension_id:
        return None
    return _BY_ID.get(dimension_id)


def resolve_dimensions(ids: Optional[Iterable[object]]) -> List[Dimension]:
    """Look up dimensions by id, dropping (and logging) any id the registry does not know."""
    out: List[Dimension] = []
    for raw in ids or []:
        dim = get_dimension(str(raw)) if raw is not None else None
        if dim is None:
            logger.warning("Dropping unknown dimension %r", raw)
            continue
        out.append(dim)
    return out


def measures() -> List[Dimension]:
    return [d for d in AVAILABLE_DIMENSIONS if d.is_measure]


def unique_values_for_dimension(records: Iterable[Mapping[str, object]], dimension_id: str) -> List[str]:
    """Distinct non-empty values of a field, alphabetically sorted (filter options)."""
    if not dimension_id:
        return []
    values = set()
    for record in records or []:
        value = stringify(record.get(dimension_id))
        if value:
            values.add(value)
    return sorted(values)
