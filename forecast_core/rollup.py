from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

import pandas as pd

from forecast_core.data import (
    MONTH_NAMES,
    column_as_series,
    empty_months,
    last_actual_month_index,
    month_number,
    numeric_series,
    records_frame,
    stringify,
    sum_months,
)


logger = logging.getLogger(__name__)

# Aggregate month map -> raw record field summed into it.
MONTHLY_FIELDS: Dict[str, str] = {
    "months_ty": "case_equivalent_volume",
    "months_py": "py_case_equivalent_volume",
    "months_gsv_ty": "gross_sales_value",
    "months_gsv_py": "py_gross_sales_value",
    "months_lc": "prev_published_case_equivalent_volume",
}

# Pre-aggregated trailing-window volumes carried through as plain sums.
EXTRA_FIELDS = (
    "cy_3m_case_equivalent_volume",
    "cy_6m_case_equivalent_volume",
    "cy_12m_case_equivalent_volume",
    "py_3m_case_equivalent_volume",
    "py_6m_case_equivalent_volume",
    "py_12m_case_equivalent_volume",
)

EMPTY_TOTAL_TOLERANCE = 0.001


@dataclass
class Aggregate:
    """Summed volumes/values for one hierarchy level (item, brand or grand total).

    Totals are always derived from the month maps by ``finalize`` so that
    ``total == sum(months)`` holds exactly.
    """

    key: str
    level: str
    brand: str = ""
    variant: str = ""
    variant_id: Optional[str] = None
    months_ty: Dict[str, float] = field(default_factory=empty_months)
    months_py: Dict[str, float] = field(default_factory=empty_months)
    months_gsv_ty: Dict[str, float] = field(default_factory=empty_months)
    months_gsv_py: Dict[str, float] = field(default_factory=empty_months)
    months_lc: Dict[str, float] = field(default_factory=empty_months)
    extras: Dict[str, float] = field(default_factory=dict)
    total_ty: float = 0.0
    total_py: float = 0.0
    total_gsv_ty: float = 0.0
    total_gsv_py: float = 0.0
    total_lc: float = 0.0

    def add_months(self, other: "Aggregate") -> None:
        for attr in MONTHLY_FIELDS:
            mine = getattr(self, attr)
            theirs = getattr(other, attr)
            for m in MONTH_NAMES:
                mine[m] += theirs.get(m, 0.0)
        for name, value in other.extras.items():
            self.extras[name] = self.extras.get(name, 0.0) + value

    def finalize(self) -> "Aggregate":
        self.total_ty = sum_months(self.months_ty)
        self.total_py = sum_months(self.months_py)
        self.total_gsv_ty = sum_months(self.months_gsv_ty)
        self.total_gsv_py = sum_months(self.months_gsv_py)
        self.total_lc = sum_months(self.months_lc)
        return self

    @property
    def gsv_rate(self) -> float:
        return self.total_gsv_ty / self.total_ty if self.total_ty else 0.0

    @property
    def py_gsv_rate(self) -> float:
        return self.total_gsv_py / self.total_py if self.total_py else 0.0


@dataclass
class Rollup:
    items: List[Aggregate] = field(default_factory=list)
    brands: Dict[str, Aggregate] = field(default_factory=dict)
    last_actual_index: int = -1
    total: Aggregate = field(default_factory=lambda: Aggregate(key="total", level="total"))


def item_key(brand: str, variant: Optional[str], variant_id: Optional[str]) -> str:
    """Brand + variant id, falling back to brand + variant name when there is no id."""
    return f"{brand}_{variant_id}" if variant_id else f"{brand}_{variant}"


def _item_frame(df: pd.DataFrame, parent_field: str) -> pd.DataFrame:
    frame = pd.DataFrame(
        {
            "brand": [stringify(v) or "" for v in column_as_series(df, parent_field).tolist()],
            "variant": [stringify(v) or "" for v in column_as_series(df, "variant").tolist()],
            "variant_id": [stringify(v) or "" for v in column_as_series(df, "variant_id").tolist()],
            "month": [month_number(v) or 0 for v in column_as_series(df, "month").tolist()],
        },
        index=df.index,
    )
    for name in list(MONTHLY_FIELDS.values()) + list(EXTRA_FIELDS):
        frame[name] = numeric_series(df, name)

    skipped = frame[(frame["month"] == 0) | (frame["brand"] == "") | (frame["variant"] == "")]
    if not skipped.empty:
        logger.debug("Skipping %d records without brand/variant or a 1-12 month", len(skipped))
    frame = frame[(frame["month"] > 0) & (frame["brand"] != "") & (frame["variant"] != "")].copy()

    frame["item_key"] = [
        item_key(b, v, vid or None) for b, v, vid in zip(frame["brand"], frame["variant"], frame["variant_id"])
    ]
    return frame


def build_rollup(
    records: Iterable[Mapping[str, object]], *, parent_field: str = "brand", drop_empty: bool = False
) -> Rollup:
    """Group line-item records into item and brand Aggregates.

    ``parent_field`` picks the top level (``"brand"`` for the volume summary,
    ``"market"`` for chain planning); its value lands in ``Aggregate.brand``.
    Records with a month outside 1-12 are skipped. Two variants that share a
    name and carry no id collapse into one item.
    """
    records = list(records or [])
    last_actual = last_actual_month_index(records)
    df = records_frame(records)
    if df.empty:
        return Rollup(items=[], brands={}, last_actual_index=last_actual)

    frame = _item_frame(df, parent_field)
    if frame.empty:
        return Rollup(items=[], brands={}, last_actual_index=last_actual)

    value_fields = list(MONTHLY_FIELDS.values())
    monthly = frame.groupby(["item_key", "month"], sort=False)[value_fields].sum()
    extras = frame.groupby("item_key", sort=False)[list(EXTRA_FIELDS)].sum()
    meta = frame.drop_duplicates(subset=["item_key"])[["item_key", "brand", "variant", "variant_id"]]

    items: Dict[str, Aggregate] = {}
    for row in meta.itertuples(index=False):
        items[row.item_key] = Aggregate(
            key=row.item_key,
            level="item",
            brand=row.brand,
            variant=row.variant,
            variant_id=row.variant_id or None,
        )

    for (key, month), sums in monthly.iterrows():
        agg = items[key]
        month_name = MONTH_NAMES[int(month) - 1]
        for attr, source in MONTHLY_FIELDS.items():
            getattr(agg, attr)[month_name] += float(sums[source])

    for key, sums in extras.iterrows():
        items[key].extras = {name: float(sums[name]) for name in EXTRA_FIELDS if sums[name]}

    item_list = [agg.finalize() for agg in items.values()]
    if drop_empty:
        item_list = [agg for agg in item_list if abs(agg.total_ty) > EMPTY_TOTAL_TOLERANCE]

    brands: Dict[str, Aggregate] = {}
    for agg in item_list:
        brand = brands.get(agg.brand)
        if brand is None:
            brand = brands[agg.brand] = Aggregate(key=agg.brand, level="brand", brand=agg.brand)
        brand.add_months(agg)
    for brand in brands.values():
        brand.finalize()

    return Rollup(
        items=item_list,
        brands=brands,
        last_actual_index=last_actual,
        total=build_grand_total(brands.values()),
    )


def build_grand_total(brands: Iterable[Aggregate]) -> Aggregate:
    total = Aggregate(key="total", level="total")
    for brand in brands or []:
        total.add_months(brand)
    return total.finalize()
