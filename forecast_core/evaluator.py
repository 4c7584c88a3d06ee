"""Guidance evaluation.

Three entry points share the same calculation kinds (direct, difference,
percentage) but resolve fields differently:

- ``evaluate`` / ``evaluate_monthly`` read a single raw record, where a few
  fields are derivable (total volume from the month breakdown, GSV rates,
  last-cycle GSV). ``evaluate_multi`` gives the parts of a multi-calc guidance.
- ``evaluate_aggregate`` reads a rolled-up ``Aggregate``; only its summed totals
  and month maps are visible, so unknown fields resolve to 0.

Division by zero always yields 0. Aggregate-level values are rounded to 3
decimals; single-record values are not.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from forecast_core.data import (
    MONTH_NAMES,
    PRIMARY_VOLUME_FIELD,
    VOLUME_MONTHS_FIELD,
    is_missing,
    monthly_breakdown,
    period_months,
    read_months,
    round3,
    sum_months,
    to_number,
)
from forecast_core.guidance import (
    Difference,
    Direct,
    GuidanceDefinition,
    MultiCalc,
    Percentage,
    SubCalculation,
    unique_by_id,
)
from forecast_core.rollup import EXTRA_FIELDS, Aggregate, Rollup


logger = logging.getLogger(__name__)

GSV_RATE_FIELD = "gsv_rate"
PY_GSV_RATE_FIELD = "py_gsv_rate"
RATE_FIELDS = frozenset({GSV_RATE_FIELD, PY_GSV_RATE_FIELD})
# Fields that only exist as full-year values, whatever the guidance period.
FULL_YEAR_FIELDS = RATE_FIELDS | frozenset(EXTRA_FIELDS)
LC_VOLUME_FIELD = "prev_published_case_equivalent_volume"
LC_GSV_FIELD = "lc_gross_sales_value"


@dataclass
class CalculatedGuidanceValue:
    total: float = 0.0
    monthly: Optional[Dict[str, float]] = None
    multi: Optional[Dict[str, float]] = None


def gsv_rate(value: float, volume: float) -> float:
    return value / volume if volume else 0.0


def safe_ratio(numerator: float, denominator: float) -> float:
    return 0.0 if denominator == 0 else numerator / denominator


def _combine(expression, resolve: Callable[[str], float]) -> Optional[float]:
    """Apply a direct/difference/percentage expression over a field resolver."""
    if isinstance(expression, Direct):
        return resolve(expression.field)
    if isinstance(expression, Difference):
        return resolve(expression.minuend) - resolve(expression.subtrahend)
    if isinstance(expression, Percentage):
        numerator = resolve(expression.minuend) - resolve(expression.subtrahend)
        return safe_ratio(numerator, resolve(expression.denominator))
    return None


def _sub_calculation(sub: SubCalculation, resolve: Callable[[str], float]) -> float:
    cy = resolve(sub.cy_field)
    py = resolve(sub.py_field)
    if sub.calculation == "percentage":
        return safe_ratio(cy - py, py)
    if sub.calculation == "difference":
        return cy - py
    return cy


# ---------------- Single record ----------------
def _record_volume_months(record: Mapping[str, object]) -> Optional[Dict[str, float]]:
    return monthly_breakdown(record, PRIMARY_VOLUME_FIELD) or read_months(record.get(VOLUME_MONTHS_FIELD))


def _record_last_actual(record: Mapping[str, object], default: int) -> int:
    raw = record.get(VOLUME_MONTHS_FIELD)
    last = -1
    if isinstance(raw, Mapping):
        for idx, m in enumerate(MONTH_NAMES):
            entry = raw.get(m)
            if isinstance(entry, Mapping) and entry.get("isActual"):
                last = idx
    return last if last >= 0 else default


def record_field_value(record: Mapping[str, object], field: str) -> float:
    """Full-year value of a field on a raw record."""
    if not field:
        return 0.0
    if field == PRIMARY_VOLUME_FIELD:
        raw = record.get(field)
        if not is_missing(raw):
            return to_number(raw)
        return sum_months(_record_volume_months(record))
    if field == GSV_RATE_FIELD:
        explicit = to_number(record.get(field))
        if explicit:
            return explicit
        return gsv_rate(to_number(record.get("gross_sales_value")), record_field_value(record, PRIMARY_VOLUME_FIELD))
    if field == PY_GSV_RATE_FIELD:
        explicit = to_number(record.get(field))
        if explicit:
            return explicit
        return gsv_rate(to_number(record.get("py_gross_sales_value")), to_number(record.get("py_case_equivalent_volume")))
    if field == LC_GSV_FIELD and is_missing(record.get(field)):
        return to_number(record.get(LC_VOLUME_FIELD)) * record_field_value(record, GSV_RATE_FIELD)
    return to_number(record.get(field))


def record_month_value(record: Mapping[str, object], field: str, month: str) -> float:
    """Value of a field for one month of a raw record, 0 when it cannot be derived."""
    if not field:
        return 0.0
    breakdown = monthly_breakdown(record, field)
    if breakdown is not None:
        return breakdown[month]
    if field == PRIMARY_VOLUME_FIELD:
        months = _record_volume_months(record)
        return months[month] if months else 0.0
    if field == "gross_sales_value":
        return record_month_value(record, PRIMARY_VOLUME_FIELD, month) * record_field_value(record, GSV_RATE_FIELD)
    if field == "py_gross_sales_value":
        return record_month_value(record, "py_case_equivalent_volume", month) * record_field_value(record, PY_GSV_RATE_FIELD)
    if field == GSV_RATE_FIELD:
        return gsv_rate(
            record_month_value(record, "gross_sales_value", month),
            record_month_value(record, PRIMARY_VOLUME_FIELD, month),
        )
    if field == PY_GSV_RATE_FIELD:
        return gsv_rate(
            record_month_value(record, "py_gross_sales_value", month),
            record_month_value(record, "py_case_equivalent_volume", month),
        )
    if field == LC_GSV_FIELD:
        return record_month_value(record, LC_VOLUME_FIELD, month) * record_field_value(record, GSV_RATE_FIELD)
    return 0.0


def _has_month_source(record: Mapping[str, object], field: str) -> bool:
    if monthly_breakdown(record, field) is not None:
        return True
    if field in ("gross_sales_value", GSV_RATE_FIELD):
        return _has_month_source(record, PRIMARY_VOLUME_FIELD)
    if field in ("py_gross_sales_value", PY_GSV_RATE_FIELD):
        return monthly_breakdown(record, "py_case_equivalent_volume") is not None
    if field == LC_GSV_FIELD:
        return monthly_breakdown(record, LC_VOLUME_FIELD) is not None
    return field == PRIMARY_VOLUME_FIELD and _record_volume_months(record) is not None


def _record_resolver(
    record: Mapping[str, object], guidance: GuidanceDefinition, last_actual_index: int
) -> Callable[[str], float]:
    subset = period_months(guidance.period, _record_last_actual(record, last_actual_index))

    def resolve(f: str) -> float:
        if guidance.period == "FY" or f in FULL_YEAR_FIELDS:
            return record_field_value(record, f)
        return sum(record_month_value(record, f, m) for m in subset)

    return resolve


def evaluate(record: Mapping[str, object], guidance: GuidanceDefinition, *, last_actual_index: int = -1) -> float:
    """Total guidance value for one raw record (unrounded)."""
    value = _combine(guidance.expression, _record_resolver(record, guidance, last_actual_index))
    if value is None:
        logger.debug("Guidance %s (%s) has no record total", guidance.id, guidance.kind)
        return 0.0
    return value


def evaluate_multi(
    record: Mapping[str, object], guidance: GuidanceDefinition, *, last_actual_index: int = -1
) -> Optional[Dict[str, float]]:
    """Sub-calculation values (e.g. TRENDS 3M/6M/12M) for one raw record; None unless multi-calc."""
    expression = guidance.expression
    if not isinstance(expression, MultiCalc):
        return None
    resolve = _record_resolver(record, guidance, last_actual_index)
    return {sub.id: _sub_calculation(sub, resolve) for sub in expression.parts}


def evaluate_monthly(
    record: Mapping[str, object], guidance: GuidanceDefinition, *, last_actual_index: int = -1
) -> Optional[Dict[str, float]]:
    """Per-month guidance values for one raw record, or None when the kind has no monthly form."""
    expression = guidance.expression
    if isinstance(expression, Direct):
        if _has_month_source(record, expression.field):
            result = {m: record_month_value(record, expression.field, m) for m in MONTH_NAMES}
        else:
            share = record_field_value(record, expression.field) / 12
            result = {m: share for m in MONTH_NAMES}
    elif isinstance(expression, (Difference, Percentage)):
        result = {m: _combine(expression, lambda f, m=m: record_month_value(record, f, m)) for m in MONTH_NAMES}
    else:
        return None

    if guidance.period != "FY":
        subset = set(period_months(guidance.period, _record_last_actual(record, last_actual_index)))
        result = {m: (v if m in subset else 0.0) for m, v in result.items()}
    return result


# ---------------- Aggregates ----------------
_AGGREGATE_TOTALS = {
    "case_equivalent_volume": "total_ty",
    "py_case_equivalent_volume": "total_py",
    "gross_sales_value": "total_gsv_ty",
    "py_gross_sales_value": "total_gsv_py",
    "prev_published_case_equivalent_volume": "total_lc",
}

_AGGREGATE_MONTHS = {
    "case_equivalent_volume": "months_ty",
    "py_case_equivalent_volume": "months_py",
    "gross_sales_value": "months_gsv_ty",
    "py_gross_sales_value": "months_gsv_py",
    "prev_published_case_equivalent_volume": "months_lc",
}


def aggregate_field_total(agg: Aggregate, field: str) -> float:
    if field in _AGGREGATE_TOTALS:
        return getattr(agg, _AGGREGATE_TOTALS[field])
    if field == GSV_RATE_FIELD:
        return agg.gsv_rate
    if field == PY_GSV_RATE_FIELD:
        return agg.py_gsv_rate
    if field == "lc_gross_sales_value":
        return agg.total_lc * agg.gsv_rate
    return float(agg.extras.get(field, 0.0) or 0.0)


def aggregate_month_value(agg: Aggregate, field: str, month: str) -> float:
    if field in _AGGREGATE_MONTHS:
        return getattr(agg, _AGGREGATE_MONTHS[field]).get(month, 0.0)
    if field == GSV_RATE_FIELD:
        return gsv_rate(agg.months_gsv_ty.get(month, 0.0), agg.months_ty.get(month, 0.0))
    if field == PY_GSV_RATE_FIELD:
        return gsv_rate(agg.months_gsv_py.get(month, 0.0), agg.months_py.get(month, 0.0))
    if field == "lc_gross_sales_value":
        return agg.months_lc.get(month, 0.0) * agg.gsv_rate
    return 0.0


def aggregate_period_value(agg: Aggregate, field: str, months: Iterable[str]) -> float:
    if field in _AGGREGATE_MONTHS or field == "lc_gross_sales_value":
        return sum(aggregate_month_value(agg, field, m) for m in months)
    return aggregate_field_total(agg, field)


def evaluate_aggregate(
    agg: Aggregate,
    guidance: GuidanceDefinition,
    include_monthly: bool = False,
    *,
    last_actual_index: int = -1,
) -> CalculatedGuidanceValue:
    """Guidance total (and optionally the 12-month breakdown) for one rollup level."""
    subset = period_months(guidance.period, last_actual_index)

    def resolve(f: str) -> float:
        if guidance.period == "FY":
            return aggregate_field_total(agg, f)
        return aggregate_period_value(agg, f, subset)

    expression = guidance.expression
    result = CalculatedGuidanceValue()
    if isinstance(expression, MultiCalc):
        result.multi = {sub.id: round3(_sub_calculation(sub, resolve)) for sub in expression.parts}
    else:
        result.total = round3(_combine(expression, resolve))

    if include_monthly:
        in_period = set(subset)
        monthly: Dict[str, float] = {}
        for m in MONTH_NAMES:
            value = _combine(expression, lambda f, m=m: aggregate_month_value(agg, f, m))
            monthly[m] = round3(value) if m in in_period else 0.0
        result.monthly = monthly
    return result


def evaluate_rollup(
    rollup: Rollup,
    guidance: Iterable[GuidanceDefinition],
    row_guidance: Iterable[GuidanceDefinition] = (),
) -> Dict[str, Dict[str, CalculatedGuidanceValue]]:
    """Evaluate every guidance definition for each item, each brand and the grand total.

    Keys are ``variant:<item key>``, ``brand:<brand>`` and ``total``. Monthly
    breakdowns are only produced for guidance shown as rows.
    """
    row_guidance = list(row_guidance or [])
    definitions: List[GuidanceDefinition] = unique_by_id(guidance, row_guidance)
    monthly_ids = {g.id for g in row_guidance}

    def _evaluate_all(agg: Aggregate) -> Dict[str, CalculatedGuidanceValue]:
        return {
            g.id: evaluate_aggregate(agg, g, g.id in monthly_ids, last_actual_index=rollup.last_actual_index)
            for g in definitions
        }

    results: Dict[str, Dict[str, CalculatedGuidanceValue]] = {}
    for item in rollup.items:
        results[f"variant:{item.key}"] = _evaluate_all(item)
    for brand in rollup.brands.values():
        results[f"brand:{brand.key}"] = _evaluate_all(brand)
    results["total"] = _evaluate_all(rollup.total)
    return results
