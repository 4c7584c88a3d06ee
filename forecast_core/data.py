from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Mapping, Optional

import pandas as pd


MONTH_NAMES: tuple[str, ...] = ("JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC")

PRIMARY_VOLUME_FIELD = "case_equivalent_volume"
PROJECTED_VOLUME_FIELD = "projected_case_equivalent_volume"
CONTROL_MARKET_AREA = "Control"

# Record-level TY volume breakdown; every other field uses "<field>_months".
VOLUME_MONTHS_FIELD = "months"
MONTHLY_SUFFIX = "_months"

PERIODS = ("FY", "YTD", "TG")


def is_missing(value: object) -> bool:
    if value is None or value is pd.NA:
        return True
    return isinstance(value, float) and math.isnan(value)


def stringify(value: object) -> Optional[str]:
    """String form used for filter matching and header keys (``2024.0`` -> ``"2024"``)."""
    if is_missing(value):
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def to_number(value: object) -> float:
    """Coerce a raw field to a finite float; anything unusable becomes 0."""
    if is_missing(value):
        return 0.0
    if isinstance(value, (int, float)):
        out = float(value)
    else:
        try:
            out = float(str(value).strip())
        except ValueError:
            return 0.0
    if math.isnan(out) or math.isinf(out):
        return 0.0
    return out


def is_truthy(value: object) -> bool:
    if is_missing(value):
        return False
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes", "y"}
    return bool(value)


def month_number(value: object) -> Optional[int]:
    """1-12 month number of a record, or None when it is absent or out of range."""
    num = to_number(value)
    if not num.is_integer():
        return None
    month = int(num)
    return month if 1 <= month <= 12 else None


def is_actual(record: Mapping[str, object]) -> bool:
    data_type = record.get("data_type")
    return isinstance(data_type, str) and "actual" in data_type


def last_actual_month_index(records: Iterable[Mapping[str, object]]) -> int:
    """0-based index of the latest month tagged as actual data, -1 when there is none."""
    last = -1
    for record in records or []:
        if not is_actual(record):
            continue
        month = month_number(record.get("month"))
        if month is not None:
            last = max(last, month - 1)
    return last


def _month_entry_value(entry: object) -> float:
    if isinstance(entry, Mapping):
        return to_number(entry.get("value"))
    return to_number(entry)


def read_months(raw: object) -> Optional[Dict[str, float]]:
    """Normalize a ``{"JAN": 10}`` / ``{"JAN": {"value": 10}}`` breakdown to all 12 months."""
    if not isinstance(raw, Mapping):
        return None
    return {m: _month_entry_value(raw.get(m)) for m in MONTH_NAMES}


def monthly_breakdown(record: Mapping[str, object], field: str) -> Optional[Dict[str, float]]:
    if not field:
        return None
    return read_months(record.get(f"{field}{MONTHLY_SUFFIX}"))


def empty_months() -> Dict[str, float]:
    return {m: 0.0 for m in MONTH_NAMES}


def sum_months(months: Optional[Mapping[str, float]], subset: Iterable[str] = MONTH_NAMES) -> float:
    if not months:
        return 0.0
    return float(sum(months.get(m, 0.0) or 0.0 for m in subset))


def period_months(period: Optional[str], last_actual_index: int = -1) -> List[str]:
    """Months covered by a guidance period.

    FY is the full year. YTD runs through the first non-actual (projected) month,
    TG ("to go") covers the months after it.
    """
    projected_index = last_actual_index + 1
    if period == "YTD":
        return list(MONTH_NAMES[: projected_index + 1])
    if period == "TG":
        return list(MONTH_NAMES[projected_index + 1 :])
    return list(MONTH_NAMES)


def records_frame(records: Iterable[Mapping[str, object]]) -> pd.DataFrame:
    rows = [dict(r) for r in records or [] if isinstance(r, Mapping)]
    if not rows:
        return pd.DataFrame()
    return pd.DataFrame.from_records(rows)


def column_as_series(df: pd.DataFrame, col: Optional[str]) -> pd.Series:
    if not col or col not in df.columns:
        return pd.Series([None] * len(df), index=df.index, dtype=object)
    val = df[col]
    if isinstance(val, pd.DataFrame):
        return val.iloc[:, 0]
    return val


def numeric_series(df: pd.DataFrame, col: Optional[str]) -> pd.Series:
    return column_as_series(df, col).map(to_number).astype(float)


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def round3(value: object) -> float:
    """Guidance rounding: 3 decimals, half up, missing/non-finite -> 0."""
    num = to_number(value)
    return round_half_up(num, 3) or 0.0
