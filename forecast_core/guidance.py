"""Guidance (derived metric) definitions.

A guidance definition arrives from the settings catalog as a dict whose ``value``
is either a field name (direct), ``{"expression": "a - b"}`` (difference) or
``{"numerator": "a - b", "denominator": "c"}`` (percentage). The expression is
parsed once here into a small tagged union so evaluation never re-splits
strings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from forecast_core.data import PERIODS


logger = logging.getLogger(__name__)

EXPRESSION_SEPARATOR = " - "
SUB_CALCULATION_KINDS = ("percentage", "difference", "direct")


@dataclass(frozen=True)
class Direct:
    field: str
    kind: str = "direct"


@dataclass(frozen=True)
class Difference:
    minuend: str
    subtrahend: str
    kind: str = "difference"


@dataclass(frozen=True)
class Percentage:
    minuend: str
    subtrahend: str
    denominator: str
    kind: str = "percentage"


@dataclass(frozen=True)
class SubCalculation:
    id: str
    cy_field: str
    py_field: str
    calculation: str = "percentage"


@dataclass(frozen=True)
class MultiCalc:
    parts: Tuple[SubCalculation, ...] = ()
    kind: str = "multi_calc"


@dataclass(frozen=True)
class Unsupported:
    kind: str
    reason: str = ""


GuidanceExpression = Union[Direct, Difference, Percentage, MultiCalc, Unsupported]


@dataclass(frozen=True)
class GuidanceDefinition:
    id: str
    label: str
    expression: GuidanceExpression
    sublabel: Optional[str] = None
    period: str = "FY"
    value_format: str = "number"
    display_type: str = "both"
    availability: str = "both"

    @property
    def kind(self) -> str:
        return self.expression.kind


def split_difference(text: object) -> Optional[Tuple[str, str]]:
    """``"gross_sales_value - py_gross_sales_value"`` -> the two field names."""
    if not isinstance(text, str):
        return None
    parts = [p.strip() for p in text.split(EXPRESSION_SEPARATOR)]
    if len(parts) != 2 or not all(parts):
        return None
    return parts[0], parts[1]


def _parse_sub_calculations(raw: object) -> Tuple[SubCalculation, ...]:
    out: List[SubCalculation] = []
    for entry in raw or []:
        if not isinstance(entry, Mapping):
            continue
        cy_field = entry.get("cyField") or entry.get("cy_field")
        py_field = entry.get("pyField") or entry.get("py_field")
        calculation = entry.get("calculationType") or entry.get("calculation") or "percentage"
        if not cy_field or not py_field or calculation not in SUB_CALCULATION_KINDS:
            logger.warning("Skipping malformed sub-calculation %r", entry)
            continue
        out.append(
            SubCalculation(
                id=str(entry.get("id") or cy_field),
                cy_field=str(cy_field),
                py_field=str(py_field),
                calculation=str(calculation),
            )
        )
    return tuple(out)


def parse_expression(value: Any, calculation: Optional[Mapping[str, Any]] = None) -> GuidanceExpression:
    calculation = calculation or {}
    calc_type = calculation.get("type")

    if isinstance(value, str) and value.strip():
        return Direct(field=value.strip())

    if calc_type == "multi_calc":
        parts = _parse_sub_calculations(calculation.get("subCalculations") or calculation.get("sub_calculations"))
        if not parts:
            return Unsupported(kind="multi_calc", reason="no valid sub-calculations")
        return MultiCalc(parts=parts)

    if not isinstance(value, Mapping):
        return Unsupported(kind=str(calc_type or "unknown"), reason="missing value expression")

    if calc_type == "difference":
        fields = split_difference(value.get("expression"))
        if fields is None:
            return Unsupported(kind="difference", reason=f"malformed expression {value.get('expression')!r}")
        return Difference(*fields)

    if calc_type == "percentage":
        fields = split_difference(value.get("numerator"))
        denominator = value.get("denominator")
        if fields is None or not isinstance(denominator, str) or not denominator.strip():
            return Unsupported(kind="percentage", reason="malformed numerator/denominator")
        return Percentage(fields[0], fields[1], denominator.strip())

    return Unsupported(kind=str(calc_type or "unknown"), reason="unrecognized calculation type")


def parse_guidance(raw: Mapping[str, Any]) -> GuidanceDefinition:
    calculation = raw.get("calculation") or {}
    if not isinstance(calculation, Mapping):
        calculation = {"type": calculation}
    expression = parse_expression(raw.get("value"), calculation)
    if isinstance(expression, Unsupported):
        logger.warning("Guidance %r is not computable: %s", raw.get("id"), expression.reason)

    period = str(raw.get("period") or "FY").upper()
    if period not in PERIODS:
        logger.warning("Guidance %r has unknown period %r; using FY", raw.get("id"), period)
        period = "FY"

    return GuidanceDefinition(
        id=str(raw.get("id")),
        label=str(raw.get("label") or raw.get("id")),
        sublabel=raw.get("sublabel"),
        expression=expression,
        period=period,
        value_format=str(calculation.get("format") or "number"),
        display_type=str(raw.get("displayType") or raw.get("display_type") or "both"),
        availability=str(raw.get("availability") or "both"),
    )


def load_guidance_catalog(raw: Iterable[Mapping[str, Any]]) -> List[GuidanceDefinition]:
    return [parse_guidance(entry) for entry in raw or [] if isinstance(entry, Mapping)]


def unique_by_id(*groups: Iterable[GuidanceDefinition]) -> List[GuidanceDefinition]:
    """Merge guidance lists keeping the last definition seen for each id, in first-seen order."""
    merged: dict[str, GuidanceDefinition] = {}
    for group in groups:
        for g in group or []:
            merged[g.id] = g
    return list(merged.values())


DEFAULT_GUIDANCE: List[dict] = [
    {
        "id": 1,
        "label": "TRENDS",
        "sublabel": "3M / 6M / 12M",
        "value": None,
        "calculation": {
            "type": "multi_calc",
            "format": "percent",
            "subCalculations": [
                {"id": "3M", "cyField": "cy_3m_case_equivalent_volume", "pyField": "py_3m_case_equivalent_volume", "calculationType": "percentage"},
                {"id": "6M", "cyField": "cy_6m_case_equivalent_volume", "pyField": "py_6m_case_equivalent_volume", "calculationType": "percentage"},
                {"id": "12M", "cyField": "cy_12m_case_equivalent_volume", "pyField": "py_12m_case_equivalent_volume", "calculationType": "percentage"},
            ],
        },
        "displayType": "column",
        "availability": "both",
    },
    {
        "id": 2,
        "label": "VOL LY",
        "sublabel": "FY (9L)",
        "value": "py_case_equivalent_volume",
        "calculation": {"type": "direct", "format": "number"},
        "displayType": "both",
        "availability": "both",
    },
    {
        "id": 3,
        "label": "VOL vs LY",
        "sublabel": "FY (9L)",
        "value": {"expression": "case_equivalent_volume - py_case_equivalent_volume"},
        "calculation": {"type": "difference", "format": "number"},
        "displayType": "both",
        "availability": "both",
    },
    {
        "id": 4,
        "label": "VOL % vs LY",
        "sublabel": "FY",
        "value": {"numerator": "case_equivalent_volume - py_case_equivalent_volume", "denominator": "py_case_equivalent_volume"},
        "calculation": {"type": "percentage", "format": "percent"},
        "displayType": "both",
        "availability": "both",
    },
    {
        "id": 5,
        "label": "GSV vs LY",
        "sublabel": "FY ($)",
        "value": {"expression": "gross_sales_value - py_gross_sales_value"},
        "calculation": {"type": "difference", "format": "number"},
        "displayType": "both",
        "availability": "summary",
    },
    {
        "id": 6,
        "label": "GSV RATE vs LY",
        "sublabel": "FY ($/9L)",
        "value": {"expression": "gsv_rate - py_gsv_rate"},
        "calculation": {"type": "difference", "format": "number"},
        "displayType": "column",
        "availability": "summary",
    },
    {
        "id": 9,
        "label": "VOL LC",
        "sublabel": "FY (9L)",
        "value": "prev_published_case_equivalent_volume",
        "calculation": {"type": "direct", "format": "number"},
        "displayType": "both",
        "availability": "both",
    },
]


def default_guidance_catalog() -> List[GuidanceDefinition]:
    return load_guidance_catalog(DEFAULT_GUIDANCE)
