from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

from forecast_core.evaluator import evaluate_rollup
from forecast_core.guidance import GuidanceDefinition
from forecast_core.rollup import build_rollup


def compute_summary(
    records: Iterable[Mapping[str, object]],
    guidance: Sequence[GuidanceDefinition],
    row_guidance: Optional[Sequence[GuidanceDefinition]] = None,
    *,
    parent_field: str = "brand",
    drop_empty: bool = False,
) -> Dict[str, Any]:
    rollup = build_rollup(records, parent_field=parent_field, drop_empty=drop_empty)
    calculated = evaluate_rollup(rollup, guidance, row_guidance or [])

    return {
        "last_actual_index": rollup.last_actual_index,
        "items": [asdict(agg) for agg in rollup.items],
        "brands": [asdict(agg) for agg in rollup.brands.values()],
        "total": asdict(rollup.total),
        "guidance": {
            key: {gid: asdict(value) for gid, value in values.items()}
            for key, values in calculated.items()
        },
    }
