from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


Scalar = Union[str, int, float]


class ReportFilterModel(BaseModel):
    id: str
    values: List[Scalar] = Field(default_factory=list)


class RecordsModel(BaseModel):
    records: List[Dict[str, Any]] = Field(default_factory=list)


class PivotRequestModel(RecordsModel):
    filters: List[ReportFilterModel] = Field(default_factory=list)
    rows: List[str] = Field(default_factory=list)
    columns: List[str] = Field(default_factory=list)
    measure: str = "case_equivalent_volume"


class GuidanceModel(BaseModel):
    id: Union[int, str]
    label: str
    sublabel: Optional[str] = None
    value: Union[str, Dict[str, str], None] = None
    calculation: Dict[str, Any] = Field(default_factory=dict)
    period: str = "FY"
    displayType: str = "both"
    availability: str = "both"


class SummaryRequestModel(RecordsModel):
    guidance: List[GuidanceModel] = Field(default_factory=list)
    row_guidance: List[GuidanceModel] = Field(default_factory=list)
    parent_field: str = "brand"
    drop_empty: bool = False


class EvaluateRequestModel(BaseModel):
    record: Dict[str, Any] = Field(default_factory=dict)
    guidance: GuidanceModel
    monthly: bool = False
    last_actual_index: int = -1


class DimensionModel(BaseModel):
    id: str
    label: str
    kind: str
    aggregation: Optional[str] = None
    format: Optional[str] = None


class DimensionsResponse(BaseModel):
    dimensions: List[DimensionModel]
    filterable: List[str]
