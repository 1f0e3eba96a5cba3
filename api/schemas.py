from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from pivotcore.config import AggregationKind

Record = Dict[str, Any]


class PivotFieldModel(BaseModel):
    field: str
    aggregation: Optional[AggregationKind] = None


class PivotValueFieldModel(BaseModel):
    field: str
    aggregation: AggregationKind = AggregationKind.SUM


class PivotFilterModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    field: str
    selected_values: List[str] = Field(default_factory=list, alias="selectedValues")


class CalculatedMeasureModel(BaseModel):
    id: str = ""
    name: str = ""
    formula: str = ""


class PivotConfigModel(BaseModel):
    rows: List[PivotFieldModel] = Field(default_factory=list)
    columns: List[PivotFieldModel] = Field(default_factory=list)
    values: List[PivotValueFieldModel] = Field(default_factory=list)
    filters: List[PivotFilterModel] = Field(default_factory=list)
    calculated_measures: List[CalculatedMeasureModel] = Field(default_factory=list)


class PivotOptionsModel(BaseModel):
    show_row_grand_totals: bool = True
    show_column_grand_totals: bool = True
    show_row_subtotals: bool = True
    show_column_subtotals: bool = True
    default_row_subtotals_collapsed: bool = False
    default_column_subtotals_collapsed: bool = False


class PivotRequest(BaseModel):
    rows: List[Record] = Field(default_factory=list)
    config: PivotConfigModel = Field(default_factory=PivotConfigModel)
    options: PivotOptionsModel = Field(default_factory=PivotOptionsModel)
    # keys collapsed in the renderer; None means the options' defaults
    collapsed: Optional[List[str]] = None


class ChartRequest(PivotRequest):
    chart_type: Literal["bar", "line", "area"] = "bar"
    include_totals: bool = False
    title: Optional[str] = None


class ValidateRequest(BaseModel):
    rows: Optional[List[Record]] = None
    headers: Optional[List[str]] = None
    config: PivotConfigModel = Field(default_factory=PivotConfigModel)


class PivotViewModel(BaseModel):
    id: str = ""
    name: str = ""
    config: PivotConfigModel = Field(default_factory=PivotConfigModel)
    options: PivotOptionsModel = Field(default_factory=PivotOptionsModel)


class ViewsRequest(BaseModel):
    rows: List[Record] = Field(default_factory=list)
    views: List[PivotViewModel] = Field(default_factory=list)


class FieldsRequest(BaseModel):
    rows: List[Record] = Field(default_factory=list)
    max_values: int = 500
