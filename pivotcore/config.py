from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union


class AggregationKind(str, Enum):
    SUM = "sum"
    COUNT = "count"
    AVERAGE = "average"
    MIN = "min"
    MAX = "max"
    UNIQUE_COUNT = "unique_count"
    STDEV = "stdev"
    COUNT_NON_EMPTY = "count_non_empty"


DEFAULT_AGGREGATION = AggregationKind.SUM


def parse_aggregation(value: Union[str, AggregationKind, None]) -> Optional[AggregationKind]:
    if isinstance(value, AggregationKind):
        return value
    if value is None:
        return None
    token = str(value).strip().lower().replace(" ", "_").replace("-", "_")
    try:
        return AggregationKind(token)
    except ValueError:
        return None


def measure_key(field_name: str, aggregation: AggregationKind) -> str:
    """Key of a value-field aggregate inside a PivotDataCell, e.g. ``"sales (sum)"``."""
    return f"{field_name} ({aggregation.value})"


@dataclass(frozen=True)
class PivotFieldConfig:
    field: str
    aggregation: Optional[AggregationKind] = None


@dataclass(frozen=True)
class PivotValueFieldConfig:
    field: str
    aggregation: AggregationKind = DEFAULT_AGGREGATION

    @property
    def key(self) -> str:
        return measure_key(self.field, self.aggregation)


@dataclass(frozen=True)
class PivotFilterConfig:
    field: str
    selected_values: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CalculatedMeasureConfig:
    id: str
    name: str
    formula: str


@dataclass(frozen=True)
class PivotConfig:
    rows: Tuple[PivotFieldConfig, ...] = ()
    columns: Tuple[PivotFieldConfig, ...] = ()
    values: Tuple[PivotValueFieldConfig, ...] = ()
    filters: Tuple[PivotFilterConfig, ...] = ()
    calculated_measures: Tuple[CalculatedMeasureConfig, ...] = ()

    @property
    def row_fields(self) -> List[str]:
        return [f.field for f in self.rows]

    @property
    def column_fields(self) -> List[str]:
        return [f.field for f in self.columns]

    def measure_keys(self) -> List[str]:
        """Value measure keys followed by calculated measure names, in display order."""
        return [v.key for v in self.values] + [m.name for m in self.calculated_measures]

    def is_empty(self) -> bool:
        return not (self.rows or self.columns or self.values or self.calculated_measures)

    def to_dict(self) -> Dict[str, Any]:
        raw = asdict(self)
        for item in raw["rows"] + raw["columns"]:
            item["aggregation"] = item["aggregation"].value if item["aggregation"] else None
        for item in raw["values"]:
            item["aggregation"] = item["aggregation"].value
        for item in raw["filters"]:
            item["selected_values"] = list(item["selected_values"])
        return raw


@dataclass(frozen=True)
class PivotOptions:
    show_row_grand_totals: bool = True
    show_column_grand_totals: bool = True
    show_row_subtotals: bool = True
    show_column_subtotals: bool = True
    default_row_subtotals_collapsed: bool = False
    default_column_subtotals_collapsed: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return asdict(self)


def _field_name(item: object) -> Optional[str]:
    if isinstance(item, str):
        name = item
    elif isinstance(item, dict):
        name = item.get("field")
    else:
        name = getattr(item, "field", None)
    if name is None:
        return None
    name = str(name)
    return name if name.strip() else None


def _as_field_configs(items: Optional[Iterable[object]]) -> Tuple[PivotFieldConfig, ...]:
    if not items:
        return ()
    out: List[PivotFieldConfig] = []
    for item in items:
        if isinstance(item, PivotFieldConfig):
            out.append(item)
            continue
        name = _field_name(item)
        if name is None:
            continue
        agg = parse_aggregation(item.get("aggregation")) if isinstance(item, dict) else None
        out.append(PivotFieldConfig(field=name, aggregation=agg))
    return tuple(out)


def _as_value_configs(items: Optional[Iterable[object]]) -> Tuple[PivotValueFieldConfig, ...]:
    if not items:
        return ()
    out: List[PivotValueFieldConfig] = []
    for item in items:
        if isinstance(item, PivotValueFieldConfig):
            out.append(item)
            continue
        name = _field_name(item)
        if name is None:
            continue
        raw_agg = item.get("aggregation") if isinstance(item, dict) else None
        out.append(PivotValueFieldConfig(field=name, aggregation=parse_aggregation(raw_agg) or DEFAULT_AGGREGATION))
    return tuple(out)


def _as_filter_configs(items: Optional[Iterable[object]]) -> Tuple[PivotFilterConfig, ...]:
    if not items:
        return ()
    out: List[PivotFilterConfig] = []
    for item in items:
        if isinstance(item, PivotFilterConfig):
            out.append(item)
            continue
        name = _field_name(item)
        if name is None or not isinstance(item, dict):
            continue
        selected = item.get("selected_values", item.get("selectedValues")) or []
        out.append(PivotFilterConfig(field=name, selected_values=tuple(str(x) for x in selected if x is not None)))
    return tuple(out)


def _as_calculated_measures(items: Optional[Iterable[object]]) -> Tuple[CalculatedMeasureConfig, ...]:
    if not items:
        return ()
    out: List[CalculatedMeasureConfig] = []
    for idx, item in enumerate(items):
        if isinstance(item, CalculatedMeasureConfig):
            out.append(item)
            continue
        if not isinstance(item, dict):
            continue
        name = str(item.get("name") or "").strip()
        if not name:
            continue
        out.append(
            CalculatedMeasureConfig(
                id=str(item.get("id") or f"calc_{idx}"),
                name=name,
                formula=str(item.get("formula") or ""),
            )
        )
    return tuple(out)


def normalize_config(raw: Union[dict, PivotConfig, None]) -> PivotConfig:
    if isinstance(raw, PivotConfig):
        return raw
    raw = raw or {}
    measures = raw.get("calculated_measures", raw.get("calculatedMeasures"))
    return PivotConfig(
        rows=_as_field_configs(raw.get("rows")),
        columns=_as_field_configs(raw.get("columns")),
        values=_as_value_configs(raw.get("values")),
        filters=_as_filter_configs(raw.get("filters")),
        calculated_measures=_as_calculated_measures(measures),
    )


_OPTION_ALIASES = {
    "show_row_grand_totals": "showRowGrandTotals",
    "show_column_grand_totals": "showColumnGrandTotals",
    "show_row_subtotals": "showRowSubtotals",
    "show_column_subtotals": "showColumnSubtotals",
    "default_row_subtotals_collapsed": "defaultRowSubtotalsCollapsed",
    "default_column_subtotals_collapsed": "defaultColumnSubtotalsCollapsed",
}


def normalize_options(raw: Union[dict, PivotOptions, None]) -> PivotOptions:
    if isinstance(raw, PivotOptions):
        return raw
    raw = raw or {}
    defaults = PivotOptions()
    values: Dict[str, bool] = {}
    for name, alias in _OPTION_ALIASES.items():
        value = raw.get(name, raw.get(alias))
        values[name] = getattr(defaults, name) if value is None else bool(value)
    return PivotOptions(**values)


@dataclass(frozen=True)
class PivotView:
    """One of several pivot configurations shown side by side over one dataset."""

    id: str
    name: str = ""
    config: PivotConfig = PivotConfig()
    options: PivotOptions = PivotOptions()


def normalize_view(raw: Union[dict, PivotView], *, index: int = 0) -> PivotView:
    if isinstance(raw, PivotView):
        return raw
    view_id = str(raw.get("id") or f"view_{index}")
    return PivotView(
        id=view_id,
        name=str(raw.get("name") or view_id),
        config=normalize_config(raw.get("config") or raw.get("pivot_config") or raw.get("pivotConfig")),
        options=normalize_options(raw.get("options") or raw.get("pivot_options") or raw.get("pivotOptions")),
    )
