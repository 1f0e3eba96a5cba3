from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, Optional, Sequence, Tuple, Union

import pandas as pd

from pivotcore.config import AggregationKind, CalculatedMeasureConfig, PivotValueFieldConfig
from pivotcore.formulas import CompiledFormula, apply_calculated_measures
from pivotcore.grouping import GroupTree
from pivotcore.values import is_blank, is_missing, to_number, to_text

logger = logging.getLogger(__name__)

Number = Union[int, float]
PivotDataCell = Dict[str, Optional[Number]]
DataMatrix = Dict[str, Dict[str, PivotDataCell]]
CompiledMeasures = Sequence[Tuple[CalculatedMeasureConfig, CompiledFormula]]


def _numeric(values: pd.Series) -> pd.Series:
    return pd.to_numeric(values.map(to_number), errors="coerce").dropna()


def _sum(values: pd.Series) -> Optional[float]:
    nums = _numeric(values)
    return float(nums.sum()) if not nums.empty else None


def _average(values: pd.Series) -> Optional[float]:
    nums = _numeric(values)
    return float(nums.mean()) if not nums.empty else None


def _min(values: pd.Series) -> Optional[float]:
    nums = _numeric(values)
    return float(nums.min()) if not nums.empty else None


def _max(values: pd.Series) -> Optional[float]:
    nums = _numeric(values)
    return float(nums.max()) if not nums.empty else None


def _stdev(values: pd.Series) -> Optional[float]:
    # sample standard deviation; undefined below two observations
    nums = _numeric(values)
    if len(nums) < 2:
        return None
    return float(nums.std(ddof=1))


def _count(values: pd.Series) -> int:
    return int(len(values))


def _count_non_empty(values: pd.Series) -> int:
    return int((~values.map(is_blank).astype(bool)).sum())


def _unique_count(values: pd.Series) -> int:
    present = values[~values.map(is_missing).astype(bool)]
    return int(present.map(to_text).nunique())


AGGREGATORS: Dict[AggregationKind, Callable[[pd.Series], Optional[Number]]] = {
    AggregationKind.SUM: _sum,
    AggregationKind.COUNT: _count,
    AggregationKind.AVERAGE: _average,
    AggregationKind.MIN: _min,
    AggregationKind.MAX: _max,
    AggregationKind.UNIQUE_COUNT: _unique_count,
    AggregationKind.STDEV: _stdev,
    AggregationKind.COUNT_NON_EMPTY: _count_non_empty,
}


def aggregate(kind: AggregationKind, values: Iterable[Any]) -> Optional[Number]:
    """Reduce raw values with one aggregation function.

    Numeric functions skip values that are not finite numbers and return None
    when nothing numeric remains. ``count`` counts every value.
    """
    series = values if isinstance(values, pd.Series) else pd.Series(list(values), dtype=object)
    return AGGREGATORS[kind](series)


def _field_values(members: pd.DataFrame, field: str) -> pd.Series:
    if field in members.columns:
        return members[field]
    return pd.Series([None] * len(members), index=members.index, dtype=object)


def aggregate_values(members: pd.DataFrame, value_configs: Sequence[PivotValueFieldConfig]) -> PivotDataCell:
    cell: PivotDataCell = {}
    for vc in value_configs:
        cell[vc.key] = aggregate(vc.aggregation, _field_values(members, vc.field))
    return cell


def aggregate_cell(
    members: pd.DataFrame,
    value_configs: Sequence[PivotValueFieldConfig],
    measures: CompiledMeasures = (),
) -> PivotDataCell:
    """Value aggregates first, then calculated measures over those aggregates."""
    cell = aggregate_values(members, value_configs)
    if measures:
        apply_calculated_measures(cell, measures, value_configs)
    return cell


def aggregate_leaf(
    member_ids: Iterable[Any],
    frame: pd.DataFrame,
    value_configs: Sequence[PivotValueFieldConfig],
    measures: CompiledMeasures = (),
) -> Optional[PivotDataCell]:
    """Aggregate one (row-leaf x column-leaf) member set; None when it is empty."""
    ids = list(member_ids)
    if not ids:
        return None
    return aggregate_cell(frame.loc[ids], value_configs, measures)


def aggregate_intersections(
    frame: pd.DataFrame,
    row_keys: pd.Series,
    col_keys: pd.Series,
    value_configs: Sequence[PivotValueFieldConfig],
    measures: CompiledMeasures = (),
    matrix: Optional[DataMatrix] = None,
) -> DataMatrix:
    """Fill ``matrix[row_key][col_key]`` for every non-empty (row key, col key) pair.

    ``row_keys``/``col_keys`` give, for each row of ``frame``, the key of the
    group it belongs to on each axis. Pairs with no member rows never appear.
    """
    matrix = {} if matrix is None else matrix
    if len(frame.index) == 0:
        return matrix
    grouped = frame.groupby([row_keys.rename("__row_key__"), col_keys.rename("__col_key__")], sort=False)
    for (row_key, col_key), members in grouped:
        matrix.setdefault(row_key, {})[col_key] = aggregate_cell(members, value_configs, measures)
    return matrix


def aggregate_leaves(
    frame: pd.DataFrame,
    row_groups: GroupTree,
    col_groups: GroupTree,
    value_configs: Sequence[PivotValueFieldConfig],
    measures: CompiledMeasures = (),
) -> DataMatrix:
    matrix = aggregate_intersections(frame, row_groups.leaf_keys, col_groups.leaf_keys, value_configs, measures)
    logger.debug("leaf matrix: %d row leaves, %d cells", len(matrix), sum(len(v) for v in matrix.values()))
    return matrix