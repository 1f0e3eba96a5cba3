"""Rollup Stage: subtotals and grand totals.

Every rollup cell is recomputed from the raw member rows of its subtree, never
from children's aggregates, so ``average``, ``min``, ``max``, ``stdev`` and
``unique_count`` stay correct at every level.

Conventions:
- a subtotal is the trailing child of its group, keyed ``<group key>\\x1f__subtotal__``,
  at the group's own level
- the grand total is the last top-level node, at level 0
- a dimension without grouping fields gets no grand total; its implicit root
  already covers every row
- disabled subtotals/grand totals are neither added to the tree nor computed
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Sequence, Tuple

import pandas as pd

from pivotcore.aggregation import CompiledMeasures, DataMatrix, aggregate_intersections
from pivotcore.config import PivotOptions, PivotValueFieldConfig
from pivotcore.constants import (
    GRAND_TOTAL_COL_KEY,
    GRAND_TOTAL_LABEL,
    GRAND_TOTAL_ROW_KEY,
    SUBTOTAL_LABEL_PREFIX,
    SUBTOTAL_SUFFIX,
)
from pivotcore.grouping import GroupTree, HeaderNode

logger = logging.getLogger(__name__)


def subtotal_key(group_key: str) -> str:
    return group_key + SUBTOTAL_SUFFIX


def _with_subtotals(nodes: Sequence[HeaderNode], show_subtotals: bool) -> List[HeaderNode]:
    out: List[HeaderNode] = []
    for node in nodes:
        children = _with_subtotals(node.children, show_subtotals)
        if node.children and show_subtotals:
            children.append(
                HeaderNode(
                    key=subtotal_key(node.key),
                    label=SUBTOTAL_LABEL_PREFIX + node.label,
                    level=node.level,
                    field=node.field,
                    is_subtotal=True,
                    original_values=dict(node.original_values),
                )
            )
        out.append(replace(node, children=children, original_values=dict(node.original_values)))
    return out


def rollup_tree(groups: GroupTree, *, show_subtotals: bool, show_grand_total: bool) -> List[HeaderNode]:
    nodes = _with_subtotals(groups.nodes, show_subtotals)
    if show_grand_total and not groups.implicit:
        grand_key = GRAND_TOTAL_ROW_KEY if groups.axis == "rows" else GRAND_TOTAL_COL_KEY
        nodes.append(HeaderNode(key=grand_key, label=GRAND_TOTAL_LABEL, level=0, is_grand_total=True))
    return nodes


def rollup_key_series(groups: GroupTree, *, show_subtotals: bool, show_grand_total: bool) -> List[pd.Series]:
    """Per-row group keys for every rollup level of one axis, leaves excluded."""
    series: List[pd.Series] = []
    if show_subtotals:
        for depth in range(groups.depth - 1):
            series.append(groups.level_keys[depth] + SUBTOTAL_SUFFIX)
    if show_grand_total and not groups.implicit:
        grand_key = GRAND_TOTAL_ROW_KEY if groups.axis == "rows" else GRAND_TOTAL_COL_KEY
        series.append(pd.Series(grand_key, index=groups.level_keys.index, dtype=object))
    return series


def materialize_rollups(
    frame: pd.DataFrame,
    row_groups: GroupTree,
    col_groups: GroupTree,
    leaf_matrix: DataMatrix,
    value_configs: Sequence[PivotValueFieldConfig],
    measures: CompiledMeasures,
    options: PivotOptions,
) -> Tuple[List[HeaderNode], List[HeaderNode], DataMatrix]:
    row_tree = rollup_tree(
        row_groups,
        show_subtotals=options.show_row_subtotals,
        show_grand_total=options.show_row_grand_totals,
    )
    col_tree = rollup_tree(
        col_groups,
        show_subtotals=options.show_column_subtotals,
        show_grand_total=options.show_column_grand_totals,
    )

    row_levels = [row_groups.leaf_keys] + rollup_key_series(
        row_groups,
        show_subtotals=options.show_row_subtotals,
        show_grand_total=options.show_row_grand_totals,
    )
    col_levels = [col_groups.leaf_keys] + rollup_key_series(
        col_groups,
        show_subtotals=options.show_column_subtotals,
        show_grand_total=options.show_column_grand_totals,
    )

    matrix: DataMatrix = {row_key: dict(cells) for row_key, cells in leaf_matrix.items()}
    for ri, row_keys in enumerate(row_levels):
        for ci, col_keys in enumerate(col_levels):
            if ri == 0 and ci == 0:
                continue
            aggregate_intersections(frame, row_keys, col_keys, value_configs, measures, matrix=matrix)

    logger.debug(
        "rollups: %d row levels x %d column levels, %d cells",
        len(row_levels),
        len(col_levels),
        sum(len(v) for v in matrix.values()),
    )
    return row_tree, col_tree, matrix
