"""Pipeline entry points.

``compute_pivot`` is a pure function of ``(rows, config, options)``: it keeps
no state between calls and every recompute builds a new PivotResult.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Union

import pandas as pd

from pivotcore.aggregation import aggregate_leaves
from pivotcore.assembly import PivotResult, assemble
from pivotcore.config import PivotConfig, PivotOptions, PivotView, normalize_config, normalize_options, normalize_view
from pivotcore.data import RowsLike, rows_to_frame
from pivotcore.filters import filter_frame
from pivotcore.formulas import compile_measures
from pivotcore.grouping import build_group_tree
from pivotcore.rollup import materialize_rollups

logger = logging.getLogger(__name__)


def compute_pivot_frame(frame: pd.DataFrame, config: PivotConfig, options: PivotOptions) -> PivotResult:
    filtered = filter_frame(frame, config.filters)
    row_groups = build_group_tree(filtered, config.rows, axis="rows")
    col_groups = build_group_tree(filtered, config.columns, axis="columns")
    measures = compile_measures(config.calculated_measures)

    leaf_matrix = aggregate_leaves(filtered, row_groups, col_groups, config.values, measures)
    row_tree, col_tree, matrix = materialize_rollups(
        filtered, row_groups, col_groups, leaf_matrix, config.values, measures, options
    )
    result = assemble(row_tree, col_tree, matrix)
    logger.debug(
        "pivot: %d/%d rows after filters, %d row keys, %d column keys",
        len(filtered),
        len(frame),
        len(result.all_row_keys),
        len(result.all_column_keys),
    )
    return result


def compute_pivot(
    rows: RowsLike,
    config: Union[PivotConfig, dict, None],
    options: Union[PivotOptions, dict, None] = None,
) -> PivotResult:
    """Run filter -> grouping -> aggregation -> rollup -> assembly.

    Data and formula problems degrade to ``None`` cells. The only error raised
    is PivotInputError when ``rows`` is not a list of mappings (or a DataFrame).
    """
    frame = rows_to_frame(rows)
    return compute_pivot_frame(frame, normalize_config(config), normalize_options(options))


def compute_views(rows: RowsLike, views: Iterable[Union[PivotView, dict]]) -> Dict[str, PivotResult]:
    """Compute several independent views over one dataset.

    Each view gets its own result; a view that fails is logged and left out.
    """
    frame = rows_to_frame(rows)
    results: Dict[str, PivotResult] = {}
    for index, raw in enumerate(views):
        view_id = f"view_{index}"
        try:
            view = normalize_view(raw, index=index)
            view_id = view.id
            results[view.id] = compute_pivot_frame(frame, view.config, view.options)
        except Exception:
            logger.exception("pivot view %s failed", view_id)
    return results
