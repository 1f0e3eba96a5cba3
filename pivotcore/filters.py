"""Filter Stage: pre-aggregation filters (field -> allowed value set).

An empty ``selected_values`` means "no restriction" for that field; this is
what "unselect all" produces in the configuration editor. A row passes when,
for every non-empty filter, its stringified value is one of the selected
values. Filters compose with AND. A field missing from a row reads as empty
text, so a filter on an unknown field only keeps rows when ``""`` is selected.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

import pandas as pd

from pivotcore.config import PivotFilterConfig
from pivotcore.data import Row, RowsLike, check_rows, rows_to_frame
from pivotcore.values import to_text

logger = logging.getLogger(__name__)


def _active(filters: Optional[Iterable[PivotFilterConfig]]) -> List[PivotFilterConfig]:
    return [f for f in (filters or []) if f.selected_values]


def filter_mask(frame: pd.DataFrame, filters: Optional[Iterable[PivotFilterConfig]]) -> pd.Series:
    mask = pd.Series(True, index=frame.index, dtype=bool)
    for flt in _active(filters):
        allowed = set(flt.selected_values)
        if flt.field in frame.columns:
            texts = frame[flt.field].map(to_text)
        else:
            texts = pd.Series("", index=frame.index, dtype=object)
        mask &= texts.isin(allowed)
    return mask


def filter_frame(frame: pd.DataFrame, filters: Optional[Iterable[PivotFilterConfig]]) -> pd.DataFrame:
    active = _active(filters)
    if not active or len(frame.index) == 0:
        return frame
    out = frame[filter_mask(frame, active)]
    logger.debug("filters %s kept %d of %d rows", [f.field for f in active], len(out), len(frame))
    return out


def apply_filters(rows: RowsLike, filters: Optional[Iterable[PivotFilterConfig]]) -> List[Row]:
    """Return the rows that pass every filter, in input order.

    Raises PivotInputError when ``rows`` is not a list of mappings.
    """
    check_rows(rows)
    if isinstance(rows, pd.DataFrame):
        kept = filter_frame(rows_to_frame(rows), filters)
        return kept.to_dict(orient="records")
    rows_list: Sequence[Row] = list(rows)
    if not _active(filters) or not rows_list:
        return list(rows_list)
    mask = filter_mask(rows_to_frame(rows_list), filters).to_numpy()
    return [row for row, keep in zip(rows_list, mask) if keep]
