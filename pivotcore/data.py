from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import pandas as pd

from pivotcore.constants import ROW_ID_FIELD
from pivotcore.errors import PivotInputError
from pivotcore.values import is_missing, to_text

Row = Mapping[str, Any]
RowsLike = Union[Sequence[Row], pd.DataFrame]

READERS = {
    ".csv": pd.read_csv,
    ".xlsx": pd.read_excel,
    ".xls": pd.read_excel,
    ".json": pd.read_json,
}


def drop_duplicate_columns(df: pd.DataFrame) -> pd.DataFrame:
    return df.loc[:, ~df.columns.duplicated()]


def _cell(value: object) -> object:
    if is_missing(value):
        return None
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        # numpy scalar -> python scalar
        try:
            return value.item()
        except (TypeError, ValueError):
            return value
    return value


def frame_to_rows(df: pd.DataFrame, *, start_id: int = 0) -> List[Dict[str, Any]]:
    """Turn an imported sheet into rows, assigning ``__ROW_ID__`` once."""
    df = drop_duplicate_columns(df)
    df.columns = [str(c).strip() for c in df.columns]
    rows: List[Dict[str, Any]] = []
    for offset, record in enumerate(df.to_dict(orient="records")):
        row = {k: _cell(v) for k, v in record.items()}
        if is_missing(row.get(ROW_ID_FIELD)):
            row[ROW_ID_FIELD] = f"row_{start_id + offset}"
        rows.append(row)
    return rows


def load_rows(path: Union[str, Path], *, sheet_name: Optional[Union[str, int]] = 0) -> List[Dict[str, Any]]:
    path = Path(path)
    reader = READERS.get(path.suffix.lower())
    if reader is None:
        raise ValueError(f"Unsupported file type '{path.suffix}'. Expected one of: {sorted(READERS)}")
    if reader is pd.read_excel:
        df = reader(path, sheet_name=sheet_name)
    else:
        df = reader(path)
    return frame_to_rows(df)


def check_rows(rows: object) -> None:
    if isinstance(rows, pd.DataFrame):
        return
    if isinstance(rows, (str, bytes)) or not isinstance(rows, (list, tuple)):
        raise PivotInputError(f"Pivot rows must be a list of mappings, got {type(rows).__name__}")
    for idx, row in enumerate(rows):
        if not isinstance(row, Mapping):
            raise PivotInputError(f"Pivot row {idx} must be a mapping of field -> value, got {type(row).__name__}")


def rows_to_frame(rows: RowsLike) -> pd.DataFrame:
    """Hold rows in an object-dtype frame indexed by row id.

    The row id is ``__ROW_ID__`` when every row has a distinct one, otherwise
    the row's position.
    """
    check_rows(rows)
    if isinstance(rows, pd.DataFrame):
        df = rows.astype(object)
    else:
        df = pd.DataFrame(list(rows), dtype=object)
    if ROW_ID_FIELD in df.columns:
        ids = df[ROW_ID_FIELD]
        if not ids.map(is_missing).any() and ids.is_unique:
            df = df.set_index(ids, drop=False)
            df.index.name = None
            return df
    return df.reset_index(drop=True)


def field_headers(rows: Iterable[Row]) -> List[str]:
    """Ordered union of field names across rows, without the row id."""
    if isinstance(rows, pd.DataFrame):
        return [str(c) for c in rows.columns if c != ROW_ID_FIELD]
    seen: Dict[str, None] = {}
    for row in rows:
        for name in row.keys():
            if name != ROW_ID_FIELD and name not in seen:
                seen[name] = None
    return list(seen)


def distinct_values(rows: RowsLike, field: str) -> List[str]:
    """Sorted distinct stringified values of ``field``; ``""`` stands for empty."""
    df = rows_to_frame(rows)
    if df.empty or field not in df.columns:
        return []
    return sorted(set(df[field].map(to_text)))
