"""Exporter: flatten a PivotResult into a 2D grid.

Rows follow the visible row keys, columns are (visible data column x measure).
Empty cells stay empty (NaN in the frame, ``na_rep`` on disk), never 0.
"""

from __future__ import annotations

import io
from typing import AbstractSet, Dict, List, Optional, Sequence

import pandas as pd
from openpyxl.utils import get_column_letter

from pivotcore.assembly import PivotResult
from pivotcore.config import PivotConfig
from pivotcore.grouping import HeaderNode
from pivotcore.layout import data_column_nodes, visible_row_nodes

SHEET_NAME = "PivotData"
PATH_SEP = " / "
MEASURE_SEP = " | "


def header_paths(nodes: Sequence[HeaderNode], parent_path: Sequence[str] = ()) -> Dict[str, List[str]]:
    """Label path from the top of the tree, per header key."""
    paths: Dict[str, List[str]] = {}
    for node in nodes:
        if node.is_subtotal:
            path = list(parent_path[:-1]) + [node.label]
        else:
            path = list(parent_path) + [node.label]
        paths[node.key] = path
        paths.update(header_paths(node.children, path))
    return paths


def _unique(name: str, seen: Dict[str, int]) -> str:
    if name not in seen:
        seen[name] = 1
        return name
    seen[name] += 1
    return f"{name} ({seen[name]})"


def label_columns(config: PivotConfig) -> List[str]:
    return list(config.row_fields) or ["Rows"]


def pivot_to_frame(
    result: PivotResult,
    config: PivotConfig,
    collapsed: Optional[AbstractSet[str]] = None,
) -> pd.DataFrame:
    labels = label_columns(config)
    depth = len(labels)
    measures = config.measure_keys()
    columns = data_column_nodes(result, collapsed)
    paths = header_paths(result.column_headers_tree)

    seen: Dict[str, int] = {name: 1 for name in labels}
    grid_columns: List[tuple] = []
    for col in columns:
        path = PATH_SEP.join(paths.get(col.key, [col.label]))
        for measure in measures:
            if not config.columns:
                name = measure
            elif len(measures) > 1:
                name = f"{path}{MEASURE_SEP}{measure}"
            else:
                name = path
            grid_columns.append((_unique(name, seen), col.key, measure))

    records = []
    for row in visible_row_nodes(result, collapsed):
        record: Dict[str, object] = {name: "" for name in labels}
        record[labels[0 if row.is_grand_total else min(row.level, depth - 1)]] = row.label
        cells = result.data_matrix.get(row.key, {})
        for name, col_key, measure in grid_columns:
            cell = cells.get(col_key)
            record[name] = None if cell is None else cell.get(measure)
        records.append(record)

    return pd.DataFrame(records, columns=labels + [name for name, _, _ in grid_columns])


def export_pivot_csv(
    result: PivotResult,
    config: PivotConfig,
    collapsed: Optional[AbstractSet[str]] = None,
    *,
    na_rep: str = "",
) -> bytes:
    return pivot_to_frame(result, config, collapsed).to_csv(index=False, na_rep=na_rep).encode("utf-8")


def export_pivot_json(
    result: PivotResult,
    config: PivotConfig,
    collapsed: Optional[AbstractSet[str]] = None,
) -> bytes:
    return pivot_to_frame(result, config, collapsed).to_json(orient="records", indent=2).encode("utf-8")


def export_pivot_xlsx(
    result: PivotResult,
    config: PivotConfig,
    collapsed: Optional[AbstractSet[str]] = None,
) -> bytes:
    df = pivot_to_frame(result, config, collapsed)
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=SHEET_NAME, index=False)
        sheet = writer.sheets[SHEET_NAME]
        for idx, name in enumerate(df.columns, start=1):
            widest = max([len(str(name))] + [len(str(v)) for v in df[name].dropna().tolist()])
            sheet.column_dimensions[get_column_letter(idx)].width = max(10, min(widest + 2, 50))
    return buffer.getvalue()
