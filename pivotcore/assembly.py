"""Result Assembly: trees + sparse matrix -> PivotResult.

``all_row_keys``/``all_column_keys`` are the pre-order flattening of the
header trees (group, its children, its trailing subtotal; grand total last)
and define rendering order. No aggregation happens here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pivotcore.aggregation import DataMatrix, Number, PivotDataCell
from pivotcore.constants import GRAND_TOTAL_ROW_KEY
from pivotcore.grouping import HeaderNode, iter_nodes


@dataclass(frozen=True)
class PivotResult:
    row_headers_tree: List[HeaderNode]
    column_headers_tree: List[HeaderNode]
    data_matrix: DataMatrix
    all_row_keys: List[str]
    all_column_keys: List[str]
    row_grand_total: Optional[Dict[str, PivotDataCell]] = None

    def cell(self, row_key: str, col_key: str) -> Optional[PivotDataCell]:
        return self.data_matrix.get(row_key, {}).get(col_key)

    def value(self, row_key: str, col_key: str, measure: str) -> Optional[Number]:
        cell = self.cell(row_key, col_key)
        return None if cell is None else cell.get(measure)

    def row_nodes(self) -> Dict[str, HeaderNode]:
        return {node.key: node for node in iter_nodes(self.row_headers_tree)}

    def column_nodes(self) -> Dict[str, HeaderNode]:
        return {node.key: node for node in iter_nodes(self.column_headers_tree)}

    def to_dict(self) -> Dict[str, Any]:
        return result_to_dict(self)


def flatten_keys(nodes: List[HeaderNode]) -> List[str]:
    return [node.key for node in iter_nodes(nodes)]


def assemble(row_tree: List[HeaderNode], col_tree: List[HeaderNode], matrix: DataMatrix) -> PivotResult:
    all_row_keys = flatten_keys(row_tree)
    all_column_keys = flatten_keys(col_tree)

    # Every row key gets an entry (empty for group rows); cells follow column order.
    data_matrix: DataMatrix = {}
    for row_key in all_row_keys:
        cells = matrix.get(row_key, {})
        data_matrix[row_key] = {col_key: cells[col_key] for col_key in all_column_keys if col_key in cells}

    row_grand_total = data_matrix.get(GRAND_TOTAL_ROW_KEY) if GRAND_TOTAL_ROW_KEY in data_matrix else None
    return PivotResult(
        row_headers_tree=row_tree,
        column_headers_tree=col_tree,
        data_matrix=data_matrix,
        all_row_keys=all_row_keys,
        all_column_keys=all_column_keys,
        row_grand_total=row_grand_total,
    )


def result_to_dict(result: PivotResult) -> Dict[str, Any]:
    """JSON-ready rendering of a result (trees as nested dicts, matrix as objects)."""
    return {
        "row_headers_tree": [n.to_dict() for n in result.row_headers_tree],
        "column_headers_tree": [n.to_dict() for n in result.column_headers_tree],
        "data_matrix": {rk: {ck: dict(cell) for ck, cell in cols.items()} for rk, cols in result.data_matrix.items()},
        "all_row_keys": list(result.all_row_keys),
        "all_column_keys": list(result.all_column_keys),
        "row_grand_total": (
            None if result.row_grand_total is None else {ck: dict(cell) for ck, cell in result.row_grand_total.items()}
        ),
    }
