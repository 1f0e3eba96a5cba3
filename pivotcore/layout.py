from __future__ import annotations

from typing import AbstractSet, Iterable, List, Optional, Set

from pivotcore.assembly import PivotResult
from pivotcore.config import PivotOptions
from pivotcore.grouping import HeaderNode, iter_nodes


def group_keys(nodes: Iterable[HeaderNode]) -> Set[str]:
    return {node.key for node in iter_nodes(nodes) if node.is_group}


def initial_collapsed_keys(result: PivotResult, options: PivotOptions) -> Set[str]:
    """Seed for the renderer's collapse state; the result itself is never trimmed."""
    collapsed: Set[str] = set()
    if options.default_row_subtotals_collapsed:
        collapsed |= group_keys(result.row_headers_tree)
    if options.default_column_subtotals_collapsed:
        collapsed |= group_keys(result.column_headers_tree)
    return collapsed


def _visible(nodes: Iterable[HeaderNode], collapsed: AbstractSet[str], out: List[HeaderNode]) -> None:
    for node in nodes:
        out.append(node)
        if node.key in collapsed and node.is_group:
            # the rollup of a collapsed group stays on screen
            out.extend(c for c in node.children if c.is_subtotal)
            continue
        _visible(node.children, collapsed, out)


def visible_row_nodes(result: PivotResult, collapsed: Optional[AbstractSet[str]] = None) -> List[HeaderNode]:
    out: List[HeaderNode] = []
    _visible(result.row_headers_tree, collapsed or set(), out)
    return out


def visible_column_nodes(result: PivotResult, collapsed: Optional[AbstractSet[str]] = None) -> List[HeaderNode]:
    out: List[HeaderNode] = []
    _visible(result.column_headers_tree, collapsed or set(), out)
    return out


def data_column_nodes(result: PivotResult, collapsed: Optional[AbstractSet[str]] = None) -> List[HeaderNode]:
    """Visible columns that carry cells: leaves, subtotals and the grand total."""
    return [node for node in visible_column_nodes(result, collapsed) if not node.is_group]


def visible_row_keys(result: PivotResult, collapsed: Optional[AbstractSet[str]] = None) -> List[str]:
    return [node.key for node in visible_row_nodes(result, collapsed)]


def visible_column_keys(result: PivotResult, collapsed: Optional[AbstractSet[str]] = None) -> List[str]:
    return [node.key for node in visible_column_nodes(result, collapsed)]
