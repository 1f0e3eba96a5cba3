"""Grouping Stage: partition rows into an ordered tree of group keys.

Invoked once for the row fields and once for the column fields. Sibling groups
are ordered by ascending coerced text within their parent. A group key is the
chain of ``field\\x1etext`` segments from the root, so equal values under
different fields never collide.
"""

from __future__ import annotations

from dataclasses import dataclass, field as dc_field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

import pandas as pd

from pivotcore.config import PivotFieldConfig
from pivotcore.constants import (
    ALL_ROWS_KEY,
    ALL_ROWS_LABEL,
    KEY_FIELD_SEP,
    KEY_SEGMENT_SEP,
    VALUES_ONLY_KEY,
    VALUES_ONLY_LABEL,
)
from pivotcore.values import to_label, to_text


@dataclass
class HeaderNode:
    key: str
    label: str
    level: int
    field: Optional[str] = None
    children: List["HeaderNode"] = dc_field(default_factory=list)
    is_subtotal: bool = False
    is_grand_total: bool = False
    original_values: Dict[str, str] = dc_field(default_factory=dict)

    @property
    def is_group(self) -> bool:
        """A real (non-synthetic) group with nested groups below it."""
        return any(not c.is_subtotal for c in self.children)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "level": self.level,
            "field": self.field,
            "children": [c.to_dict() for c in self.children],
            "is_subtotal": self.is_subtotal,
            "is_grand_total": self.is_grand_total,
            "original_values": dict(self.original_values),
        }


def iter_nodes(nodes: Iterable[HeaderNode]) -> Iterator[HeaderNode]:
    """Pre-order walk: parent, then its children in order."""
    for node in nodes:
        yield node
        yield from iter_nodes(node.children)


@dataclass
class GroupTree:
    axis: str
    fields: List[str]
    nodes: List[HeaderNode]
    # One column per depth: the key of the row's group at that depth.
    level_keys: pd.DataFrame

    @property
    def depth(self) -> int:
        return max(1, len(self.fields))

    @property
    def implicit(self) -> bool:
        return not self.fields

    @property
    def leaf_keys(self) -> pd.Series:
        return self.level_keys[self.depth - 1]

    @property
    def leaf_membership(self) -> Dict[Any, str]:
        return dict(zip(self.level_keys.index, self.leaf_keys))

    def leaf_members(self) -> Dict[str, pd.Index]:
        leaf = self.leaf_keys
        if leaf.empty:
            return {}
        return dict(leaf.groupby(leaf, sort=False).groups)


def _field_names(fields: Iterable[Union[PivotFieldConfig, str]]) -> List[str]:
    return [f.field if isinstance(f, PivotFieldConfig) else str(f) for f in fields]


def field_texts(frame: pd.DataFrame, name: str) -> pd.Series:
    if name not in frame.columns:
        return pd.Series("", index=frame.index, dtype=object)
    return frame[name].map(to_text).astype(object)


def _implicit_root(frame: pd.DataFrame, axis: str) -> GroupTree:
    if axis == "rows":
        root = HeaderNode(key=ALL_ROWS_KEY, label=ALL_ROWS_LABEL, level=0)
    else:
        root = HeaderNode(key=VALUES_ONLY_KEY, label=VALUES_ONLY_LABEL, level=0)
    level_keys = pd.DataFrame({0: pd.Series(root.key, index=frame.index, dtype=object)}, index=frame.index)
    return GroupTree(axis=axis, fields=[], nodes=[root], level_keys=level_keys)


def build_group_tree(
    frame: pd.DataFrame,
    fields: Iterable[Union[PivotFieldConfig, str]],
    *,
    axis: str = "rows",
) -> GroupTree:
    names = _field_names(fields)
    if not names:
        return _implicit_root(frame, axis)

    texts = pd.DataFrame({d: field_texts(frame, name) for d, name in enumerate(names)}, index=frame.index)

    keys: Dict[int, pd.Series] = {}
    prefix: Optional[pd.Series] = None
    for d, name in enumerate(names):
        segment = (name + KEY_FIELD_SEP) + texts[d]
        prefix = segment if prefix is None else prefix + KEY_SEGMENT_SEP + segment
        keys[d] = prefix
    level_keys = pd.DataFrame(keys, index=frame.index)

    # Lexicographic sort over all levels orders siblings within each parent.
    paths = texts.drop_duplicates().sort_values(list(texts.columns), kind="mergesort")

    roots: List[HeaderNode] = []
    by_key: Dict[str, HeaderNode] = {}
    for path in paths.itertuples(index=False, name=None):
        parent: Optional[HeaderNode] = None
        key: Optional[str] = None
        bindings: Dict[str, str] = {}
        for d, text in enumerate(path):
            segment = names[d] + KEY_FIELD_SEP + text
            key = segment if key is None else key + KEY_SEGMENT_SEP + segment
            bindings[names[d]] = text
            node = by_key.get(key)
            if node is None:
                node = HeaderNode(
                    key=key,
                    label=to_label(text),
                    level=d,
                    field=names[d],
                    original_values=dict(bindings),
                )
                by_key[key] = node
                (roots if parent is None else parent.children).append(node)
            parent = node

    return GroupTree(axis=axis, fields=names, nodes=roots, level_keys=level_keys)
