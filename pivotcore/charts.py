from __future__ import annotations

from typing import AbstractSet, Any, Dict, List, Optional

import altair as alt
import pandas as pd

from pivotcore.assembly import PivotResult
from pivotcore.config import PivotConfig
from pivotcore.export import MEASURE_SEP, PATH_SEP, header_paths
from pivotcore.layout import data_column_nodes, visible_row_nodes

alt.data_transformers.disable_max_rows()

CHART_TYPES = ("bar", "line", "area")


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def pivot_chart_frame(
    result: PivotResult,
    config: PivotConfig,
    collapsed: Optional[AbstractSet[str]] = None,
    *,
    include_totals: bool = False,
) -> pd.DataFrame:
    """Long ``category, series, value`` frame, one series per column x measure.

    Group rows never carry cells and are skipped. Empty cells are dropped
    instead of being charted as zero.
    """
    measures = config.measure_keys()
    row_paths = header_paths(result.row_headers_tree)
    col_paths = header_paths(result.column_headers_tree)

    rows = [
        node
        for node in visible_row_nodes(result, collapsed)
        if not node.is_group and (include_totals or not (node.is_subtotal or node.is_grand_total))
    ]
    columns = [
        node
        for node in data_column_nodes(result, collapsed)
        if include_totals or not (node.is_subtotal or node.is_grand_total)
    ]

    records: List[Dict[str, Any]] = []
    for row in rows:
        category = PATH_SEP.join(row_paths.get(row.key, [row.label]))
        for col in columns:
            cell = result.cell(row.key, col.key)
            if cell is None:
                continue
            col_label = PATH_SEP.join(col_paths.get(col.key, [col.label]))
            for measure in measures:
                value = cell.get(measure)
                if value is None:
                    continue
                if not config.columns:
                    series = measure
                elif len(measures) > 1:
                    series = f"{col_label}{MEASURE_SEP}{measure}"
                else:
                    series = col_label
                records.append({"category": category, "series": series, "value": float(value)})

    return pd.DataFrame(records, columns=["category", "series", "value"])


def pivot_chart(
    result: PivotResult,
    config: PivotConfig,
    chart_type: str = "bar",
    collapsed: Optional[AbstractSet[str]] = None,
    *,
    include_totals: bool = False,
    title: Optional[str] = None,
) -> alt.Chart:
    if chart_type not in CHART_TYPES:
        raise ValueError(f"unsupported chart type {chart_type!r}; expected one of {', '.join(CHART_TYPES)}")

    df = pivot_chart_frame(result, config, collapsed, include_totals=include_totals)
    category_sort = list(dict.fromkeys(df["category"].tolist()))
    base = alt.Chart(df, title=title) if title else alt.Chart(df)
    if chart_type == "bar":
        mark = base.mark_bar()
    elif chart_type == "line":
        mark = base.mark_line(point=True)
    else:
        mark = base.mark_area(opacity=0.6)

    return mark.encode(
        x=alt.X("category:N", title=" / ".join(config.row_fields) or "Rows", sort=category_sort),
        y=alt.Y("value:Q", title="Value", axis=alt.Axis(format=",")),
        color=alt.Color("series:N", title="Series"),
        tooltip=["category", "series", alt.Tooltip("value:Q", format=",.2f")],
    )


def pivot_chart_spec(
    result: PivotResult,
    config: PivotConfig,
    chart_type: str = "bar",
    collapsed: Optional[AbstractSet[str]] = None,
    *,
    include_totals: bool = False,
    title: Optional[str] = None,
) -> Dict[str, Any]:
    return to_vega_spec(
        pivot_chart(result, config, chart_type, collapsed, include_totals=include_totals, title=title)
    )
