"""Pivot (UI-agnostic) aggregation engine.

This package contains:
- pivot configuration types and normalization (raw dict -> dataclasses)
- the pipeline stages (filter, grouping, aggregation, rollup, assembly)
- collaborators that consume a PivotResult (layout, export, chart helpers)
- saved pivot templates and per-view result bookkeeping
"""

from pivotcore.config import (
    AggregationKind,
    CalculatedMeasureConfig,
    PivotConfig,
    PivotFieldConfig,
    PivotFilterConfig,
    PivotOptions,
    PivotValueFieldConfig,
    normalize_config,
    normalize_options,
)
from pivotcore.engine import compute_pivot, compute_views
from pivotcore.errors import ConfigValidationError, FormulaError, PivotError, PivotInputError
from pivotcore.assembly import PivotResult
from pivotcore.grouping import HeaderNode

__all__ = [
    "AggregationKind",
    "CalculatedMeasureConfig",
    "ConfigValidationError",
    "FormulaError",
    "HeaderNode",
    "PivotConfig",
    "PivotError",
    "PivotFieldConfig",
    "PivotFilterConfig",
    "PivotInputError",
    "PivotOptions",
    "PivotResult",
    "PivotValueFieldConfig",
    "compute_pivot",
    "compute_views",
    "normalize_config",
    "normalize_options",
]
