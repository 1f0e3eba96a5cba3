"""Scalar coercion shared by the filter, grouping and aggregation stages.

Every stage must agree on how a raw cell value is stringified and whether it
counts as a number, otherwise a filter selection, a group key and an
aggregation could disagree about the same row.
"""

from __future__ import annotations

import math
import numbers
from decimal import Decimal
from typing import Optional

import pandas as pd

from pivotcore.constants import EMPTY_LABEL


def is_missing(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, bool)):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        # list-likes make pd.isna return an array
        return False


def to_text(value: object) -> str:
    """Stringify a cell value for filtering, grouping and distinct counting.

    Missing values and whitespace-only strings become ``""``. Integral floats
    drop their trailing ``.0`` so that ``10`` and ``10.0`` (pandas upcasts
    integer columns that contain gaps) land in the same group.
    """
    if is_missing(value):
        return ""
    if isinstance(value, str):
        return value if value.strip() else ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, numbers.Integral):
        return str(int(value))
    if isinstance(value, (numbers.Real, Decimal)):
        as_float = float(value)
        if math.isfinite(as_float) and as_float.is_integer():
            return str(int(as_float))
        return str(as_float)
    return str(value)


def to_label(text: str) -> str:
    return text if text != "" else EMPTY_LABEL


def to_number(value: object) -> Optional[float]:
    """Return the finite float behind ``value`` or None when it is not numeric."""
    if is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, (numbers.Real, Decimal)):
        out = float(value)
    elif isinstance(value, str):
        try:
            out = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(out) or math.isinf(out):
        return None
    return out


def is_blank(value: object) -> bool:
    """True for values ``count_non_empty`` does not count."""
    if is_missing(value):
        return True
    return str(value).strip() == ""
