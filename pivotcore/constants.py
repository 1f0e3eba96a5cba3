from __future__ import annotations

ROW_ID_FIELD = "__ROW_ID__"

# Group keys: "<field>\x1e<text>" segments joined with "\x1f".
KEY_FIELD_SEP = "\x1e"
KEY_SEGMENT_SEP = "\x1f"

EMPTY_LABEL = "(empty)"

ALL_ROWS_KEY = "__pivot_all_rows__"
ALL_ROWS_LABEL = "All"
VALUES_ONLY_KEY = "__pivot_values_only__"
VALUES_ONLY_LABEL = "Values"

SUBTOTAL_SUFFIX = KEY_SEGMENT_SEP + "__subtotal__"
SUBTOTAL_LABEL_PREFIX = "Subtotal "

GRAND_TOTAL_ROW_KEY = "__grand_total_rows__"
GRAND_TOTAL_COL_KEY = "__grand_total_cols__"
GRAND_TOTAL_LABEL = "Grand Total"
