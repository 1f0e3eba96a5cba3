"""Tests for pivotcore/export.py: grid, CSV, XLSX and JSON export."""
import io
import json

import pandas as pd

from pivotcore.config import normalize_config
from pivotcore.engine import compute_pivot
from pivotcore.export import export_pivot_csv, export_pivot_json, export_pivot_xlsx, pivot_to_frame

CONFIG = normalize_config(
    {"rows": ["region", "product"], "columns": ["quarter"], "values": [{"field": "sales"}]}
)


def _grid(rows, config=CONFIG, collapsed=None):
    return pivot_to_frame(compute_pivot(rows, config), config, collapsed)


class TestPivotToFrame:
    def test_columns(self, sales_rows):
        df = _grid(sales_rows)
        assert list(df.columns) == ["region", "product", "Q1", "Q2", "Grand Total"]

    def test_row_labels_follow_tree(self, sales_rows):
        df = _grid(sales_rows)
        labels = [r or p for r, p in zip(df["region"], df["product"])]
        assert labels == [
            "(empty)", "C", "Subtotal (empty)",
            "East", "A", "B", "Subtotal East",
            "West", "A", "C", "Subtotal West",
            "Grand Total",
        ]

    def test_values_and_empty_cells(self, sales_rows):
        df = _grid(sales_rows)
        east_a = df.iloc[4]
        assert (east_a["Q1"], east_a["Q2"], east_a["Grand Total"]) == (100.0, 30.0, 130.0)
        west_c = df.iloc[9]
        assert west_c[["Q1", "Q2", "Grand Total"]].isna().all()
        # group rows have no cells of their own
        assert df.iloc[3][["Q1", "Q2", "Grand Total"]].isna().all()
        assert df.iloc[-1]["Grand Total"] == 387.0

    def test_multiple_measures_in_header(self, region_rows):
        config = normalize_config(
            {"rows": ["region"], "columns": ["cat"], "values": [{"field": "sales"}, {"field": "sales", "aggregation": "count"}]}
        )
        df = _grid(region_rows, config)
        assert "A | sales (sum)" in df.columns
        assert "Grand Total | sales (count)" in df.columns

    def test_no_column_fields_uses_measure_names(self, region_rows):
        config = normalize_config({"rows": ["region"], "values": [{"field": "sales"}]})
        df = _grid(region_rows, config)
        assert list(df.columns) == ["region", "sales (sum)"]

    def test_collapsed_rows_hidden(self, sales_rows, key):
        df = _grid(sales_rows, collapsed={key(("region", "East"))})
        assert "Subtotal East" in df["region"].tolist()
        assert len(df) == 10


class TestWriters:
    def test_csv_leaves_empty_cells_blank(self, region_rows):
        config = normalize_config({"rows": ["region"], "columns": ["cat"], "values": [{"field": "sales"}]})
        data = export_pivot_csv(compute_pivot(region_rows, config), config)
        lines = data.decode("utf-8").splitlines()
        assert lines[0] == "region,A,B,Grand Total"
        assert lines[2] == "West,5.0,,5.0"

    def test_csv_na_rep(self, region_rows):
        config = normalize_config({"rows": ["region"], "columns": ["cat"], "values": [{"field": "sales"}]})
        data = export_pivot_csv(compute_pivot(region_rows, config), config, na_rep="-")
        assert "West,5.0,-,5.0" in data.decode("utf-8")

    def test_xlsx_round_trip(self, sales_rows):
        data = export_pivot_xlsx(compute_pivot(sales_rows, CONFIG), CONFIG)
        df = pd.read_excel(io.BytesIO(data), sheet_name="PivotData")
        assert list(df.columns) == ["region", "product", "Q1", "Q2", "Grand Total"]
        assert len(df) == 12

    def test_json_records(self, sales_rows):
        records = json.loads(export_pivot_json(compute_pivot(sales_rows, CONFIG), CONFIG))
        assert len(records) == 12
        assert records[4]["Q1"] == 100.0
        assert records[9]["Q2"] is None
