"""End-to-end tests for pivotcore/engine.py: compute_pivot and compute_views."""
import pandas as pd
import pytest

import pivotcore.engine as engine
from pivotcore import PivotConfig, PivotInputError, compute_pivot, compute_views
from pivotcore.constants import ALL_ROWS_KEY, GRAND_TOTAL_COL_KEY, GRAND_TOTAL_ROW_KEY, VALUES_ONLY_KEY

SUM_BY_REGION_AND_CAT = {
    "rows": [{"field": "region"}],
    "columns": [{"field": "cat"}],
    "values": [{"field": "sales", "aggregation": "sum"}],
}


class TestRegionScenario:
    def test_leaf_cells(self, region_rows, key):
        result = compute_pivot(region_rows, SUM_BY_REGION_AND_CAT)
        east, west = key(("region", "East")), key(("region", "West"))
        a, b = key(("cat", "A")), key(("cat", "B"))
        assert result.value(east, a, "sales (sum)") == 10
        assert result.value(east, b, "sales (sum)") == 20
        assert result.value(west, a, "sales (sum)") == 5
        assert result.cell(west, b) is None
        assert b not in result.data_matrix[west]

    def test_totals(self, region_rows, key):
        result = compute_pivot(region_rows, SUM_BY_REGION_AND_CAT)
        assert result.value(key(("region", "East")), GRAND_TOTAL_COL_KEY, "sales (sum)") == 30
        assert result.value(key(("region", "West")), GRAND_TOTAL_COL_KEY, "sales (sum)") == 5
        assert result.value(GRAND_TOTAL_ROW_KEY, GRAND_TOTAL_COL_KEY, "sales (sum)") == 35

    def test_key_order(self, region_rows, key):
        result = compute_pivot(region_rows, SUM_BY_REGION_AND_CAT)
        assert result.all_row_keys == [key(("region", "East")), key(("region", "West")), GRAND_TOTAL_ROW_KEY]
        assert result.all_column_keys == [key(("cat", "A")), key(("cat", "B")), GRAND_TOTAL_COL_KEY]

    def test_average_without_columns(self, region_rows, key):
        config = {"rows": [{"field": "region"}], "values": [{"field": "sales", "aggregation": "average"}]}
        result = compute_pivot(region_rows, config)
        assert result.value(key(("region", "East")), VALUES_ONLY_KEY, "sales (average)") == 15.0

    def test_calculated_measure_with_missing_field(self, key):
        rows = [
            {"region": "East", "sales": 10, "cost": 4},
            {"region": "West", "sales": 5},
        ]
        config = {
            "rows": [{"field": "region"}],
            "values": [{"field": "sales"}, {"field": "cost"}],
            "calculated_measures": [{"id": "m", "name": "margin", "formula": '"sales" - "cost"'}],
        }
        result = compute_pivot(rows, config)
        west = result.cell(key(("region", "West")), VALUES_ONLY_KEY)
        assert west["cost (sum)"] is None
        assert west["margin"] is None
        assert result.value(key(("region", "East")), VALUES_ONLY_KEY, "margin") == 6.0


class TestProperties:
    def test_idempotent(self, sales_rows):
        config = {
            "rows": ["region", "product"],
            "columns": ["quarter"],
            "values": [{"field": "sales"}, {"field": "units", "aggregation": "average"}],
        }
        first = compute_pivot(sales_rows, config)
        second = compute_pivot(sales_rows, config)
        assert first.to_dict() == second.to_dict()
        assert first is not second

    def test_leaf_counts_partition_rows(self, sales_rows):
        config = {"rows": ["region", "product"], "columns": ["quarter"], "values": [{"field": "units", "aggregation": "count"}]}
        result = compute_pivot(sales_rows, config, {"show_row_subtotals": False, "show_row_grand_totals": False,
                                                     "show_column_subtotals": False, "show_column_grand_totals": False})
        leaves = [n for n in result.row_nodes().values() if not n.children]
        total = sum(
            cell["units (count)"]
            for node in leaves
            for cell in result.data_matrix[node.key].values()
        )
        assert total == len(sales_rows)

    def test_filters_apply_before_grouping(self, sales_rows, key):
        config = {
            "rows": ["region"],
            "values": [{"field": "sales"}],
            "filters": [{"field": "quarter", "selected_values": ["Q1"]}],
        }
        result = compute_pivot(sales_rows, config)
        assert result.value(GRAND_TOTAL_ROW_KEY, VALUES_ONLY_KEY, "sales (sum)") == 350.0
        assert key(("region", "")) not in result.all_row_keys

    def test_empty_filter_selection_keeps_all_rows(self, sales_rows):
        config = {
            "values": [{"field": "units", "aggregation": "count"}],
            "filters": [{"field": "quarter", "selectedValues": []}],
        }
        result = compute_pivot(sales_rows, config)
        assert result.value(ALL_ROWS_KEY, VALUES_ONLY_KEY, "units (count)") == len(sales_rows)

    def test_empty_config(self, sales_rows):
        result = compute_pivot(sales_rows, None)
        assert result.all_row_keys == [ALL_ROWS_KEY]
        assert result.cell(ALL_ROWS_KEY, VALUES_ONLY_KEY) == {}

    def test_no_rows(self):
        result = compute_pivot([], SUM_BY_REGION_AND_CAT)
        assert result.data_matrix == {GRAND_TOTAL_ROW_KEY: {}}

    def test_dataframe_and_dataclass_config(self, region_rows):
        from pivotcore.config import normalize_config

        config = normalize_config(SUM_BY_REGION_AND_CAT)
        assert isinstance(config, PivotConfig)
        from_frame = compute_pivot(pd.DataFrame(region_rows), config)
        from_rows = compute_pivot(region_rows, config)
        assert from_frame.to_dict() == from_rows.to_dict()

    def test_row_id_field_used_as_identity(self, key):
        rows = [
            {"__ROW_ID__": "r1", "g": "x", "v": 1},
            {"__ROW_ID__": "r2", "g": "x", "v": 2},
        ]
        result = compute_pivot(rows, {"rows": ["g"], "values": [{"field": "v"}]})
        assert result.value(key(("g", "x")), VALUES_ONLY_KEY, "v (sum)") == 3.0

    @pytest.mark.parametrize("bad", ["not rows", {"a": 1}, [1, 2, 3], None])
    def test_structural_input_error(self, bad):
        with pytest.raises(PivotInputError):
            compute_pivot(bad, SUM_BY_REGION_AND_CAT)


class TestViews:
    def test_views_are_independent(self, region_rows, key):
        views = [
            {"id": "by-region", "config": SUM_BY_REGION_AND_CAT},
            {"id": "by-cat", "pivotConfig": {"rows": ["cat"], "values": [{"field": "sales", "aggregation": "max"}]}},
        ]
        results = compute_views(region_rows, views)
        assert set(results) == {"by-region", "by-cat"}
        assert results["by-cat"].value(key(("cat", "A")), GRAND_TOTAL_COL_KEY, "sales (max)") is None
        assert results["by-cat"].value(key(("cat", "A")), VALUES_ONLY_KEY, "sales (max)") == 10.0
        assert results["by-region"].row_headers_tree is not results["by-cat"].row_headers_tree

    def test_failed_view_is_left_out(self, region_rows, monkeypatch):
        original = engine.compute_pivot_frame

        def flaky(frame, config, options):
            if config.row_fields == ["cat"]:
                raise RuntimeError("boom")
            return original(frame, config, options)

        monkeypatch.setattr(engine, "compute_pivot_frame", flaky)
        views = [
            {"id": "ok", "config": SUM_BY_REGION_AND_CAT},
            {"id": "broken", "config": {"rows": ["cat"]}},
        ]
        assert list(compute_views(region_rows, views)) == ["ok"]

    def test_malformed_view_is_left_out(self, region_rows):
        views = [{"id": "ok", "config": SUM_BY_REGION_AND_CAT}, None, "not a view"]
        assert list(compute_views(region_rows, views)) == ["ok"]
