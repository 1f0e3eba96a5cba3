"""Tests for pivotcore/grouping.py: group trees and row membership."""
from pivotcore.constants import ALL_ROWS_KEY, VALUES_ONLY_KEY
from pivotcore.data import rows_to_frame
from pivotcore.grouping import HeaderNode, build_group_tree, iter_nodes


class TestBuildGroupTree:
    def test_siblings_sorted_by_text(self, sales_rows):
        tree = build_group_tree(rows_to_frame(sales_rows), ["region"])
        assert [n.label for n in tree.nodes] == ["(empty)", "East", "West"]

    def test_nested_levels(self, sales_rows, key):
        tree = build_group_tree(rows_to_frame(sales_rows), ["region", "product"])
        east = tree.nodes[1]
        assert east.key == key(("region", "East"))
        assert east.level == 0
        assert [c.label for c in east.children] == ["A", "B"]
        child = east.children[0]
        assert child.key == key(("region", "East"), ("product", "A"))
        assert child.level == 1
        assert child.field == "product"
        assert child.original_values == {"region": "East", "product": "A"}

    def test_empty_values_share_one_bucket(self, key):
        rows = [{"g": None}, {"g": ""}, {"g": "  "}, {}, {"g": "x"}]
        tree = build_group_tree(rows_to_frame(rows), ["g"])
        assert [n.label for n in tree.nodes] == ["(empty)", "x"]
        members = tree.leaf_members()
        assert len(members[key(("g", ""))]) == 4

    def test_same_value_under_different_fields_does_not_collide(self):
        rows = [{"a": "x", "b": "x"}]
        tree = build_group_tree(rows_to_frame(rows), ["a", "b"])
        keys = [n.key for n in iter_nodes(tree.nodes)]
        assert len(keys) == len(set(keys)) == 2

    def test_no_fields_gives_implicit_root(self, sales_rows):
        frame = rows_to_frame(sales_rows)
        rows_tree = build_group_tree(frame, [], axis="rows")
        cols_tree = build_group_tree(frame, [], axis="columns")
        assert rows_tree.implicit
        assert [n.key for n in rows_tree.nodes] == [ALL_ROWS_KEY]
        assert [n.key for n in cols_tree.nodes] == [VALUES_ONLY_KEY]
        assert set(rows_tree.leaf_keys) == {ALL_ROWS_KEY}

    def test_leaves_partition_rows(self, sales_rows):
        frame = rows_to_frame(sales_rows)
        tree = build_group_tree(frame, ["region", "product", "quarter"])
        members = tree.leaf_members()
        seen = [idx for ids in members.values() for idx in ids]
        assert sorted(seen) == sorted(frame.index)
        assert len(seen) == len(set(seen))

    def test_missing_field_groups_as_empty(self, sales_rows):
        tree = build_group_tree(rows_to_frame(sales_rows), ["nope"])
        assert [n.label for n in tree.nodes] == ["(empty)"]

    def test_numeric_values_group_by_text(self):
        rows = [{"n": 10}, {"n": 10.0}, {"n": 2}]
        tree = build_group_tree(rows_to_frame(rows), ["n"])
        assert [n.label for n in tree.nodes] == ["10", "2"]


def test_header_node_defaults_are_per_instance():
    a = HeaderNode(key="k1", label="East", level=0, field="region")
    b = HeaderNode(key="k2", label="West", level=0)
    assert a.field == "region"
    assert b.field is None
    assert a.children == [] and a.original_values == {}
    a.children.append(b)
    a.original_values["region"] = "East"
    assert b.children == []
    assert b.original_values == {}
