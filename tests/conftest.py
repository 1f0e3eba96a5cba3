"""Shared fixtures for the pivot engine tests."""

import pytest

from pivotcore.constants import KEY_FIELD_SEP, KEY_SEGMENT_SEP


def _group_key(*pairs):
    return KEY_SEGMENT_SEP.join(f"{name}{KEY_FIELD_SEP}{value}" for name, value in pairs)


@pytest.fixture
def key():
    """Build a group key from (field, text) pairs, outermost first."""
    return _group_key


@pytest.fixture
def region_rows():
    return [
        {"region": "East", "cat": "A", "sales": 10},
        {"region": "East", "cat": "B", "sales": 20},
        {"region": "West", "cat": "A", "sales": 5},
    ]


@pytest.fixture
def sales_rows():
    return [
        {"region": "East", "product": "A", "quarter": "Q1", "sales": 100, "cost": 60, "units": 2},
        {"region": "East", "product": "A", "quarter": "Q2", "sales": 30, "cost": 10, "units": 3},
        {"region": "East", "product": "B", "quarter": "Q1", "sales": 50, "cost": 20, "units": 1},
        {"region": "West", "product": "A", "quarter": "Q1", "sales": 200, "cost": 150, "units": 4},
        {"region": "West", "product": "C", "quarter": "Q2", "sales": None, "units": 5},
        {"region": None, "product": "C", "quarter": "Q2", "sales": 7, "cost": 1, "units": 1},
    ]
