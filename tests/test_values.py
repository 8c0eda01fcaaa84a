"""Tests for tagged values and per-type formatting."""

import logging
from datetime import date

import pytest

from elastisync.values import ListValue, Nested, Scalar, format_value, unwrap, wrap


def test_wrap_shapes():
    assert wrap(3) == Scalar(3)
    assert wrap([1, [2]]) == ListValue([Scalar(1), ListValue([Scalar(2)])])
    assert wrap({"a": 1}) == Nested({"a": Scalar(1)})
    assert wrap(Scalar(1)) == Scalar(1)


def test_unwrap_is_inverse_of_wrap():
    raw = {"a": [1, {"b": None}], "c": "x"}
    assert unwrap(wrap(raw)) == raw


@pytest.mark.parametrize("spec_type, raw, expected", [
    ("boolean", "off", False),
    ("boolean", "yes", True),
    ("date", date(2024, 1, 2), "2024-01-02T00:00:00"),
    ("date", "2024-01-02T03:04:05", "2024-01-02T03:04:05"),
    ("integer", "", 0),
    ("integer", "3.7", 3),
    ("float", "2.5", 2.5),
    ("double", None, None),
    ("text", 12, 12),
    (None, "as is", "as is"),
])
def test_format_scalar(spec_type, raw, expected):
    assert format_value(spec_type, Scalar(raw)) == expected


def test_format_list_is_element_wise():
    assert format_value("boolean", wrap([1, 0, None])) == [True, False, None]


def test_nested_is_unwrapped():
    assert format_value("integer", Nested({"n": Scalar("1")})) == {"n": "1"}


@pytest.mark.parametrize("raw, expected", [
    ("2024/01/02 03:04", "2024-01-02T03:04:00"),
    ("2024/01/02", "2024-01-02T00:00:00"),
    ("2024-01-02T03:04:05Z", "2024-01-02T03:04:05"),
])
def test_non_iso_dates(raw, expected):
    assert format_value("date", Scalar(raw)) == expected


def test_unparseable_date_is_null(caplog):
    with caplog.at_level(logging.WARNING, logger="elastisync.values"):
        assert format_value("date", Scalar("yesterday")) is None
    assert "yesterday" in caplog.text
