import datetime

import pytest

from tracedash.dashboard_server.orm import (
    ParamBuilder,
    combine_conditions,
    python_value_to_ch_type,
)


def test_add_allocates_fresh_names():
    pb = ParamBuilder("pb")
    assert pb.add("a") == "{pb_0:String}"
    # Same value, new slot: each placeholder is used exactly once
    assert pb.add("a") == "{pb_1:String}"
    assert pb.add(3, None, "UInt32") == "{pb_2:UInt32}"
    assert pb.get_params() == {"pb_0": "a", "pb_1": "a", "pb_2": 3}


def test_default_prefixes_do_not_collide():
    first = ParamBuilder()
    second = ParamBuilder()
    first.add("x")
    second.add("y")
    assert set(first.get_params()).isdisjoint(second.get_params())


def test_get_params_is_a_copy():
    pb = ParamBuilder("pb")
    pb.add("x")
    params = pb.get_params()
    params["other"] = 1
    assert pb.get_params() == {"pb_0": "x"}
    assert pb.param_names() == ["pb_0"]


def test_combine_conditions():
    assert combine_conditions([], "AND") == ""
    assert combine_conditions(["a = 1", ""], "AND") == "a = 1"
    assert combine_conditions(["a = 1", "b = 2"], "AND") == "((a = 1) AND (b = 2))"
    assert combine_conditions(["a", "b", "c"], "OR") == "((a) OR (b) OR (c))"
    with pytest.raises(ValueError):
        combine_conditions(["a"], "XOR")


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("s", "String"),
        (True, "Bool"),
        (1, "Int64"),
        (1.5, "Float64"),
        (datetime.datetime(2024, 1, 1), "DateTime64(3)"),
        (["a", "b"], "Array(String)"),
        (None, "Nullable(String)"),
    ],
)
def test_python_value_to_ch_type(value, expected):
    assert python_value_to_ch_type(value) == expected


def test_python_value_to_ch_type_unknown():
    with pytest.raises(ValueError):
        python_value_to_ch_type({"a": 1})
