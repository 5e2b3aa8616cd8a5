import math

import pytest

from ahrsfusion.filter_utilities import (
    append_prefix,
    clamp_rotation,
    format_flags,
    format_indices,
    format_matrix,
    format_vector,
)


@pytest.mark.parametrize("angle", [0.0, 1.0, -1.0, 4.0, -4.0, 10.0, -25.0, 100.0])
def test_clamp_rotation_range_and_equivalence(angle):
    result = clamp_rotation(angle)
    assert -math.pi <= result <= math.pi
    turns = (angle - result) / math.tau
    assert math.isclose(turns, round(turns), abs_tol=1e-9)


def test_clamp_rotation_keeps_boundaries():
    assert clamp_rotation(math.pi) == math.pi
    assert clamp_rotation(-math.pi) == -math.pi
    assert math.isclose(clamp_rotation(3 * math.pi), math.pi)


def test_append_prefix():
    assert append_prefix("/robot", "/base_link") == "robot/base_link"
    assert append_prefix("robot", "base_link") == "robot/base_link"
    assert append_prefix("", "/base_link") == "base_link"
    assert append_prefix("", "base_link") == "base_link"


def test_format_vector():
    assert format_vector([1.0, 2.5]) == "[" + "1" + " " * 11 + "2.5" + " " * 9 + "]\n"
    assert format_vector([]) == "[]\n"


def test_format_vector_uses_five_significant_digits():
    assert format_vector([math.pi]).startswith("[3.1416 ")


def test_format_matrix_layout():
    text = format_matrix([[1, 0], [0, 1]])
    lines = text.split("\n")
    assert lines[0] == "[" + "1" + " " * 11 + "0" + " " * 11
    assert lines[1] == " " + "0" + " " * 11 + "1" + " " * 11 + "]"
    assert text.endswith("]\n")


def test_format_indices_and_flags():
    assert format_indices([0, 5]) == "[" + "0" + " " * 11 + "5" + " " * 11 + "]\n"
    assert format_flags([1, 0, True]) == "[t  f  t  ]\n"