"""Angle wrapping, frame naming and debug formatting for the filters."""

from __future__ import annotations

import math
from collections.abc import Iterable

__all__ = [
    "clamp_rotation",
    "append_prefix",
    "format_matrix",
    "format_vector",
    "format_indices",
    "format_flags",
]


def clamp_rotation(rotation: float) -> float:
    """Wrap an angle into [-pi, pi]."""
    while rotation > math.pi:
        rotation -= math.tau
    while rotation < -math.pi:
        rotation += math.tau
    return rotation


def append_prefix(tf_prefix: str, frame_id: str) -> str:
    """Return frame_id with leading slashes dropped and tf_prefix prepended."""
    if frame_id.startswith("/"):
        frame_id = frame_id[1:]
    if tf_prefix.startswith("/"):
        tf_prefix = tf_prefix[1:]
    return f"{tf_prefix}/{frame_id}" if tf_prefix else frame_id


def _cell(value: float) -> str:
    return f"{format(float(value), '.5g'):<12}"


def format_matrix(mat: Iterable[Iterable[float]]) -> str:
    """Render a matrix in the filters' debug layout."""
    lines = ["".join(_cell(v) for v in row) for row in mat]
    return "[" + "\n ".join(lines) + "]\n"


def format_vector(vec: Iterable[float]) -> str:
    """Render a vector on one line."""
    return "[" + "".join(_cell(v) for v in vec) + "]\n"


def format_indices(vec: Iterable[int]) -> str:
    """Render a list of indices on one line."""
    return "[" + "".join(f"{int(v):<12}" for v in vec) + "]\n"


def format_flags(vec: Iterable[int]) -> str:
    """Render an update vector as t/f flags."""
    return "[" + "".join(f"{'t' if v else 'f':<3}" for v in vec) + "]\n"