"""Turn an IMU orientation into a transform from the robot base."""

from __future__ import annotations

import math
import time
from collections.abc import Sequence
from dataclasses import dataclass

__all__ = ["StampedTransform", "imu_to_transform"]


@dataclass(frozen=True)
class StampedTransform:
    """A rigid transform between two frames at a point in time."""

    translation: tuple[float, float, float]
    rotation: tuple[float, float, float, float]  # x, y, z, w
    stamp: float
    parent_frame: str
    child_frame: str


def imu_to_transform(
    orientation: Sequence[float],
    position: Sequence[float] = (0.0, 0.0, 0.0),
    child_frame: str = "imu_link",
    parent_frame: str = "base_link",
) -> StampedTransform:
    """Build the parent-to-IMU transform from an (x, y, z, w) orientation.

    The rotation is normalised; a zero quaternion raises ValueError.
    """
    x, y, z, w = (float(v) for v in orientation)
    norm = math.sqrt(x * x + y * y + z * z + w * w)
    if norm == 0.0 or not math.isfinite(norm):
        raise ValueError("orientation quaternion must be finite and non-zero")
    px, py, pz = (float(v) for v in position)
    return StampedTransform(
        translation=(px, py, pz),
        rotation=(x / norm, y / norm, z / norm, w / norm),
        stamp=time.time(),
        parent_frame=parent_frame,
        child_frame=child_frame,
    )