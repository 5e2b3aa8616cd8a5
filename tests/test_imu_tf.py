import math
import time

import pytest

from ahrsfusion.imu_tf import imu_to_transform


def test_defaults():
    tf = imu_to_transform((0.0, 0.0, 0.0, 1.0))
    assert tf.parent_frame == "base_link"
    assert tf.child_frame == "imu_link"
    assert tf.translation == (0.0, 0.0, 0.0)
    assert tf.rotation == (0.0, 0.0, 0.0, 1.0)


def test_rotation_is_normalised():
    tf = imu_to_transform((0.0, 0.0, 2.0, 2.0))
    assert math.isclose(sum(c * c for c in tf.rotation), 1.0)
    assert math.isclose(tf.rotation[2], tf.rotation[3])


def test_position_and_frames_pass_through():
    tf = imu_to_transform((1, 0, 0, 0), position=(0.1, -0.2, 0.3), child_frame="imu", parent_frame="chassis")
    assert tf.translation == (0.1, -0.2, 0.3)
    assert tf.child_frame == "imu"
    assert tf.parent_frame == "chassis"
    assert tf.rotation == (1.0, 0.0, 0.0, 0.0)


def test_stamp_is_current_time():
    before = time.time()
    tf = imu_to_transform((0, 0, 0, 1))
    after = time.time()
    assert before <= tf.stamp <= after


def test_zero_quaternion_rejected():
    with pytest.raises(ValueError):
        imu_to_transform((0.0, 0.0, 0.0, 0.0))


def test_wrong_arity_rejected():
    with pytest.raises(ValueError):
        imu_to_transform((0.0, 0.0, 1.0))