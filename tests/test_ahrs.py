import io
import math

import pytest

from ahrsfusion.ahrs import (
    AhrsDriver,
    DeviceType,
    axis_angle_quaternion,
    convert_ahrs,
    euler_angles_zyx,
    mag_calculate_yaw,
    main,
    quaternion_multiply,
)
from ahrsfusion.crc import crc8, crc16
from ahrsfusion.frames import FRAME_END, FRAME_HEAD, AhrsPacket, FrameType, ImuPacket
from ahrsfusion.reader import FrameReader


def build_frame(frame_type, sn, payload):
    head = bytes([FRAME_HEAD, int(frame_type), len(payload), sn])
    c16 = crc16(payload)
    return head + bytes([crc8(head), c16 >> 8, c16 & 0xFF]) + payload + bytes([FRAME_END])


def test_quaternion_multiply_identity():
    q = (0.5, 0.5, -0.5, 0.5)
    assert quaternion_multiply((1.0, 0.0, 0.0, 0.0), q) == q
    assert quaternion_multiply(q, (1.0, 0.0, 0.0, 0.0)) == q


def test_axis_angle_about_z():
    q = axis_angle_quaternion(math.pi / 2, (0.0, 0.0, 2.0))
    assert q == pytest.approx((math.cos(math.pi / 4), 0.0, 0.0, math.sin(math.pi / 4)))


def test_axis_angle_zero_axis_raises():
    with pytest.raises(ValueError):
        axis_angle_quaternion(1.0, (0.0, 0.0, 0.0))


def test_composed_rotations_add_angles():
    a = axis_angle_quaternion(0.3, (0, 0, 1))
    b = axis_angle_quaternion(0.4, (0, 0, 1))
    assert quaternion_multiply(a, b) == pytest.approx(axis_angle_quaternion(0.7, (0, 0, 1)))


def test_euler_angles_recover_composition():
    q = quaternion_multiply(
        quaternion_multiply(axis_angle_quaternion(0.5, (0, 0, 1)), axis_angle_quaternion(0.2, (0, 1, 0))),
        axis_angle_quaternion(0.1, (1, 0, 0)),
    )
    assert euler_angles_zyx(q) == pytest.approx((0.5, 0.2, 0.1))


def test_euler_angles_yaw_stays_non_negative():
    q = axis_angle_quaternion(-0.4, (0, 0, 1))
    yaw, _, _ = euler_angles_zyx(q)
    assert 0.0 <= yaw <= math.pi


def test_mag_yaw_level_pointing_north():
    assert mag_calculate_yaw(0.0, 0.0, 1.0, 0.0, 0.0) == pytest.approx(0.0)


def test_mag_yaw_is_wrapped_positive():
    assert mag_calculate_yaw(0.0, 0.0, 0.0, 1.0, 0.0) == pytest.approx(3 * math.pi / 2)


@pytest.mark.parametrize("mag", [(1, 2, 3), (-4, 0.5, 1), (0.1, -3, -2)])
def test_mag_yaw_range(mag):
    yaw = mag_calculate_yaw(0.3, -0.2, *mag)
    assert 0.0 <= yaw < 2 * math.pi


def test_convert_raw_passes_values_through():
    ahrs = AhrsPacket(0.5, -0.25, 1.0, 0.0, 0.0, 0.0, 0.8, 0.6, 0.0, 0.0, 1)
    imu = ImuPacket(accelerometer_x=1.5, accelerometer_y=-2.0, accelerometer_z=9.5, magnetometer_x=1.0)
    msg = convert_ahrs(ahrs, imu, DeviceType.RAW, "imu_link")
    assert msg.orientation == (0.6, 0.0, 0.0, 0.8)
    assert msg.angular_velocity == (0.5, -0.25, 1.0)
    assert msg.linear_acceleration == (1.5, -2.0, 9.5)
    assert msg.frame_id == "imu_link"
    assert msg.mag_yaw == pytest.approx(mag_calculate_yaw(0.0, 0.0, 1.0, 0.0, 0.0))


def test_convert_ros_flips_axes():
    ahrs = AhrsPacket(0.5, -0.25, 1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1)
    imu = ImuPacket(accelerometer_x=1.5, accelerometer_y=-2.0, accelerometer_z=9.5)
    msg = convert_ahrs(ahrs, imu, DeviceType.ROS)
    assert msg.angular_velocity == (0.5, 0.25, -1.0)
    assert msg.linear_acceleration == (-1.5, -2.0, 9.5)
    x, y, z, w = msg.orientation
    assert math.sqrt(x * x + y * y + z * z + w * w) == pytest.approx(1.0)
    assert abs(w) == pytest.approx(1.0, abs=1e-4)


def test_convert_rejects_unknown_device_type():
    with pytest.raises(ValueError):
        convert_ahrs(AhrsPacket(qw=1.0), ImuPacket(), 5)


def test_driver_uses_latest_imu_for_ahrs():
    imu = ImuPacket(accelerometer_x=2.0, accelerometer_y=3.0, accelerometer_z=4.0)
    ahrs = AhrsPacket(qw=1.0)
    data = build_frame(FrameType.IMU, 1, imu.to_bytes()) + build_frame(FrameType.AHRS, 2, ahrs.to_bytes())
    driver = AhrsDriver(FrameReader(io.BytesIO(data)), DeviceType.RAW, "imu")
    received = []
    driver.subscribers.append(received.append)
    assert driver.run() == 1
    assert len(received) == 1
    assert received[0].linear_acceleration == (2.0, 3.0, 4.0)
    assert driver.last_imu == imu


def test_driver_process_imu_frame_publishes_nothing():
    imu = ImuPacket(gyroscope_x=1.0)
    reader = FrameReader(io.BytesIO(build_frame(FrameType.IMU, 1, imu.to_bytes())))
    driver = AhrsDriver(reader, DeviceType.ROS, "imu")
    frame = reader.read_frame()
    assert driver.process(frame) is None
    assert driver.last_imu == imu


def test_main_fails_on_missing_port(tmp_path):
    assert main(["--port", str(tmp_path / "missing")]) == 1