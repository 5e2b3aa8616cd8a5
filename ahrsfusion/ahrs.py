"""Turn AHRS frames into IMU messages and a magnetic heading."""

from __future__ import annotations

import argparse
import logging
import math
import sys
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import IntEnum

import serial

from .frames import AhrsPacket, ImuPacket
from .reader import Frame, FrameReader, open_serial

__all__ = [
    "DeviceType",
    "ImuMessage",
    "quaternion_multiply",
    "axis_angle_quaternion",
    "euler_angles_zyx",
    "mag_calculate_yaw",
    "convert_ahrs",
    "AhrsDriver",
    "main",
]

log = logging.getLogger(__name__)

Quaternion = tuple[float, float, float, float]  # w, x, y, z

_HALF_TURN = 3.14159
_UNIT_X = (1.0, 0.0, 0.0)
_UNIT_Y = (0.0, 1.0, 0.0)
_UNIT_Z = (0.0, 0.0, 1.0)


class DeviceType(IntEnum):
    """How device axes map onto the published message."""

    RAW = 0
    ROS = 1


@dataclass(frozen=True)
class ImuMessage:
    """An orientation, rate and acceleration sample with magnetic heading."""

    orientation: tuple[float, float, float, float]  # x, y, z, w
    angular_velocity: tuple[float, float, float]
    linear_acceleration: tuple[float, float, float]
    mag_yaw: float
    frame_id: str
    stamp: float


def quaternion_multiply(a: Sequence[float], b: Sequence[float]) -> Quaternion:
    """Hamilton product of two (w, x, y, z) quaternions."""
    aw, ax, ay, az = a
    bw, bx, by, bz = b
    return (
        aw * bw - ax * bx - ay * by - az * bz,
        aw * bx + ax * bw + ay * bz - az * by,
        aw * by - ax * bz + ay * bw + az * bx,
        aw * bz + ax * by - ay * bx + az * bw,
    )


def axis_angle_quaternion(angle: float, axis: Sequence[float]) -> Quaternion:
    """Quaternion (w, x, y, z) rotating by angle about axis."""
    x, y, z = (float(v) for v in axis)
    norm = math.hypot(x, y, z)
    if norm == 0.0:
        raise ValueError("rotation axis must be non-zero")
    s = math.sin(angle / 2.0) / norm
    return (math.cos(angle / 2.0), x * s, y * s, z * s)


def _rotation_matrix(q: Sequence[float]) -> list[list[float]]:
    w, x, y, z = q
    tx, ty, tz = 2.0 * x, 2.0 * y, 2.0 * z
    twx, twy, twz = tx * w, ty * w, tz * w
    txx, txy, txz = tx * x, ty * x, tz * x
    tyy, tyz, tzz = ty * y, tz * y, tz * z
    return [
        [1.0 - (tyy + tzz), txy - twz, txz + twy],
        [txy + twz, 1.0 - (txx + tzz), tyz - twx],
        [txz - twy, tyz + twx, 1.0 - (txx + tyy)],
    ]


def euler_angles_zyx(q: Sequence[float]) -> tuple[float, float, float]:
    """Return (yaw, pitch, roll) of a (w, x, y, z) quaternion, yaw in [0, pi]."""
    m = _rotation_matrix(q)
    yaw = math.atan2(m[1][0], m[0][0])
    c2 = math.hypot(m[2][2], m[2][1])
    if yaw < 0.0:
        yaw += math.pi
        pitch = math.atan2(-m[2][0], -c2)
    else:
        pitch = math.atan2(-m[2][0], c2)
    s1, c1 = math.sin(yaw), math.cos(yaw)
    roll = math.atan2(s1 * m[0][2] - c1 * m[1][2], c1 * m[1][1] - s1 * m[0][1])
    return yaw, pitch, roll


def mag_calculate_yaw(roll: float, pitch: float, magx: float, magy: float, magz: float) -> float:
    """Tilt-compensated magnetic heading in [0, 2*pi)."""
    temp1 = magy * math.cos(roll) + magz * math.sin(roll)
    temp2 = (
        magx * math.cos(pitch)
        + magy * math.sin(pitch) * math.sin(roll)
        - magz * math.sin(pitch) * math.cos(roll)
    )
    yaw = math.atan2(-temp1, temp2)
    if yaw < 0.0:
        yaw += 2.0 * math.pi
    return yaw


def _euler_quaternion(z: float, y: float, x: float) -> Quaternion:
    return quaternion_multiply(
        quaternion_multiply(axis_angle_quaternion(z, _UNIT_Z), axis_angle_quaternion(y, _UNIT_Y)),
        axis_angle_quaternion(x, _UNIT_X),
    )


_Q_R = _euler_quaternion(_HALF_TURN, _HALF_TURN, 0.0)
_Q_RR = _euler_quaternion(0.0, 0.0, _HALF_TURN)


def convert_ahrs(
    ahrs: AhrsPacket,
    imu: ImuPacket,
    device_type: DeviceType | int = DeviceType.ROS,
    frame_id: str = "imu",
) -> ImuMessage:
    """Combine an attitude packet with the latest sensor packet into a message."""
    device_type = DeviceType(device_type)
    q_ahrs = (ahrs.qw, ahrs.qx, ahrs.qy, ahrs.qz)
    if device_type is DeviceType.RAW:
        orientation = q_ahrs
        angular = (ahrs.roll_speed, ahrs.pitch_speed, ahrs.heading_speed)
        accel = (imu.accelerometer_x, imu.accelerometer_y, imu.accelerometer_z)
        mag = (imu.magnetometer_x, imu.magnetometer_y, imu.magnetometer_z)
        roll, pitch = ahrs.roll, ahrs.pitch
    else:
        orientation = quaternion_multiply(quaternion_multiply(_Q_R, q_ahrs), _Q_RR)
        angular = (ahrs.roll_speed, -ahrs.pitch_speed, -ahrs.heading_speed)
        accel = (-imu.accelerometer_x, imu.accelerometer_y, imu.accelerometer_z)
        mag = (-imu.magnetometer_x, imu.magnetometer_y, imu.magnetometer_z)
        _, pitch, roll = euler_angles_zyx(orientation)
    w, x, y, z = orientation
    return ImuMessage(
        orientation=(x, y, z, w),
        angular_velocity=angular,
        linear_acceleration=accel,
        mag_yaw=mag_calculate_yaw(roll, pitch, *mag),
        frame_id=frame_id,
        stamp=time.time(),
    )


class AhrsDriver:
    """Feed frames from a reader into IMU messages for subscribers."""

    def __init__(
        self,
        reader: FrameReader,
        device_type: DeviceType | int = DeviceType.ROS,
        frame_id: str = "imu",
    ) -> None:
        self.reader = reader
        self.device_type = DeviceType(device_type)
        self.frame_id = frame_id
        self.last_imu = ImuPacket()
        self.subscribers: list[Callable[[ImuMessage], None]] = []

    def process(self, frame: Frame) -> ImuMessage | None:
        """Handle one frame; return the message published for it, if any."""
        if isinstance(frame.packet, ImuPacket):
            self.last_imu = frame.packet
            return None
        if isinstance(frame.packet, AhrsPacket):
            message = convert_ahrs(frame.packet, self.last_imu, self.device_type, self.frame_id)
            for subscriber in self.subscribers:
                subscriber(message)
            return message
        return None

    def run(self) -> int:
        """Process frames until the reader runs dry; return messages published."""
        return sum(self.process(frame) is not None for frame in self.reader)


def _print_message(message: ImuMessage) -> None:
    x, y, z, w = message.orientation
    print(
        f"{message.stamp:.6f} {message.frame_id} "
        f"q=({x:.6f} {y:.6f} {z:.6f} {w:.6f}) mag_yaw={message.mag_yaw:.6f}",
        flush=True,
    )


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Read an FDILink AHRS over a serial port.")
    parser.add_argument("--port", default="/dev/ttyTHS1")
    parser.add_argument("--baud", type=int, default=921600)
    parser.add_argument("--device-type", type=int, choices=[0, 1], default=1)
    parser.add_argument("--imu-frame", default="imu")
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO)

    try:
        port = open_serial(args.port, args.baud, 0.02)
    except (serial.SerialException, OSError):
        log.error("Unable to open port %s", args.port)
        return 1
    log.info("Serial Port initialized")
    with port:
        driver = AhrsDriver(FrameReader(port, args.debug), args.device_type, args.imu_frame)
        driver.subscribers.append(_print_message)
        try:
            while port.is_open:
                driver.run()
        except KeyboardInterrupt:
            pass
    return 0


if __name__ == "__main__":
    sys.exit(main())