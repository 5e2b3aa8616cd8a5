"""Binary layouts of FDILink frames: header and data packets."""

from __future__ import annotations

import struct
from dataclasses import astuple, dataclass, fields
from enum import IntEnum
from typing import Any, ClassVar

__all__ = [
    "FRAME_HEAD",
    "FRAME_END",
    "HEADER_LEN",
    "IMU_LEN",
    "AHRS_LEN",
    "INSGPS_LEN",
    "FrameType",
    "FrameHeader",
    "ImuPacket",
    "AhrsPacket",
    "InsGpsPacket",
]

FRAME_HEAD = 0xFC
FRAME_END = 0xFD
HEADER_LEN = 7
IMU_LEN = 0x38
AHRS_LEN = 0x30
INSGPS_LEN = 0x54


class FrameType(IntEnum):
    """Data type byte of a frame header."""

    IMU = 0x40
    AHRS = 0x41
    INSGPS = 0x42
    UNKNOWN = 0x50
    GROUND = 0xF0

    @property
    def payload_length(self) -> int | None:
        """Expected payload length, or None where the device does not fix it."""
        return {
            FrameType.IMU: IMU_LEN,
            FrameType.AHRS: AHRS_LEN,
            FrameType.INSGPS: INSGPS_LEN,
        }.get(self)


def _check_length(name: str, data: bytes, size: int) -> bytes:
    data = bytes(data)
    if len(data) != size:
        raise ValueError(f"{name} needs {size} bytes, got {len(data)}")
    return data


_HEADER_STRUCT = struct.Struct("<7B")


@dataclass
class FrameHeader:
    """The seven header bytes that open every frame."""

    data_type: int
    data_size: int
    serial_num: int
    header_crc8: int
    header_crc16_h: int
    header_crc16_l: int
    header_start: int = FRAME_HEAD

    @property
    def crc16(self) -> int:
        """The payload checksum announced by the header."""
        return (self.header_crc16_h << 8) | self.header_crc16_l

    @classmethod
    def from_bytes(cls, data: bytes) -> "FrameHeader":
        raw = _check_length("frame header", data, HEADER_LEN)
        start, dtype, size, sn, c8, c16h, c16l = _HEADER_STRUCT.unpack(raw)
        return cls(dtype, size, sn, c8, c16h, c16l, header_start=start)

    def to_bytes(self) -> bytes:
        return _HEADER_STRUCT.pack(
            self.header_start,
            self.data_type,
            self.data_size,
            self.serial_num,
            self.header_crc8,
            self.header_crc16_h,
            self.header_crc16_l,
        )


def _unpack(cls: Any, layout: struct.Struct, data: bytes) -> Any:
    raw = _check_length(cls.__name__, data, layout.size)
    return cls(*layout.unpack(raw))


def _pack(packet: Any, layout: struct.Struct) -> bytes:
    return layout.pack(*astuple(packet))


class _Packet:
    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))  # type: ignore[arg-type]


@dataclass
class ImuPacket(_Packet):
    """Raw sensor readings (56 bytes)."""

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<12fq")

    gyroscope_x: float = 0.0
    gyroscope_y: float = 0.0
    gyroscope_z: float = 0.0
    accelerometer_x: float = 0.0
    accelerometer_y: float = 0.0
    accelerometer_z: float = 0.0
    magnetometer_x: float = 0.0
    magnetometer_y: float = 0.0
    magnetometer_z: float = 0.0
    imu_temperature: float = 0.0
    pressure: float = 0.0
    pressure_temperature: float = 0.0
    timestamp: int = 0

    @classmethod
    def from_bytes(cls, data: bytes) -> "ImuPacket":
        return _unpack(cls, cls._STRUCT, data)

    def to_bytes(self) -> bytes:
        return _pack(self, self._STRUCT)


@dataclass
class AhrsPacket(_Packet):
    """Attitude solution: rates, Euler angles and quaternion (48 bytes)."""

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<10fq")

    roll_speed: float = 0.0
    pitch_speed: float = 0.0
    heading_speed: float = 0.0
    roll: float = 0.0
    pitch: float = 0.0
    heading: float = 0.0
    qw: float = 0.0
    qx: float = 0.0
    qy: float = 0.0
    qz: float = 0.0
    timestamp: int = 0

    @classmethod
    def from_bytes(cls, data: bytes) -> "AhrsPacket":
        return _unpack(cls, cls._STRUCT, data)

    def to_bytes(self) -> bytes:
        return _pack(self, self._STRUCT)


@dataclass
class InsGpsPacket(_Packet):
    """Navigation solution in body and NED frames (84 bytes)."""

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<6f3d7fq")

    body_velocity_x: float = 0.0
    body_velocity_y: float = 0.0
    body_velocity_z: float = 0.0
    body_acceleration_x: float = 0.0
    body_acceleration_y: float = 0.0
    body_acceleration_z: float = 0.0
    location_north: float = 0.0
    location_east: float = 0.0
    location_down: float = 0.0
    velocity_north: float = 0.0
    velocity_east: float = 0.0
    velocity_down: float = 0.0
    acceleration_north: float = 0.0
    acceleration_east: float = 0.0
    acceleration_down: float = 0.0
    pressure_altitude: float = 0.0
    timestamp: int = 0

    @classmethod
    def from_bytes(cls, data: bytes) -> "InsGpsPacket":
        return _unpack(cls, cls._STRUCT, data)

    def to_bytes(self) -> bytes:
        return _pack(self, self._STRUCT)