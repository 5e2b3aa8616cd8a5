"""Frame synchronisation and validation for an FDILink byte stream."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import BinaryIO, Union

import serial

from .crc import crc8, crc16
from .frames import (
    FRAME_END,
    FRAME_HEAD,
    HEADER_LEN,
    AhrsPacket,
    FrameHeader,
    FrameType,
    ImuPacket,
    InsGpsPacket,
)

__all__ = ["Frame", "FrameReader", "open_serial"]

log = logging.getLogger(__name__)

Packet = Union[ImuPacket, AhrsPacket, InsGpsPacket]

_PACKET_TYPES: dict[FrameType, type] = {
    FrameType.IMU: ImuPacket,
    FrameType.AHRS: AhrsPacket,
    FrameType.INSGPS: InsGpsPacket,
}
_ACCEPTED_TYPES = frozenset(int(t) for t in FrameType)
_SKIPPED_TYPES = frozenset((FrameType.GROUND, FrameType.UNKNOWN))


class _StreamIdle(Exception):
    """The stream returned fewer bytes than asked for."""


@dataclass(frozen=True)
class Frame:
    """A validated frame: its header and decoded data packet."""

    header: FrameHeader
    packet: Packet

    @property
    def type(self) -> FrameType:
        return FrameType(self.header.data_type)


class FrameReader:
    """Pull validated frames out of a byte stream.

    Bytes before a frame head, frames of unknown type or wrong length, and
    frames whose checksums or end byte do not match are dropped. Reading
    stops when the stream returns fewer bytes than requested (a timeout on a
    serial port, end of data on a file).
    """

    def __init__(self, stream: BinaryIO, debug: bool = False) -> None:
        self.stream = stream
        self.debug = debug
        self.sn_lost = 0
        self.read_sn = 0
        self._first_sn = False

    def __iter__(self) -> Iterator[Frame]:
        while (frame := self.read_frame()) is not None:
            yield frame

    def read_frame(self) -> Frame | None:
        """Return the next valid frame, or None once the stream runs dry."""
        try:
            while True:
                frame = self._next_candidate()
                if frame is not None:
                    return frame
        except _StreamIdle:
            if self.debug:
                log.error("Read serial port time out!")
            return None

    def check_sn(self, serial_num: int) -> int:
        """Advance the expected serial number; return how many frames were missed."""
        self.read_sn = (self.read_sn + 1) & 0xFF
        lost = 0
        if self.read_sn != serial_num:
            lost = (serial_num - self.read_sn) % 256
            self.sn_lost += lost
            if self.debug:
                log.warning("detected sn lost.")
        self.read_sn = serial_num
        return lost

    def _read(self, size: int) -> bytes:
        data = self.stream.read(size)
        if data is None or len(data) < size:
            raise _StreamIdle
        return bytes(data)

    def _next_candidate(self) -> Frame | None:
        (head,) = self._read(1)
        if self.debug:
            log.debug("check_head: %x", head)
        if head != FRAME_HEAD:
            return None

        (data_type,) = self._read(1)
        if self.debug:
            log.debug("head_type: %x", data_type)
        if data_type not in _ACCEPTED_TYPES:
            log.warning("head_type error: %02X", data_type)
            return None
        frame_type = FrameType(data_type)

        (length,) = self._read(1)
        if self.debug:
            log.debug("check_len: %d", length)
        if frame_type in _SKIPPED_TYPES:
            (serial_num,) = self._read(1)
            self.check_sn(serial_num)
            self._read(length + 4)
            return None
        if length != frame_type.payload_length:
            log.warning("head_len error (%s)", frame_type.name.lower())
            return None

        header = FrameHeader.from_bytes(bytes((head, data_type, length)) + self._read(HEADER_LEN - 3))
        if self.debug:
            log.debug(
                "check_sn: %x head_crc8: %x head_crc16_H: %x head_crc16_L: %x",
                header.serial_num,
                header.header_crc8,
                header.header_crc16_h,
                header.header_crc16_l,
            )
        if crc8(header.to_bytes()[:4]) != header.header_crc8:
            log.warning("header_crc8 error")
            return None
        if frame_type is not FrameType.INSGPS and not self._first_sn:
            self.read_sn = (header.serial_num - 1) & 0xFF
            self._first_sn = True
        self.check_sn(header.serial_num)

        body = self._read(length + 1)
        payload, frame_end = body[:-1], body[-1]
        checksum = crc16(payload)
        if self.debug:
            log.debug("CRC16: %x head_crc16: %x", checksum, header.crc16)
        if checksum != header.crc16:
            log.warning("check crc16 faild(%s).", frame_type.name.lower())
            return None
        if frame_end != FRAME_END:
            log.warning("check frame end.")
            return None
        return Frame(header, _PACKET_TYPES[frame_type].from_bytes(payload))


def open_serial(port: str, baud: int = 921600, timeout: float = 0.02) -> serial.Serial:
    """Open a serial port set to 8N1 without flow control."""
    connection = serial.Serial(
        port=port,
        baudrate=baud,
        bytesize=serial.EIGHTBITS,
        parity=serial.PARITY_NONE,
        stopbits=serial.STOPBITS_ONE,
        xonxoff=False,
        rtscts=False,
        timeout=timeout,
    )
    if not connection.is_open:
        raise OSError(f"unable to open serial port {port}")
    return connection