"""Table-driven checksums used by the FDILink serial protocol."""

from __future__ import annotations

from collections.abc import Iterable

__all__ = ["crc8", "crc16", "crc32"]


def _build_crc8_table() -> tuple[int, ...]:
    # Reflected polynomial 0x31 (Dallas/Maxim); table[1] == 94.
    table = []
    for index in range(256):
        value = index
        for _ in range(8):
            value = (value >> 1) ^ 0x8C if value & 1 else value >> 1
        table.append(value)
    return tuple(table)


def _build_crc16_table() -> tuple[int, ...]:
    # CCITT polynomial 0x1021, most significant bit first; table[1] == 0x1021.
    table = []
    for index in range(256):
        value = index << 8
        for _ in range(8):
            value = ((value << 1) ^ 0x1021) if value & 0x8000 else value << 1
            value &= 0xFFFF
        table.append(value)
    return tuple(table)


_CRC8_TABLE = _build_crc8_table()
_CRC16_TABLE = _build_crc16_table()


def crc8(data: bytes | Iterable[int]) -> int:
    """Return the 8-bit checksum the device puts in a frame header."""
    crc = 0
    for byte in bytes(data):
        crc = _CRC8_TABLE[crc ^ byte]
    return crc


def crc16(data: bytes | Iterable[int]) -> int:
    """Return the 16-bit checksum the device sends for a frame payload."""
    crc = 0
    for byte in bytes(data):
        crc = _CRC16_TABLE[((crc >> 8) ^ byte) & 0xFF] ^ ((crc << 8) & 0xFFFF)
    return crc


def crc32(data: bytes | Iterable[int]) -> int:
    """Return the protocol's 32-bit check value.

    The protocol computes it with the 16-bit table in a 16-bit register, so
    the result always equals :func:`crc16` of the same data.
    """
    return crc16(data)