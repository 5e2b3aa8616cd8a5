import pytest

from ahrsfusion.crc import crc8, crc16, crc32


def test_empty_input_gives_zero():
    assert crc8(b"") == 0
    assert crc16(b"") == 0
    assert crc32(b"") == 0


@pytest.mark.parametrize("byte, expected", [(1, 94), (2, 188), (3, 226), (255, 53)])
def test_crc8_single_byte_matches_table(byte, expected):
    assert crc8(bytes([byte])) == expected


@pytest.mark.parametrize(
    "byte, expected", [(1, 0x1021), (2, 0x2042), (16, 0x1231), (255, 0x1EF0)]
)
def test_crc16_single_byte_matches_table(byte, expected):
    assert crc16(bytes([byte])) == expected


def test_standard_check_values():
    assert crc8(b"123456789") == 0xA1
    assert crc16(b"123456789") == 0x31C3


def test_crc8_residue_is_zero():
    data = b"\xfc\x41\x30\x07"
    assert crc8(data + bytes([crc8(data)])) == 0


def test_crc16_residue_is_zero():
    data = bytes(range(48))
    value = crc16(data)
    assert crc16(data + value.to_bytes(2, "big")) == 0


def test_accepts_iterables_of_ints():
    assert crc16([0x10, 0x20, 0x30]) == crc16(b"\x10\x20\x30")
    assert crc8(iter([7, 8, 9])) == crc8(b"\x07\x08\x09")


def test_crc32_equals_crc16():
    data = bytes(range(200))
    assert crc32(data) == crc16(data)
    assert crc32(data) <= 0xFFFF


def test_bytes_out_of_range_rejected():
    with pytest.raises(ValueError):
        crc8([256])