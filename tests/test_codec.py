import pytest

from odid_tap.core import codec
from odid_tap.core.codec import FrameTruncated


def test_ascii_table_is_total():
    assert len(codec.ASCII_TABLE) == 256
    assert all(isinstance(c, str) and len(c) == 1 for c in codec.ASCII_TABLE)


def test_ascii_table_known_codes():
    assert codec.ASCII_TABLE[0] == "0"
    assert codec.ASCII_TABLE[ord("-")] == "-"
    assert codec.ASCII_TABLE[ord(".")] == "."
    assert "".join(codec.ASCII_TABLE[ord(c)] for c in "0123456789") == "0123456789"
    assert "".join(codec.ASCII_TABLE[c] for c in range(65, 91)) == "ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def test_ascii_table_placeholders():
    for code in (1, 32, 47, 58, 64, ord("a"), ord("z"), 127, 200, 255):
        assert codec.ASCII_TABLE[code] == codec.PLACEHOLDER_CHAR


def test_hex_table_is_total():
    assert len(codec.HEX_TABLE) == 256
    assert codec.HEX_TABLE[0] == "00"
    assert codec.HEX_TABLE[0x0A] == "0A"
    assert codec.HEX_TABLE[255] == "FF"


def test_take_in_bounds():
    assert codec.take(b"\x01\x02\x03\x04", 1, 2) == b"\x02\x03"
    assert codec.take(b"\x01\x02", 0, 2) == b"\x01\x02"
    assert codec.take(b"\x01\x02", 2, 0) == b""


@pytest.mark.parametrize("offset,width", [(3, 2), (4, 1), (-1, 1), (0, 5)])
def test_take_past_end_raises(offset, width):
    with pytest.raises(FrameTruncated) as exc:
        codec.take(b"\x01\x02\x03\x04", offset, width)
    assert exc.value.length == 4


def test_read_u8_bounds():
    assert codec.read_u8(b"\x07", 0) == 7
    with pytest.raises(FrameTruncated):
        codec.read_u8(b"\x07", 1)


def test_little_endian_unsigned():
    assert codec.read_uint(b"\x34\x12", 0, 2) == 0x1234
    assert codec.read_uint(b"\xFF\xFF\xFF\xFF", 0, 4) == 0xFFFFFFFF


def test_little_endian_signed():
    assert codec.read_int(b"\xFF", 0, 1) == -1
    assert codec.read_int(b"\x00\x00\x00\x80", 0, 4) == -2 ** 31
    assert codec.read_int(b"\x4A\x5F\x40\x1C", 0, 4) == 0x1C405F4A


def test_altitude_scaling():
    assert codec.decode_altitude(0) == -1000.0
    assert codec.decode_altitude(2000) == 0.0
    assert codec.decode_altitude(2201) == 100.5
    assert codec.decode_altitude(65535) == 31767.5


def test_altitude_round_trip():
    def encode(alt):
        return int(round((alt + 1000) * 2))

    for raw in range(0, 65536, 7):
        assert encode(codec.decode_altitude(raw)) == raw


def test_speed_low_and_high_range():
    assert codec.decode_speed(255, 0) == 63.75
    assert codec.decode_speed(40, 0) == 10.0
    assert codec.decode_speed(0, 1) == 63.75
    assert codec.decode_speed(254, 1) == 254.25


def test_vertical_speed_is_signed():
    assert codec.decode_vertical_speed(-6) == -3.0
    assert codec.decode_vertical_speed(127) == 63.5


def test_latlon_scaling():
    assert codec.decode_latlon(473977418) == pytest.approx(47.3977418)
    assert codec.decode_latlon(-1224194000) == pytest.approx(-122.4194)


def test_timestamp_accuracy_uses_modulo_15():
    assert codec.decode_timestamp_accuracy(0) == 0.0
    assert codec.decode_timestamp_accuracy(5) == 0.5
    assert codec.decode_timestamp_accuracy(14) == 1.4
    assert codec.decode_timestamp_accuracy(15) == 0.0
    assert codec.decode_timestamp_accuracy(0x21) == 0.3


def test_split_nibbles():
    assert codec.split_nibbles(0x4B) == (4, 11)
    assert codec.split_nibbles(0) == (0, 0)
    assert codec.split_nibbles(0xFF) == (15, 15)


def test_decode_ascii_and_hex():
    data = b"\x00AB-c.9"
    assert codec.decode_ascii(data, 0, 7) == "0AB-_.9"
    assert codec.decode_hex(data, 1, 2) == "4142"
    with pytest.raises(FrameTruncated):
        codec.decode_ascii(data, 5, 3)


def test_message_type_offset_formula():
    assert codec.message_type_of(0x02) == 0
    assert codec.message_type_of(0x12) == 1
    assert codec.message_type_of(0x52) == 5
    # bytes below the offset truncate toward zero instead of going negative
    assert codec.message_type_of(0x00) == 0
    assert codec.message_type_of(0x01) == 0
    # version 1 messages shift down one type under this formula
    assert codec.message_type_of(0x21) == 1


def test_message_type_nibble_formula():
    assert codec.message_type_of(0x21, codec.TYPE_FORMULA_NIBBLE) == 2
    assert codec.message_type_of(0x12, codec.TYPE_FORMULA_NIBBLE) == 1
    assert codec.message_type_of(0x01, codec.TYPE_FORMULA_NIBBLE) == 0


def test_message_type_unknown_formula():
    with pytest.raises(ValueError):
        codec.message_type_of(0x02, "bogus")


def test_protocol_version():
    assert codec.protocol_version_of(0x12) == 2
