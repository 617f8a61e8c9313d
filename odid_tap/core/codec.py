"""
ODID field codec: bounds-checked byte access and per-field scaling.

Every reader takes the buffer plus an absolute offset and raises
FrameTruncated instead of reading past the end.  Scaling factors follow
ASTM F3411 (see the per-field helpers below).
"""

from typing import Tuple

SLOT_SIZE = 25

PLACEHOLDER_CHAR = "_"

# Decimal -> character for the identifiers we care about.  Everything not
# listed (lowercase, punctuation, control, >= 91) renders as the placeholder.
# Code 0 maps to '0' so NUL padding shows up as zeros.
_ASCII_KNOWN = {0: "0", 45: "-", 46: "."}
_ASCII_KNOWN.update({48 + d: str(d) for d in range(10)})
_ASCII_KNOWN.update({65 + i: chr(65 + i) for i in range(26)})

ASCII_TABLE: Tuple[str, ...] = tuple(
    _ASCII_KNOWN.get(code, PLACEHOLDER_CHAR) for code in range(256)
)

HEX_TABLE: Tuple[str, ...] = tuple(f"{code:02X}" for code in range(256))

# Message type formulas (see message_type_of)
TYPE_FORMULA_OFFSET = "offset"
TYPE_FORMULA_NIBBLE = "nibble"
TYPE_FORMULAS = (TYPE_FORMULA_OFFSET, TYPE_FORMULA_NIBBLE)


class FrameTruncated(ValueError):
    """A read would run past the end of the captured frame."""

    def __init__(self, offset: int, width: int, length: int):
        self.offset = offset
        self.width = width
        self.length = length
        super().__init__(
            f"need {width} byte(s) at offset {offset}, frame has {length}"
        )


# ---- Raw access ----

def take(buf, offset: int, width: int) -> bytes:
    """Return buf[offset:offset+width] or raise FrameTruncated."""
    if offset < 0 or width < 0 or offset + width > len(buf):
        raise FrameTruncated(offset, width, len(buf))
    return bytes(buf[offset:offset + width])


def read_u8(buf, offset: int) -> int:
    if offset < 0 or offset >= len(buf):
        raise FrameTruncated(offset, 1, len(buf))
    return buf[offset]


def read_uint(buf, offset: int, width: int) -> int:
    """Little-endian unsigned integer of ``width`` bytes."""
    return int.from_bytes(take(buf, offset, width), "little", signed=False)


def read_int(buf, offset: int, width: int) -> int:
    """Little-endian two's complement integer of ``width`` bytes."""
    return int.from_bytes(take(buf, offset, width), "little", signed=True)


def split_nibbles(value: int) -> Tuple[int, int]:
    """(high, low) nibble of a byte, via floor division and modulo."""
    return value // 16, value % 16


# ---- Scaled values ----

def decode_altitude(raw: int) -> float:
    """Half-metre resolution with a -1000 m offset.

    Shared by pressure/geodetic altitude, height, area ceiling/floor and
    operator altitude.
    """
    return raw * 0.5 - 1000


def decode_speed(raw: int, multiplier: int) -> float:
    """Ground speed in m/s: 0.25 m/s steps, or 0.75 m/s steps above 63.75."""
    if multiplier:
        return raw * 0.75 + 63.75
    return raw * 0.25


def decode_vertical_speed(raw: int) -> float:
    """Signed vertical speed in m/s (positive = up)."""
    return raw * 0.5


def decode_latlon(raw: int) -> float:
    """Degrees from a 1e-7 degree integer."""
    return raw / 10_000_000


def decode_area_radius(raw: int) -> int:
    return raw * 10


def decode_timestamp_accuracy(raw: int) -> float:
    """Timestamp accuracy in seconds, 0.1 s steps (0 = unknown)."""
    return round((raw % 15) * 0.1, 1)


# ---- Strings ----

def decode_ascii(buf, offset: int, width: int) -> str:
    return "".join(ASCII_TABLE[b] for b in take(buf, offset, width))


def decode_hex(buf, offset: int, width: int) -> str:
    return "".join(HEX_TABLE[b] for b in take(buf, offset, width))


# ---- Message header ----

def message_type_of(byte0: int, formula: str = TYPE_FORMULA_OFFSET) -> int:
    """Message type from the first byte of a slot.

    "offset" keeps the (byte0 - 2) / 16 form deployed receivers use, with
    integer division truncating toward zero so bytes 0 and 1 still give 0.
    "nibble" is the plain high nibble.
    """
    if formula == TYPE_FORMULA_NIBBLE:
        return byte0 // 16
    if formula == TYPE_FORMULA_OFFSET:
        return max(byte0 - 2, 0) // 16
    raise ValueError(f"unknown message type formula: {formula!r}")


def protocol_version_of(byte0: int) -> int:
    return byte0 % 16
