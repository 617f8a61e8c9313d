"""Frame builders shared by the tests."""

import struct

import pytest

from odid_tap.core.locator import ODID_BLE_MARKER, ODID_WIFI_MARKER

SLOT_SIZE = 25

# Filler that can never contain a marker byte sequence
PREFIX_BYTE = 0x11


def slot(byte0: int, payload: bytes = b"") -> bytes:
    """A 25-byte message slot: header byte + payload, zero padded."""
    assert len(payload) <= SLOT_SIZE - 1
    return bytes([byte0]) + payload + bytes(SLOT_SIZE - 1 - len(payload))


def frame(slots=(), count=None, prefix_len=12, marker=ODID_WIFI_MARKER,
          total_len=None, tail=b""):
    """prefix + marker + counter + pack header + count + slots [+ tail] [padded]."""
    count = len(slots) if count is None else count
    data = (
        bytes([PREFIX_BYTE]) * prefix_len
        + marker
        + bytes([0x01, 0xF2, 0x19, count])
        + b"".join(slots)
        + tail
    )
    if total_len is not None:
        assert total_len >= len(data)
        data += bytes(total_len - len(data))
    return data


def ble_legacy_advert(message, counter=0x01):
    """AD length + service data marker + counter + one bare 25-byte message."""
    body = ODID_BLE_MARKER + bytes([counter]) + message
    return bytes([len(body)]) + body


def basic_id_slot(id_type=1, ua_type=2, ident=b"ABCDEFGHIJ0123456789", byte0=0x02):
    return slot(byte0, bytes([id_type * 16 + ua_type]) + ident)


def location_slot(
    op_status=2, height_type=1, ew=0, mult=0, direction=90, speed=40, vspeed=-6,
    lat=473977418, lon=85455939, p_alt=2200, g_alt=2250, height=2100,
    acc=0x4B, baro_speed=0x32, timestamp=0x1234, ts_acc=5, byte0=0x12,
):
    flags = op_status * 16 + height_type * 4 + ew * 2 + mult
    payload = (
        bytes([flags, direction, speed])
        + struct.pack("<b", vspeed)
        + struct.pack("<ii", lat, lon)
        + struct.pack("<HHH", p_alt, g_alt, height)
        + bytes([acc, baro_speed])
        + struct.pack("<H", timestamp)
        + bytes([ts_acc])
    )
    return slot(byte0, payload)


def self_id_slot(self_id_type=0, text=b"DRONE-SURVEY.FLIGHT-012", byte0=0x32):
    return slot(byte0, bytes([self_id_type]) + text)


def system_slot(
    flags=0x01, op_lat=-338688000, op_lon=1512093000, area_count=513, radius=5,
    ceiling=2400, floor=2000, cat_class=0x12, op_alt=2040, timestamp=157680000,
    byte0=0x42,
):
    payload = (
        bytes([flags])
        + struct.pack("<ii", op_lat, op_lon)
        + struct.pack("<H", area_count)
        + bytes([radius])
        + struct.pack("<HH", ceiling, floor)
        + bytes([cat_class])
        + struct.pack("<H", op_alt)
        + struct.pack("<I", timestamp)
    )
    return slot(byte0, payload)


def operator_id_slot(ident=b"GBR-OP-1234ABCD.5678", op_type=0, byte0=0x52):
    return slot(byte0, bytes([op_type]) + ident)


@pytest.fixture
def full_pack_frame():
    """One of each decodable message kind, marker at offset 12."""
    return frame([
        basic_id_slot(),
        location_slot(),
        self_id_slot(),
        system_slot(),
        operator_id_slot(),
    ])
