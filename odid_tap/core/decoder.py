"""
ODID message-pack decoder.

    frame → find_marker → count at marker+7 → 25-byte slots → per-type decode
    BLE legacy advert: marker → one 25-byte message at marker+5

Each slot is fetched as a bounds-checked copy before its type is looked at,
so a corrupted message_count can never push a read past the frame: decoding
simply stops at the first slot that doesn't fit and reports TRUNCATED,
keeping what was decoded before it.

Slot layouts (offsets within the 25-byte slot; byte 0 is the type/version):

    Basic ID         1 id_type|ua_type, 2-21 UAS ID
    Location/Vector  1 status|flags, 2 direction, 3 speed, 4 vspeed,
                     5-8 lat, 9-12 lon, 13-14 pressure alt, 15-16 geodetic
                     alt, 17-18 height, 19 v|h accuracy, 20 baro|speed
                     accuracy, 21-22 timestamp, 23 timestamp accuracy
    Self-ID          1 type, 2-24 description
    System           1 flags, 2-5 op lat, 6-9 op lon, 10-11 area count,
                     12 area radius, 13-14 ceiling, 15-16 floor,
                     17 category|class, 18-19 op alt, 20-23 timestamp
    Operator ID      1 type, 2-21 operator ID
"""

import logging
from dataclasses import replace

from odid_tap.core import codec
from odid_tap.core.codec import FrameTruncated, SLOT_SIZE, TYPE_FORMULA_OFFSET
from odid_tap.core.locator import (
    COUNT_OFFSET,
    FIRST_SLOT_OFFSET,
    LONE_MESSAGE_MARKERS,
    ODID_WIFI_MARKER,
    PACK_HEADER_OFFSET,
    SINGLE_SLOT_OFFSET,
    find_marker,
)
from odid_tap.core.messages import (
    BasicId,
    DecodeResult,
    DecodeStatus,
    LocationVector,
    MessageFlags,
    MessageType,
    OperatorId,
    SelfId,
    SystemMessage,
)

logger = logging.getLogger(__name__)

# Basic ID id_type values with a special layout
_ID_TYPE_NONE = 0
_ID_TYPE_SERIAL = 1
_ID_TYPE_CAA_REGISTRATION = 2
_ID_TYPE_UTM_ASSIGNED = 3
_ID_TYPE_SPECIFIC_SESSION = 4

_ID_LENGTH = 20
_UUID_BYTES = 16
_SELF_ID_LENGTH = 23

# High nibble of the header byte that opens a message pack
PACK_MESSAGE_TYPE = 0xF


# ---- Per-type decoders ----

def decode_basic_id(slot: bytes) -> BasicId:
    id_type, ua_type = codec.split_nibbles(codec.read_u8(slot, 1))
    session_id_type = None

    if id_type == _ID_TYPE_NONE:
        ua_id = "0" * _ID_LENGTH
    elif id_type in (_ID_TYPE_SERIAL, _ID_TYPE_CAA_REGISTRATION):
        ua_id = codec.decode_ascii(slot, 2, _ID_LENGTH)
    elif id_type == _ID_TYPE_UTM_ASSIGNED:
        ua_id = codec.decode_hex(slot, 2, _UUID_BYTES)
    elif id_type == _ID_TYPE_SPECIFIC_SESSION:
        session_id_type = codec.read_u8(slot, 2)
        ua_id = codec.decode_ascii(slot, 3, _ID_LENGTH - 1)
    else:
        # Reserved ID types: nothing to interpret
        ua_id = None

    return BasicId(
        protocol_version=codec.protocol_version_of(slot[0]),
        id_type=id_type,
        ua_type=ua_type,
        ua_id=ua_id,
        session_id_type=session_id_type,
    )


def decode_location_vector(slot: bytes) -> LocationVector:
    flags = codec.read_u8(slot, 1)
    op_status = flags // 16
    height_type = (flags % 8) // 4
    ew_direction = (flags % 4) // 2
    speed_multiplier = flags % 2

    # Widened: 180-255 + 180 must not wrap
    track_direction = codec.read_u8(slot, 2)
    if ew_direction:
        track_direction += 180

    vertical_accuracy, horizontal_accuracy = codec.split_nibbles(codec.read_u8(slot, 19))
    baro_accuracy, speed_accuracy = codec.split_nibbles(codec.read_u8(slot, 20))

    return LocationVector(
        protocol_version=codec.protocol_version_of(slot[0]),
        op_status=op_status,
        height_type=height_type,
        ew_direction=ew_direction,
        speed_multiplier=speed_multiplier,
        track_direction=track_direction,
        speed=codec.decode_speed(codec.read_u8(slot, 3), speed_multiplier),
        vertical_speed=codec.decode_vertical_speed(codec.read_int(slot, 4, 1)),
        latitude=codec.decode_latlon(codec.read_int(slot, 5, 4)),
        longitude=codec.decode_latlon(codec.read_int(slot, 9, 4)),
        pressure_altitude=codec.decode_altitude(codec.read_uint(slot, 13, 2)),
        geodetic_altitude=codec.decode_altitude(codec.read_uint(slot, 15, 2)),
        height=codec.decode_altitude(codec.read_uint(slot, 17, 2)),
        vertical_accuracy=vertical_accuracy,
        horizontal_accuracy=horizontal_accuracy,
        baro_accuracy=baro_accuracy,
        speed_accuracy=speed_accuracy,
        timestamp=codec.read_uint(slot, 21, 2),
        timestamp_accuracy=codec.decode_timestamp_accuracy(codec.read_u8(slot, 23)),
    )


def decode_self_id(slot: bytes) -> SelfId:
    return SelfId(
        protocol_version=codec.protocol_version_of(slot[0]),
        self_id_type=codec.read_u8(slot, 1),
        description=codec.decode_ascii(slot, 2, _SELF_ID_LENGTH),
    )


def decode_system(slot: bytes) -> SystemMessage:
    ua_category, ua_class = codec.split_nibbles(codec.read_u8(slot, 17))
    return SystemMessage(
        protocol_version=codec.protocol_version_of(slot[0]),
        operator_location_type=codec.read_u8(slot, 1) % 3,
        operator_latitude=codec.decode_latlon(codec.read_int(slot, 2, 4)),
        operator_longitude=codec.decode_latlon(codec.read_int(slot, 6, 4)),
        area_count=codec.read_uint(slot, 10, 2),
        area_radius=codec.decode_area_radius(codec.read_u8(slot, 12)),
        area_ceiling=codec.decode_altitude(codec.read_uint(slot, 13, 2)),
        area_floor=codec.decode_altitude(codec.read_uint(slot, 15, 2)),
        ua_category=ua_category,
        ua_class=ua_class,
        operator_altitude=codec.decode_altitude(codec.read_uint(slot, 18, 2)),
        timestamp=codec.read_uint(slot, 20, 4),
    )


def decode_operator_id(slot: bytes) -> OperatorId:
    return OperatorId(
        protocol_version=codec.protocol_version_of(slot[0]),
        operator_id_type=codec.read_u8(slot, 1),
        operator_id=codec.decode_ascii(slot, 2, _ID_LENGTH),
    )


SLOT_DECODERS = {
    MessageType.BASIC_ID: decode_basic_id,
    MessageType.LOCATION_VECTOR: decode_location_vector,
    MessageType.AUTHENTICATION: None,  # recognized, not decoded
    MessageType.SELF_ID: decode_self_id,
    MessageType.SYSTEM: decode_system,
    MessageType.OPERATOR_ID: decode_operator_id,
}


# ---- Pack decoding ----

def decode_slot(slot: bytes, type_formula: str = TYPE_FORMULA_OFFSET):
    """Decode one 25-byte slot.  Returns None for unsupported types."""
    raw_type = codec.message_type_of(slot[0], type_formula)
    try:
        message_type = MessageType(raw_type)
    except ValueError:
        return None
    decoder = SLOT_DECODERS[message_type]
    if decoder is None:
        return None
    return decoder(slot)


def _is_pack_header(frame, marker_offset: int) -> bool:
    header = codec.take(frame, marker_offset + PACK_HEADER_OFFSET, 2)
    return header[0] // 16 == PACK_MESSAGE_TYPE and header[1] == SLOT_SIZE


def decode_single(frame, marker_offset: int, type_formula: str = TYPE_FORMULA_OFFSET) -> DecodeResult:
    """Decode the lone message that follows the counter byte (BLE legacy advertising)."""
    result = DecodeResult(
        status=DecodeStatus.OK,
        marker_offset=marker_offset,
        message_count=1,
        packed=False,
    )
    try:
        slot = codec.take(frame, marker_offset + SINGLE_SLOT_OFFSET, SLOT_SIZE)
    except FrameTruncated as e:
        logger.debug(f"Single message truncated: {e}")
        return replace(result, status=DecodeStatus.TRUNCATED, truncated_slot=0)

    message = decode_slot(slot, type_formula)
    if message is None:
        logger.debug(f"Unsupported message byte 0x{slot[0]:02X}, skipped")
        return replace(result, skipped_slots=(0,))
    return replace(
        result,
        messages=(message,),
        flags=MessageFlags.from_messages([message]),
    )


def decode_pack(
    frame,
    marker_offset: int,
    type_formula: str = TYPE_FORMULA_OFFSET,
    allow_single: bool = False,
) -> DecodeResult:
    """
    Decode the message pack whose marker starts at ``marker_offset``.

    With ``allow_single``, a frame whose bytes after the counter are not a
    pack header is decoded as one message at marker+5 instead.
    """
    if allow_single:
        try:
            packed = _is_pack_header(frame, marker_offset)
        except FrameTruncated:
            packed = False
        if not packed:
            return decode_single(frame, marker_offset, type_formula)

    try:
        message_count = codec.read_u8(frame, marker_offset + COUNT_OFFSET)
    except FrameTruncated as e:
        logger.debug(f"Pack header truncated: {e}")
        return DecodeResult(
            status=DecodeStatus.TRUNCATED,
            marker_offset=marker_offset,
        )

    messages = []
    skipped = []
    status = DecodeStatus.OK
    truncated_slot = None
    base = marker_offset + FIRST_SLOT_OFFSET

    for i in range(message_count):
        try:
            slot = codec.take(frame, base + i * SLOT_SIZE, SLOT_SIZE)
        except FrameTruncated as e:
            logger.debug(f"Slot {i}/{message_count} truncated: {e}")
            status = DecodeStatus.TRUNCATED
            truncated_slot = i
            break

        message = decode_slot(slot, type_formula)
        if message is None:
            logger.debug(f"Slot {i}: unsupported message byte 0x{slot[0]:02X}, skipped")
            skipped.append(i)
            continue
        messages.append(message)

    return DecodeResult(
        status=status,
        marker_offset=marker_offset,
        message_count=message_count,
        messages=tuple(messages),
        flags=MessageFlags.from_messages(messages),
        truncated_slot=truncated_slot,
        skipped_slots=tuple(skipped),
    )


def decode_frame(
    frame,
    marker: bytes = ODID_WIFI_MARKER,
    type_formula: str = TYPE_FORMULA_OFFSET,
) -> DecodeResult:
    """
    Locate the ODID marker in a raw frame and decode its message pack.

    Args:
        frame: Captured bytes (Wi-Fi raw scan result or BLE advertisement)
        marker: Identifying sequence preceding the pack
        type_formula: "offset" or "nibble", see codec.message_type_of

    Returns:
        DecodeResult with status NOT_FOUND when the marker is absent,
        TRUNCATED when the pack runs past the frame, OK otherwise.
    """
    offset = find_marker(frame, marker)
    if offset is None:
        return DecodeResult(status=DecodeStatus.NOT_FOUND)
    return decode_pack(frame, offset, type_formula, allow_single=marker in LONE_MESSAGE_MARKERS)
