"""
Human-readable rendering of captured frames and decode results.
Kept apart from the decoder: nothing here is needed to decode a frame.
"""

from typing import List

from odid_tap.core import protocol as p
from odid_tap.core.messages import (
    BasicId,
    DecodeResult,
    DecodeStatus,
    LocationVector,
    OperatorId,
    SelfId,
    SystemMessage,
)


def hexdump(buf) -> str:
    """Space-separated, zero-padded uppercase hex bytes: '0D 0A FF'."""
    return " ".join(f"{b:02X}" for b in buf)


def _describe_basic_id(m: BasicId) -> str:
    line = (
        f"ID TYPE: {p.name_of(p.ID_TYPE_NAMES, m.id_type)}.  "
        f"UA TYPE: {p.name_of(p.UA_TYPE_NAMES, m.ua_type)}.  "
    )
    if m.session_id_type is not None:
        line += f"SESSION ID TYPE: {m.session_id_type}.  "
    return line + f"UA ID: {m.ua_id}."


def _describe_location(m: LocationVector) -> str:
    return (
        f"OPERATIONAL STATUS: {p.name_of(p.OP_STATUS_NAMES, m.op_status)}.  "
        f"HEIGHT TYPE: {p.name_of(p.HEIGHT_TYPE_NAMES, m.height_type)}.  "
        f"DIRECTION SEGMENT: {p.name_of(p.EW_DIRECTION_NAMES, m.ew_direction)}.  "
        f"SPEED MULTIPLIER: {p.name_of(p.SPEED_MULTIPLIER_NAMES, m.speed_multiplier)}.  "
        f"HEADING (deg): {m.track_direction}.  "
        f"SPEED (m/s): {m.speed:.2f}.  "
        f"VERTICAL SPEED (m/s): {m.vertical_speed:.1f}.  "
        f"LAT: {m.latitude:.7f}.  "
        f"LON: {m.longitude:.7f}.  "
        f"PRESSURE ALT: {m.pressure_altitude:.1f}.  "
        f"GEO ALT: {m.geodetic_altitude:.1f}.  "
        f"HEIGHT: {m.height:.1f}.  "
        f"HORIZONTAL ACCURACY: {p.name_of(p.HORIZONTAL_ACCURACY_NAMES, m.horizontal_accuracy)}.  "
        f"VERTICAL ACCURACY: {p.name_of(p.VERTICAL_ACCURACY_NAMES, m.vertical_accuracy)}.  "
        f"BARO ALT ACCURACY: {p.name_of(p.VERTICAL_ACCURACY_NAMES, m.baro_accuracy)}.  "
        f"SPEED ACCURACY: {p.name_of(p.SPEED_ACCURACY_NAMES, m.speed_accuracy)}.  "
        f"TIMESTAMP (s past hour): {m.timestamp_seconds:.1f}.  "
        f"TIMESTAMP ACCURACY (s): {m.timestamp_accuracy:.1f}."
    )


def _describe_self_id(m: SelfId) -> str:
    return (
        f"SELF ID TYPE: {p.name_of(p.SELF_ID_TYPE_NAMES, m.self_id_type)}.  "
        f"SELF ID: {m.description}."
    )


def _describe_system(m: SystemMessage) -> str:
    return (
        f"OPERATOR LOCATION SOURCE: {p.name_of(p.OPERATOR_LOCATION_NAMES, m.operator_location_type)}.  "
        f"OPERATOR LAT: {m.operator_latitude:.7f}.  "
        f"OPERATOR LON: {m.operator_longitude:.7f}.  "
        f"OPERATOR ALT: {m.operator_altitude:.1f}.  "
        f"AREA COUNT: {m.area_count}.  "
        f"AREA RADIUS: {m.area_radius}.  "
        f"AREA CEILING: {m.area_ceiling:.1f}.  "
        f"AREA FLOOR: {m.area_floor:.1f}.  "
        f"UA CATEGORY: {p.name_of(p.UA_CATEGORY_NAMES, m.ua_category)}.  "
        f"UA CLASS: {p.name_of(p.UA_CLASS_NAMES, m.ua_class)}.  "
        f"TIMESTAMP: {m.timestamp_utc.isoformat()}."
    )


def _describe_operator_id(m: OperatorId) -> str:
    return f"OPERATOR ID: {m.operator_id}."


_DESCRIBERS = {
    BasicId: _describe_basic_id,
    LocationVector: _describe_location,
    SelfId: _describe_self_id,
    SystemMessage: _describe_system,
    OperatorId: _describe_operator_id,
}


def describe_result(result: DecodeResult) -> List[str]:
    """One summary line plus one line per decoded message."""
    if result.status is DecodeStatus.NOT_FOUND:
        return ["No ODID data in frame."]
    if result.message_count is None:
        return [f"ODID marker at offset {result.marker_offset}, pack header truncated."]

    kind = "pack" if result.packed else "message"
    summary = (
        f"ODID {kind} at offset {result.marker_offset}: "
        f"{len(result.messages)}/{result.message_count} message(s) decoded"
    )
    if result.truncated:
        summary += f", truncated at slot {result.truncated_slot}"
    if result.skipped_slots:
        summary += f", skipped slots {list(result.skipped_slots)}"
    seen = result.flags.seen
    summary += f" [{', '.join(seen) if seen else 'none'}]"

    lines = [summary]
    for m in result.messages:
        name = p.MESSAGE_TYPE_NAMES[m.message_type]
        lines.append(f"{name}: {_DESCRIBERS[type(m)](m)}")
    return lines
