"""
Shared protocol definitions for odid-tap reports.
ODID enumerated-value names (ASTM F3411) and the uav_report builder used by
both the stdout printer and the ZMQ publisher.
"""

from datetime import datetime, timezone
from typing import Optional

from odid_tap.core.locator import ODID_BLE_MARKER
from odid_tap.core.messages import DecodeResult, MessageType

# Report protocol version for compatibility checking
PROTOCOL_VERSION = 1

# ZMQ topics
TOPIC_UAV = b"uav"

# Message types
MSG_UAV_REPORT = "uav_report"

DETECTION_WIFI = "RemoteIdWiFi"
DETECTION_BLUETOOTH = "RemoteIdBluetooth"

MESSAGE_TYPE_NAMES = {
    MessageType.BASIC_ID: "BasicID",
    MessageType.LOCATION_VECTOR: "Location",
    MessageType.AUTHENTICATION: "Auth",
    MessageType.SELF_ID: "SelfID",
    MessageType.SYSTEM: "System",
    MessageType.OPERATOR_ID: "OperatorID",
}

# UA types (ASTM F3411 Table 1)
UA_TYPE_NAMES = {
    0: "NONE",
    1: "AEROPLANE",
    2: "HELICOPTER_OR_MULTIROTOR",
    3: "GYROPLANE",
    4: "HYBRID_LIFT",
    5: "ORNITHOPTER",
    6: "GLIDER",
    7: "KITE",
    8: "FREE_BALLOON",
    9: "CAPTIVE_BALLOON",
    10: "AIRSHIP",
    11: "FREE_FALL_PARACHUTE",
    12: "ROCKET",
    13: "TETHERED_POWERED_AIRCRAFT",
    14: "GROUND_OBSTACLE",
    15: "OTHER",
}

# ID types
ID_TYPE_NONE = 0
ID_TYPE_SERIAL = 1
ID_TYPE_CAA_REGISTRATION = 2
ID_TYPE_UTM_ASSIGNED = 3
ID_TYPE_SPECIFIC_SESSION = 4

ID_TYPE_NAMES = {
    ID_TYPE_NONE: "NONE",
    ID_TYPE_SERIAL: "SERIAL_NUMBER",
    ID_TYPE_CAA_REGISTRATION: "CAA_REGISTRATION",
    ID_TYPE_UTM_ASSIGNED: "UTM_ASSIGNED_UUID",
    ID_TYPE_SPECIFIC_SESSION: "SPECIFIC_SESSION_ID",
}

OP_STATUS_NAMES = {
    0: "Undeclared",
    1: "Ground",
    2: "Airborne",
    3: "Emergency",
    4: "RemoteIDFailure",
}

HEIGHT_TYPE_NAMES = {0: "AboveTakeoff", 1: "AGL"}
EW_DIRECTION_NAMES = {0: "East(<180)", 1: "West(>=180)"}
SPEED_MULTIPLIER_NAMES = {0: "x0.25", 1: "x0.75"}

HORIZONTAL_ACCURACY_NAMES = {
    0: "Unknown",
    1: "<18.52 km",
    2: "<7.408 km",
    3: "<3.704 km",
    4: "<1852 m",
    5: "<926 m",
    6: "<555.6 m",
    7: "<185.2 m",
    8: "<92.6 m",
    9: "<30 m",
    10: "<10 m",
    11: "<3 m",
    12: "<1 m",
}

VERTICAL_ACCURACY_NAMES = {
    0: "Unknown",
    1: "<150 m",
    2: "<45 m",
    3: "<25 m",
    4: "<10 m",
    5: "<3 m",
    6: "<1 m",
}

SPEED_ACCURACY_NAMES = {
    0: "Unknown",
    1: "<10 m/s",
    2: "<3 m/s",
    3: "<1 m/s",
    4: "<0.3 m/s",
}

SELF_ID_TYPE_NAMES = {0: "Text", 1: "Emergency", 2: "ExtendedStatus"}

OPERATOR_LOCATION_NAMES = {0: "TakeOff", 1: "LiveGNSS", 2: "Fixed"}

UA_CATEGORY_NAMES = {0: "Undeclared", 1: "Open", 2: "Specific", 3: "Certified"}

UA_CLASS_NAMES = {
    0: "Undeclared",
    1: "Class0",
    2: "Class1",
    3: "Class2",
    4: "Class3",
    5: "Class4",
    6: "Class5",
    7: "Class6",
}


def name_of(table: dict, value) -> str:
    """Look up an enumerated value, falling back to RESERVED(n)."""
    name = table.get(value)
    return name if name is not None else f"RESERVED({value})"


def utcnow_iso() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def make_uav_report(
    tap_uuid: str,
    frame: dict,
    result: DecodeResult,
    detection_source: str = DETECTION_WIFI,
) -> dict:
    """
    Build a UAV report message from one decoded frame.

    Args:
        tap_uuid: UUID of the sending tap
        frame: Frame dict from a capture source (mac, rssi, channel, ...)
        result: DecodeResult for the frame's raw bytes
        detection_source: DETECTION_WIFI or DETECTION_BLUETOOTH

    Returns:
        Dict ready for msgpack/JSON serialization.  Fields for message kinds
        absent from the pack are None.
    """
    basic = result.first(MessageType.BASIC_ID)
    loc = result.first(MessageType.LOCATION_VECTOR)
    self_id = result.first(MessageType.SELF_ID)
    system = result.first(MessageType.SYSTEM)
    operator = result.first(MessageType.OPERATOR_ID)

    ids = {
        ID_TYPE_SERIAL: None,
        ID_TYPE_CAA_REGISTRATION: None,
        ID_TYPE_UTM_ASSIGNED: None,
        ID_TYPE_SPECIFIC_SESSION: None,
    }
    for m in result.messages:
        if m.message_type == MessageType.BASIC_ID and m.id_type in ids and ids[m.id_type] is None:
            ids[m.id_type] = m.ua_id

    mac = frame.get("mac")
    identifier = (
        ids[ID_TYPE_SERIAL]
        or ids[ID_TYPE_CAA_REGISTRATION]
        or ids[ID_TYPE_UTM_ASSIGNED]
        or ids[ID_TYPE_SPECIFIC_SESSION]
        or (operator.operator_id if operator else None)
        or mac
    )

    report = {
        "type": MSG_UAV_REPORT,
        "protocol_version": PROTOCOL_VERSION,
        "tap_uuid": tap_uuid,
        "timestamp": utcnow_iso(),
        "mac": mac,
        "identifier": identifier,
        "detection_source": detection_source,
        "decode_status": result.status.value,
        # Position
        "latitude": loc.latitude if loc else None,
        "longitude": loc.longitude if loc else None,
        "altitude_geodetic": loc.geodetic_altitude if loc else None,
        "altitude_pressure": loc.pressure_altitude if loc else None,
        "height": loc.height if loc else None,
        "height_type": name_of(HEIGHT_TYPE_NAMES, loc.height_type) if loc else None,
        # Movement
        "ground_track": loc.track_direction if loc else None,
        "speed": loc.speed if loc else None,
        "vertical_speed": loc.vertical_speed if loc else None,
        "location_timestamp": loc.timestamp_seconds if loc else None,
        "timestamp_accuracy": loc.timestamp_accuracy if loc else None,
        # Status
        "uav_type": name_of(UA_TYPE_NAMES, basic.ua_type) if basic else "NONE",
        "operational_status": name_of(OP_STATUS_NAMES, loc.op_status) if loc else None,
        # Signal
        "rssi": frame.get("rssi"),
        "channel": frame.get("channel"),
        # Identity
        "id_serial": ids[ID_TYPE_SERIAL],
        "id_registration": ids[ID_TYPE_CAA_REGISTRATION],
        "id_utm": ids[ID_TYPE_UTM_ASSIGNED],
        "id_session": ids[ID_TYPE_SPECIFIC_SESSION],
        # Operator
        "operator_latitude": system.operator_latitude if system else None,
        "operator_longitude": system.operator_longitude if system else None,
        "operator_altitude": system.operator_altitude if system else None,
        "operator_id": operator.operator_id if operator else None,
        "operator_location_type": (
            name_of(OPERATOR_LOCATION_NAMES, system.operator_location_type) if system else None
        ),
        # Accuracy
        "accuracy_horizontal": name_of(HORIZONTAL_ACCURACY_NAMES, loc.horizontal_accuracy) if loc else None,
        "accuracy_vertical": name_of(VERTICAL_ACCURACY_NAMES, loc.vertical_accuracy) if loc else None,
        "accuracy_barometer": name_of(VERTICAL_ACCURACY_NAMES, loc.baro_accuracy) if loc else None,
        "accuracy_speed": name_of(SPEED_ACCURACY_NAMES, loc.speed_accuracy) if loc else None,
        # Message tracking
        "message_types_seen": result.flags.seen,
        # Self-ID
        "self_id_description": self_id.description if self_id else None,
        "self_id_type": name_of(SELF_ID_TYPE_NAMES, self_id.self_id_type) if self_id else None,
        # EU classification
        "category_eu": name_of(UA_CATEGORY_NAMES, system.ua_category) if system else None,
        "class_eu": name_of(UA_CLASS_NAMES, system.ua_class) if system else None,
        # Area
        "area_count": system.area_count if system else None,
        "area_radius": system.area_radius if system else None,
        "area_ceiling": system.area_ceiling if system else None,
        "area_floor": system.area_floor if system else None,
        "system_timestamp": system.timestamp_utc.isoformat() if system else None,
    }
    return report


def detection_source_for(marker: Optional[bytes]) -> str:
    """Map the marker that matched to a detection source label."""
    if marker == ODID_BLE_MARKER:
        return DETECTION_BLUETOOTH
    return DETECTION_WIFI
