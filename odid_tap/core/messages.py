"""
Decoded ODID records and the per-frame decode result.

All records are frozen; a DecodeResult is built fresh for every frame and
owns its messages.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum, IntEnum
from typing import List, Optional, Tuple, Union

# ASTM F3411 system timestamps count seconds from this epoch
ODID_EPOCH = datetime(2019, 1, 1, tzinfo=timezone.utc)


class MessageType(IntEnum):
    BASIC_ID = 0
    LOCATION_VECTOR = 1
    AUTHENTICATION = 2
    SELF_ID = 3
    SYSTEM = 4
    OPERATOR_ID = 5


class DecodeStatus(Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    TRUNCATED = "truncated"


@dataclass(frozen=True)
class BasicId:
    protocol_version: int
    id_type: int
    ua_type: int
    ua_id: Optional[str]
    # Only for specific-session IDs: the leading raw byte
    session_id_type: Optional[int] = None
    message_type: MessageType = field(default=MessageType.BASIC_ID, init=False)


@dataclass(frozen=True)
class LocationVector:
    protocol_version: int
    op_status: int
    height_type: int
    ew_direction: int
    speed_multiplier: int
    track_direction: int
    speed: float
    vertical_speed: float
    latitude: float
    longitude: float
    pressure_altitude: float
    geodetic_altitude: float
    height: float
    vertical_accuracy: int
    horizontal_accuracy: int
    baro_accuracy: int
    speed_accuracy: int
    timestamp: int
    timestamp_accuracy: float
    message_type: MessageType = field(default=MessageType.LOCATION_VECTOR, init=False)

    @property
    def timestamp_seconds(self) -> float:
        """Seconds since the last full UTC hour."""
        return self.timestamp / 10


@dataclass(frozen=True)
class SelfId:
    protocol_version: int
    self_id_type: int
    description: str
    message_type: MessageType = field(default=MessageType.SELF_ID, init=False)


@dataclass(frozen=True)
class SystemMessage:
    protocol_version: int
    operator_location_type: int
    operator_latitude: float
    operator_longitude: float
    area_count: int
    area_radius: int
    area_ceiling: float
    area_floor: float
    ua_category: int
    ua_class: int
    operator_altitude: float
    timestamp: int
    message_type: MessageType = field(default=MessageType.SYSTEM, init=False)

    @property
    def timestamp_utc(self) -> datetime:
        return ODID_EPOCH + timedelta(seconds=self.timestamp)


@dataclass(frozen=True)
class OperatorId:
    protocol_version: int
    operator_id_type: int
    operator_id: str
    message_type: MessageType = field(default=MessageType.OPERATOR_ID, init=False)


DecodedMessage = Union[BasicId, LocationVector, SelfId, SystemMessage, OperatorId]


@dataclass(frozen=True)
class MessageFlags:
    """Which message kinds a pack contained.  Authentication is never set."""
    basic_id: bool = False
    location_vector: bool = False
    authentication: bool = False
    self_id: bool = False
    system: bool = False
    operator_id: bool = False

    @classmethod
    def from_messages(cls, messages) -> "MessageFlags":
        kinds = {m.message_type for m in messages}
        return cls(
            basic_id=MessageType.BASIC_ID in kinds,
            location_vector=MessageType.LOCATION_VECTOR in kinds,
            self_id=MessageType.SELF_ID in kinds,
            system=MessageType.SYSTEM in kinds,
            operator_id=MessageType.OPERATOR_ID in kinds,
        )

    @property
    def seen(self) -> List[str]:
        """Names of the kinds present, in message-type order."""
        names = []
        if self.basic_id:
            names.append("BasicID")
        if self.location_vector:
            names.append("Location")
        if self.authentication:
            names.append("Auth")
        if self.self_id:
            names.append("SelfID")
        if self.system:
            names.append("System")
        if self.operator_id:
            names.append("OperatorID")
        return names

    def __bool__(self) -> bool:
        return any((self.basic_id, self.location_vector, self.authentication,
                    self.self_id, self.system, self.operator_id))


@dataclass(frozen=True)
class DecodeResult:
    status: DecodeStatus
    marker_offset: Optional[int] = None
    message_count: Optional[int] = None
    messages: Tuple[DecodedMessage, ...] = ()
    flags: MessageFlags = field(default_factory=MessageFlags)
    truncated_slot: Optional[int] = None
    skipped_slots: Tuple[int, ...] = ()
    # False for a lone message without a pack header (BLE legacy advertising)
    packed: bool = True

    @property
    def found(self) -> bool:
        return self.marker_offset is not None

    @property
    def truncated(self) -> bool:
        return self.status is DecodeStatus.TRUNCATED

    def first(self, message_type: MessageType) -> Optional[DecodedMessage]:
        """First decoded message of the given type, if any."""
        for m in self.messages:
            if m.message_type == message_type:
                return m
        return None
