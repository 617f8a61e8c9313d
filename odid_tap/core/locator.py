"""
ODID marker search.

A message pack always sits at a fixed distance from a short identifying
sequence in the frame, so locating that sequence is all we need to find the
pack.  A message pack has this layout:

    marker+0..3  identifying bytes
    marker+4     message counter
    marker+5     pack header (type 0xF | version)
    marker+6     message size (0x19 = 25)
    marker+7     message count
    marker+8     first 25-byte message slot

Wi-Fi beacons / NAN carry the ASD-STAN vendor IE (OUI FA:0B:BC, app code 0x0D);
BLE carries Service Data for UUID 0xFFFA followed by the same app code.

Bluetooth 4 legacy advertisements are too short for a pack: they carry a
single 25-byte message right after the counter, at marker+5.  BLE frames are
told apart by the pack header bytes (0xF? at +5, 0x19 at +6).
"""

from typing import Iterable, Optional, Tuple

ODID_WIFI_MARKER = bytes((0xFA, 0x0B, 0xBC, 0x0D))
ODID_BLE_MARKER = bytes((0x16, 0xFA, 0xFF, 0x0D))

DEFAULT_MARKERS = (ODID_WIFI_MARKER, ODID_BLE_MARKER)

# Markers whose frames may hold a lone message instead of a pack
LONE_MESSAGE_MARKERS = (ODID_BLE_MARKER,)

# Offsets relative to the marker start
PACK_HEADER_OFFSET = 5
SINGLE_SLOT_OFFSET = 5
COUNT_OFFSET = 7
FIRST_SLOT_OFFSET = 8


def find_marker(frame, marker: bytes) -> Optional[int]:
    """Return the lowest offset where ``marker`` occurs in ``frame``, or None.

    Plain O(len(frame) * len(marker)) scan; frames are bounded by the radio
    MTU so nothing smarter is needed.
    """
    m = len(marker)
    n = len(frame)
    if m == 0 or m > n:
        return None

    first = marker[0]
    for i in range(n - m + 1):
        if frame[i] != first:
            continue
        for k in range(1, m):
            if frame[i + k] != marker[k]:
                break
        else:
            return i
    return None


def find_first_marker(
    frame, markers: Iterable[bytes] = DEFAULT_MARKERS
) -> Tuple[Optional[int], Optional[bytes]]:
    """Try each marker in order, return (offset, marker) of the first hit."""
    for marker in markers:
        offset = find_marker(frame, marker)
        if offset is not None:
            return offset, marker
    return None, None
