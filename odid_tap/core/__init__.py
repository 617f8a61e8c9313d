"""odid-tap core: locate → decode → report."""
from .decoder import decode_frame, decode_pack, decode_single
from .locator import find_marker, find_first_marker, ODID_WIFI_MARKER, ODID_BLE_MARKER
from .messages import DecodeResult, DecodeStatus, MessageFlags, MessageType


def __getattr__(name):
    """Lazy import for ZmqTransport (avoids loading zmq/msgpack at import time)."""
    if name == "ZmqTransport":
        from .transport import ZmqTransport
        return ZmqTransport
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
