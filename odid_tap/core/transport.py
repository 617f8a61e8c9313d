"""
odid-tap ZeroMQ report publisher.

Each decoded pack becomes one msgpack-encoded uav_report sent as the
two-frame multipart [b"uav", payload] on a PUB socket that connects out to
the collector (the collector binds a SUB socket).

Reports that cannot be handed to ZMQ (not started yet, HWM reached, socket
error) wait in a bounded FIFO; when it is full the oldest report is lost.
The FIFO is flushed on the next start().
"""

import logging
import threading
from collections import deque

try:
    import zmq
    import msgpack
    HAS_ZMQ = True
except ImportError:
    HAS_ZMQ = False

from odid_tap.core.protocol import TOPIC_UAV

logger = logging.getLogger(__name__)

# (option name, value) applied to every PUB socket
_SOCKET_OPTIONS = (
    ("LINGER", 2000),
    ("RECONNECT_IVL", 1000),
    ("RECONNECT_IVL_MAX", 30000),
)


class ZmqTransport:
    """PUB-side publisher for uav_report dicts with an offline FIFO."""

    def __init__(self, host: str = "127.0.0.1", port: int = 5590,
                 buffer_size: int = 1000, sndhwm: int = 1000):
        self.host = host
        self.port = port
        self.sndhwm = sndhwm

        self._ctx = None
        self._pub = None
        self._pending = deque(maxlen=buffer_size)
        self._lock = threading.Lock()
        self._counters = dict.fromkeys(
            ("sent", "buffered", "replayed", "dropped", "errors"), 0
        )

    @property
    def endpoint(self) -> str:
        return f"tcp://{self.host}:{self.port}"

    def start(self):
        """Open the PUB socket towards the collector and flush the FIFO."""
        if not HAS_ZMQ:
            raise ImportError("pyzmq/msgpack missing: pip install pyzmq msgpack")

        ctx = zmq.Context()
        pub = ctx.socket(zmq.PUB)
        pub.setsockopt(zmq.SNDHWM, self.sndhwm)
        for name, value in _SOCKET_OPTIONS:
            pub.setsockopt(getattr(zmq, name), value)

        try:
            pub.connect(self.endpoint)
        except zmq.ZMQError as e:
            logger.error(f"Cannot connect PUB socket to {self.endpoint}: {e}")
            pub.close(linger=0)
            ctx.term()
            raise

        self._ctx, self._pub = ctx, pub
        logger.info(f"Publishing uav_report on {self.endpoint}")
        self._flush_pending()

    def send_uav_report(self, report: dict):
        payload = msgpack.packb(report, use_bin_type=True)
        with self._lock:
            if self._pub is not None and self._publish(TOPIC_UAV, payload):
                self._counters["sent"] += 1
                return
            self._enqueue(TOPIC_UAV, payload)

    def _publish(self, topic: bytes, payload: bytes) -> bool:
        """One non-blocking send.  False means the caller keeps the message."""
        try:
            self._pub.send_multipart([topic, payload], zmq.NOBLOCK)
            return True
        except zmq.Again:
            logger.debug("PUB queue at HWM")
        except zmq.ZMQError as e:
            self._counters["errors"] += 1
            logger.warning(f"PUB send failed: {e}")
        return False

    def _enqueue(self, topic: bytes, payload: bytes):
        if len(self._pending) == self._pending.maxlen:
            self._counters["dropped"] += 1
            logger.warning(f"Offline buffer full ({self._pending.maxlen}), oldest report lost")
        self._pending.append((topic, payload))
        self._counters["buffered"] += 1

    def _flush_pending(self):
        with self._lock:
            total = len(self._pending)
            flushed = 0
            while self._pending and self._publish(*self._pending[0]):
                self._pending.popleft()
                flushed += 1
            self._counters["replayed"] += flushed
        if total:
            logger.info(f"Flushed {flushed}/{total} buffered reports")

    def stop(self):
        with self._lock:
            pub, self._pub = self._pub, None
            ctx, self._ctx = self._ctx, None
        if pub is not None:
            pub.close()
        if ctx is not None:
            ctx.term()
        logger.info(f"ZMQ transport closed: {self.stats}")

    @property
    def is_connected(self) -> bool:
        return self._pub is not None

    @property
    def buffered_count(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def stats(self) -> dict:
        with self._lock:
            snapshot = dict(self._counters)
            snapshot["buffer_count"] = len(self._pending)
        return snapshot
