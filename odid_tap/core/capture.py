"""
odid-tap frame sources.

Two ways of getting raw frames to the decoder:

- TsharkCapture: spawns tshark (live interface or a pcap file) with -T ek -x
  so every NDJSON line carries the raw frame bytes; parse_ek_frame() turns a
  line into a frame dict.
- iter_hexdump_frames(): replays a text file of hex-dumped frames, one per
  line, as printed by `--hexdump` or by embedded scanners.

A frame dict always has "data" (bytes) plus whatever metadata the source
knows: mac, rssi, channel, band, frame_length.

The interface is expected to already be in monitor mode; channel selection
is left to the host.
"""

import json
import logging
import math
import signal
import subprocess
import threading
import time
from pathlib import Path
from typing import Iterator, Optional

logger = logging.getLogger(__name__)

try:
    import orjson
    _loads = orjson.loads
except ImportError:
    _loads = json.loads


# ODID Wi-Fi Beacon and NAN run on 2.4 GHz and on 5 GHz UNII channels
_CH14_FREQ = 2484


def freq_to_channel(freq_mhz: int) -> Optional[int]:
    """Radiotap frequency (MHz) -> channel number, None if not a 2.4/5 GHz channel."""
    if freq_mhz is None:
        return None
    if freq_mhz == _CH14_FREQ:
        return 14
    if 2412 <= freq_mhz <= 2472 and (freq_mhz - 2407) % 5 == 0:
        return (freq_mhz - 2407) // 5
    if 5160 <= freq_mhz <= 5885 and freq_mhz % 20 in (0, 5):
        return (freq_mhz - 5000) // 5
    return None


def freq_to_band(freq_mhz: int) -> Optional[str]:
    if freq_to_channel(freq_mhz) is None:
        return None
    return "2.4GHz" if freq_mhz <= _CH14_FREQ else "5GHz"


# tshark EK wraps every field value in a list

def _ek_val(obj: dict, *keys):
    for key in keys:
        v = obj.get(key)
        if v is not None:
            return v[0] if isinstance(v, list) else v
    return None


def _ek_float(obj: dict, *keys) -> Optional[float]:
    v = _ek_val(obj, *keys)
    try:
        f = float(v)
    except (ValueError, TypeError):
        return None
    return f if math.isfinite(f) else None


def _ek_str(obj: dict, *keys) -> Optional[str]:
    v = _ek_val(obj, *keys)
    s = str(v).strip() if v is not None else ""
    return s or None


def _unhex(text: str) -> Optional[bytes]:
    """Parse hex with optional ':' / whitespace separators.  None if invalid."""
    cleaned = "".join(text.replace(":", " ").split())
    if not cleaned or len(cleaned) % 2:
        return None
    try:
        return bytes.fromhex(cleaned)
    except ValueError:
        return None


# 802.11 management header: FC(2) duration(2) addr1(6) addr2(6) ...
_ADDR2_OFFSET = 10
_MAC_LEN = 6


def mac_from_header(data: bytes) -> Optional[str]:
    """Transmitter address (addr2) of a bare 802.11 frame, if long enough."""
    if len(data) < _ADDR2_OFFSET + _MAC_LEN:
        return None
    return ":".join(f"{b:02x}" for b in data[_ADDR2_OFFSET:_ADDR2_OFFSET + _MAC_LEN])


def parse_ek_frame(line: str) -> Optional[dict]:
    """
    Parse one tshark -T ek -x NDJSON line.

    Returns {"data", "mac", "rssi", "channel", "band", "frame_length"} or
    None for index lines, unparseable JSON and lines without raw bytes.
    """
    if not line or line[0] != '{' or line.startswith('{"index"'):
        return None

    try:
        data = _loads(line)
    except Exception:
        return None

    layers = data.get("layers")
    if not layers or not isinstance(layers, dict):
        return None

    raw_hex = _ek_str(layers, "frame_raw")
    raw = _unhex(raw_hex) if raw_hex else None
    if raw is None:
        return None

    wlan = layers.get("wlan", {})
    mac = _ek_str(wlan,
        "wlan_wlan_sa", "wlan_sa", "wlan.sa",
        "wlan_wlan_ta", "wlan_ta", "wlan.ta",
    )

    rt = layers.get("radiotap", {})
    rssi = _ek_float(rt,
        "radiotap_radiotap_dbm_antsignal",
        "radiotap_dbm_antsignal",
        "radiotap.dbm_antsignal",
    )
    channel_freq = _ek_float(rt,
        "radiotap_radiotap_channel_freq",
        "radiotap_channel_freq",
        "radiotap.channel.freq",
    )
    freq = int(channel_freq) if channel_freq else None

    frame_layer = layers.get("frame", {})
    frame_length = _ek_float(frame_layer,
        "frame_frame_len", "frame_len", "frame.len",
    )

    return {
        "data": raw,
        "mac": mac,
        "rssi": rssi,
        "channel": freq_to_channel(freq),
        "band": freq_to_band(freq),
        "frame_length": int(frame_length) if frame_length else len(raw),
    }


def iter_hexdump_frames(path) -> Iterator[dict]:
    """
    Yield frame dicts from a hex-dump file (one frame per line).

    Bytes may be separated by spaces or ':'.  Blank lines and '#' comments
    are ignored; malformed lines are logged and skipped.
    """
    path = Path(path)
    with open(path, "r") as f:
        for lineno, line in enumerate(f, 1):
            text = line.split("#", 1)[0].strip()
            if not text:
                continue
            raw = _unhex(text)
            if raw is None:
                logger.warning(f"{path}:{lineno}: not a hex frame, skipped")
                continue
            yield {
                "data": raw,
                "mac": mac_from_header(raw),
                "rssi": None,
                "channel": None,
                "band": None,
                "frame_length": len(raw),
            }


class TsharkCapture:
    """
    Runs tshark and turns its EK output into frame dicts.

    Live:   tshark -i <iface> -T ek -x -n -l -f "type mgt" [-Y <filter>]
    Replay: tshark -r <pcap>  -T ek -x -n -l [-Y <filter>]

    -x adds "frame_raw" to every line; the ODID pack is found in those bytes
    rather than through tshark's own dissector, so older tshark builds work.
    """

    # Beacons and NAN service discovery frames are both management frames
    DEFAULT_CAPTURE_FILTER = "type mgt"
    STOP_TIMEOUT_S = 5

    def __init__(
        self,
        interface: str = None,
        tshark_path: str = "/usr/bin/tshark",
        read_file: str = None,
        capture_filter: str = None,
        display_filter: str = None,
    ):
        if not interface and not read_file:
            raise ValueError("TsharkCapture needs an interface or a read_file")
        self.interface = interface
        self.read_file = read_file
        self.tshark_path = tshark_path
        self.capture_filter = capture_filter or self.DEFAULT_CAPTURE_FILTER
        self.display_filter = display_filter

        self._proc: Optional[subprocess.Popen] = None
        self._active = False
        self._stderr_reader: Optional[threading.Thread] = None
        self._last_exit: Optional[int] = None
        self._lock = threading.Lock()
        self._counters = {
            "lines_read": 0,
            "frames": 0,
            "rejected": 0,
            "starts": 0,
            "started_at": 0.0,
        }

    @property
    def source(self) -> str:
        return str(self.read_file) if self.read_file else self.interface

    def build_command(self) -> list:
        if self.read_file:
            cmd = [self.tshark_path, "-r", str(self.read_file)]
        else:
            cmd = [self.tshark_path, "-i", self.interface]
        cmd += ["-T", "ek", "-x", "-n", "-l"]
        if self.capture_filter and not self.read_file:
            cmd += ["-f", self.capture_filter]
        if self.display_filter:
            cmd += ["-Y", self.display_filter]
        return cmd

    def start(self):
        """Spawn tshark.  FileNotFoundError / PermissionError propagate."""
        cmd = self.build_command()
        logger.info(f"Launching tshark on {self.source}: {' '.join(cmd)}")
        try:
            self._proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                bufsize=1,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except FileNotFoundError:
            logger.error(f"No tshark binary at {self.tshark_path}")
            raise
        except PermissionError:
            logger.error("tshark refused to start, capture needs root or CAP_NET_RAW")
            raise

        self._active = True
        with self._lock:
            self._counters["starts"] += 1
            self._counters["started_at"] = time.time()

        self._stderr_reader = threading.Thread(
            target=self._pump_stderr, args=(self._proc,), name="tshark-stderr", daemon=True,
        )
        self._stderr_reader.start()
        logger.info(f"tshark running as PID {self._proc.pid}")

    def read_frames(self) -> Iterator[dict]:
        """Yield frame dicts until tshark exits or stop() is called."""
        proc = self._proc
        if proc is None or proc.stdout is None:
            return
        try:
            for line in proc.stdout:
                if not self._active:
                    break
                line = line.strip()
                if not line:
                    continue
                frame = parse_ek_frame(line)
                with self._lock:
                    self._counters["lines_read"] += 1
                    self._counters["frames" if frame is not None else "rejected"] += 1
                if frame is not None:
                    yield frame
        except (OSError, ValueError) as e:
            if self._active:
                logger.error(f"Lost tshark output: {e}")

    def stop(self):
        """SIGINT tshark so it flushes, escalating to kill after a timeout."""
        self._active = False
        proc, self._proc = self._proc, None
        if proc is not None and proc.poll() is None:
            logger.info(f"Stopping tshark PID {proc.pid}")
            proc.send_signal(signal.SIGINT)
            try:
                proc.wait(timeout=self.STOP_TIMEOUT_S)
            except subprocess.TimeoutExpired:
                logger.warning(f"tshark ignored SIGINT for {self.STOP_TIMEOUT_S}s, killing")
                proc.kill()
                proc.wait(timeout=2)
        if proc is not None:
            self._last_exit = proc.returncode

        reader, self._stderr_reader = self._stderr_reader, None
        if reader is not None and reader.is_alive():
            reader.join(timeout=3)

    @staticmethod
    def _pump_stderr(proc: subprocess.Popen):
        if proc.stderr is None:
            return
        try:
            for line in proc.stderr:
                line = line.strip()
                if not line:
                    continue
                if line.startswith("Capturing on") or "packets captured" in line:
                    logger.info(f"tshark: {line}")
                else:
                    logger.debug(f"tshark stderr: {line}")
        except (OSError, ValueError):
            # stream closed underneath us after kill()
            return

    @property
    def is_running(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    @property
    def exit_code(self) -> Optional[int]:
        """Exit status of the last tshark run, None while running or never started."""
        if self._proc is not None:
            return self._proc.poll()
        return self._last_exit

    @property
    def stats(self) -> dict:
        with self._lock:
            return dict(self._counters)
