"""
odid-tap configuration.

tap_config.json is merged over DEFAULT_CONFIG.  Bad values are replaced by
their defaults with a warning, so a typo never stops the tap from decoding.
The tap UUID is generated on first run and written back to the file.
"""

import json
import os
import uuid
import logging
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from odid_tap.core.codec import TYPE_FORMULAS, TYPE_FORMULA_OFFSET

logger = logging.getLogger(__name__)

DEFAULT_MARKERS_HEX = ["FA0BBC0D", "16FAFF0D"]

DEFAULT_CONFIG = {
    "tap_uuid": None,
    "tap_name": "odid-tap",
    "interface": "wlan1mon",
    "tshark_path": "/usr/bin/tshark",
    "capture_filter": "type mgt",
    "odid_markers": list(DEFAULT_MARKERS_HEX),
    "message_type_formula": TYPE_FORMULA_OFFSET,
    "node_host": "127.0.0.1",
    "node_port": 5590,
    "zmq_buffer_size": 1000,
    "zmq_hwm": 1000,
    "log_level": "INFO",
    "print_hexdump": False,
    "tshark_restart_delay_s": 1,
    "stats_interval_s": 60,
}

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

_POSITIVE_KEYS = ("tshark_restart_delay_s", "stats_interval_s", "zmq_buffer_size", "zmq_hwm")


def parse_marker(text: str) -> bytes:
    """'FA0BBC0D', 'FA 0B BC 0D' or 'fa:0b:bc:0d' -> bytes.  Raises ValueError."""
    cleaned = "".join(str(text).replace(":", " ").split())
    if not cleaned:
        raise ValueError("empty marker")
    return bytes.fromhex(cleaned)


class TapConfig:
    """Settings for one tap; unknown attributes read through to the JSON data."""

    def __init__(self, config_path: str = None):
        self.config_path: Optional[Path] = Path(config_path) if config_path else None
        self.data: Dict[str, Any] = dict(DEFAULT_CONFIG)
        self._markers: List[bytes] = []

    def load(self, path: str = None) -> 'TapConfig':
        if path:
            self.config_path = Path(path)

        self.data.update(self._read_file())
        new_uuid = not self.data.get("tap_uuid")
        if new_uuid:
            self.data["tap_uuid"] = str(uuid.uuid4())
            logger.info(f"New tap UUID {self.data['tap_uuid']}")

        self._validate()
        # only persist values that passed validation
        if new_uuid:
            self._save()
        return self

    def _read_file(self) -> Dict[str, Any]:
        if self.config_path is None or not self.config_path.exists():
            logger.info("No config file, running on defaults")
            return {}
        try:
            with open(self.config_path) as f:
                loaded = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Unreadable config {self.config_path} ({e}), running on defaults")
            return {}
        if not isinstance(loaded, dict):
            logger.error(f"{self.config_path} is not a JSON object, running on defaults")
            return {}
        logger.info(f"Loaded config {self.config_path}")
        return loaded

    def _reset(self, key: str, reason: str):
        logger.warning(f"{key}: {reason}, falling back to {DEFAULT_CONFIG[key]!r}")
        self.data[key] = DEFAULT_CONFIG[key]

    def _validate(self):
        port = self.data.get("node_port")
        if not isinstance(port, int) or not 1 <= port <= 65535:
            self._reset("node_port", f"invalid port {port!r}")

        if self.data.get("message_type_formula") not in TYPE_FORMULAS:
            self._reset("message_type_formula",
                        f"unknown formula {self.data.get('message_type_formula')!r}")

        level = str(self.data.get("log_level", "INFO")).upper()
        if level in VALID_LOG_LEVELS:
            self.data["log_level"] = level
        else:
            self._reset("log_level", f"unknown level {level!r}")

        self._markers = self._parse_markers(self.data.get("odid_markers"))
        self.data["odid_markers"] = [m.hex().upper() for m in self._markers]

        for key in _POSITIVE_KEYS:
            val = self.data.get(key)
            if isinstance(val, bool) or not isinstance(val, (int, float)) or val <= 0:
                self._reset(key, f"must be a positive number, got {val!r}")

    @staticmethod
    def _parse_markers(entries) -> List[bytes]:
        """Drop unparseable markers; an empty result means the defaults."""
        if isinstance(entries, str):
            entries = [entries]
        if not isinstance(entries, list):
            logger.warning(f"odid_markers must be a list, got {type(entries).__name__}")
            entries = []
        markers = []
        for text in entries:
            try:
                markers.append(parse_marker(text))
            except (ValueError, TypeError) as e:
                logger.warning(f"Ignoring ODID marker {text!r}: {e}")
        if not markers:
            if entries:
                logger.warning("No usable ODID markers, using the defaults")
            markers = [parse_marker(m) for m in DEFAULT_MARKERS_HEX]
        return markers

    def _save(self):
        """Write data back to config_path (keeps the generated UUID)."""
        if self.config_path is None:
            return
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            self._atomic_write(self.config_path, json.dumps(self.data, indent=4))
        except OSError as e:
            logger.warning(f"Config not saved to {self.config_path}: {e}")
        else:
            logger.info(f"Saved config {self.config_path}")

    @staticmethod
    def _atomic_write(path: Path, content: str):
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=".odid")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, str(path))
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def __getattr__(self, name):
        # only reached for names that are not real attributes
        if name.startswith("_") or name in ("data", "config_path"):
            raise AttributeError(name)
        return self.data.get(name)

    def get(self, key, default=None):
        return self.data.get(key, default)

    @property
    def markers(self) -> List[bytes]:
        """Validated ODID markers, in match-priority order."""
        if not self._markers:
            self._markers = self._parse_markers(self.data.get("odid_markers"))
        return list(self._markers)
