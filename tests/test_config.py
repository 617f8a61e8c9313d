import json

from odid_tap.core.locator import ODID_BLE_MARKER, ODID_WIFI_MARKER
from odid_tap.system.config import DEFAULT_CONFIG, TapConfig, parse_marker


def _load(tmp_path, content=None):
    path = tmp_path / "tap_config.json"
    if content is not None:
        path.write_text(json.dumps(content))
    return TapConfig(str(path)).load(), path


def test_defaults_and_uuid_persisted(tmp_path):
    config, path = _load(tmp_path)

    assert config.markers == [ODID_WIFI_MARKER, ODID_BLE_MARKER]
    assert config.message_type_formula == "offset"
    assert config.node_port == DEFAULT_CONFIG["node_port"]
    assert config.tap_uuid
    saved = json.loads(path.read_text())
    assert saved["tap_uuid"] == config.tap_uuid


def test_existing_uuid_is_kept(tmp_path):
    config, _ = _load(tmp_path, {"tap_uuid": "fixed-uuid"})
    assert config.tap_uuid == "fixed-uuid"


def test_overrides(tmp_path):
    config, _ = _load(tmp_path, {
        "tap_uuid": "u",
        "odid_markers": ["16 FA FF 0D"],
        "message_type_formula": "nibble",
        "interface": "wlan0mon",
        "log_level": "debug",
    })
    assert config.markers == [ODID_BLE_MARKER]
    assert config.message_type_formula == "nibble"
    assert config.interface == "wlan0mon"
    assert config.log_level == "DEBUG"
    assert config.get("missing", 42) == 42


def test_invalid_values_fall_back(tmp_path):
    config, _ = _load(tmp_path, {
        "tap_uuid": "u",
        "node_port": 70000,
        "message_type_formula": "high-nibble",
        "log_level": "CHATTY",
        "stats_interval_s": 0,
        "odid_markers": ["FA0BBC0D", "not-hex", ""],
    })
    assert config.node_port == 5590
    assert config.message_type_formula == "offset"
    assert config.log_level == "INFO"
    assert config.stats_interval_s == DEFAULT_CONFIG["stats_interval_s"]
    assert config.markers == [ODID_WIFI_MARKER]


def test_no_valid_markers_uses_defaults(tmp_path):
    config, _ = _load(tmp_path, {"tap_uuid": "u", "odid_markers": ["xyz"]})
    assert config.markers == [ODID_WIFI_MARKER, ODID_BLE_MARKER]


def test_unreadable_config_uses_defaults(tmp_path):
    path = tmp_path / "tap_config.json"
    path.write_text("{not json")
    config = TapConfig(str(path)).load()
    assert config.interface == DEFAULT_CONFIG["interface"]


def test_parse_marker_formats():
    assert parse_marker("FA0BBC0D") == ODID_WIFI_MARKER
    assert parse_marker("fa:0b:bc:0d") == ODID_WIFI_MARKER
    assert parse_marker("FA 0B BC 0D") == ODID_WIFI_MARKER


def test_first_run_saves_validated_values(tmp_path):
    path = tmp_path / "tap_config.json"
    path.write_text(json.dumps({"node_port": 70000, "odid_markers": ["xyz", "FA0BBC0D"]}))

    config = TapConfig(str(path)).load()

    saved = json.loads(path.read_text())
    assert saved["tap_uuid"] == config.tap_uuid
    assert saved["node_port"] == 5590
    assert saved["odid_markers"] == ["FA0BBC0D"]
