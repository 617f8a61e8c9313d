import json

import pytest

from conftest import basic_id_slot, ble_legacy_advert, frame, operator_id_slot
from odid_tap.core import protocol
from odid_tap.core.decoder import decode_frame
from odid_tap.core.locator import ODID_BLE_MARKER, ODID_WIFI_MARKER
from odid_tap.core.messages import DecodeResult, DecodeStatus
from odid_tap.core.render import describe_result, hexdump

FRAME_META = {"mac": "60:60:1f:aa:bb:cc", "rssi": -61.0, "channel": 6}


def test_full_report(full_pack_frame):
    result = decode_frame(full_pack_frame)
    report = protocol.make_uav_report("tap-1", FRAME_META, result)

    assert report["type"] == protocol.MSG_UAV_REPORT
    assert report["tap_uuid"] == "tap-1"
    assert report["identifier"] == "ABCDEFGHIJ0123456789"
    assert report["id_serial"] == "ABCDEFGHIJ0123456789"
    assert report["decode_status"] == "ok"
    assert report["latitude"] == pytest.approx(47.3977418)
    assert report["ground_track"] == 90
    assert report["operational_status"] == "Airborne"
    assert report["height_type"] == "AGL"
    assert report["uav_type"] == "HELICOPTER_OR_MULTIROTOR"
    assert report["accuracy_horizontal"] == "<3 m"
    assert report["accuracy_vertical"] == "<10 m"
    assert report["operator_id"] == "GBR-OP-1234ABCD.5678"
    assert report["operator_location_type"] == "LiveGNSS"
    assert report["category_eu"] == "Open"
    assert report["class_eu"] == "Class1"
    assert report["system_timestamp"] == "2023-12-31T00:00:00+00:00"
    assert report["message_types_seen"] == ["BasicID", "Location", "SelfID", "System", "OperatorID"]
    assert report["rssi"] == -61.0
    # serializable as-is
    json.dumps(report)


def test_identifier_falls_back_to_operator_then_mac():
    op_only = decode_frame(frame([operator_id_slot()]))
    assert protocol.make_uav_report("t", FRAME_META, op_only)["identifier"] == "GBR-OP-1234ABCD.5678"

    empty = decode_frame(frame([]))
    report = protocol.make_uav_report("t", FRAME_META, empty)
    assert report["identifier"] == FRAME_META["mac"]
    assert report["latitude"] is None
    assert report["uav_type"] == "NONE"
    assert report["message_types_seen"] == []


def test_utm_id_goes_to_its_own_field():
    result = decode_frame(frame([basic_id_slot(id_type=3, ident=bytes(16))]))
    report = protocol.make_uav_report("t", FRAME_META, result)
    assert report["id_utm"] == "0" * 32
    assert report["id_serial"] is None


def test_name_of_reserved_values():
    assert protocol.name_of(protocol.OP_STATUS_NAMES, 2) == "Airborne"
    assert protocol.name_of(protocol.OP_STATUS_NAMES, 9) == "RESERVED(9)"


def test_detection_source_for_marker():
    assert protocol.detection_source_for(ODID_BLE_MARKER) == protocol.DETECTION_BLUETOOTH
    assert protocol.detection_source_for(ODID_WIFI_MARKER) == protocol.DETECTION_WIFI
    assert protocol.detection_source_for(None) == protocol.DETECTION_WIFI


def test_hexdump():
    assert hexdump(b"\x0d\x0a\xff\x00") == "0D 0A FF 00"
    assert hexdump(b"") == ""


def test_describe_not_found():
    assert describe_result(DecodeResult(status=DecodeStatus.NOT_FOUND)) == ["No ODID data in frame."]


def test_describe_full_pack(full_pack_frame):
    lines = describe_result(decode_frame(full_pack_frame))
    assert len(lines) == 6
    assert lines[0].startswith("ODID pack at offset 12: 5/5 message(s) decoded")
    assert lines[1].startswith("BasicID: ID TYPE: SERIAL_NUMBER.")
    assert "HEADING (deg): 90." in lines[2]
    assert lines[5] == "OperatorID: OPERATOR ID: GBR-OP-1234ABCD.5678."


def test_describe_truncated_pack():
    lines = describe_result(decode_frame(frame([basic_id_slot()], count=3)))
    assert "truncated at slot 1" in lines[0]
    assert len(lines) == 2


def test_describe_truncated_header():
    result = decode_frame(frame(count=0)[:-1])
    assert describe_result(result) == ["ODID marker at offset 12, pack header truncated."]


def test_describe_ble_single_message():
    result = decode_frame(ble_legacy_advert(operator_id_slot()), marker=ODID_BLE_MARKER)
    lines = describe_result(result)
    assert lines[0].startswith("ODID message at offset 1: 1/1 message(s) decoded")
    assert lines[1] == "OperatorID: OPERATOR ID: GBR-OP-1234ABCD.5678."
