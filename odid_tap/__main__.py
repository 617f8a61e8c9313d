"""
odid-tap entry point.
Usage: python -m odid_tap [--config tap_config.json] [--stdout] [--interface wlan1mon]
                          [--read capture.pcapng | --replay frames.hex]

Pipeline:
  frame source (tshark live / pcap, or hex-dump replay)
    → find ODID marker → decode message pack → uav_report
    → stdout (JSON or text) and/or ZMQ to the collector
"""

import sys
import json
import signal
import logging
import argparse
import threading
import time
from typing import Optional, Tuple

from odid_tap import __version__
from odid_tap.system.config import TapConfig
from odid_tap.core.capture import TsharkCapture, iter_hexdump_frames
from odid_tap.core.decoder import decode_pack
from odid_tap.core.locator import LONE_MESSAGE_MARKERS, find_first_marker
from odid_tap.core.messages import DecodeResult, DecodeStatus
from odid_tap.core.protocol import make_uav_report, detection_source_for
from odid_tap.core.render import describe_result, hexdump

logger = logging.getLogger("odid_tap")

_shutdown = threading.Event()
_capture = None


def setup_logging(level: str = "INFO"):
    """Configure logging."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def signal_handler(sig, frame):
    """Handle Ctrl+C gracefully."""
    logger.info("Shutting down...")
    _shutdown.set()
    if _capture:
        _capture.stop()


def decode_captured_frame(frame: dict, markers, type_formula: str) -> Tuple[DecodeResult, Optional[bytes]]:
    """Decode a frame dict against the configured markers (first hit wins)."""
    offset, marker = find_first_marker(frame["data"], markers)
    if offset is None:
        return DecodeResult(status=DecodeStatus.NOT_FOUND), None
    return decode_pack(
        frame["data"], offset, type_formula, allow_single=marker in LONE_MESSAGE_MARKERS,
    ), marker


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="odid-tap: Open Drone ID (ASTM F3411) frame decoder"
    )
    parser.add_argument(
        "--config", "-c",
        default="tap_config.json",
        help="Path to tap_config.json (default: tap_config.json)"
    )
    parser.add_argument(
        "--interface", "-i",
        help="Override WiFi monitor interface (e.g., wlan1mon)"
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--read", "-r",
        metavar="PCAP",
        help="Decode frames from a pcap/pcapng file via tshark"
    )
    source.add_argument(
        "--replay",
        metavar="HEXFILE",
        help="Decode hex-dumped frames, one per line"
    )
    parser.add_argument(
        "--stdout", "-s",
        action="store_true",
        help="Print uav_report JSON to stdout (disables ZMQ)"
    )
    parser.add_argument(
        "--text",
        action="store_true",
        help="Print decoded fields as text instead of JSON"
    )
    parser.add_argument(
        "--hexdump",
        action="store_true",
        help="Print a hex dump of every frame that carries ODID data"
    )
    parser.add_argument(
        "--no-zmq",
        action="store_true",
        help="Disable ZMQ transport"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level override"
    )
    return parser


def main(argv=None):
    global _capture

    args = build_parser().parse_args(argv)

    config = TapConfig(args.config).load()
    setup_logging(args.log_level or config.log_level)

    logger.info(f"odid-tap v{__version__} starting")
    logger.info(f"Config: {config.config_path}")
    logger.info(f"Markers: {', '.join(m.hex().upper() for m in config.markers)}")

    markers = config.markers
    type_formula = config.message_type_formula
    show_hex = args.hexdump or config.print_hexdump
    to_stdout = args.stdout or args.text

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    # ---- ZMQ transport ----

    transport = None
    if not args.no_zmq and not to_stdout:
        try:
            from odid_tap.core.transport import ZmqTransport
            transport = ZmqTransport(
                host=config.node_host,
                port=config.node_port,
                buffer_size=config.zmq_buffer_size,
                sndhwm=config.zmq_hwm,
            )
            transport.start()
            logger.info("ZMQ transport started")
        except ImportError:
            logger.warning("ZMQ not available. Using stdout mode.")
            to_stdout = True
            transport = None
        except Exception as e:
            logger.warning(f"ZMQ failed to start: {e}. Using stdout mode.")
            to_stdout = True
            transport = None

    stats = {"frames": 0, "odid": 0, "truncated": 0, "messages": 0}

    def on_frame(frame: dict):
        stats["frames"] += 1
        result, marker = decode_captured_frame(frame, markers, type_formula)
        if not result.found:
            return

        stats["odid"] += 1
        stats["messages"] += len(result.messages)
        if result.truncated:
            stats["truncated"] += 1
            logger.warning(
                f"Truncated ODID pack from {frame.get('mac')}: "
                f"{len(result.messages)} message(s) kept, "
                f"frame length {len(frame['data'])}"
            )

        if show_hex:
            print(hexdump(frame["data"]))

        report = make_uav_report(
            tap_uuid=config.tap_uuid,
            frame=frame,
            result=result,
            detection_source=detection_source_for(marker),
        )

        if transport:
            try:
                transport.send_uav_report(report)
            except Exception as e:
                logger.error(f"ZMQ send failed: {e}")

        if args.text:
            header = (
                f"{frame.get('mac') or '??:??:??:??:??:??'} | "
                f"ch {frame.get('channel')} ({frame.get('band')}) | "
                f"rssi {frame.get('rssi')} | len {frame.get('frame_length')}"
            )
            print(header)
            for line in describe_result(result):
                print(f"  {line}")
        elif to_stdout:
            print(json.dumps(report, default=str))

    exit_code = 0
    try:
        if args.replay:
            logger.info(f"Replaying hex frames from {args.replay}")
            try:
                for frame in iter_hexdump_frames(args.replay):
                    if _shutdown.is_set():
                        break
                    on_frame(frame)
            except OSError as e:
                logger.error(f"Cannot read {args.replay}: {e}")
                exit_code = 1
        else:
            exit_code = _run_tshark(args, config, on_frame, stats)
    finally:
        if _capture:
            _capture.stop()
        if transport:
            try:
                transport.stop()
            except Exception as e:
                logger.debug(f"Error stopping transport: {e}")

    logger.info(
        f"Stats: {stats['frames']} frames, {stats['odid']} with ODID, "
        f"{stats['messages']} messages, {stats['truncated']} truncated"
    )
    logger.info("odid-tap stopped.")
    return exit_code


def _run_tshark(args, config, on_frame, stats) -> int:
    """Feed tshark frames to on_frame; restarts live captures until shutdown."""
    global _capture

    interface = args.interface or config.interface
    _capture = TsharkCapture(
        interface=interface,
        tshark_path=config.tshark_path,
        read_file=args.read,
        capture_filter=config.capture_filter,
    )
    restart_delay = config.tshark_restart_delay_s
    stats_interval = config.stats_interval_s
    last_stats = time.time()

    while not _shutdown.is_set():
        try:
            _capture.start()
        except (FileNotFoundError, PermissionError) as e:
            logger.error(f"Cannot start tshark: {e}")
            return 1

        try:
            for frame in _capture.read_frames():
                if _shutdown.is_set():
                    break
                on_frame(frame)

                now = time.time()
                if now - last_stats >= stats_interval:
                    last_stats = now
                    logger.info(
                        f"Stats: {_capture.stats['lines_read']} lines, "
                        f"{stats['frames']} frames, {stats['odid']} ODID"
                    )
        except Exception as e:
            logger.error(f"Capture error: {e}", exc_info=True)

        _capture.stop()

        if args.read:
            break
        if not _shutdown.is_set():
            logger.warning(f"tshark exited, restarting in {restart_delay}s...")
            _shutdown.wait(timeout=restart_delay)

    return 0


if __name__ == "__main__":
    sys.exit(main())
