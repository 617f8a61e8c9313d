"""
odid-tap: Open Drone ID (ASTM F3411) Remote ID decoder.
Finds ODID message packs in captured Wi-Fi / Bluetooth frames, decodes
Basic ID, Location/Vector, Self-ID, System and Operator ID messages, and
publishes UAV reports to stdout or via ZeroMQ.
"""

__version__ = "0.3.0"
