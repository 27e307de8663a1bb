"""ADB module initialization."""

from .client import ADBClient, ResponseShape, response_shape
from .codec import Status, decode_length_prefix, decode_status, encode_frame, encode_length_prefix
from .connection import DEFAULT_PORT, Connection
from .device import Device, DeviceState, parse_device_line, parse_devices
from .errors import (
    ADBError,
    AdbConnectionError,
    AdbIOError,
    DaemonRejected,
    InstallError,
    InvalidArgumentError,
    ProtocolError,
)
from .package import PackageInstaller
from .shell import NOT_RUNNING, ShellCommand

__all__ = [
    # client
    "ADBClient",
    "ResponseShape",
    "response_shape",
    # codec
    "Status",
    "decode_length_prefix",
    "decode_status",
    "encode_frame",
    "encode_length_prefix",
    # connection
    "DEFAULT_PORT",
    "Connection",
    # device
    "Device",
    "DeviceState",
    "parse_device_line",
    "parse_devices",
    # errors
    "ADBError",
    "AdbConnectionError",
    "AdbIOError",
    "DaemonRejected",
    "InstallError",
    "InvalidArgumentError",
    "ProtocolError",
    # package
    "PackageInstaller",
    # shell
    "NOT_RUNNING",
    "ShellCommand",
]
