"""ADB host protocol client.

Every call opens its own connection to the daemon, runs one request and
closes it. Device-scoped services first bind the connection to a device
with ``host:transport:<serial>``.
"""

from contextlib import contextmanager
from enum import Enum
from typing import Dict, Iterator, List, Optional

from .codec import LATIN1, UTF8, decode_length_prefix, encode_frame
from .connection import DEFAULT_PORT, Connection
from .device import Device, parse_devices
from .errors import InvalidArgumentError, ProtocolError
from ..util.logging import get_logger

logger = get_logger(__name__)


class ResponseShape(Enum):
    """How the daemon delimits a service's response payload."""

    LENGTH_PREFIXED = "length-prefixed"
    STREAM = "stream"


# Exact service names first, then prefixes
RESPONSE_SHAPES: Dict[str, ResponseShape] = {
    "host:version": ResponseShape.LENGTH_PREFIXED,
    "host:devices": ResponseShape.STREAM,
    "host:devices-l": ResponseShape.STREAM,
    "shell:": ResponseShape.STREAM,
    "exec:": ResponseShape.STREAM,
}


def response_shape(service: str) -> ResponseShape:
    """Look up the response shape for a service name."""
    if service in RESPONSE_SHAPES:
        return RESPONSE_SHAPES[service]
    for prefix, shape in RESPONSE_SHAPES.items():
        if prefix.endswith(":") and service.startswith(prefix):
            return shape
    return ResponseShape.STREAM


def _require(value: Optional[str], name: str) -> str:
    if not value:
        raise InvalidArgumentError(f"{name} is required")
    return value


def unwrap_length_prefixed(data: bytes) -> bytes:
    """Strip the length prefix from a payload that was read to EOF."""
    if not data:
        return b""
    length = decode_length_prefix(data[:4])
    if length == 0:
        return b""
    if len(data) < 4 + length:
        raise ProtocolError(f"Payload declares {length} bytes but only {len(data) - 4} arrived")
    return data[4:4 + length]


class ADBClient:
    """Client for the ADB daemon's host protocol."""

    def __init__(
        self,
        port: int = DEFAULT_PORT,
        timeout: Optional[float] = 30.0,
        drain_timeout: float = 0.5,
    ) -> None:
        """Initialize ADB client.

        Args:
            port: Daemon port on the loopback interface
            timeout: Timeout in seconds for every blocking socket call
            drain_timeout: How long to wait before closing after a
                fire-and-forget command
        """
        self.port = port
        self.timeout = timeout
        self.drain_timeout = drain_timeout
        self._api_levels: Dict[str, int] = {}

    @classmethod
    def from_config(cls, config) -> "ADBClient":
        """Build a client from a ``ClientConfig``."""
        return cls(port=config.port, timeout=config.timeout, drain_timeout=config.drain_timeout)

    def connect(self) -> Connection:
        """Open a new connection to the daemon."""
        return Connection(
            port=self.port, timeout=self.timeout, drain_timeout=self.drain_timeout
        ).open()

    def _select_transport(self, conn: Connection, serial: str) -> None:
        conn.send_command(f"host:transport:{serial}", UTF8)
        conn.expect_okay()

    def _read_response(self, conn: Connection, service: str) -> bytes:
        if response_shape(service) is ResponseShape.LENGTH_PREFIXED:
            return conn.read_length_prefixed()
        return conn.read_all()

    def host_command(self, service: str) -> bytes:
        """Run a host service and return its payload.

        Args:
            service: Full service name, e.g. ``host:version``

        Returns:
            Raw response payload
        """
        _require(service, "service")
        logger.debug(f"Host command: {service}")

        with self.connect() as conn:
            conn.send_command(service, UTF8)
            conn.expect_okay()
            return self._read_response(conn, service)

    def device_command(self, serial: str, service: str) -> bytes:
        """Run a service on a device and return its payload."""
        with self.open_device_stream(serial, service) as conn:
            return self._read_response(conn, service)

    @contextmanager
    def open_device_stream(
        self, serial: str, service: str, encoding: str = UTF8
    ) -> Iterator[Connection]:
        """Select ``serial``, start ``service`` and yield the open connection.

        The connection is closed when the block exits.
        """
        _require(serial, "serial")
        _require(service, "service")
        # Unencodable or oversized commands fail before the socket is opened
        encode_frame(service, encoding)
        logger.debug(f"Device command on {serial}: {service}")

        with self.connect() as conn:
            self._select_transport(conn, serial)
            conn.send_command(service, encoding)
            conn.expect_okay()
            yield conn

    def send_command(self, serial: str, command: str) -> None:
        """Send a device command whose output is not needed."""
        with self.open_device_stream(serial, command, encoding=LATIN1) as conn:
            conn.drain()

    def send_shell_command(self, serial: str, command: str) -> None:
        """Run a shell command on a device without reading its output."""
        _require(command, "command")
        self.send_command(serial, f"shell:{command}")

    def query(self, serial: str, command: str) -> str:
        """Run a shell command on a device and return its output."""
        _require(command, "command")
        data = self.device_command(serial, f"shell: {command}")
        return data.decode(UTF8, errors="replace")

    def server_version(self) -> int:
        """Return the daemon's protocol version."""
        data = self.host_command("host:version")
        try:
            return int(data.decode(LATIN1), 16)
        except ValueError as e:
            raise ProtocolError(f"Bad version payload: {data!r}") from e

    def list_devices(self) -> List[Device]:
        """List devices attached to the daemon."""
        data = self.host_command("host:devices-l")
        listing = unwrap_length_prefixed(data).decode(UTF8, errors="replace")
        devices = parse_devices(listing)
        logger.debug(f"Found {len(devices)} devices")
        return devices

    def get_api_level(self, serial: str) -> int:
        """Get the device's SDK level, 0 if it cannot be determined.

        The value is cached per device for the life of the client.
        """
        _require(serial, "serial")
        cached = self._api_levels.get(serial, 0)
        if cached:
            return cached

        output = self.query(serial, "getprop ro.build.version.sdk")
        try:
            level = int(output.strip())
        except ValueError:
            logger.warning(f"Could not parse API level for {serial}: {output!r}")
            return 0

        self._api_levels[serial] = level
        return level

    def forget_api_level(self, serial: Optional[str] = None) -> None:
        """Drop a cached API level, or all of them."""
        if serial is None:
            self._api_levels.clear()
        else:
            self._api_levels.pop(serial, None)
