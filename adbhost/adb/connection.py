"""A single TCP connection to the ADB daemon."""

import socket
from typing import Optional

from .codec import LATIN1, Status, decode_length_prefix, decode_status, encode_frame
from .errors import AdbConnectionError, AdbIOError, DaemonRejected, ProtocolError
from ..util.logging import get_logger

logger = get_logger(__name__)

LOOPBACK = "127.0.0.1"
DEFAULT_PORT = 5037

RECV_CHUNK = 4096


class Connection:
    """Owns one socket to the daemon for the length of one operation.

    Use as a context manager so the socket is closed on every exit path.
    ``close()`` may be called from another thread to cancel a blocked read.
    """

    def __init__(
        self,
        port: int = DEFAULT_PORT,
        timeout: Optional[float] = 30.0,
        drain_timeout: float = 0.5,
    ):
        self.port = port
        self.timeout = timeout
        self.drain_timeout = drain_timeout
        self._sock: Optional[socket.socket] = None

    def __enter__(self) -> "Connection":
        if self._sock is None:
            self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    def open(self) -> "Connection":
        """Connect to the daemon on the loopback interface."""
        try:
            self._sock = socket.create_connection((LOOPBACK, self.port), timeout=self.timeout)
        except socket.timeout as e:
            raise AdbConnectionError(f"Timed out connecting to ADB daemon on port {self.port}") from e
        except OSError as e:
            raise AdbConnectionError(f"Cannot connect to ADB daemon on port {self.port}: {e}") from e

        logger.debug(f"Connected to ADB daemon on port {self.port}")
        return self

    def close(self) -> None:
        sock, self._sock = self._sock, None
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Peer already gone
            pass
        sock.close()

    def _socket(self) -> socket.socket:
        if self._sock is None:
            raise AdbConnectionError("Connection is not open")
        return self._sock

    def send_command(self, command: str, encoding: str) -> None:
        """Frame ``command`` in ``encoding`` and write it fully."""
        frame = encode_frame(command, encoding)
        logger.debug(f"Send: {frame!r}")
        self.send_raw(frame)

    def send_raw(self, data: bytes) -> None:
        """Write bytes with no framing."""
        try:
            self._socket().sendall(data)
        except socket.timeout as e:
            raise AdbIOError("Timed out writing to ADB daemon") from e
        except OSError as e:
            raise AdbIOError(f"Write to ADB daemon failed: {e}") from e

    def _recv(self, size: int) -> bytes:
        try:
            return self._socket().recv(size)
        except socket.timeout as e:
            raise AdbConnectionError("Timed out reading from ADB daemon") from e
        except OSError as e:
            raise AdbConnectionError(f"Read from ADB daemon failed: {e}") from e

    def read_exactly(self, size: int) -> bytes:
        """Read exactly ``size`` bytes or fail on EOF."""
        data = bytearray()
        while len(data) < size:
            chunk = self._recv(size - len(data))
            if not chunk:
                raise ProtocolError(f"Connection closed after {len(data)} of {size} bytes")
            data.extend(chunk)

        logger.debug(f"Recv: {bytes(data)!r}")
        return bytes(data)

    def read_length_prefixed(self) -> bytes:
        """Read a 4 hex digit length and then that many bytes."""
        length = decode_length_prefix(self.read_exactly(4))
        if length == 0:
            return b""
        return self.read_exactly(length)

    def read_all(self) -> bytes:
        """Read until the daemon closes the stream."""
        data = bytearray()
        while True:
            chunk = self._recv(RECV_CHUNK)
            if not chunk:
                break
            data.extend(chunk)

        logger.debug(f"Recv {len(data)} bytes until EOF")
        return bytes(data)

    def expect_okay(self) -> None:
        """Read the status token and raise unless it is OKAY."""
        token = self.read_exactly(4)
        status = decode_status(token)

        if status is Status.OKAY:
            return

        if status is Status.FAIL:
            message = self.read_length_prefixed().decode(LATIN1)
            raise DaemonRejected(message)

        raise ProtocolError(f"Unexpected status {token!r}")

    def drain(self) -> None:
        """Best-effort short read before closing.

        Closing right after a fire-and-forget command can race the daemon
        executing it.
        """
        sock = self._sock
        if sock is None:
            return
        try:
            sock.settimeout(self.drain_timeout)
            sock.recv(1)
        except OSError:
            pass
