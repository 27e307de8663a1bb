"""Shared fixtures: a scripted ADB daemon on a loopback port."""

import socket
import threading
from typing import Callable, List

import pytest

from adbhost.adb.client import ADBClient


class DaemonConnection:
    """Server side of one client connection."""

    def __init__(self, sock: socket.socket):
        self.sock = sock
        self.received = bytearray()

    def read_exactly(self, size: int) -> bytes:
        data = bytearray()
        while len(data) < size:
            chunk = self.sock.recv(size - len(data))
            if not chunk:
                raise AssertionError(f"client closed after {len(data)} of {size} bytes")
            data.extend(chunk)
        self.received.extend(data)
        return bytes(data)

    def read_frame(self, encoding: str = "utf-8") -> str:
        length = int(self.read_exactly(4).decode("ascii"), 16)
        return self.read_exactly(length).decode(encoding)

    def send(self, data: bytes) -> None:
        self.sock.sendall(data)

    def okay(self, payload: bytes = None, prefixed: bool = False) -> None:
        self.send(b"OKAY")
        if payload is not None:
            if prefixed:
                self.send(f"{len(payload):04x}".encode("ascii"))
            self.send(payload)

    def fail(self, message: str) -> None:
        data = message.encode("utf-8")
        self.send(b"FAIL" + f"{len(data):04x}".encode("ascii") + data)

    def expect_eof(self) -> None:
        """Fail if the client sends anything before closing."""
        self.sock.settimeout(5)
        data = self.sock.recv(1024)
        if data:
            raise AssertionError(f"unexpected bytes after response: {data!r}")

    def device_service(self, serial: str, encoding: str = "utf-8") -> str:
        """Accept transport selection for ``serial`` and return the next frame."""
        frame = self.read_frame()
        assert frame == f"host:transport:{serial}", frame
        self.okay()
        return self.read_frame(encoding)


Handler = Callable[[DaemonConnection], None]


class FakeDaemon:
    """Accepts connections and runs one handler per connection, in order."""

    def __init__(self, handlers: List[Handler]):
        self.handlers = list(handlers)
        self.connections: List[DaemonConnection] = []
        self.errors: List[BaseException] = []
        self._server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._server.bind(("127.0.0.1", 0))
        self._server.listen(8)
        self._server.settimeout(0.1)
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)

    @property
    def port(self) -> int:
        return self._server.getsockname()[1]

    def start(self) -> "FakeDaemon":
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stopped.set()
        self._thread.join(timeout=5)
        self._server.close()

    def _serve(self) -> None:
        while not self._stopped.is_set():
            try:
                sock, _ = self._server.accept()
            except socket.timeout:
                continue
            except OSError:
                return

            sock.settimeout(5)
            conn = DaemonConnection(sock)
            self.connections.append(conn)
            try:
                if not self.handlers:
                    raise AssertionError("unexpected connection")
                self.handlers.pop(0)(conn)
            except BaseException as e:
                self.errors.append(e)
            finally:
                sock.close()

    def assert_clean(self) -> None:
        self.stop()
        assert not self.errors, self.errors
        assert not self.handlers, f"{len(self.handlers)} handlers never ran"


@pytest.fixture
def fake_daemon():
    """Factory fixture returning a started FakeDaemon."""
    daemons = []

    def factory(*handlers: Handler) -> FakeDaemon:
        daemon = FakeDaemon(list(handlers)).start()
        daemons.append(daemon)
        return daemon

    yield factory

    for daemon in daemons:
        daemon.stop()


@pytest.fixture
def client_for():
    """Build a client pointed at a FakeDaemon."""

    def factory(daemon: FakeDaemon) -> ADBClient:
        return ADBClient(port=daemon.port, timeout=5.0, drain_timeout=0.2)

    return factory
