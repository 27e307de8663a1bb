"""Tests for the host protocol client against a fake daemon."""

import socket
import time

import pytest

from adbhost.adb.client import ADBClient, ResponseShape, response_shape, unwrap_length_prefixed
from adbhost.adb.device import DeviceState
from adbhost.adb.errors import (
    AdbConnectionError,
    DaemonRejected,
    InvalidArgumentError,
    ProtocolError,
)


def _listing_handler(listing: bytes):
    def handler(conn):
        assert conn.read_frame() == "host:devices-l"
        conn.okay(listing, prefixed=True)
    return handler


def _query_handler(serial: str, command: str, output: bytes):
    def handler(conn):
        assert conn.device_service(serial) == f"shell: {command}"
        conn.okay(output)
    return handler


class TestResponseShape:
    """Test the per-service response shape table."""

    def test_known_services(self):
        """Test shapes of the services the client uses."""
        assert response_shape("host:version") is ResponseShape.LENGTH_PREFIXED
        assert response_shape("host:devices-l") is ResponseShape.STREAM
        assert response_shape("shell: ps") is ResponseShape.STREAM
        assert response_shape("exec:cmd package 'install' -S 3") is ResponseShape.STREAM

    def test_unknown_service_streams(self):
        """Test that unlisted services are read until close."""
        assert response_shape("host:something-new") is ResponseShape.STREAM

    def test_unwrap(self):
        """Test stripping the length prefix from a streamed listing."""
        assert unwrap_length_prefixed(b"0003abc") == b"abc"
        assert unwrap_length_prefixed(b"0000") == b""
        assert unwrap_length_prefixed(b"") == b""
        with pytest.raises(ProtocolError):
            unwrap_length_prefixed(b"0010abc")


class TestHostCommands:
    """Test host-scoped services."""

    def test_list_devices(self, fake_daemon, client_for):
        """Test listing devices and skipping short lines."""
        daemon = fake_daemon(_listing_handler(
            b"emulator-5554 device product:sdk_gphone model:Pixel\n"
            b"x\n"
            b"R58M123 unauthorized transport_id:4\n"
        ))

        devices = client_for(daemon).list_devices()

        daemon.assert_clean()
        assert len(devices) == 2
        assert devices[0].serial == "emulator-5554"
        assert devices[0].state is DeviceState.DEVICE
        assert devices[0].properties == {"product": "sdk_gphone", "model": "Pixel"}
        assert devices[1].state is DeviceState.UNAUTHORIZED

    def test_list_devices_empty(self, fake_daemon, client_for):
        """Test listing with no devices attached."""
        daemon = fake_daemon(_listing_handler(b""))

        assert client_for(daemon).list_devices() == []
        daemon.assert_clean()

    def test_server_version(self, fake_daemon, client_for):
        """Test reading the daemon version without waiting for EOF."""
        def handler(conn):
            assert conn.read_frame() == "host:version"
            conn.okay(b"0029", prefixed=True)
            # Length-prefixed response: the client must not wait for EOF
            conn.sock.settimeout(5)
            conn.sock.recv(1)

        daemon = fake_daemon(handler)

        assert client_for(daemon).server_version() == 0x29
        daemon.assert_clean()

    def test_fail_is_surfaced_verbatim(self, fake_daemon, client_for):
        """Test that a FAIL message reaches the caller unchanged."""
        def handler(conn):
            conn.read_frame()
            conn.fail("unknown host service")

        daemon = fake_daemon(handler)

        with pytest.raises(DaemonRejected) as exc_info:
            client_for(daemon).host_command("host:bogus")

        assert exc_info.value.message == "unknown host service"
        daemon.assert_clean()

    def test_malformed_status(self, fake_daemon, client_for):
        """Test an unknown status token."""
        def handler(conn):
            conn.read_frame()
            conn.send(b"WHAT")

        daemon = fake_daemon(handler)

        with pytest.raises(ProtocolError):
            client_for(daemon).list_devices()
        daemon.assert_clean()

    def test_malformed_fail_length(self, fake_daemon, client_for):
        """Test a FAIL whose length prefix is not hex."""
        def handler(conn):
            conn.read_frame()
            conn.send(b"FAILzzzzoops")

        daemon = fake_daemon(handler)

        with pytest.raises(ProtocolError):
            client_for(daemon).list_devices()
        daemon.assert_clean()

    def test_truncated_status(self, fake_daemon, client_for):
        """Test a status token cut short by EOF."""
        def handler(conn):
            conn.read_frame()
            conn.send(b"OK")

        daemon = fake_daemon(handler)

        with pytest.raises(ProtocolError):
            client_for(daemon).list_devices()
        daemon.assert_clean()


class TestDeviceCommands:
    """Test device-scoped services."""

    def test_transport_failure_stops_before_service(self, fake_daemon, client_for):
        """Test that a rejected transport stops the request."""
        def handler(conn):
            assert conn.read_frame() == "host:transport:bogus"
            conn.fail("device 'bogus' not found")
            conn.expect_eof()

        daemon = fake_daemon(handler)

        with pytest.raises(DaemonRejected) as exc_info:
            client_for(daemon).query("bogus", "ps")

        assert exc_info.value.message == "device 'bogus' not found"
        daemon.assert_clean()

    def test_query_reads_until_close(self, fake_daemon, client_for):
        """Test reading shell output until the daemon closes."""
        daemon = fake_daemon(_query_handler("emulator-5554", "echo hi", b"hi\n"))

        assert client_for(daemon).query("emulator-5554", "echo hi") == "hi\n"
        daemon.assert_clean()

    def test_service_failure(self, fake_daemon, client_for):
        """Test a FAIL after transport selection."""
        def handler(conn):
            conn.device_service("emulator-5554")
            conn.fail("closed")

        daemon = fake_daemon(handler)

        with pytest.raises(DaemonRejected, match="closed"):
            client_for(daemon).query("emulator-5554", "ps")
        daemon.assert_clean()

    def test_send_shell_command_uses_latin1(self, fake_daemon, client_for):
        """Test that fire-and-forget commands are sent as Latin-1."""
        received = []

        def handler(conn):
            received.append(conn.device_service("emulator-5554", "latin-1"))
            conn.okay()

        daemon = fake_daemon(handler)

        client_for(daemon).send_shell_command("emulator-5554", "input text café")

        daemon.assert_clean()
        frame = bytes(daemon.connections[0].received)
        assert frame.endswith(b"0015shell:input text caf\xe9")

    def test_send_command_waits_for_drain(self, fake_daemon, client_for):
        """Test the short read before closing a fire-and-forget command."""
        closed_after = []

        def handler(conn):
            conn.device_service("emulator-5554")
            conn.okay()
            started = time.monotonic()
            conn.expect_eof()
            closed_after.append(time.monotonic() - started)

        daemon = fake_daemon(handler)
        client = ADBClient(port=daemon.port, timeout=5.0, drain_timeout=0.3)

        client.send_shell_command("emulator-5554", "input keyevent 26")

        daemon.assert_clean()
        assert closed_after[0] >= 0.2

    def test_empty_serial_rejected_before_io(self):
        """Test rejecting empty arguments."""
        client = ADBClient(port=1)

        with pytest.raises(InvalidArgumentError):
            client.query("", "ps")
        with pytest.raises(InvalidArgumentError):
            client.send_shell_command("emulator-5554", "")

    def test_non_latin1_command_rejected_before_connecting(self, fake_daemon, client_for):
        """Test that a command outside Latin-1 never opens a socket."""
        daemon = fake_daemon()

        with pytest.raises(InvalidArgumentError):
            client_for(daemon).send_shell_command("emulator-5554", "input text 密码")

        daemon.assert_clean()
        assert daemon.connections == []

    def test_oversized_service_rejected_before_connecting(self, fake_daemon, client_for):
        """Test that a service too long to frame never opens a socket."""
        daemon = fake_daemon()

        with pytest.raises(ProtocolError):
            client_for(daemon).query("emulator-5554", "x" * 0x10000)

        daemon.assert_clean()
        assert daemon.connections == []


class TestApiLevel:
    """Test API level lookup and caching."""

    def test_cached_per_device(self, fake_daemon, client_for):
        """Test that each device keeps its own cached level."""
        daemon = fake_daemon(
            _query_handler("a", "getprop ro.build.version.sdk", b"30\n"),
            _query_handler("b", "getprop ro.build.version.sdk", b"21\n"),
        )
        client = client_for(daemon)

        assert client.get_api_level("a") == 30
        assert client.get_api_level("a") == 30
        assert client.get_api_level("b") == 21

        daemon.assert_clean()
        assert len(daemon.connections) == 2

    def test_unparseable_is_not_cached(self, fake_daemon, client_for):
        """Test that an unreadable level is asked for again."""
        daemon = fake_daemon(
            _query_handler("a", "getprop ro.build.version.sdk", b"\n"),
            _query_handler("a", "getprop ro.build.version.sdk", b"28\n"),
        )
        client = client_for(daemon)

        assert client.get_api_level("a") == 0
        assert client.get_api_level("a") == 28
        daemon.assert_clean()

    def test_forget(self):
        """Test dropping cached levels."""
        client = ADBClient()
        client._api_levels.update({"a": 30, "b": 21})

        client.forget_api_level("a")
        assert client._api_levels == {"b": 21}

        client.forget_api_level()
        assert client._api_levels == {}


class TestConnectionErrors:
    """Test socket level failures."""

    def test_daemon_not_listening(self):
        """Test connecting to a closed port."""
        sock = socket.socket()
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
        sock.close()

        with pytest.raises(AdbConnectionError):
            ADBClient(port=port, timeout=2.0).list_devices()

    def test_read_timeout(self, fake_daemon):
        """Test a daemon that never answers."""
        def handler(conn):
            conn.read_frame()
            time.sleep(0.5)

        daemon = fake_daemon(handler)
        client = ADBClient(port=daemon.port, timeout=0.1)

        with pytest.raises(AdbConnectionError):
            client.list_devices()
        daemon.assert_clean()
