"""ADB client error types."""


class ADBError(Exception):
    """Base class for ADB client errors."""
    pass


class AdbConnectionError(ADBError, ConnectionError):
    """The socket to the ADB daemon could not be opened or maintained."""
    pass


class AdbIOError(AdbConnectionError):
    """A write to the daemon failed or was incomplete."""
    pass


class ProtocolError(ADBError):
    """The daemon sent bytes that do not follow the host protocol."""
    pass


class DaemonRejected(ADBError):
    """The daemon answered FAIL."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InstallError(DaemonRejected):
    """The package manager did not report success."""
    pass


class InvalidArgumentError(ADBError, ValueError):
    """Invalid caller input, rejected before any I/O."""
    pass
