"""Streamed package installation."""

import io
import os
from pathlib import Path
from typing import BinaryIO, Callable, Optional

from .client import ADBClient
from .codec import UTF8
from .errors import AdbIOError, InstallError, InvalidArgumentError
from ..util.logging import get_logger
from ..util.paths import format_size

logger = get_logger(__name__)

INSTALL_SUCCESS = "Success\n"

DEFAULT_CHUNK_SIZE = 32 * 1024

ProgressCallback = Callable[[int, int], None]


def _remaining_length(stream: BinaryIO) -> int:
    """Bytes from the current position to the end, position unchanged."""
    try:
        start = stream.tell()
        end = stream.seek(0, io.SEEK_END)
        stream.seek(start)
    except (OSError, ValueError) as e:
        raise InvalidArgumentError(f"Cannot measure the package stream: {e}") from e
    return end - start


def _check_stream(stream: Optional[BinaryIO]) -> BinaryIO:
    if stream is None:
        raise InvalidArgumentError("package stream is required")

    if getattr(stream, "closed", False):
        raise InvalidArgumentError("The package stream is closed")

    readable = getattr(stream, "readable", None)
    seekable = getattr(stream, "seekable", None)
    try:
        usable = callable(readable) and readable() and callable(seekable) and seekable()
    except ValueError as e:
        raise InvalidArgumentError(f"The package stream cannot be used: {e}") from e
    if not usable:
        raise InvalidArgumentError("The package stream must be readable and seekable")

    return stream


class PackageInstaller:
    """Installs packages on one device by streaming them to the package manager."""

    def __init__(self, client: ADBClient, serial: str, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if not serial:
            raise InvalidArgumentError("serial is required")
        self.client = client
        self.serial = serial
        self.chunk_size = chunk_size

    def install(self, stream: BinaryIO, progress: Optional[ProgressCallback] = None) -> None:
        """Install the package read from ``stream``.

        The stream is read from its current position to the end. Its length
        is declared to the device up front.

        Args:
            stream: Readable, seekable binary source
            progress: Called with (bytes sent, total bytes) after each chunk

        Raises:
            InvalidArgumentError: If the stream is missing or not seekable
            InstallError: If the package manager does not report success
        """
        stream = _check_stream(stream)
        total = _remaining_length(stream)
        command = f"exec:cmd package 'install' -S {total}"

        logger.info(f"Installing package ({format_size(total)}) on {self.serial}")

        with self.client.open_device_stream(self.serial, command) as conn:
            sent = 0
            while sent < total:
                chunk = stream.read(min(self.chunk_size, total - sent))
                if not chunk:
                    break
                conn.send_raw(chunk)
                sent += len(chunk)
                if progress:
                    progress(sent, total)

            if sent != total:
                raise AdbIOError(f"Package stream ended after {sent} of {total} declared bytes")

            # The daemon closes the exec stream when the package manager exits
            response = conn.read_all().decode(UTF8, errors="replace")

        if response != INSTALL_SUCCESS:
            logger.error(f"Install failed on {self.serial}: {response!r}")
            raise InstallError(response)

        logger.info(f"Package installed on {self.serial}")

    def install_file(self, path: Path, progress: Optional[ProgressCallback] = None) -> None:
        """Install a package file from the local file system."""
        path = Path(path)
        if not path.is_file():
            raise InvalidArgumentError(f"Package file not found: {path}")

        logger.debug(f"Installing {path} ({format_size(os.path.getsize(path))})")
        with open(path, "rb") as f:
            self.install(f, progress=progress)
