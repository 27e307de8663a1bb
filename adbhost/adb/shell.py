"""Shell-backed device operations."""

import shlex
from typing import Optional

from .client import ADBClient
from .errors import InvalidArgumentError
from ..util.logging import get_logger

logger = get_logger(__name__)

# pidof is available from Android 7.0
PIDOF_MIN_API_LEVEL = 24

NOT_RUNNING = -1

KEYCODE_POWER = 26
KEYCODE_ENTER = 66

# Swipe up from the lower part of the screen to dismiss the lock screen
WAKE_SWIPE = (930, 880, 930, 380)


class ShellCommand:
    """Utility for executing shell commands on one Android device."""

    def __init__(self, client: ADBClient, serial: str):
        if not serial:
            raise InvalidArgumentError("serial is required")
        self.client = client
        self.serial = serial

    def execute(self, command: str) -> str:
        """Execute a shell command on the device and return its output."""
        return self.client.query(self.serial, command)

    def run(self, command: str) -> None:
        """Execute a shell command without waiting for its output."""
        self.client.send_shell_command(self.serial, command)

    def get_property(self, name: str) -> str:
        """Get a system property value."""
        return self.execute(f"getprop {name}").strip()

    def get_api_level(self) -> int:
        return self.client.get_api_level(self.serial)

    def get_process_id(self, package_name: str) -> int:
        """Get the pid of a running package, -1 if it is not running."""
        if not package_name:
            raise InvalidArgumentError("package_name is required")

        if self.get_api_level() >= PIDOF_MIN_API_LEVEL:
            return self._pid_from_pidof(package_name)
        return self._pid_from_ps(package_name)

    def _pid_from_pidof(self, package_name: str) -> int:
        output = self.execute(f"pidof {package_name}")
        tokens = output.split()
        if tokens:
            try:
                return int(tokens[0])
            except ValueError:
                logger.debug(f"Unexpected pidof output for {package_name}: {output!r}")
        return NOT_RUNNING

    def _pid_from_ps(self, package_name: str) -> int:
        output = self.execute("ps")
        line = _find_process_line(output, package_name)
        if line is None:
            return NOT_RUNNING

        # USER PID PPID ...
        parts = line.split()
        if len(parts) > 1:
            try:
                return int(parts[1])
            except ValueError:
                logger.debug(f"Unexpected ps line for {package_name}: {line!r}")
        return NOT_RUNNING

    def turn_on_display(self) -> None:
        """Wake the screen and swipe the lock screen away."""
        self.run(f"input keyevent {KEYCODE_POWER}")
        self.run("input touchscreen swipe {} {} {} {}".format(*WAKE_SWIPE))

    def unlock(self, pin: Optional[str]) -> None:
        """Type ``pin`` and press Enter."""
        if not pin:
            raise InvalidArgumentError("pin is required")
        self.run(f"input text {shlex.quote(str(pin))}")
        self.run(f"input keyevent {KEYCODE_ENTER}")


def _find_process_line(ps_output: str, package_name: str) -> Optional[str]:
    for line in ps_output.split("\n"):
        if line.strip() and line.strip().endswith(package_name):
            return line
    return None
