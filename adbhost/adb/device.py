"""Attached device model and ``host:devices-l`` parsing."""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import List, Mapping, Optional

from ..util.logging import get_logger

logger = get_logger(__name__)


class DeviceState(Enum):
    """Connection state reported by the daemon."""

    DEVICE = "device"
    OFFLINE = "offline"
    UNAUTHORIZED = "unauthorized"
    UNKNOWN = "unknown"
    BOOTLOADER = "bootloader"
    RECOVERY = "recovery"
    SIDELOAD = "sideload"
    NO_PERMISSIONS = "no permissions"
    OTHER = "other"

    @classmethod
    def from_token(cls, token: str) -> "DeviceState":
        if token == "no":
            # "no permissions" is the only state spanning two tokens
            return cls.NO_PERMISSIONS
        for state in cls:
            if state.value == token:
                return state
        return cls.OTHER


@dataclass(frozen=True)
class Device:
    """Snapshot of one line of the device listing."""

    serial: str
    raw_state: str
    properties: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))

    @property
    def state(self) -> DeviceState:
        return DeviceState.from_token(self.raw_state)

    @property
    def is_online(self) -> bool:
        return self.state is DeviceState.DEVICE

    @property
    def model(self) -> Optional[str]:
        return self.properties.get("model")

    @property
    def product(self) -> Optional[str]:
        return self.properties.get("product")

    @property
    def transport_id(self) -> Optional[str]:
        return self.properties.get("transport_id")

    @property
    def display_name(self) -> str:
        """Get a human-readable device name."""
        if self.model:
            return f"{self.model} ({self.serial})"
        return self.serial


def _split_property(token: str) -> Optional[tuple]:
    # The daemon writes key:value; key=value is accepted too
    for sep in (":", "="):
        if sep in token:
            key, value = token.split(sep, 1)
            if key.replace("_", "").isalnum():
                return key, value
    return None


def parse_device_line(line: str) -> Optional[Device]:
    """Parse ``<serial> <state> [key:value ...]``, None if too short."""
    parts = line.split()
    if len(parts) < 2:
        return None

    serial, state, extra = parts[0], parts[1], parts[2:]
    if state == "no" and extra and extra[0].startswith("permissions"):
        state = "no permissions"
        extra = extra[1:]

    properties = {}
    for token in extra:
        pair = _split_property(token)
        if pair is None:
            continue
        properties[pair[0]] = pair[1]

    return Device(serial=serial, raw_state=state, properties=properties)


def parse_devices(listing: str) -> List[Device]:
    """Parse a full device listing, skipping lines that do not parse."""
    devices = []
    for line in listing.split("\n"):
        if not line.strip():
            continue
        device = parse_device_line(line)
        if device is None:
            logger.debug(f"Skipping device line: {line!r}")
            continue
        devices.append(device)
    return devices
