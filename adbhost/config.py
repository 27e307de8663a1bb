"""Configuration management for adbhost."""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from ruamel.yaml import YAML

from .util.paths import default_config_path, ensure_directory

PORT_ENV_VAR = "ANDROID_ADB_SERVER_PORT"
DEFAULT_PORT = 5037


def _default_port() -> int:
    value = os.environ.get(PORT_ENV_VAR)
    if value and value.isdigit():
        return int(value)
    return DEFAULT_PORT


class ClientConfig(BaseModel):
    """Settings for talking to the ADB daemon."""

    model_config = ConfigDict(validate_assignment=True)

    port: int = Field(default_factory=_default_port, ge=1, le=65535, description="ADB daemon port on 127.0.0.1")
    timeout: float = Field(default=30.0, gt=0, description="Socket timeout in seconds")
    drain_timeout: float = Field(default=0.5, ge=0, description="Wait before closing after fire-and-forget commands")
    chunk_size: int = Field(default=32 * 1024, gt=0, description="Package upload chunk size in bytes")
    log_level: str = Field(default="INFO", description="Logging level")


def load_config(config_path: Optional[Path] = None) -> ClientConfig:
    """Load configuration from file or create default."""

    if config_path is None:
        config_path = default_config_path()

    if config_path.exists():
        yaml = YAML(typ="safe")
        with open(config_path, "r") as f:
            data = yaml.load(f) or {}
        return ClientConfig(**data)

    config = ClientConfig()
    save_config(config, config_path)
    return config


def save_config(config: ClientConfig, config_path: Optional[Path] = None) -> None:
    """Save configuration to file."""

    if config_path is None:
        config_path = default_config_path()

    ensure_directory(config_path.parent)

    yaml = YAML()
    yaml.default_flow_style = False

    with open(config_path, "w") as f:
        yaml.dump(config.model_dump(), f)


def get_config() -> ClientConfig:
    """Get the global configuration instance."""

    if not hasattr(get_config, "_config"):
        get_config._config = load_config()

    return get_config._config
