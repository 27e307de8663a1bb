"""Utility module initialization."""

from .logging import get_logger, setup_logging
from .paths import default_config_path, ensure_directory, format_size

__all__ = [
    # logging
    "get_logger",
    "setup_logging",
    # paths
    "default_config_path",
    "ensure_directory",
    "format_size",
]
