"""Utility functions for paths and sizes."""

from pathlib import Path


def ensure_directory(path: Path) -> Path:
    """Ensure directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def default_config_path() -> Path:
    """Location of the user's configuration file."""
    return Path.home() / ".config/adbhost/config.yaml"


def format_size(size_bytes: float) -> str:
    """Format a byte count in human readable format."""
    if size_bytes == 0:
        return "0 B"

    size_names = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while size_bytes >= 1024.0 and i < len(size_names) - 1:
        size_bytes /= 1024.0
        i += 1

    if i == 0:
        return f"{int(size_bytes)} B"
    return f"{size_bytes:.1f} {size_names[i]}"
