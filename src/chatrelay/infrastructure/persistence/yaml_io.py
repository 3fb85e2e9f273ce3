"""
YAML I/O Utilities
==================

Atomic YAML read/write for the relay configuration file.

The configuration holds bot tokens, so a crash mid-write must never leave
a truncated file behind: data is written to a temporary file in the same
directory and then moved over the target with ``os.replace``.
"""

import os
import tempfile
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger()


def atomic_write_yaml(path: Path, data: dict[str, Any]) -> None:
    """
    Write a dictionary to a YAML file atomically.

    Args:
        path: Target file path (parent directories are created).
        data: Dictionary to serialize as YAML.

    Raises:
        OSError: If file operations fail.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_fd, temp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp", prefix=".config_")
    try:
        with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
            yaml.safe_dump(
                data,
                f,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
            )
        os.replace(temp_path, path)
        logger.debug("config.yaml.written", path=str(path), atomic=True)
    except Exception:
        if Path(temp_path).exists():
            Path(temp_path).unlink()
        raise


def load_yaml(path: Path) -> dict[str, Any] | None:
    """
    Load a YAML mapping.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed dictionary, or None if the file does not exist or is empty.

    Raises:
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If the document is not a mapping.
    """
    if not path.exists():
        return None
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a YAML mapping")
    return data
