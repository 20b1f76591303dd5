# src/bearer_refresh/utils/resilient_io.py
"""
File helpers for credential persistence.

Writes go through a temp file in the target directory followed by a move, so
a crash mid-write never leaves a truncated credentials file behind.
"""

import json
import os
import shutil
import tempfile
import logging
from pathlib import Path
from typing import Any, Dict, Union


def write_json_atomic(
    path: Union[str, Path],
    data: Dict[str, Any],
    logger: logging.Logger,
    indent: int = 2,
    secure_permissions: bool = True,
) -> None:
    """
    Atomically write JSON data to a file.

    Args:
        path: File path to write to
        data: JSON-serializable data
        logger: Logger for debug output
        indent: JSON indentation level (default: 2)
        secure_permissions: Set file permissions to 0o600 (default: True)

    Raises:
        OSError: If the directory or file cannot be written
        TypeError: If data is not JSON-serializable
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(data, indent=indent)

    tmp_fd, tmp_path = tempfile.mkstemp(
        dir=path.parent, prefix=".tmp_", suffix=".json", text=True
    )
    try:
        with os.fdopen(tmp_fd, "w", encoding="utf-8") as f:
            f.write(content)
        if secure_permissions:
            try:
                os.chmod(tmp_path, 0o600)
            except (OSError, AttributeError):
                # Windows may not support chmod
                pass
        shutil.move(tmp_path, path)
        tmp_path = None
        logger.debug(f"Wrote {path.name}")
    finally:
        if tmp_path and os.path.exists(tmp_path):
            try:
                os.unlink(tmp_path)
            except OSError:
                pass


def read_json(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a JSON object from a file. A missing file reads as an empty dict.

    Raises:
        OSError: If the file exists but cannot be read
        ValueError: If the content is not a JSON object
    """
    path = Path(path)
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in {path}")
    return data


def remove_file(path: Union[str, Path], logger: logging.Logger) -> None:
    """Delete a file if it exists."""
    path = Path(path)
    try:
        path.unlink()
        logger.debug(f"Removed {path.name}")
    except FileNotFoundError:
        pass
