# src/bearer_refresh/utils/__init__.py

from .resilient_io import read_json, remove_file, write_json_atomic

__all__ = [
    "read_json",
    "remove_file",
    "write_json_atomic",
]
