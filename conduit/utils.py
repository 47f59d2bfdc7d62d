"""Filesystem helpers."""

import os
from pathlib import Path


def file_exists(path: str | Path) -> bool:
    """Report whether the named file or directory exists."""
    return os.path.exists(path)


def unique_file_name(path: str | Path) -> str:
    """Return path, or the first free "<stem> (N)<suffix>" variant of it."""
    path = Path(path)
    if not file_exists(path):
        return str(path)

    counter = 1
    while True:
        candidate = path.with_name(f"{path.stem} ({counter}){path.suffix}")
        if not file_exists(candidate):
            return str(candidate)
        counter += 1


def app_data_dir(app_name: str) -> Path:
    """Get the per-user data directory for an application (~/.<name>)."""
    return Path.home() / f".{app_name.lower()}"
