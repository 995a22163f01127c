# src/outlinectl/engine/scan.py

"""
Filesystem scanning utilities.

This module is responsible for discovering the `.outline` store that
applies to a working directory. It performs *no parsing* and *no
rendering*.
"""

from collections.abc import Iterator
from pathlib import Path
from typing import Optional

from .ops import STORE_DIR_NAME


def iter_candidate_dirs(start: str | Path) -> Iterator[Path]:
    """
    Yield `start` and each of its ancestors, nearest first.
    """
    d = Path(start).resolve()
    yield d
    yield from d.parents


def find_store_dir(start: str | Path) -> Optional[Path]:
    """
    Return the nearest `.outline` directory at or above `start`.

    Like git, a store in a parent directory applies to every
    subdirectory below it. Unreadable directories are skipped.
    """
    for d in iter_candidate_dirs(start):
        candidate = d / STORE_DIR_NAME
        try:
            if candidate.is_dir():
                return candidate
        except PermissionError:
            # Non-fatal: keep walking up.
            continue
    return None
