# src/outlinectl/engine/ops.py

"""
Filesystem-level operations.

This module contains:
- store initialisation (.outline directory),
- the task payload writer (backup copy first, then primary),
- the tolerant payload loader (primary -> backup -> empty),
- the undo history sidecar.

Payload format:

    {"version": 1, "tasks": [ {task record}, ... ]}

The loader never raises: corrupt or missing files degrade to the next
fallback and finally to an empty list.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final, Optional

from .model import Task
from .store import normalize_tasks, task_to_dict
from .undo import UndoAction, action_from_dict, action_to_dict


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# Layout constants
# ---------------------------------------------------------------------

STORE_DIR_NAME: Final[str] = ".outline"
TASKS_NAME: Final[str] = "tasks.json"
BACKUP_NAME: Final[str] = "tasks.backup.json"
UNDO_NAME: Final[str] = "undo.json"
CONFIG_NAME: Final[str] = "config.yml"

PAYLOAD_VERSION: Final[int] = 1


# ---------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ParseError(Exception):
    """
    Raised when a payload file is unreadable or structurally invalid.
    """

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


# ---------------------------------------------------------------------
# Store initialisation
# ---------------------------------------------------------------------

def ensure_store_dir(cwd: Path, *, interactive: bool = True) -> Path:
    """
    Ensure a `.outline` directory exists in the given directory.

    If `interactive` is True, prompt before creating it.
    """
    store_dir = cwd / STORE_DIR_NAME
    if store_dir.is_dir():
        return store_dir

    if not interactive:
        store_dir.mkdir(parents=True, exist_ok=True)
        return store_dir

    ans = input("No .outline found in this directory. Create ./.outline here? [Y/n] ").strip().lower()
    if ans in {"", "y", "yes"}:
        store_dir.mkdir(parents=True, exist_ok=True)
        return store_dir

    raise RuntimeError("Aborted (no .outline created)")


# ---------------------------------------------------------------------
# Task payload
# ---------------------------------------------------------------------

def render_payload(tasks: list[Task]) -> str:
    data = {
        "version": PAYLOAD_VERSION,
        "tasks": [task_to_dict(t) for t in tasks],
    }
    return json.dumps(data, ensure_ascii=False, indent=2) + "\n"


def save_tasks(store_dir: Path, tasks: list[Task]) -> None:
    """
    Persist the task list.

    The backup copy is written before the primary so that a crash
    mid-write always leaves one complete payload behind.
    """
    d = Path(store_dir)
    text = render_payload(tasks)
    (d / BACKUP_NAME).write_text(text, encoding="utf-8")
    (d / TASKS_NAME).write_text(text, encoding="utf-8")


def read_payload(path: Path) -> list[Task]:
    """
    Strictly read one payload file.

    Accepts `{version, tasks: [...]}` or a bare array of records.
    Invalid records and duplicate ids are dropped; a file whose root
    has no task array raises ParseError.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(str(path), f"Cannot read file: {e}") from e

    try:
        data = json.loads(text)
    except ValueError as e:
        raise ParseError(str(path), f"Invalid JSON: {e}") from e

    records = _extract_records(data)
    if records is None:
        raise ParseError(str(path), "Payload must be a task array or an object with a 'tasks' array")

    return normalize_tasks(records)


def load_tasks(store_dir: Path) -> list[Task]:
    """
    Load the task list: primary, then backup, then empty. Never raises.
    """
    d = Path(store_dir)

    for name in (TASKS_NAME, BACKUP_NAME):
        path = d / name
        if not path.exists():
            continue
        try:
            return read_payload(path)
        except ParseError as e:
            logger.warning("Ignoring unreadable payload: %s", e)

    return []


def _extract_records(data: Any) -> Optional[list[Any]]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("tasks"), list):
        return data["tasks"]
    return None


# ---------------------------------------------------------------------
# Undo history
# ---------------------------------------------------------------------

def save_undo(store_dir: Path, actions: tuple[UndoAction, ...]) -> None:
    data = {
        "version": PAYLOAD_VERSION,
        "actions": [action_to_dict(a) for a in actions],
    }
    (Path(store_dir) / UNDO_NAME).write_text(
        json.dumps(data, ensure_ascii=False, indent=2) + "\n",
        encoding="utf-8",
    )


def load_undo(store_dir: Path) -> list[UndoAction]:
    """
    Load the undo history; malformed entries are dropped. Never raises.
    """
    path = Path(store_dir) / UNDO_NAME
    if not path.exists():
        return []

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable undo history %s: %s", path, e)
        return []

    raw = data.get("actions") if isinstance(data, dict) else None
    if not isinstance(raw, list):
        return []

    out: list[UndoAction] = []
    for entry in raw:
        action = action_from_dict(entry)
        if action is None:
            logger.info("Dropped malformed undo entry in %s", path)
            continue
        out.append(action)
    return out
