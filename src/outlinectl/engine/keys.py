# src/outlinectl/engine/keys.py

"""
Keyboard surface.

Key names delivered by the host, plus the small pure rules that decide
where the arrow keys lead. The list index -1 stands for the
capture row, which sits above the first task.
"""

from enum import Enum
from typing import Optional


class Key(str, Enum):
    ENTER = "Enter"
    BACKSPACE = "Backspace"
    DELETE = "Delete"
    TAB = "Tab"
    ARROW_UP = "ArrowUp"
    ARROW_DOWN = "ArrowDown"
    ESCAPE = "Escape"
    UNDO = "z"


CAPTURE_ROW_INDEX = -1


def next_index_from_list_arrow(key: Key, current_index: int, tasks_length: int) -> Optional[int]:
    """
    Row to select when an arrow key is pressed outside an edit.

    ArrowUp on the capture row stays put (None).
    """
    if tasks_length <= 0:
        return None
    if current_index == CAPTURE_ROW_INDEX and key is Key.ARROW_UP:
        return None

    safe = current_index if current_index >= 0 else CAPTURE_ROW_INDEX
    if key is Key.ARROW_DOWN:
        return min(tasks_length - 1, safe + 1)
    return max(0, safe - 1)


def next_index_from_row_arrow(key: Key, index: int, tasks_length: int) -> int:
    if key is Key.ARROW_DOWN:
        return min(tasks_length - 1, index + 1)
    return max(0, index - 1)
