# src/outlinectl/engine/drag.py

"""
Block-aware drag reorder and indent.

A drag grabs a *block* (a row plus its deeper-indented followers) and
moves it as one unit:

- horizontal travel shifts the whole block's indent in whole steps,
  keeping relative depths inside the block;
- crossing the midpoint of the neighbouring row relocates the block to
  the other side of that row;
- on release the block's depth is coerced to fit under the row above,
  and the pre-drag snapshot becomes a single undo entry.

Cancelling restores the snapshot directly and is not undoable.

Pointer geometry stays with the host: it reports an x position and,
via crossed_neighbor(), the index of the row whose midpoint was crossed.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Final, Optional, Sequence

from .actions import Change
from .model import MAX_INDENT, FocusMode, FocusRequest, Task
from .store import block_range, index_of
from .undo import ReorderAction


logger = logging.getLogger(__name__)

DEFAULT_INDENT_WIDTH: Final[int] = 24


# ---------------------------------------------------------------------
# Session / events
# ---------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class DragSession:
    """
    State of one drag interaction.

    `start_x` is the pointer x the current indent was measured from;
    it advances by whole indent steps as steps are consumed.
    """

    block_ids: tuple[str, ...]
    base_indent: int
    start_x: float
    snapshot: tuple[Task, ...]
    indent_width: int = DEFAULT_INDENT_WIDTH

    @property
    def grabbed_id(self) -> str:
        return self.block_ids[0]


@dataclass(frozen=True, slots=True)
class PointerMove:
    x: Optional[float] = None
    over_index: Optional[int] = None


@dataclass(frozen=True, slots=True)
class DragStep:
    tasks: list[Task]
    session: DragSession


@dataclass(frozen=True, slots=True)
class RowBox:
    """Vertical extent of a rendered row, in host coordinates."""

    top: float
    height: float

    @property
    def middle(self) -> float:
        return self.top + self.height / 2


class MoveCoalescer:
    """
    Keeps only the most recent pointer move between animation frames.

    offer() returns True when the caller should schedule a frame (the
    first move since the last take()); later moves overwrite it.
    """

    def __init__(self) -> None:
        self._pending: Optional[PointerMove] = None

    def offer(self, move: PointerMove) -> bool:
        first = self._pending is None
        self._pending = move
        return first

    def take(self) -> Optional[PointerMove]:
        move, self._pending = self._pending, None
        return move

    def clear(self) -> None:
        self._pending = None


# ---------------------------------------------------------------------
# Block helpers
# ---------------------------------------------------------------------

def locate_block(tasks: Sequence[Task], block_ids: Sequence[str]) -> Optional[tuple[int, int]]:
    """
    Find the block's current [start, end) range by id.

    None when any member is gone or the members are no longer contiguous.
    """
    if not block_ids:
        return None
    start = index_of(tasks, block_ids[0])
    if start < 0:
        return None
    end = start + len(block_ids)
    if end > len(tasks):
        return None
    if tuple(t.task_id for t in tasks[start:end]) != tuple(block_ids):
        return None
    return start, end


def safe_shift(tasks: Sequence[Task], start: int, end: int, step: int) -> int:
    """
    Clamp a proposed indent shift so every block member stays in
    [0, MAX_INDENT].
    """
    base = tasks[start].indent
    deepest = max(t.indent for t in tasks[start:end])
    low = -base
    high = MAX_INDENT - deepest
    return max(low, min(high, step))


def shift_block(tasks: list[Task], start: int, end: int, shift: int) -> list[Task]:
    if shift == 0:
        return tasks
    out = list(tasks)
    for k in range(start, end):
        out[k] = replace(out[k], indent=out[k].indent + shift)
    return out


def move_block(tasks: list[Task], start: int, end: int, over_index: int) -> tuple[list[Task], int, int]:
    """
    Relocate tasks[start:end] to the other side of the row at `over_index`.

    Returns (tasks, new_start, new_end). An index inside the block, or
    out of range, leaves the list untouched.
    """
    if over_index < 0 or over_index >= len(tasks) or start <= over_index < end:
        return tasks, start, end

    block = tasks[start:end]
    rest = tasks[:start] + tasks[end:]

    if over_index < start:
        at = over_index
    else:
        at = over_index - len(block) + 1

    return rest[:at] + block + rest[at:], at, at + len(block)


def crossed_neighbor(y: float, rows: Sequence[RowBox], start: int, end: int) -> Optional[int]:
    """
    Return the index of the neighbour row whose midpoint the pointer
    has crossed (row below first), or None.
    """
    if end < len(rows) and y > rows[end].middle:
        return end
    if start > 0 and y < rows[start - 1].middle:
        return start - 1
    return None


def _fit_depths(tasks: list[Task], start: int, end: int) -> list[Task]:
    """
    Coerce the block under the row above it, then clamp the rows that
    follow the block so no row sits more than one level below its
    predecessor.
    """
    limit = tasks[start - 1].indent + 1 if start > 0 else 0
    base = tasks[start].indent
    out = tasks
    if base > limit:
        out = shift_block(out, start, end, max(0, limit) - base)

    prev = out[end - 1].indent if end > 0 else 0
    k = end
    while k < len(out) and out[k].indent > prev + 1:
        if out is tasks:
            out = list(tasks)
        out[k] = replace(out[k], indent=prev + 1)
        prev = out[k].indent
        k += 1

    return out


# ---------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------

def start_drag(
    tasks: list[Task],
    task_id: str,
    x: float,
    *,
    indent_width: int = DEFAULT_INDENT_WIDTH,
) -> Optional[DragSession]:
    """Open a drag on the block rooted at `task_id`; None if the row is gone."""
    i = index_of(tasks, task_id)
    if i < 0:
        return None

    start, end = block_range(tasks, i)
    return DragSession(
        block_ids=tuple(t.task_id for t in tasks[start:end]),
        base_indent=tasks[start].indent,
        start_x=x,
        snapshot=tuple(tasks),
        indent_width=max(1, indent_width),
    )


def drag_step(tasks: list[Task], session: DragSession, move: PointerMove) -> DragStep:
    """
    Apply one (coalesced) pointer move.

    Horizontal: floor(dx / indent_width) whole steps, clamped per block.
    Vertical: relocate the block past the row at `move.over_index`.
    """
    loc = locate_block(tasks, session.block_ids)
    if loc is None:
        logger.debug("drag_step: block %s is no longer intact", session.grabbed_id)
        return DragStep(tasks, session)

    start, end = loc

    if move.x is not None:
        step = math.floor((move.x - session.start_x) / session.indent_width)
        if step != 0:
            shift = safe_shift(tasks, start, end, step)
            tasks = shift_block(tasks, start, end, shift)
            session = replace(
                session,
                start_x=session.start_x + step * session.indent_width,
                base_indent=tasks[start].indent,
            )

    if move.over_index is not None:
        tasks, start, end = move_block(tasks, start, end, move.over_index)

    return DragStep(tasks, session)


def end_drag(tasks: list[Task], session: DragSession) -> Change:
    """
    Finish the drag: fit depths and record the pre-drag snapshot.

    A drag that leaves the list as it was returns `tasks` with no undo.
    """
    loc = locate_block(tasks, session.block_ids)
    if loc is not None:
        tasks = _fit_depths(tasks, *loc)

    if tuple(tasks) == session.snapshot:
        return Change(tasks)

    return Change(
        tasks,
        undo=ReorderAction(session.snapshot, session.grabbed_id),
        focus=FocusRequest(session.grabbed_id, FocusMode.ROW),
    )


def cancel_drag(session: DragSession) -> list[Task]:
    return list(session.snapshot)
