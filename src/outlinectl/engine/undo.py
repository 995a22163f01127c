# src/outlinectl/engine/undo.py

"""
Action-based undo.

Each undo action is a snapshot taken *before* its mutation is applied,
and knows how to compute its own exact inverse over the current list.
Inverses resolve rows by id, never by a remembered index, so they stay
correct after the list has been re-sorted or partly changed.

There is no redo: undo pops one entry and applies it.
"""

import copy
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Optional, Union

from .model import FocusMode, FocusRequest, Intent, Task
from .store import index_of, insert_task, remove_task, task_to_dict


logger = logging.getLogger(__name__)


class MergeDirection(str, Enum):
    BACKWARD = "backward"
    FORWARD = "forward"


# ---------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------

def _restore(tasks: list[Task], snapshot: Task) -> list[Task]:
    """Put `snapshot` back in place of the row sharing its id."""
    i = index_of(tasks, snapshot.task_id)
    if i < 0:
        return tasks
    out = list(tasks)
    out[i] = snapshot
    return out


@dataclass(frozen=True, slots=True)
class DeleteAction:
    kind: ClassVar[str] = "delete"

    task: Task
    index: int

    def inverse(self, tasks: list[Task]) -> list[Task]:
        if index_of(tasks, self.task.task_id) >= 0:
            return tasks
        return insert_task(tasks, self.index, self.task)

    def focus(self) -> FocusRequest:
        return FocusRequest(self.task.task_id, FocusMode.ROW)


@dataclass(frozen=True, slots=True)
class EditAction:
    """Pre-commit snapshot for text edits, archive and tag removal."""

    kind: ClassVar[str] = "edit"

    task: Task

    def inverse(self, tasks: list[Task]) -> list[Task]:
        return _restore(tasks, self.task)

    def focus(self) -> FocusRequest:
        return FocusRequest(self.task.task_id, FocusMode.ROW)


@dataclass(frozen=True, slots=True)
class ToggleAction(EditAction):
    kind: ClassVar[str] = "toggle"


@dataclass(frozen=True, slots=True)
class IndentAction(EditAction):
    kind: ClassVar[str] = "indent"


@dataclass(frozen=True, slots=True)
class SplitAction:
    kind: ClassVar[str] = "split"

    original: Task
    created_id: str
    cursor: int

    def inverse(self, tasks: list[Task]) -> list[Task]:
        return remove_task(_restore(tasks, self.original), self.created_id)

    def focus(self) -> FocusRequest:
        return FocusRequest(self.original.task_id, FocusMode.EDIT, self.cursor)


@dataclass(frozen=True, slots=True)
class MergeAction:
    kind: ClassVar[str] = "merge"

    direction: MergeDirection
    kept_original: Task
    removed: Task
    caret: int

    def inverse(self, tasks: list[Task]) -> list[Task]:
        # The removed row may already be back (e.g. restored by a reorder undo).
        out = remove_task(tasks, self.removed.task_id)
        i = index_of(out, self.kept_original.task_id)
        if i < 0:
            return out + [self.removed]
        out = list(out)
        out[i] = self.kept_original
        out.insert(i + 1, self.removed)
        return out

    def focus(self) -> FocusRequest:
        if self.direction is MergeDirection.BACKWARD:
            return FocusRequest(self.removed.task_id, FocusMode.EDIT, 0)
        return FocusRequest(self.kept_original.task_id, FocusMode.EDIT, self.caret)


@dataclass(frozen=True, slots=True)
class ReorderAction:
    """Whole-list snapshot taken when a drag starts."""

    kind: ClassVar[str] = "reorder"

    snapshot: tuple[Task, ...]
    moved_id: str

    def inverse(self, tasks: list[Task]) -> list[Task]:
        return list(self.snapshot)

    def focus(self) -> FocusRequest:
        return FocusRequest(self.moved_id, FocusMode.ROW)


UndoAction = Union[
    DeleteAction,
    EditAction,
    ToggleAction,
    IndentAction,
    SplitAction,
    MergeAction,
    ReorderAction,
]


def apply_undo(tasks: list[Task], action: Optional[UndoAction]) -> list[Task]:
    """Apply the inverse of `action`; None is a no-op returning `tasks`."""
    if action is None:
        return tasks
    return action.inverse(tasks)


def focus_for(action: UndoAction) -> FocusRequest:
    return action.focus()


# ---------------------------------------------------------------------
# Stack
# ---------------------------------------------------------------------

class UndoStack:
    """
    LIFO of undo actions.

    Actions are deep-copied on push. `limit` bounds the retained depth
    (oldest entries are dropped first); 0 means unbounded.
    """

    def __init__(self, actions: Optional[list[UndoAction]] = None, *, limit: int = 0) -> None:
        self._actions: list[UndoAction] = list(actions or [])
        self.limit = limit
        self._trim()

    def __len__(self) -> int:
        return len(self._actions)

    def __bool__(self) -> bool:
        return bool(self._actions)

    @property
    def actions(self) -> tuple[UndoAction, ...]:
        return tuple(self._actions)

    def push(self, action: UndoAction) -> None:
        self._actions.append(copy.deepcopy(action))
        self._trim()

    def peek(self) -> Optional[UndoAction]:
        return self._actions[-1] if self._actions else None

    def pop(self) -> Optional[UndoAction]:
        return self._actions.pop() if self._actions else None

    def undo(self, tasks: list[Task]) -> tuple[list[Task], Optional[FocusRequest]]:
        """
        Pop one action and apply its inverse.

        Empty stack -> (tasks, None) with `tasks` returned unchanged.
        """
        action = self.pop()
        if action is None:
            return tasks, None
        logger.debug("Undo %s", action.kind)
        return apply_undo(tasks, action), focus_for(action)

    def _trim(self) -> None:
        if self.limit > 0 and len(self._actions) > self.limit:
            del self._actions[: len(self._actions) - self.limit]


# ---------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------

def _task_from_dict(raw: Any) -> Optional[Task]:
    # Snapshots were written by task_to_dict; read them back exactly
    # (no order/momentum fallbacks that could alter the snapshot).
    if not isinstance(raw, dict):
        return None
    try:
        return Task(
            task_id=raw["id"],
            text=raw["text"],
            created_at=int(raw["createdAt"]),
            order=int(raw["order"]),
            completed=bool(raw.get("completed", False)),
            completed_at=raw.get("completedAt"),
            archived=bool(raw.get("archived", False)),
            archived_at=raw.get("archivedAt"),
            indent=int(raw.get("indent", 0)),
            tags=tuple(raw.get("tags", ())),
            intent=Intent.coerce(raw.get("intent")),
            momentum=bool(raw.get("momentum", False)),
            list_id=raw.get("listId") or None,
        )
    except (KeyError, TypeError, ValueError):
        return None


def action_to_dict(action: UndoAction) -> dict[str, Any]:
    data: dict[str, Any] = {"type": action.kind}

    if isinstance(action, DeleteAction):
        data["task"] = task_to_dict(action.task)
        data["index"] = action.index
    elif isinstance(action, EditAction):
        data["task"] = task_to_dict(action.task)
    elif isinstance(action, SplitAction):
        data["original"] = task_to_dict(action.original)
        data["createdId"] = action.created_id
        data["cursor"] = action.cursor
    elif isinstance(action, MergeAction):
        data["direction"] = action.direction.value
        data["keptOriginal"] = task_to_dict(action.kept_original)
        data["removed"] = task_to_dict(action.removed)
        data["caret"] = action.caret
    elif isinstance(action, ReorderAction):
        data["snapshot"] = [task_to_dict(t) for t in action.snapshot]
        data["movedId"] = action.moved_id

    return data


_SNAPSHOT_ACTIONS: dict[str, type[EditAction]] = {
    EditAction.kind: EditAction,
    ToggleAction.kind: ToggleAction,
    IndentAction.kind: IndentAction,
}


def action_from_dict(raw: Any) -> Optional[UndoAction]:
    """Rebuild an action written by action_to_dict; None when malformed."""
    if not isinstance(raw, dict):
        return None

    kind = raw.get("type")

    if kind in _SNAPSHOT_ACTIONS:
        task = _task_from_dict(raw.get("task"))
        return _SNAPSHOT_ACTIONS[kind](task) if task else None

    if kind == DeleteAction.kind:
        task = _task_from_dict(raw.get("task"))
        index = raw.get("index")
        if task is None or not isinstance(index, int):
            return None
        return DeleteAction(task, index)

    if kind == SplitAction.kind:
        original = _task_from_dict(raw.get("original"))
        created_id = raw.get("createdId")
        cursor = raw.get("cursor")
        if original is None or not isinstance(created_id, str) or not isinstance(cursor, int):
            return None
        return SplitAction(original, created_id, cursor)

    if kind == MergeAction.kind:
        kept = _task_from_dict(raw.get("keptOriginal"))
        removed = _task_from_dict(raw.get("removed"))
        caret = raw.get("caret")
        try:
            direction = MergeDirection(raw.get("direction"))
        except ValueError:
            return None
        if kept is None or removed is None or not isinstance(caret, int):
            return None
        return MergeAction(direction, kept, removed, caret)

    if kind == ReorderAction.kind:
        records = raw.get("snapshot")
        moved_id = raw.get("movedId")
        if not isinstance(records, list) or not isinstance(moved_id, str):
            return None
        snapshot = [_task_from_dict(r) for r in records]
        if any(t is None for t in snapshot):
            return None
        return ReorderAction(tuple(snapshot), moved_id)  # type: ignore[arg-type]

    return None
