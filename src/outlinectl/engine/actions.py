# src/outlinectl/engine/actions.py

"""
Task mutation actions.

This module contains *all* state-changing operations on the task list:
edit sessions (start / type / commit), split, merge, capture, and the
row-level toggles (completed, momentum, indent, archive, delete, tags).

Design principles:
- Every operation is a pure function of the *current* list; it returns
  the next list plus at most one undo action and an optional focus hint.
- Rows are resolved by id on every call. A stale id (row removed in the
  meantime) makes the operation a no-op returning the input list object.
- Undo actions snapshot the row *before* the mutation.
- Nothing here raises for expected conditions.
"""

import logging
import uuid
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from .model import MAX_INDENT, FocusMode, FocusRequest, Intent, Task, merge_tags, ms_to_iso, now_ms
from .parse import ParsedInput, parse_task_input, scan_completed_tags
from .store import index_of, replace_task
from .undo import (
    DeleteAction,
    EditAction,
    IndentAction,
    MergeAction,
    MergeDirection,
    SplitAction,
    ToggleAction,
    UndoAction,
)


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# Result objects
# ---------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class EditSession:
    """
    An open edit on one row.

    `original` is the row as it was when the session opened and is the
    baseline for deciding whether a commit changes anything.
    `pending_tags` holds finished `#tags` lifted out of the live text
    while typing; they are written to the row on commit.
    """

    task_id: str
    live_text: str
    caret: int
    original: Task
    pending_tags: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Change:
    """
    Result of a row-level mutation.

    `tasks` is the input list object itself when nothing changed.
    """

    tasks: list[Task]
    undo: Optional[UndoAction] = None
    focus: Optional[FocusRequest] = None


@dataclass(frozen=True, slots=True)
class EditOutcome(Change):
    """Result of an edit-session transition; `session` is the next session."""

    session: Optional[EditSession] = None


# ---------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------

def _new_id() -> str:
    return uuid.uuid4().hex


def clamp_caret(caret: int, text_length: int) -> int:
    return max(0, min(text_length, caret))


def added_tags(original_tags: Iterable[str], next_tags: Iterable[str]) -> tuple[str, ...]:
    """Tags in `next_tags` that `original_tags` lacks (case-insensitive)."""
    existing = {t.lower() for t in original_tags}
    return tuple(t for t in next_tags if t.lower() not in existing)


def should_commit_edit(
    *,
    text_changed: bool,
    added_tags_count: int,
    has_intent: bool,
    has_momentum: bool,
) -> bool:
    return text_changed or added_tags_count > 0 or has_intent or has_momentum


def _apply_parsed(task: Task, parsed: ParsedInput, *extra_tags: Iterable[str]) -> Task:
    """
    Write parsed text/metadata onto `task`.

    Tags only ever grow; momentum only ever turns on; intent is kept
    unless the text carried an explicit token.
    """
    return replace(
        task,
        text=parsed.text,
        tags=merge_tags(task.tags, *extra_tags, parsed.tags),
        intent=parsed.intent or task.intent,
        momentum=task.momentum or parsed.momentum is True,
    )


# ---------------------------------------------------------------------
# Edit sessions
# ---------------------------------------------------------------------

def start_editing(
    tasks: list[Task],
    session: Optional[EditSession],
    task_id: str,
    caret: Optional[int] = None,
) -> EditOutcome:
    """
    Open an edit session on `task_id`.

    An open session on a different row is committed first (switching
    rows means "I'm done with that one"). Caret defaults to end of text.
    """
    undo: Optional[UndoAction] = None

    if session is not None:
        if session.task_id == task_id:
            if caret is None:
                return EditOutcome(tasks, session=session)
            caret = clamp_caret(caret, len(session.live_text))
            return EditOutcome(tasks, session=replace(session, caret=caret))

        committed = commit_edit(tasks, session)
        tasks, undo = committed.tasks, committed.undo

    i = index_of(tasks, task_id)
    if i < 0:
        logger.debug("start_editing: task %s no longer exists", task_id)
        return EditOutcome(tasks, undo=undo)

    task = tasks[i]
    pos = clamp_caret(len(task.text) if caret is None else caret, len(task.text))

    return EditOutcome(
        tasks,
        undo=undo,
        focus=FocusRequest(task_id, FocusMode.EDIT, pos),
        session=EditSession(task_id=task_id, live_text=task.text, caret=pos, original=task),
    )


def update_live_text(session: EditSession, value: str, caret: int) -> EditSession:
    """
    Record a keystroke in the live buffer.

    When the character just inserted before the caret is whitespace,
    finished `#tag` tokens are lifted into `pending_tags` and stripped
    from the buffer, with the caret moved accordingly.
    """
    caret = clamp_caret(caret, len(value))
    grew = len(value) > len(session.live_text)

    if not (grew and caret > 0 and value[caret - 1].isspace()):
        return replace(session, live_text=value, caret=caret)

    scanned = scan_completed_tags(value, caret)
    next_caret = scanned.next_caret if scanned.next_caret is not None else caret
    return replace(
        session,
        live_text=scanned.next_value,
        caret=next_caret,
        pending_tags=merge_tags(session.pending_tags, scanned.committed),
    )


def commit_edit(tasks: list[Task], session: EditSession) -> EditOutcome:
    """
    Close the session, writing the parsed live text back to its row.

    Nothing is written and no undo is produced when the parsed result
    does not differ from the row as it was when the session opened.
    """
    i = index_of(tasks, session.task_id)
    if i < 0:
        logger.debug("commit_edit: task %s no longer exists", session.task_id)
        return EditOutcome(tasks)

    current = tasks[i]
    parsed = parse_task_input(session.live_text)
    original = session.original

    new_tags = added_tags(
        original.tags,
        merge_tags(current.tags, session.pending_tags, parsed.tags),
    )

    if not should_commit_edit(
        text_changed=parsed.text != original.text,
        added_tags_count=len(new_tags),
        has_intent=parsed.intent is not None,
        has_momentum=parsed.momentum is True,
    ):
        return EditOutcome(tasks)

    updated = _apply_parsed(current, parsed, session.pending_tags)
    next_tasks = replace_task(tasks, updated)
    if next_tasks is tasks:
        return EditOutcome(tasks)

    return EditOutcome(next_tasks, undo=EditAction(current))


# ---------------------------------------------------------------------
# Split / merge
# ---------------------------------------------------------------------

def split_task_at(
    tasks: list[Task],
    session: EditSession,
    cursor: int,
    *,
    new_id: Optional[str] = None,
    now: Optional[int] = None,
) -> EditOutcome:
    """
    Split the edited row at `cursor` of its live text.

    The left half keeps the row id and every tag found anywhere in the
    live text; the right half becomes a new row directly below, with no
    tags, the same indent, and only the intent and momentum typed after
    the cursor (no token means no intent).
    Editing continues on the new row at offset 0.
    """
    i = index_of(tasks, session.task_id)
    if i < 0:
        logger.debug("split_task_at: task %s no longer exists", session.task_id)
        return EditOutcome(tasks)

    current = tasks[i]
    live = session.live_text
    cursor = clamp_caret(cursor, len(live))

    left_p = parse_task_input(live[:cursor])
    right_p = parse_task_input(live[cursor:])
    whole_p = parse_task_input(live)

    left = replace(
        current,
        text=left_p.text,
        tags=merge_tags(current.tags, session.pending_tags, whole_p.tags),
        intent=left_p.intent or current.intent,
        momentum=current.momentum or left_p.momentum is True,
    )

    created_at = now if now is not None else now_ms()
    right = Task(
        task_id=new_id or _new_id(),
        text=right_p.text,
        created_at=created_at,
        order=created_at,
        indent=current.indent,
        intent=right_p.intent,
        momentum=right_p.momentum is True,
        list_id=current.list_id,
    )

    next_tasks = list(tasks)
    next_tasks[i] = left
    next_tasks.insert(i + 1, right)

    # Keep the cut-point space in the live buffer so joining straight
    # back reproduces the unsplit text.
    lead = ""
    if left.text and right.text and f"{left.text} {right.text}" == whole_p.text:
        lead = " "

    return EditOutcome(
        next_tasks,
        undo=SplitAction(original=current, created_id=right.task_id, cursor=cursor),
        focus=FocusRequest(right.task_id, FocusMode.EDIT, 0),
        session=EditSession(
            task_id=right.task_id,
            live_text=lead + right.text,
            caret=0,
            original=right,
        ),
    )


def merge_backward(tasks: list[Task], session: EditSession) -> EditOutcome:
    """
    Join the edited row onto the end of the row above it (Backspace at 0).

    The row above survives with its own id; the edited row is removed.
    """
    i = index_of(tasks, session.task_id)
    if i < 0:
        logger.debug("merge_backward: task %s no longer exists", session.task_id)
        return EditOutcome(tasks)
    if i == 0:
        return EditOutcome(tasks, session=session)

    prev = tasks[i - 1]
    current = tasks[i]
    parsed = parse_task_input(prev.text + session.live_text)

    merged = replace(
        prev,
        text=parsed.text,
        tags=merge_tags(prev.tags, current.tags, session.pending_tags, parsed.tags),
        intent=parsed.intent or prev.intent,
        momentum=prev.momentum or current.momentum or parsed.momentum is True,
    )
    caret = clamp_caret(len(prev.text), len(merged.text))

    next_tasks = tasks[: i - 1] + [merged] + tasks[i + 1:]

    return EditOutcome(
        next_tasks,
        undo=MergeAction(MergeDirection.BACKWARD, kept_original=prev, removed=current, caret=caret),
        focus=FocusRequest(prev.task_id, FocusMode.EDIT, caret),
        session=EditSession(task_id=prev.task_id, live_text=merged.text, caret=caret, original=merged),
    )


def merge_forward(tasks: list[Task], session: EditSession) -> EditOutcome:
    """
    Pull the row below onto the end of the edited row (Delete at end).

    The edited row survives with its own id; the row below is removed.
    """
    i = index_of(tasks, session.task_id)
    if i < 0:
        logger.debug("merge_forward: task %s no longer exists", session.task_id)
        return EditOutcome(tasks)
    if i >= len(tasks) - 1:
        return EditOutcome(tasks, session=session)

    current = tasks[i]
    nxt = tasks[i + 1]
    parsed = parse_task_input(session.live_text + nxt.text)

    merged = replace(
        current,
        text=parsed.text,
        tags=merge_tags(current.tags, session.pending_tags, nxt.tags, parsed.tags),
        intent=parsed.intent or current.intent,
        momentum=current.momentum or nxt.momentum or parsed.momentum is True,
    )
    caret = clamp_caret(len(session.live_text), len(merged.text))

    next_tasks = tasks[:i] + [merged] + tasks[i + 2:]

    return EditOutcome(
        next_tasks,
        undo=MergeAction(MergeDirection.FORWARD, kept_original=current, removed=nxt, caret=caret),
        focus=FocusRequest(current.task_id, FocusMode.EDIT, caret),
        session=EditSession(task_id=current.task_id, live_text=merged.text, caret=caret, original=merged),
    )


# ---------------------------------------------------------------------
# Capture row
# ---------------------------------------------------------------------

def commit_capture(
    tasks: list[Task],
    live_text: str,
    *,
    new_id: Optional[str] = None,
    now: Optional[int] = None,
) -> Change:
    """
    Create a task from the capture row and prepend it.

    Rejected (no-op) when neither text nor tags survive parsing.
    Intent defaults to "now" unless the text carries a token.
    """
    parsed = parse_task_input(live_text)
    if not parsed.text and not parsed.tags:
        return Change(tasks)

    created_at = now if now is not None else now_ms()
    task = Task(
        task_id=new_id or _new_id(),
        text=parsed.text,
        created_at=created_at,
        order=created_at,
        tags=parsed.tags,
        intent=parsed.intent or Intent.NOW,
        momentum=parsed.momentum is True,
    )
    return Change([task] + tasks, focus=FocusRequest(task.task_id, FocusMode.ROW))


# ---------------------------------------------------------------------
# Row-level actions
# ---------------------------------------------------------------------

def _update(tasks: list[Task], task_id: str, undo_cls: type[EditAction], **changes: object) -> Change:
    i = index_of(tasks, task_id)
    if i < 0:
        logger.debug("%s: task %s no longer exists", undo_cls.kind, task_id)
        return Change(tasks)

    current = tasks[i]
    updated = replace(current, **changes)
    if updated == current:
        return Change(tasks)

    next_tasks = list(tasks)
    next_tasks[i] = updated
    return Change(next_tasks, undo=undo_cls(current))


def toggle_completed(tasks: list[Task], task_id: str, *, now: Optional[int] = None) -> Change:
    i = index_of(tasks, task_id)
    if i < 0:
        return Change(tasks)

    completed = not tasks[i].completed
    completed_at = (now if now is not None else now_ms()) if completed else None
    return _update(tasks, task_id, ToggleAction, completed=completed, completed_at=completed_at)


def toggle_momentum(tasks: list[Task], task_id: str) -> Change:
    i = index_of(tasks, task_id)
    if i < 0:
        return Change(tasks)
    return _update(tasks, task_id, ToggleAction, momentum=not tasks[i].momentum)


def shift_indent(tasks: list[Task], task_id: str, delta: int) -> Change:
    """
    Indent (delta > 0) or outdent (delta < 0) a single row.

    Depth is clamped to [0, MAX_INDENT] and never more than one level
    deeper than the row above.
    """
    i = index_of(tasks, task_id)
    if i < 0:
        return Change(tasks)

    current = tasks[i].indent
    if delta > 0:
        ceiling = tasks[i - 1].indent + 1 if i > 0 else 0
        target = max(current, min(MAX_INDENT, ceiling, current + delta))
    else:
        target = max(0, current + delta)
    return _update(tasks, task_id, IndentAction, indent=target)


def set_archived(
    tasks: list[Task],
    task_id: str,
    archived: bool,
    *,
    now: Optional[int] = None,
) -> Change:
    """Soft-remove (or restore) a row; archived rows keep their data."""
    archived_at = ms_to_iso(now if now is not None else now_ms()) if archived else None
    i = index_of(tasks, task_id)
    if i < 0 or tasks[i].archived == archived:
        return Change(tasks)
    return _update(tasks, task_id, EditAction, archived=archived, archived_at=archived_at)


def remove_tag(tasks: list[Task], task_id: str, tag: str) -> Change:
    """Drop one tag from a row; a tag the row does not carry is a no-op."""
    needle = tag.strip().lower().lstrip("#")
    i = index_of(tasks, task_id)
    if i < 0 or needle not in tasks[i].tags:
        return Change(tasks)
    remaining = tuple(t for t in tasks[i].tags if t != needle)
    return _update(tasks, task_id, EditAction, tags=remaining)


def delete_task(tasks: list[Task], task_id: str) -> Change:
    """Hard-remove a row; only undo brings it back."""
    i = index_of(tasks, task_id)
    if i < 0:
        return Change(tasks)

    next_tasks = tasks[:i] + tasks[i + 1:]
    focus: Optional[FocusRequest] = None
    if next_tasks:
        focus = FocusRequest(next_tasks[min(i, len(next_tasks) - 1)].task_id, FocusMode.ROW)
    return Change(next_tasks, undo=DeleteAction(tasks[i], i), focus=focus)
