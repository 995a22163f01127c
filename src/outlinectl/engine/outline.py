# src/outlinectl/engine/outline.py

"""
The live document.

Outline owns the task list, the undo stack and the two interaction
sessions (edit and drag). It is the single place where engine results
are written back: every operation reads `self.tasks` at call time,
asks a pure engine function for the next state, and hands the result
to `_apply()`, which performs the one list write and the optional
undo push.

After every write the list is settled: open rows without intent join
the "now" bucket, active rows get their manual `order` reindexed, and
the list is put in display order and renumbered. Array order therefore
always equals display order, and settling twice is a no-op.
"""

import logging
from dataclasses import replace
from typing import Optional

from . import actions, drag
from .actions import Change, EditOutcome, EditSession
from .drag import DragSession, MoveCoalescer, PointerMove
from .keys import Key
from .model import FocusRequest, Task, sort_for_display
from .store import backfill_intent, index_of, reindex_order
from .undo import SplitAction, UndoStack
from .view import SearchView, apply_view, derive_view


logger = logging.getLogger(__name__)


def settle(tasks: list[Task]) -> list[Task]:
    """
    Default intent, capture array position as manual order, sort into
    display order, then renumber so `order` matches the final position.
    """
    settled = reindex_order(sort_for_display(reindex_order(backfill_intent(tasks))))
    return tasks if settled == tasks else settled


def _file_under_origin(outcome: EditOutcome) -> EditOutcome:
    """
    Give an intent-less split row its origin's intent.

    Without this, settling would move the new row into the "now" bucket,
    away from the row it was split from.
    """
    split = outcome.undo
    if not isinstance(split, SplitAction):
        return outcome
    i = index_of(outcome.tasks, split.created_id)
    if i < 1 or outcome.tasks[i].intent is not None:
        return outcome

    created = replace(outcome.tasks[i], intent=outcome.tasks[i - 1].intent)
    tasks = list(outcome.tasks)
    tasks[i] = created
    session = outcome.session
    if session is not None and session.task_id == created.task_id:
        session = replace(session, original=created)
    return replace(outcome, tasks=tasks, session=session)


class Outline:
    """
    Task list plus interaction state.

    The host renders from `tasks`, fulfils `take_focus()` after the next
    paint, and forwards keys / pointer events to the methods below.
    """

    def __init__(
        self,
        tasks: Optional[list[Task]] = None,
        *,
        undo: Optional[UndoStack] = None,
        indent_width: int = drag.DEFAULT_INDENT_WIDTH,
    ) -> None:
        self.tasks: list[Task] = sort_for_display(tasks or [])
        self.undo_stack = undo if undo is not None else UndoStack()
        self.indent_width = indent_width

        self.edit: Optional[EditSession] = None
        self.drag: Optional[DragSession] = None
        self.view: Optional[SearchView] = None
        self.momentum_only = False

        self.revision = 0
        self._pending_focus: Optional[FocusRequest] = None
        self._moves = MoveCoalescer()
        self._pre_drag: Optional[list[Task]] = None

    # -----------------------------------------------------------------
    # Core write path
    # -----------------------------------------------------------------

    def _apply(self, change: Change) -> bool:
        """
        Write one engine result. Returns True when the list changed.
        """
        changed = change.tasks is not self.tasks
        if changed:
            self.tasks = settle(change.tasks)
            self.revision += 1

        if change.undo is not None:
            self.undo_stack.push(change.undo)
            logger.debug("Pushed %s undo (depth %d)", change.undo.kind, len(self.undo_stack))

        if change.focus is not None:
            self._pending_focus = change.focus

        if isinstance(change, EditOutcome):
            self.edit = change.session

        return changed

    def take_focus(self) -> Optional[FocusRequest]:
        """Hand the pending focus request to the host (once)."""
        focus, self._pending_focus = self._pending_focus, None
        return focus

    # -----------------------------------------------------------------
    # Views
    # -----------------------------------------------------------------

    def set_query(self, raw: str) -> None:
        self.view = derive_view(raw)

    def visible(self) -> list[tuple[Task, int]]:
        return apply_view(self.tasks, self.view, momentum_only=self.momentum_only)

    @property
    def view_active(self) -> bool:
        return self.view is not None or self.momentum_only

    # -----------------------------------------------------------------
    # Capture row
    # -----------------------------------------------------------------

    def capture(self, text: str, *, new_id: Optional[str] = None, now: Optional[int] = None) -> bool:
        return self._apply(actions.commit_capture(self.tasks, text, new_id=new_id, now=now))

    # -----------------------------------------------------------------
    # Edit session
    # -----------------------------------------------------------------

    def start_edit(self, task_id: str, caret: Optional[int] = None) -> bool:
        return self._apply(actions.start_editing(self.tasks, self.edit, task_id, caret))

    def type_text(self, value: str, caret: int) -> None:
        if self.edit is not None:
            self.edit = actions.update_live_text(self.edit, value, caret)

    def commit_edit(self) -> bool:
        if self.edit is None:
            return False
        return self._apply(actions.commit_edit(self.tasks, self.edit))

    def split(self, cursor: Optional[int] = None, *, new_id: Optional[str] = None, now: Optional[int] = None) -> bool:
        if self.edit is None:
            return False
        at = self.edit.caret if cursor is None else cursor
        outcome = actions.split_task_at(self.tasks, self.edit, at, new_id=new_id, now=now)
        return self._apply(_file_under_origin(outcome))

    def insert_newline(self) -> None:
        """Shift+Enter: a literal newline at the caret, no split."""
        if self.edit is None:
            return
        live, caret = self.edit.live_text, self.edit.caret
        self.type_text(live[:caret] + "\n" + live[caret:], caret + 1)

    def merge_backward(self) -> bool:
        if self.edit is None or self.edit.caret != 0:
            return False
        return self._apply(actions.merge_backward(self.tasks, self.edit))

    def merge_forward(self) -> bool:
        if self.edit is None or self.edit.caret != len(self.edit.live_text):
            return False
        return self._apply(actions.merge_forward(self.tasks, self.edit))

    def move_edit(self, step: int) -> bool:
        """
        Commit the current edit and continue editing the neighbouring
        row (at its end). No-op at the top / bottom of the list.
        """
        if self.edit is None:
            return False
        i = index_of(self.tasks, self.edit.task_id)
        j = i + step
        if i < 0 or j < 0 or j >= len(self.tasks):
            return False
        return self._apply(actions.start_editing(self.tasks, self.edit, self.tasks[j].task_id))

    def handle_key(self, key: Key, *, shift: bool = False, ctrl: bool = False) -> bool:
        """
        Dispatch a key pressed while a row is being edited (or Ctrl+Z anywhere).

        Returns True when the key was consumed.
        """
        if key is Key.UNDO:
            if not ctrl:
                return False
            self.undo()
            return True

        session = self.edit
        if session is None:
            return False

        at_start = session.caret == 0
        at_end = session.caret == len(session.live_text)

        if key is Key.ENTER:
            if shift:
                self.insert_newline()
            else:
                self.split()
            return True
        if key is Key.BACKSPACE and at_start:
            return self.merge_backward()
        if key is Key.DELETE and at_end:
            return self.merge_forward()
        if key is Key.TAB:
            if self.view_active:
                return False
            self.indent(session.task_id, -1 if shift else 1)
            return True
        if key is Key.ARROW_UP and at_start:
            return self.move_edit(-1)
        if key is Key.ARROW_DOWN and at_end:
            return self.move_edit(1)
        if key is Key.ESCAPE:
            self.commit_edit()
            self.edit = None
            return True
        return False

    # -----------------------------------------------------------------
    # Row actions
    # -----------------------------------------------------------------

    def toggle_completed(self, task_id: str, *, now: Optional[int] = None) -> bool:
        return self._apply(actions.toggle_completed(self.tasks, task_id, now=now))

    def toggle_momentum(self, task_id: str) -> bool:
        return self._apply(actions.toggle_momentum(self.tasks, task_id))

    def indent(self, task_id: str, delta: int) -> bool:
        return self._apply(actions.shift_indent(self.tasks, task_id, delta))

    def archive(self, task_id: str, *, now: Optional[int] = None) -> bool:
        return self._apply(actions.set_archived(self.tasks, task_id, True, now=now))

    def unarchive(self, task_id: str) -> bool:
        return self._apply(actions.set_archived(self.tasks, task_id, False))

    def remove_tag(self, task_id: str, tag: str) -> bool:
        return self._apply(actions.remove_tag(self.tasks, task_id, tag))

    def delete(self, task_id: str) -> bool:
        if self.edit is not None and self.edit.task_id == task_id:
            self.edit = None
        return self._apply(actions.delete_task(self.tasks, task_id))

    # -----------------------------------------------------------------
    # Undo
    # -----------------------------------------------------------------

    def undo(self) -> bool:
        """
        Pop and apply one undo entry.

        An open edit is dropped without committing: its row is about to
        be restored (or left) as the stack says.
        """
        if not self.undo_stack:
            return False
        self.edit = None
        tasks, focus = self.undo_stack.undo(self.tasks)
        return self._apply(Change(tasks, focus=focus))

    # -----------------------------------------------------------------
    # Drag
    # -----------------------------------------------------------------

    def begin_drag(self, task_id: str, x: float) -> bool:
        """
        Grab the block rooted at `task_id`. Disabled while a view is active,
        since a lens must not reorder the underlying list.
        """
        if self.view_active or self.drag is not None:
            return False
        if self.edit is not None:
            self.commit_edit()
            self.edit = None

        session = drag.start_drag(self.tasks, task_id, x, indent_width=self.indent_width)
        if session is None:
            return False

        self.drag = session
        self._pre_drag = self.tasks
        self._moves.clear()
        return True

    def drag_move(self, *, x: Optional[float] = None, over_index: Optional[int] = None) -> bool:
        """Queue a pointer move; returns True when a frame should be scheduled."""
        if self.drag is None:
            return False
        return self._moves.offer(PointerMove(x=x, over_index=over_index))

    def frame(self) -> bool:
        """Apply the latest queued pointer move (one per animation frame)."""
        move = self._moves.take()
        if self.drag is None or move is None:
            return False
        step = drag.drag_step(self.tasks, self.drag, move)
        self.drag = step.session
        return self._apply(Change(step.tasks))

    def end_drag(self) -> bool:
        if self.drag is None:
            return False
        self.frame()
        session, origin = self.drag, self._pre_drag
        self.drag, self._pre_drag = None, None

        change = drag.end_drag(self.tasks, session)
        if change.undo is None:
            # Nothing moved: put back the very list object we started from.
            if origin is not None:
                self.tasks = origin
            return False
        self._apply(change)
        return True

    def cancel_drag(self) -> None:
        if self.drag is None:
            return
        self._moves.clear()
        self.tasks = self._pre_drag if self._pre_drag is not None else drag.cancel_drag(self.drag)
        self.drag, self._pre_drag = None, None
