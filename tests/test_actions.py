from __future__ import annotations

from typing import Callable

from outlinectl.engine import actions
from outlinectl.engine.actions import EditSession
from outlinectl.engine.model import FocusMode, Intent, Task, ms_to_iso
from outlinectl.engine.undo import (
    DeleteAction,
    EditAction,
    IndentAction,
    MergeAction,
    MergeDirection,
    SplitAction,
    ToggleAction,
)


NOW = 1_700_000_000_000


def session_for(task: Task, live: str | None = None, caret: int | None = None) -> EditSession:
    text = task.text if live is None else live
    return EditSession(
        task_id=task.task_id,
        live_text=text,
        caret=len(text) if caret is None else caret,
        original=task,
    )


# ---------------------------------------------------------------------
# Edit sessions
# ---------------------------------------------------------------------

def test_start_editing_defaults_caret_to_end(make_task: Callable[..., Task]) -> None:
    tasks = [make_task("a", "hello")]

    out = actions.start_editing(tasks, None, "a")

    assert out.tasks is tasks
    assert out.undo is None
    assert out.session is not None
    assert out.session.caret == 5
    assert out.focus is not None and out.focus.mode is FocusMode.EDIT


def test_start_editing_commits_previous_row(make_task: Callable[..., Task]) -> None:
    a, b = make_task("a", "old"), make_task("b")
    tasks = [a, b]

    out = actions.start_editing(tasks, session_for(a, "new"), "b")

    assert out.tasks[0].text == "new"
    assert out.undo == EditAction(a)
    assert out.session is not None and out.session.task_id == "b"


def test_commit_without_change_is_identity(make_task: Callable[..., Task]) -> None:
    a = make_task("a", "same")
    tasks = [a]

    out = actions.commit_edit(tasks, session_for(a))

    assert out.tasks is tasks
    assert out.undo is None


def test_commit_edit_parses_tokens(make_task: Callable[..., Task]) -> None:
    a = make_task("a", "Call", intent=Intent.NOW)
    tasks = [a]

    out = actions.commit_edit(tasks, session_for(a, "Call mom !soon"))

    assert out.tasks[0].text == "Call mom"
    assert out.tasks[0].intent is Intent.SOON
    assert out.tasks[0].tags == ()
    assert out.undo == EditAction(a)


def test_commit_never_removes_tags(make_task: Callable[..., Task]) -> None:
    a = make_task("a", "x", tags=("work",))
    tasks = [a]

    out = actions.commit_edit(tasks, session_for(a, "y #home"))

    assert out.tasks[0].tags == ("work", "home")


def test_commit_tag_only_change(make_task: Callable[..., Task]) -> None:
    a = make_task("a", "x")
    tasks = [a]

    out = actions.commit_edit(tasks, session_for(a, "x #new"))

    assert out.tasks[0].text == "x"
    assert out.tasks[0].tags == ("new",)


def test_redundant_intent_token_is_a_noop(make_task: Callable[..., Task]) -> None:
    a = make_task("a", "x", intent=Intent.NOW)
    tasks = [a]

    out = actions.commit_edit(tasks, session_for(a, "x !now"))

    assert out.tasks is tasks
    assert out.undo is None


def test_momentum_token_only_turns_on(make_task: Callable[..., Task]) -> None:
    on = make_task("a", "x", momentum=True)
    tasks = [on]

    out = actions.commit_edit(tasks, session_for(on, "y"))

    assert out.tasks[0].momentum is True


def test_live_typing_lifts_finished_tags(make_task: Callable[..., Task]) -> None:
    a = make_task("a", "buy")
    session = session_for(a)

    session = actions.update_live_text(session, "buy #food ", 10)

    assert session.live_text == "buy "
    assert session.caret == 4
    assert session.pending_tags == ("food",)

    out = actions.commit_edit([a], session)
    assert out.tasks[0].text == "buy"
    assert out.tasks[0].tags == ("food",)
    assert out.undo == EditAction(a)


def test_live_typing_without_whitespace_does_not_scan(make_task: Callable[..., Task]) -> None:
    a = make_task("a", "buy")

    session = actions.update_live_text(session_for(a), "buy #foo", 8)

    assert session.live_text == "buy #foo"
    assert session.pending_tags == ()


def test_commit_on_stale_row_is_identity(make_task: Callable[..., Task]) -> None:
    a = make_task("a")
    tasks = [make_task("b")]

    out = actions.commit_edit(tasks, session_for(a, "changed"))

    assert out.tasks is tasks


# ---------------------------------------------------------------------
# Split / merge
# ---------------------------------------------------------------------

def test_split_keeps_tags_on_left(make_task: Callable[..., Task]) -> None:
    task = make_task("a", "Write report", tags=("work",))
    tasks = [task]

    out = actions.split_task_at(tasks, session_for(task), 5, new_id="b", now=NOW)
    left, right = out.tasks

    assert (left.task_id, left.text, left.tags) == ("a", "Write", ("work",))
    assert (right.task_id, right.text, right.tags) == ("b", "report", ())
    assert right.indent == task.indent
    assert out.undo == SplitAction(original=task, created_id="b", cursor=5)
    assert out.session is not None
    assert out.session.task_id == "b"
    assert out.session.caret == 0
    assert out.focus is not None and out.focus.task_id == "b"


def test_split_distributes_tokens(make_task: Callable[..., Task]) -> None:
    task = make_task("a", "x", intent=Intent.SOON, momentum=False)
    live = "alpha #x !m beta !later"

    out = actions.split_task_at([task], session_for(task, live), 12, new_id="b", now=NOW)
    left, right = out.tasks

    assert left.text == "alpha"
    assert left.tags == ("x",)
    assert left.momentum is True
    assert left.intent is Intent.SOON
    assert right.text == "beta"
    assert right.intent is Intent.LATER
    assert right.momentum is False


def test_split_right_half_takes_only_typed_intent(make_task: Callable[..., Task]) -> None:
    task = make_task("a", "one two", intent=Intent.LATER, list_id="work")

    out = actions.split_task_at([task], session_for(task), 3, new_id="b", now=NOW)
    left, right = out.tasks

    assert left.intent is Intent.LATER
    assert right.intent is None
    assert right.momentum is False
    assert right.list_id == "work"


def test_split_then_merge_back_restores_row(make_task: Callable[..., Task]) -> None:
    task = make_task("a", "Write report", tags=("work",))
    below = make_task("z", "below")

    split = actions.split_task_at([task, below], session_for(task), 5, new_id="b", now=NOW)
    assert split.session is not None

    merged = actions.merge_backward(split.tasks, split.session)

    assert merged.tasks == [task, below]
    assert merged.session is not None
    assert merged.session.caret == len("Write")


def test_merge_backward_unions_metadata(make_task: Callable[..., Task]) -> None:
    prev = make_task("a", "first", tags=("x",), intent=Intent.SOON)
    cur = make_task("b", "second", tags=("y",), momentum=True)
    tail = make_task("c")
    tasks = [prev, cur, tail]

    out = actions.merge_backward(tasks, session_for(cur, " second #z", caret=0))
    merged = out.tasks[0]

    assert [t.task_id for t in out.tasks] == ["a", "c"]
    assert merged.text == "first second"
    assert merged.tags == ("x", "y", "z")
    assert merged.intent is Intent.SOON
    assert merged.momentum is True
    assert out.undo == MergeAction(MergeDirection.BACKWARD, kept_original=prev, removed=cur, caret=5)


def test_merge_backward_on_first_row_is_noop(make_task: Callable[..., Task]) -> None:
    a = make_task("a")
    tasks = [a, make_task("b")]
    session = session_for(a, caret=0)

    out = actions.merge_backward(tasks, session)

    assert out.tasks is tasks
    assert out.session == session


def test_merge_forward_pulls_next_row(make_task: Callable[..., Task]) -> None:
    cur = make_task("a", "left ")
    nxt = make_task("b", "right", tags=("t",))
    tasks = [cur, nxt]

    out = actions.merge_forward(tasks, session_for(cur, "left "))

    assert [t.task_id for t in out.tasks] == ["a"]
    assert out.tasks[0].text == "left right"
    assert out.tasks[0].tags == ("t",)
    assert isinstance(out.undo, MergeAction)
    assert out.undo.direction is MergeDirection.FORWARD


def test_merge_forward_on_last_row_is_noop(make_task: Callable[..., Task]) -> None:
    a = make_task("a")
    tasks = [a]

    assert actions.merge_forward(tasks, session_for(a)).tasks is tasks


# ---------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------

def test_capture_prepends_with_default_intent(make_task: Callable[..., Task]) -> None:
    tasks = [make_task("a")]

    out = actions.commit_capture(tasks, "New thing #x", new_id="n", now=NOW)

    assert out.tasks[0].task_id == "n"
    assert out.tasks[0].text == "New thing"
    assert out.tasks[0].tags == ("x",)
    assert out.tasks[0].intent is Intent.NOW
    assert out.tasks[0].created_at == NOW
    assert out.undo is None


def test_capture_rejects_blank_input() -> None:
    tasks: list[Task] = []

    assert actions.commit_capture(tasks, "   !soon  ").tasks is tasks


def test_capture_accepts_tag_only_input() -> None:
    out = actions.commit_capture([], "#later-reading", new_id="n", now=NOW)

    assert out.tasks[0].text == ""
    assert out.tasks[0].tags == ("later-reading",)


# ---------------------------------------------------------------------
# Row-level actions
# ---------------------------------------------------------------------

def test_toggle_completed_round_trip(make_task: Callable[..., Task]) -> None:
    a = make_task("a")

    done = actions.toggle_completed([a], "a", now=NOW)
    assert done.tasks[0].completed is True
    assert done.tasks[0].completed_at == NOW
    assert done.undo == ToggleAction(a)

    undone = actions.toggle_completed(done.tasks, "a")
    assert undone.tasks[0].completed is False
    assert undone.tasks[0].completed_at is None


def test_toggle_momentum(make_task: Callable[..., Task]) -> None:
    a = make_task("a")

    out = actions.toggle_momentum([a], "a")

    assert out.tasks[0].momentum is True
    assert isinstance(out.undo, ToggleAction)


def test_indent_is_bounded_by_row_above(make_task: Callable[..., Task]) -> None:
    tasks = [make_task("a"), make_task("b"), make_task("c")]

    assert actions.shift_indent(tasks, "a", 1).tasks is tasks

    once = actions.shift_indent(tasks, "b", 1)
    assert [t.indent for t in once.tasks] == [0, 1, 0]
    assert once.undo == IndentAction(tasks[1])

    # Row above is at 0: "b" cannot go to 2.
    assert actions.shift_indent(once.tasks, "b", 1).tasks is once.tasks

    deeper = actions.shift_indent(actions.shift_indent(once.tasks, "c", 1).tasks, "c", 1)
    assert [t.indent for t in deeper.tasks] == [0, 1, 2]
    assert actions.shift_indent(deeper.tasks, "c", 1).tasks is deeper.tasks


def test_outdent_stops_at_zero(make_task: Callable[..., Task]) -> None:
    tasks = [make_task("a"), make_task("b", indent=1)]

    out = actions.shift_indent(tasks, "b", -1)
    assert out.tasks[1].indent == 0
    assert actions.shift_indent(out.tasks, "b", -1).tasks is out.tasks


def test_archive_and_unarchive(make_task: Callable[..., Task]) -> None:
    a = make_task("a")

    archived = actions.set_archived([a], "a", True, now=NOW)
    assert archived.tasks[0].archived is True
    assert archived.tasks[0].archived_at == ms_to_iso(NOW)
    assert archived.undo == EditAction(a)
    assert actions.set_archived(archived.tasks, "a", True).tasks is archived.tasks

    restored = actions.set_archived(archived.tasks, "a", False)
    assert restored.tasks[0] == a


def test_remove_tag(make_task: Callable[..., Task]) -> None:
    a = make_task("a", tags=("x", "y"))
    tasks = [a]

    out = actions.remove_tag(tasks, "a", "#X")
    assert out.tasks[0].tags == ("y",)
    assert out.undo == EditAction(a)

    assert actions.remove_tag(tasks, "a", "missing").tasks is tasks


def test_delete_focuses_next_row(make_task: Callable[..., Task]) -> None:
    tasks = [make_task("a"), make_task("b"), make_task("c")]

    out = actions.delete_task(tasks, "b")

    assert [t.task_id for t in out.tasks] == ["a", "c"]
    assert out.undo == DeleteAction(tasks[1], 1)
    assert out.focus is not None and out.focus.task_id == "c"


def test_stale_ids_are_noops(make_task: Callable[..., Task]) -> None:
    tasks = [make_task("a")]

    assert actions.toggle_completed(tasks, "ghost").tasks is tasks
    assert actions.toggle_momentum(tasks, "ghost").tasks is tasks
    assert actions.shift_indent(tasks, "ghost", 1).tasks is tasks
    assert actions.set_archived(tasks, "ghost", True).tasks is tasks
    assert actions.remove_tag(tasks, "ghost", "x").tasks is tasks
    assert actions.delete_task(tasks, "ghost").tasks is tasks
    assert actions.start_editing(tasks, None, "ghost").session is None
