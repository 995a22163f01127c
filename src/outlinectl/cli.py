# src/outlinectl/cli.py

"""
Command-line interface for outlinectl.

This module:
- defines argument parsing and subcommands,
- delegates list semantics to the Outline document and engine modules,
- keeps user interaction (prompts, selection) here.

Every write command loads the store, applies one operation through
Outline, and persists the task list plus the undo history.
"""

import argparse
import logging
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from outlinectl.config import Config, ConfigError, load_config, write_default_config
from outlinectl.engine.drag import locate_block
from outlinectl.engine.model import Task
from outlinectl.engine.ops import (
    CONFIG_NAME,
    TASKS_NAME,
    ensure_store_dir,
    load_tasks,
    load_undo,
    save_tasks,
    save_undo,
)
from outlinectl.engine.outline import Outline
from outlinectl.engine.render import render_ids, render_outline, render_validation, summary_line
from outlinectl.engine.scan import find_store_dir
from outlinectl.engine.undo import UndoStack
from outlinectl.engine.validate import ValidationError, validate_payload_file
from outlinectl.engine.view import tokenize_query


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="outlinectl")
    parser.add_argument(
        "-C",
        "--cd",
        type=str,
        default=".",
        help="Work as if current directory is this path (default: .)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # ------------------------------------------------------------------
    # Store / read-only commands
    # ------------------------------------------------------------------

    p_init = sub.add_parser(
        "init",
        help="Create a .outline store in the current directory",
    )
    p_init.add_argument(
        "--non-interactive",
        action="store_true",
        help="Do not prompt; create .outline automatically",
    )
    p_init.set_defaults(func=cmd_init)

    p_list = sub.add_parser(
        "list",
        help="List tasks in display order",
    )
    p_list.add_argument("-q", "--query", type=str, default="", help="Search query (text or #tag tokens)")
    p_list.add_argument("--momentum", action="store_true", help="Show momentum rows only")
    p_list.add_argument("--ids", action="store_true", help="Print full ids only")
    p_list.add_argument("--no-color", action="store_true", help="Disable coloured output")
    p_list.set_defaults(func=cmd_list)

    p_validate = sub.add_parser(
        "validate",
        help="Validate the stored task payload",
    )
    p_validate.set_defaults(func=cmd_validate)

    # ------------------------------------------------------------------
    # Text commands
    # ------------------------------------------------------------------

    p_add = sub.add_parser(
        "add",
        help="Capture a new task (supports #tag, !now/!soon/!later, !m)",
    )
    p_add.add_argument("text", nargs="+", help="Task text")
    p_add.set_defaults(func=cmd_add)

    p_edit = sub.add_parser(
        "edit",
        help="Replace a task's text (tokens are parsed; tags are only added)",
    )
    p_edit.add_argument("task_id", help="Task id or unique prefix")
    p_edit.add_argument("text", nargs="+", help="New text")
    p_edit.set_defaults(func=cmd_edit)

    p_split = sub.add_parser(
        "split",
        help="Split a task at a character offset",
    )
    p_split.add_argument("task_id", help="Task id or unique prefix")
    p_split.add_argument("cursor", type=int, help="Character offset into the text")
    p_split.set_defaults(func=cmd_split)

    p_join = sub.add_parser(
        "join",
        help="Merge a task into the row above (or pull the row below with --forward)",
    )
    p_join.add_argument("task_id", help="Task id or unique prefix")
    p_join.add_argument("--forward", action="store_true", help="Merge the next row into this one")
    p_join.set_defaults(func=cmd_join)

    # ------------------------------------------------------------------
    # Structure commands
    # ------------------------------------------------------------------

    p_indent = sub.add_parser("indent", help="Indent a task one level")
    p_indent.add_argument("task_id", help="Task id or unique prefix")
    p_indent.set_defaults(func=cmd_indent, delta=1)

    p_outdent = sub.add_parser("outdent", help="Outdent a task one level")
    p_outdent.add_argument("task_id", help="Task id or unique prefix")
    p_outdent.set_defaults(func=cmd_indent, delta=-1)

    p_move = sub.add_parser(
        "move",
        help="Move a task and its children (drag emulation)",
    )
    p_move.add_argument("task_id", help="Task id or unique prefix")
    p_move.add_argument(
        "--by",
        type=int,
        required=True,
        help="Rows to move past (negative = up)",
    )
    p_move.add_argument(
        "--shift",
        type=int,
        default=0,
        help="Indent levels to shift the block (negative = left)",
    )
    p_move.set_defaults(func=cmd_move)

    # ------------------------------------------------------------------
    # Row commands
    # ------------------------------------------------------------------

    p_done = sub.add_parser("done", help="Toggle completed")
    p_done.add_argument("task_id", help="Task id or unique prefix")
    p_done.set_defaults(func=cmd_row, op="done")

    p_momentum = sub.add_parser("momentum", help="Toggle momentum")
    p_momentum.add_argument("task_id", help="Task id or unique prefix")
    p_momentum.set_defaults(func=cmd_row, op="momentum")

    p_untag = sub.add_parser("untag", help="Remove one tag from a task")
    p_untag.add_argument("task_id", help="Task id or unique prefix")
    p_untag.add_argument("tag", help="Tag name (with or without '#')")
    p_untag.set_defaults(func=cmd_row, op="untag")

    p_archive = sub.add_parser("archive", help="Archive a task (soft remove)")
    p_archive.add_argument("task_id", help="Task id or unique prefix")
    p_archive.set_defaults(func=cmd_row, op="archive")

    p_unarchive = sub.add_parser("unarchive", help="Restore an archived task")
    p_unarchive.add_argument("task_id", help="Task id or unique prefix")
    p_unarchive.set_defaults(func=cmd_row, op="unarchive")

    p_rm = sub.add_parser("rm", help="Delete a task (undoable)")
    p_rm.add_argument("task_id", help="Task id or unique prefix")
    p_rm.set_defaults(func=cmd_row, op="rm")

    p_undo = sub.add_parser("undo", help="Undo the last change")
    p_undo.set_defaults(func=cmd_undo)

    return parser


# ---------------------------------------------------------------------
# Store context
# ---------------------------------------------------------------------

@dataclass(slots=True)
class StoreContext:
    store_dir: Path
    config: Config
    outline: Outline


def _cwd(args: argparse.Namespace) -> Path:
    return (Path.cwd() / (args.cd or ".")).resolve()


def _open_store(args: argparse.Namespace) -> StoreContext:
    cwd = _cwd(args)
    store_dir = find_store_dir(cwd)
    if store_dir is None:
        raise ValidationError(f"No .outline found at or above: {cwd} (run 'outlinectl init')")

    config = load_config(store_dir / CONFIG_NAME)
    if not args.verbose:
        logging.getLogger().setLevel(config.log_level_value)

    undo = UndoStack(load_undo(store_dir), limit=config.undo_limit)
    outline = Outline(load_tasks(store_dir), undo=undo, indent_width=config.indent_width)
    logger.debug("Loaded %d task(s) from %s", len(outline.tasks), store_dir)
    return StoreContext(store_dir=store_dir, config=config, outline=outline)


def _persist(ctx: StoreContext) -> None:
    save_tasks(ctx.store_dir, ctx.outline.tasks)
    save_undo(ctx.store_dir, ctx.outline.undo_stack.actions)


def _write(args: argparse.Namespace, op: Callable[[StoreContext], bool]) -> int:
    """
    Run one write operation and persist when it changed anything.
    """
    ctx = _open_store(args)
    if not op(ctx):
        print("No change")
        return 0
    _persist(ctx)
    return 0


# ---------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------

def cmd_init(args: argparse.Namespace) -> int:
    cwd = _cwd(args)
    try:
        store_dir = ensure_store_dir(cwd, interactive=not bool(args.non_interactive))
    except RuntimeError as e:
        print(f"Error: {e}")
        return 1

    write_default_config(store_dir / CONFIG_NAME)
    if not (store_dir / TASKS_NAME).exists():
        save_tasks(store_dir, [])

    print(store_dir)
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    ctx = _open_store(args)
    outline = ctx.outline

    outline.set_query(args.query or "")
    outline.momentum_only = bool(args.momentum)
    entries = outline.visible()

    if args.ids:
        render_ids(entries)
        return 0

    color = ctx.config.color and not bool(args.no_color)
    render_outline(entries, color=color, terms=tokenize_query(args.query or ""))
    print(summary_line(outline.tasks, shown=len(entries)))
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    cwd = _cwd(args)
    store_dir = find_store_dir(cwd)
    if store_dir is None:
        print(f"Error: No .outline found at or above: {cwd}")
        return 1

    path = store_dir / TASKS_NAME
    if not path.exists():
        print(f"Error: Missing {path}")
        return 1

    res = validate_payload_file(path)
    render_validation(res)
    return 0 if res.ok else 1


def cmd_add(args: argparse.Namespace) -> int:
    ctx = _open_store(args)
    if not ctx.outline.capture(" ".join(args.text)):
        raise ValidationError("Nothing to add (empty text and no tags)")

    focus = ctx.outline.take_focus()
    _persist(ctx)
    if focus is not None:
        print(focus.task_id)
    return 0


def cmd_edit(args: argparse.Namespace) -> int:
    def op(ctx: StoreContext) -> bool:
        outline = ctx.outline
        task = _resolve_task(outline.tasks, args.task_id)
        text = " ".join(args.text)
        outline.start_edit(task.task_id)
        outline.type_text(text, len(text))
        return outline.commit_edit()

    return _write(args, op)


def cmd_split(args: argparse.Namespace) -> int:
    ctx = _open_store(args)
    outline = ctx.outline
    task = _resolve_task(outline.tasks, args.task_id)

    outline.start_edit(task.task_id, caret=args.cursor)
    if not outline.split(args.cursor):
        print("No change")
        return 0
    # The open session now sits on the new (right-hand) row.
    new_id = outline.edit.task_id if outline.edit is not None else ""
    outline.commit_edit()
    _persist(ctx)
    print(new_id)
    return 0


def cmd_join(args: argparse.Namespace) -> int:
    def op(ctx: StoreContext) -> bool:
        outline = ctx.outline
        task = _resolve_task(outline.tasks, args.task_id)
        if args.forward:
            outline.start_edit(task.task_id)
            changed = outline.merge_forward()
        else:
            outline.start_edit(task.task_id, caret=0)
            changed = outline.merge_backward()
        outline.commit_edit()
        return changed

    return _write(args, op)


def cmd_indent(args: argparse.Namespace) -> int:
    def op(ctx: StoreContext) -> bool:
        task = _resolve_task(ctx.outline.tasks, args.task_id)
        return ctx.outline.indent(task.task_id, args.delta)

    return _write(args, op)


def cmd_move(args: argparse.Namespace) -> int:
    def op(ctx: StoreContext) -> bool:
        outline = ctx.outline
        task = _resolve_task(outline.tasks, args.task_id)

        if not outline.begin_drag(task.task_id, 0) or outline.drag is None:
            return False
        block_ids = outline.drag.block_ids

        # One frame per neighbour row crossed.
        for _ in range(abs(args.by)):
            loc = locate_block(outline.tasks, block_ids)
            if loc is None:
                break
            start, end = loc
            over = end if args.by > 0 else start - 1
            if over < 0 or over >= len(outline.tasks):
                break
            outline.drag_move(over_index=over)
            outline.frame()

        if args.shift:
            outline.drag_move(x=args.shift * outline.indent_width)
        return outline.end_drag()

    return _write(args, op)


_ROW_OPS: dict[str, Callable[[Outline, str, argparse.Namespace], bool]] = {
    "done": lambda o, tid, a: o.toggle_completed(tid),
    "momentum": lambda o, tid, a: o.toggle_momentum(tid),
    "untag": lambda o, tid, a: o.remove_tag(tid, a.tag),
    "archive": lambda o, tid, a: o.archive(tid),
    "unarchive": lambda o, tid, a: o.unarchive(tid),
    "rm": lambda o, tid, a: o.delete(tid),
}


def cmd_row(args: argparse.Namespace) -> int:
    def op(ctx: StoreContext) -> bool:
        task = _resolve_task(ctx.outline.tasks, args.task_id)
        return _ROW_OPS[args.op](ctx.outline, task.task_id, args)

    return _write(args, op)


def cmd_undo(args: argparse.Namespace) -> int:
    ctx = _open_store(args)
    outline = ctx.outline
    action = outline.undo_stack.peek()
    if action is None:
        print("Nothing to undo")
        return 0

    outline.undo()
    _persist(ctx)
    print(f"Undid {action.kind}")
    return 0


# ---------------------------------------------------------------------
# Task selection helpers
# ---------------------------------------------------------------------

def _select_task_id(items: list[tuple[str, str]]) -> str:
    """
    items: list of (task_id, label)
    Returns selected task_id or empty string if cancelled.
    """
    if not items:
        return ""

    if len(items) == 1:
        return items[0][0]

    if shutil.which("fzf"):
        text = "\n".join([f"{tid}\t{label}" for tid, label in items]) + "\n"
        p = subprocess.run(
            ["fzf", "--with-nth=2..", "--delimiter=\t"],
            input=text,
            text=True,
            capture_output=True,
        )
        if p.returncode != 0:
            return ""
        line = (p.stdout or "").strip()
        if not line:
            return ""
        return line.split("\t", 1)[0].strip()

    for i, (tid, label) in enumerate(items, start=1):
        print(f"{i}) {label} [{tid}]")

    s = input("Select task number (blank to cancel): ").strip()
    if not s:
        return ""

    try:
        n = int(s)
    except ValueError:
        return ""

    if n < 1 or n > len(items):
        return ""

    return items[n - 1][0]


def _resolve_task(tasks: list[Task], ref: str) -> Task:
    """
    Resolve an id or id prefix to a task.

    Rules:
    - An exact id always wins.
    - A prefix matching exactly one task resolves to it.
    - An ambiguous prefix prompts for a choice on a TTY and fails otherwise.
    """
    ref = (ref or "").strip()
    if not ref:
        raise ValidationError("Task id is required")

    for task in tasks:
        if task.task_id == ref:
            return task

    matches = [t for t in tasks if t.task_id.startswith(ref)]
    if not matches:
        raise ValidationError(f"Task not found: {ref}")
    if len(matches) == 1:
        return matches[0]

    if not sys.stdin.isatty():
        raise ValidationError(f"Ambiguous task id prefix: {ref} ({len(matches)} matches)")

    chosen = _select_task_id([(t.task_id, t.text or "(no text)") for t in matches])
    if not chosen:
        raise ValidationError("Cancelled")
    return next(t for t in matches if t.task_id == chosen)


# ---------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    func = getattr(args, "func", None)
    if func is None:
        parser.print_help()
        return 2

    try:
        return func(args)
    except (ValidationError, ConfigError) as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
