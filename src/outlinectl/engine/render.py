# src/outlinectl/engine/render.py

"""
Rendering helpers for CLI output.

This module is responsible for:
- outline rendering (list),
- validation report rendering (validate).

It is presentation-only: it should not mutate task state or write files.

Row format (mirrors the input grammar):

  [ ] text #tag #tag !soon !m  id
"""

import sys
from typing import Iterable, Optional, Sequence

from .model import Intent, Task
from .validate import ValidationResult
from .view import highlight_spans


# ---------------------------------------------------------------------
# ANSI / terminal helpers
# ---------------------------------------------------------------------

_RESET = "\033[0m"
_DIM = "\033[90m"
_BOLD = "\033[1m"
_MARK = "\033[7m"  # reverse video for search matches

_COLOR = {
    Intent.NOW: "\033[32m",    # green
    Intent.SOON: "\033[33m",   # yellow
    Intent.LATER: "\033[34m",  # blue
}

INDENT_UNIT = "    "
ID_WIDTH = 8


def _supports_color() -> bool:
    """Return True if stdout is a TTY."""
    return sys.stdout.isatty()


def _paint(s: str, code: str, color: bool) -> str:
    return f"{code}{s}{_RESET}" if color and code else s


# ---------------------------------------------------------------------
# Row formatting
# ---------------------------------------------------------------------

def mark_matches(text: str, terms: Iterable[str], *, color: bool) -> str:
    """
    Wrap search matches in `text`.

    With colour, matches are shown in reverse video; without it, they
    are bracketed as `[match]` so plain output still shows them.
    """
    spans = highlight_spans(text, terms)
    if not spans:
        return text

    out: list[str] = []
    pos = 0
    for start, end in spans:
        out.append(text[pos:start])
        hit = text[start:end]
        out.append(f"{_MARK}{hit}{_RESET}" if color else f"[{hit}]")
        pos = end
    out.append(text[pos:])
    return "".join(out)


def format_row(
    task: Task,
    *,
    color: bool = False,
    terms: Sequence[str] = (),
    show_id: bool = True,
) -> list[str]:
    """
    Format one task as one or more output lines.

    Literal newlines in the text become continuation lines aligned under
    the first character of the text.
    """
    prefix = INDENT_UNIT * task.indent
    if task.archived:
        box = "[~]"
    elif task.completed:
        box = "[x]"
    else:
        box = "[ ]"

    body_lines = task.text.split("\n") or [""]
    first = mark_matches(body_lines[0], terms, color=color)
    if task.completed or task.archived:
        first = _paint(first, _DIM, color)

    meta: list[str] = []
    for tag in task.tags:
        meta.append(_paint(f"#{tag}", _DIM, color))
    if task.intent is not None and not task.archived:
        meta.append(_paint(f"!{task.intent.value}", _COLOR.get(task.intent, ""), color))
    if task.momentum:
        meta.append(_paint("!m", _BOLD, color))

    head = f"{prefix}{box} {first}"
    if meta:
        head = f"{head} {' '.join(meta)}"
    if show_id:
        head = f"{head}  {_paint(task.task_id[:ID_WIDTH], _DIM, color)}"

    lines = [head]
    pad = prefix + " " * (len(box) + 1)
    for extra in body_lines[1:]:
        lines.append(pad + mark_matches(extra, terms, color=color))
    return lines


# ---------------------------------------------------------------------
# Outline
# ---------------------------------------------------------------------

def render_outline(
    entries: Sequence[tuple[Task, int]],
    *,
    color: bool = True,
    terms: Sequence[str] = (),
    show_ids: bool = True,
) -> None:
    """
    Print visible rows.

    Active rows come first; archived rows follow under a separator.
    """
    use_color = color and _supports_color()

    if not entries:
        print(_paint("(no tasks)", _DIM, use_color))
        return

    archived_started = False
    for task, _ in entries:
        if task.archived and not archived_started:
            archived_started = True
            print(_paint("── archived ──", _DIM, use_color))
        for line in format_row(task, color=use_color, terms=terms, show_id=show_ids):
            print(line)


def render_ids(entries: Sequence[tuple[Task, int]]) -> None:
    """Print full ids only (one per line), for scripting."""
    for task, _ in entries:
        print(task.task_id)


# ---------------------------------------------------------------------
# Validation report
# ---------------------------------------------------------------------

def render_validation(result: ValidationResult, *, color: bool = True) -> None:
    use_color = color and _supports_color()

    if result.ok:
        print(f"{_paint('OK', _COLOR[Intent.NOW], use_color)}: {result.path}")
        return

    print(f"{_paint('INVALID', _COLOR[Intent.SOON], use_color)}: {result.path}")
    for issue in result.issues:
        print(f"  - [{issue.code}] {issue.message}")


def summary_line(tasks: Sequence[Task], shown: Optional[int] = None) -> str:
    """One-line footer: open / done / archived counts."""
    open_ = sum(1 for t in tasks if t.is_active and not t.completed)
    done = sum(1 for t in tasks if t.is_active and t.completed)
    archived = sum(1 for t in tasks if t.archived)
    s = f"{open_} open, {done} done, {archived} archived"
    if shown is not None and shown != len(tasks):
        s = f"{s} ({shown} shown)"
    return s
