# src/outlinectl/engine/store.py

"""
Task list maintenance routines.

This module keeps the ordered task list consistent:
- normalisation of untrusted records into Task values,
- manual-order reindexing,
- id-based lookup / replace / insert helpers,
- "block" ranges (a row plus its deeper-indented followers).

Every function is pure. Functions that find nothing to change return
the input list object itself so callers can detect no-ops by identity.
"""

import logging
from dataclasses import replace
from typing import Any, Iterable, Optional, Sequence

from .model import Intent, Task, clamp_indent, merge_tags, ms_to_iso, iso_to_ms, now_ms
from .parse import collapse_whitespace, strip_tag_tokens


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------

def normalize_task(
    raw: Any,
    *,
    index: Optional[int] = None,
    now: Optional[int] = None,
) -> Optional[Task]:
    """
    Coerce an untrusted mapping into a Task, or return None.

    Rules:
    - `id` must be a non-empty string and `text` a string, else rejected.
    - createdAt: number -> int; ISO string -> ms; otherwise `now`.
    - order: number -> int; otherwise positional `index` (fallback createdAt).
    - indent is clamped to [0, MAX_INDENT].
    - archived without archivedAt is backfilled from createdAt.
    - legacy inline `#tag` tokens in text are moved into tags.
    - legacy records without a boolean momentum derive it from intent == "now".
    - `listId` is kept when it is a non-empty string (lists themselves are not managed here).
    """
    if not isinstance(raw, dict):
        return None

    task_id = raw.get("id")
    text = raw.get("text")
    if not isinstance(task_id, str) or not task_id:
        return None
    if not isinstance(text, str):
        return None

    fallback_now = now if now is not None else now_ms()

    completed = raw.get("completed")
    completed = completed if isinstance(completed, bool) else False
    archived = raw.get("archived")
    archived = archived if isinstance(archived, bool) else False

    created_at = _coerce_ms(raw.get("createdAt"))
    if created_at is None:
        created_at = fallback_now

    order = _coerce_number(raw.get("order"))
    if order is None:
        order = index if index is not None else created_at

    completed_at: Optional[int] = None
    if completed:
        completed_at = _coerce_number(raw.get("completedAt"))
        if completed_at is None:
            completed_at = created_at

    archived_at = _coerce_archived_at(raw.get("archivedAt"))
    if archived_at is None and archived:
        archived_at = _safe_iso(created_at) or ms_to_iso(fallback_now)

    indent = _coerce_number(raw.get("indent"))

    raw_tags = raw.get("tags")
    tags: list[str] = []
    if isinstance(raw_tags, list) and all(isinstance(t, str) for t in raw_tags):
        tags = raw_tags

    stripped, inline_tags = strip_tag_tokens(text)
    if inline_tags:
        logger.debug("Migrated inline tags %s out of task %s", inline_tags, task_id)
        text = collapse_whitespace(stripped)

    intent = Intent.coerce(raw.get("intent"))

    momentum = raw.get("momentum")
    if not isinstance(momentum, bool):
        momentum = intent is Intent.NOW

    list_id = raw.get("listId")
    if not isinstance(list_id, str) or not list_id:
        list_id = None

    return Task(
        task_id=task_id,
        text=text,
        created_at=created_at,
        order=order,
        completed=completed,
        completed_at=completed_at,
        archived=archived,
        archived_at=archived_at,
        indent=clamp_indent(indent or 0),
        tags=merge_tags(tags, inline_tags),
        intent=intent,
        momentum=momentum,
        list_id=list_id,
    )


def normalize_tasks(records: Iterable[Any], *, now: Optional[int] = None) -> list[Task]:
    """
    Normalise a sequence of raw records, dropping invalid ones and
    duplicate ids (first occurrence wins).
    """
    seen: set[str] = set()
    out: list[Task] = []

    for i, record in enumerate(records):
        task = normalize_task(record, index=i, now=now)
        if task is None:
            logger.info("Dropped malformed task record at position %d", i)
            continue
        if task.task_id in seen:
            logger.warning("Dropped duplicate task id %s", task.task_id)
            continue
        seen.add(task.task_id)
        out.append(task)

    return out


def task_to_dict(task: Task) -> dict[str, Any]:
    """
    Render a Task as a persistence record.

    `meta.tags` mirrors `tags` for older readers.
    """
    data: dict[str, Any] = {
        "id": task.task_id,
        "text": task.text,
        "createdAt": task.created_at,
        "order": task.order,
        "completed": task.completed,
    }
    if task.completed_at is not None:
        data["completedAt"] = task.completed_at
    data["archived"] = task.archived
    if task.archived_at is not None:
        data["archivedAt"] = task.archived_at
    data["indent"] = task.indent
    data["tags"] = list(task.tags)
    if task.intent is not None:
        data["intent"] = task.intent.value
    data["momentum"] = task.momentum
    if task.list_id is not None:
        data["listId"] = task.list_id
    data["meta"] = {"tags": list(task.tags)}
    return data


def _coerce_number(value: Any) -> Optional[int]:
    # bool is an int subclass; never treat True/False as a number here.
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value == value and value not in (float("inf"), float("-inf")):
        return int(value)
    return None


def _coerce_ms(value: Any) -> Optional[int]:
    n = _coerce_number(value)
    if n is not None:
        return n
    if isinstance(value, str):
        return iso_to_ms(value)
    return None


def _safe_iso(ms: int) -> Optional[str]:
    try:
        return ms_to_iso(ms)
    except (OverflowError, ValueError):
        return None


def _coerce_archived_at(value: Any) -> Optional[str]:
    if isinstance(value, str):
        ms = iso_to_ms(value)
        return _safe_iso(ms) if ms is not None else None
    n = _coerce_number(value)
    if n is not None:
        return _safe_iso(n)
    return None


# ---------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------

def reindex_order(tasks: list[Task]) -> list[Task]:
    """
    Set `order` to the array position of every active task.

    Archived tasks pass through untouched. Returns `tasks` itself when
    every active order already matches its position.
    """
    changed = False
    out: list[Task] = []

    for i, task in enumerate(tasks):
        if task.archived or task.order == i:
            out.append(task)
            continue
        out.append(replace(task, order=i))
        changed = True

    return out if changed else tasks


def backfill_intent(tasks: list[Task]) -> list[Task]:
    """
    Give every open (active, not completed) row without intent the
    default "now" bucket. Returns `tasks` itself when nothing changes.
    """
    if all(t.intent is not None or t.archived or t.completed for t in tasks):
        return tasks
    return [
        t if (t.intent is not None or t.archived or t.completed) else replace(t, intent=Intent.NOW)
        for t in tasks
    ]


# ---------------------------------------------------------------------
# Id-based helpers
# ---------------------------------------------------------------------

def index_of(tasks: Sequence[Task], task_id: str) -> int:
    """Return the position of `task_id`, or -1 when absent."""
    for i, task in enumerate(tasks):
        if task.task_id == task_id:
            return i
    return -1


def find_task(tasks: Sequence[Task], task_id: str) -> Optional[Task]:
    i = index_of(tasks, task_id)
    return tasks[i] if i >= 0 else None


def replace_task(tasks: list[Task], task: Task) -> list[Task]:
    """
    Return a copy of `tasks` with the row sharing `task.task_id` replaced.

    Returns `tasks` itself when the id is absent or the row is already equal.
    """
    i = index_of(tasks, task.task_id)
    if i < 0 or tasks[i] == task:
        return tasks
    out = list(tasks)
    out[i] = task
    return out


def insert_task(tasks: list[Task], index: int, task: Task) -> list[Task]:
    out = list(tasks)
    out.insert(max(0, min(len(out), index)), task)
    return out


def remove_task(tasks: list[Task], task_id: str) -> list[Task]:
    i = index_of(tasks, task_id)
    if i < 0:
        return tasks
    return tasks[:i] + tasks[i + 1:]


# ---------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------

def block_range(tasks: Sequence[Task], index: int) -> tuple[int, int]:
    """
    Return the half-open range [start, end) of the block rooted at `index`.

    A block is the row itself plus every immediately following row whose
    indent is strictly greater than the root's indent.
    """
    base = tasks[index].indent
    end = index + 1
    while end < len(tasks) and tasks[end].indent > base:
        end += 1
    return index, end
