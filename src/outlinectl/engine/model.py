# src/outlinectl/engine/model.py

"""
Core domain models.

This module defines the in-memory representation of a task row,
its intent vocabulary, and the default display ordering rules.

Tasks are immutable values: every mutation produces a new Task via
`dataclasses.replace`, so a snapshot held by the undo stack can never
be changed retroactively.

No filesystem access should happen here.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Final, Iterable, Optional


MAX_INDENT: Final[int] = 2

_EPOCH: Final = datetime(1970, 1, 1, tzinfo=timezone.utc)


# ---------------------------------------------------------------------
# Intent
# ---------------------------------------------------------------------

class Intent(str, Enum):
    """
    Manual priority bucket.

    Ordering reflects display priority:
    now > soon > later > (no intent)
    """

    NOW = "now"
    SOON = "soon"
    LATER = "later"

    @classmethod
    def sort_key(cls, intent: Optional["Intent"]) -> int:
        """
        Return numeric rank for list ordering.

        Lower value = higher priority. Tasks without intent rank last
        among active tasks.
        """
        order = {
            cls.NOW: 0,
            cls.SOON: 1,
            cls.LATER: 2,
        }
        if intent is None:
            return 3
        return order[intent]

    @classmethod
    def coerce(cls, raw: object) -> Optional["Intent"]:
        """Return the Intent named by `raw`, or None."""
        if isinstance(raw, Intent):
            return raw
        if not isinstance(raw, str):
            return None
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return None


# Rank used for archived tasks: always after every active bucket.
_ARCHIVED_RANK: Final[int] = 4


# ---------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------

def now_ms() -> int:
    """Return the current time in epoch milliseconds (isolated for testability)."""
    return int(time.time() * 1000)


def ms_to_iso(ms: int) -> str:
    """Render epoch milliseconds as an ISO-8601 UTC string (`...T..:..:..mmmZ`)."""
    dt = _EPOCH + timedelta(milliseconds=ms)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def iso_to_ms(value: str) -> Optional[int]:
    """Parse an ISO-8601 timestamp into epoch milliseconds, or None if invalid."""
    s = value.strip()
    if not s:
        return None
    if s.endswith("Z") or s.endswith("z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    # Integer arithmetic: float timestamps can be off by one millisecond.
    return (dt - _EPOCH) // timedelta(milliseconds=1)


# ---------------------------------------------------------------------
# Tags / indent
# ---------------------------------------------------------------------

def clamp_indent(indent: int) -> int:
    return max(0, min(MAX_INDENT, int(indent)))


def merge_tags(*groups: Iterable[str]) -> tuple[str, ...]:
    """
    Union of tag groups, lowercased and deduplicated.

    First-seen order is kept so the result is deterministic.
    """
    seen: dict[str, None] = {}
    for group in groups:
        for tag in group:
            t = tag.strip().lower()
            if t:
                seen.setdefault(t, None)
    return tuple(seen)


# ---------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Task:
    """
    A single row of the outline.

    Notes:
    - task_id is unique across the whole list (archived rows included).
    - tags are the sole source of truth; `text` carries no `#tag` tokens.
    - indent is clamped to [0, MAX_INDENT] on construction and on every replace().
    - created_at / completed_at are epoch ms; archived_at is an ISO string.
    """

    # Identity / content
    task_id: str
    text: str

    # Ordering
    created_at: int
    order: int

    # Lifecycle
    completed: bool = False
    completed_at: Optional[int] = None
    archived: bool = False
    archived_at: Optional[str] = None

    # Structure / metadata
    indent: int = 0
    tags: tuple[str, ...] = field(default_factory=tuple)
    intent: Optional[Intent] = None
    momentum: bool = False

    # Owning list (kept for payloads written with several lists)
    list_id: Optional[str] = None

    def __post_init__(self) -> None:
        # Frozen: invariants are enforced by rewriting the raw fields in place.
        object.__setattr__(self, "indent", clamp_indent(self.indent))
        object.__setattr__(self, "tags", merge_tags(self.tags))
        object.__setattr__(self, "intent", Intent.coerce(self.intent))

    # -----------------------------------------------------------------
    # Validation
    # -----------------------------------------------------------------

    def validate(self) -> None:
        """
        Validate core invariants independent of list context.

        Uniqueness and depth rules need the whole list and belong to
        the validate layer, not here.
        """
        if not self.task_id or not self.task_id.strip():
            raise ValueError("task_id must be a non-empty string")

        if self.archived and not self.archived_at:
            raise ValueError("archived tasks must carry archived_at")

        if self.completed_at is not None and not self.completed:
            raise ValueError("completed_at must be empty unless completed")

    # -----------------------------------------------------------------
    # Convenience
    # -----------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return not self.archived

    @property
    def intent_rank(self) -> int:
        return Intent.sort_key(self.intent)


# ---------------------------------------------------------------------
# Ordering helpers
# ---------------------------------------------------------------------

def _archived_key(task: Task) -> int:
    if task.archived_at:
        parsed = iso_to_ms(task.archived_at)
        if parsed is not None:
            return parsed
    return task.order


def display_key(task: Task) -> tuple[int, int]:
    if task.archived:
        return (_ARCHIVED_RANK, _archived_key(task))
    return (task.intent_rank, task.order)


def sort_for_display(tasks: Iterable[Task]) -> list[Task]:
    """
    Default ordering for the outline:

    1. Intent bucket (now > soon > later > none)
    2. order (manual position) within a bucket
    3. Archived tasks last, by archived_at (fallback: order)

    Python's sort is stable, so equal keys keep input order.
    """
    return sorted(tasks, key=display_key)


# ---------------------------------------------------------------------
# Focus requests
# ---------------------------------------------------------------------

class FocusMode(str, Enum):
    ROW = "row"
    EDIT = "edit"


@dataclass(frozen=True, slots=True)
class FocusRequest:
    """
    Where the host should put focus once the row exists.

    `caret` is only meaningful in EDIT mode; None means "end of text".
    """

    task_id: str
    mode: FocusMode = FocusMode.ROW
    caret: Optional[int] = None
