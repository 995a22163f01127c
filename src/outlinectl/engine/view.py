# src/outlinectl/engine/view.py

"""
Views (lenses) over the task list.

A view is a non-mutating filter: a search query, the momentum lens,
or both. Results keep each task's position in the underlying list so
the host can map a visible row back to the real one.

Query rules:
- tokens are lowercase and whitespace-delimited;
- `#tok` matches when any tag contains `tok`;
- any other token matches when the text contains it, or a tag equals it.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from .model import Task


@dataclass(frozen=True, slots=True)
class SearchView:
    query: str


def tokenize_query(query: str) -> list[str]:
    return query.strip().lower().split()


def canonicalize_query(query: str) -> str:
    return " ".join(query.split())


def derive_view(raw: str) -> Optional[SearchView]:
    """Return a SearchView for a non-blank query, else None."""
    query = raw.strip().lower()
    if not query:
        return None
    return SearchView(query=query)


def matches_query(task: Task, query: str) -> bool:
    tokens = tokenize_query(query)
    if not tokens:
        return True

    text = task.text.lower()
    tags = [t.lower() for t in task.tags]

    for token in tokens:
        if token.startswith("#"):
            needle = token[1:]
            if needle and not any(needle in tag for tag in tags):
                return False
        elif token not in text and token not in tags:
            return False

    return True


def apply_view(
    tasks: Sequence[Task],
    view: Optional[SearchView],
    *,
    momentum_only: bool = False,
) -> list[tuple[Task, int]]:
    """Return (task, original_index) pairs visible through the lens."""
    entries = list(zip(tasks, range(len(tasks))))
    if momentum_only:
        entries = [(t, i) for t, i in entries if t.momentum]
    if view is not None:
        entries = [(t, i) for t, i in entries if matches_query(t, view.query)]
    return entries


def is_tag_view(view: Optional[SearchView]) -> bool:
    """True when every token is a non-empty `#tag` token."""
    if view is None:
        return False
    tokens = tokenize_query(view.query)
    return bool(tokens) and all(t.startswith("#") and len(t) > 1 for t in tokens)


def active_tag_tokens(view: Optional[SearchView]) -> list[str]:
    """`#tag` tokens of the query, deduplicated in first-seen order."""
    if view is None:
        return []
    seen: dict[str, None] = {}
    for token in tokenize_query(view.query):
        if token.startswith("#") and len(token) > 1:
            seen.setdefault(token, None)
    return list(seen)


def highlight_spans(text: str, terms: Iterable[str]) -> list[tuple[int, int]]:
    """
    Return merged, sorted [start, end) spans of case-insensitive matches
    of `terms` in `text` (for the renderer).
    """
    lower = text.lower()
    spans: list[tuple[int, int]] = []
    for term in terms:
        needle = term.lower().lstrip("#")
        if not needle:
            continue
        pos = lower.find(needle)
        while pos >= 0:
            spans.append((pos, pos + len(needle)))
            pos = lower.find(needle, pos + len(needle))

    spans.sort()
    merged: list[tuple[int, int]] = []
    for start, end in spans:
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged
