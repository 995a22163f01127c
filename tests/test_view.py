from __future__ import annotations

from typing import Callable

import pytest

from outlinectl.engine.keys import CAPTURE_ROW_INDEX, Key, next_index_from_list_arrow, next_index_from_row_arrow
from outlinectl.engine.model import Task
from outlinectl.engine.view import (
    SearchView,
    active_tag_tokens,
    apply_view,
    canonicalize_query,
    derive_view,
    highlight_spans,
    is_tag_view,
    matches_query,
)


@pytest.fixture
def tasks(make_task: Callable[..., Task]) -> list[Task]:
    return [
        make_task("a", "Buy milk", tags=("errand",)),
        make_task("b", "Write report", tags=("work", "q3"), momentum=True),
        make_task("c", "Call mom"),
        make_task("d", "Review work plan", tags=("home",)),
    ]


def test_blank_query_has_no_view() -> None:
    assert derive_view("   ") is None
    assert derive_view(" Work ") == SearchView("work")


def test_text_token_matches_text_or_equal_tag(tasks: list[Task]) -> None:
    visible = apply_view(tasks, derive_view("work"))

    assert [(t.task_id, i) for t, i in visible] == [("b", 1), ("d", 3)]


def test_tag_token_matches_tag_substring(tasks: list[Task]) -> None:
    visible = apply_view(tasks, derive_view("#err"))

    assert [t.task_id for t, _ in visible] == ["a"]


def test_all_tokens_must_match(tasks: list[Task]) -> None:
    assert matches_query(tasks[1], "write #q3")
    assert not matches_query(tasks[1], "write #home")
    assert matches_query(tasks[1], "")


def test_momentum_lens_combines_with_query(tasks: list[Task]) -> None:
    assert [t.task_id for t, _ in apply_view(tasks, None, momentum_only=True)] == ["b"]
    assert apply_view(tasks, derive_view("milk"), momentum_only=True) == []


def test_view_never_mutates(tasks: list[Task]) -> None:
    before = list(tasks)

    apply_view(tasks, derive_view("#work"), momentum_only=True)

    assert tasks == before


def test_tag_view_detection() -> None:
    assert is_tag_view(SearchView("#a #b"))
    assert not is_tag_view(SearchView("#a b"))
    assert not is_tag_view(SearchView("#"))
    assert not is_tag_view(None)


def test_active_tag_tokens_are_ordered_and_unique() -> None:
    assert active_tag_tokens(SearchView("#b x #a #b #")) == ["#b", "#a"]
    assert active_tag_tokens(None) == []


def test_canonicalize_query() -> None:
    assert canonicalize_query("  a   #b  ") == "a #b"


def test_highlight_spans_merge_overlaps() -> None:
    assert highlight_spans("Review work plan", ["work", "#or", "plan"]) == [(7, 11), (12, 16)]
    assert highlight_spans("abc", ["#"]) == []


# ---------------------------------------------------------------------
# Arrow navigation
# ---------------------------------------------------------------------

@pytest.mark.parametrize(
    ("key", "current", "length", "expected"),
    [
        (Key.ARROW_UP, CAPTURE_ROW_INDEX, 3, None),
        (Key.ARROW_DOWN, CAPTURE_ROW_INDEX, 3, 0),
        (Key.ARROW_DOWN, 2, 3, 2),
        (Key.ARROW_UP, 0, 3, 0),
        (Key.ARROW_UP, 2, 3, 1),
        (Key.ARROW_DOWN, 0, 0, None),
    ],
)
def test_list_arrow(key: Key, current: int, length: int, expected: int | None) -> None:
    assert next_index_from_list_arrow(key, current, length) == expected


def test_row_arrow_is_clamped() -> None:
    assert next_index_from_row_arrow(Key.ARROW_DOWN, 4, 5) == 4
    assert next_index_from_row_arrow(Key.ARROW_UP, 0, 5) == 0
    assert next_index_from_row_arrow(Key.ARROW_DOWN, 1, 5) == 2
