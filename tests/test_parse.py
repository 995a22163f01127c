from __future__ import annotations

import pytest

from outlinectl.engine.model import Intent
from outlinectl.engine.parse import (
    ParsedInput,
    collapse_whitespace,
    parse_task_input,
    scan_completed_tags,
    strip_tag_tokens,
)


def test_intent_token_is_extracted() -> None:
    parsed = parse_task_input("Call mom !soon")

    assert parsed.text == "Call mom"
    assert parsed.intent is Intent.SOON
    assert parsed.tags == ()
    assert parsed.momentum is None


def test_all_tokens_together() -> None:
    parsed = parse_task_input("Ship it #Work #work !m !later !now")

    assert parsed.text == "Ship it"
    assert parsed.tags == ("work",)
    assert parsed.intent is Intent.LATER  # first occurrence wins
    assert parsed.momentum is True


def test_tokens_are_case_insensitive() -> None:
    parsed = parse_task_input("!NOW Plan week !M #Home")

    assert parsed.intent is Intent.NOW
    assert parsed.momentum is True
    assert parsed.tags == ("home",)
    assert parsed.text == "Plan week"


@pytest.mark.parametrize(
    "raw",
    [
        "email bob#home about it",
        "learn C#",
        "done. #",
        "wrap up #done.",
        "hello!now",
        "shout !nowhere",
    ],
)
def test_tokens_inside_words_are_plain_text(raw: str) -> None:
    parsed = parse_task_input(raw)

    assert parsed.text == raw
    assert parsed.tags == ()
    assert parsed.intent is None
    assert parsed.momentum is None


def test_whitespace_is_collapsed() -> None:
    assert parse_task_input("  a \t b\n\nc  ").text == "a b c"
    assert collapse_whitespace("x   y") == "x y"


@pytest.mark.parametrize(
    "raw",
    [
        "Buy milk #errand !soon",
        "!m #a #b  split   here !later",
        "plain text",
        "#only-tag",
        "",
        "!!now and #",
    ],
)
def test_parse_is_idempotent_on_its_own_text(raw: str) -> None:
    once = parse_task_input(raw)
    twice = parse_task_input(once.text)

    assert twice == ParsedInput(text=once.text)


def test_strip_tag_tokens_keeps_spacing() -> None:
    stripped, tags = strip_tag_tokens("a #B c #b")

    assert tags == ("b",)
    assert "  " in stripped
    assert collapse_whitespace(stripped) == "a c"


# ---------------------------------------------------------------------
# Live tag scan
# ---------------------------------------------------------------------

def test_scan_takes_finished_tag_at_end() -> None:
    res = scan_completed_tags("hello #work ", 12)

    assert res.next_value == "hello "
    assert res.next_caret == 6
    assert res.committed == ("work",)


def test_scan_keeps_caret_on_following_word() -> None:
    # Space typed right after "#food"; caret sits before "milk".
    res = scan_completed_tags("buy #food milk", 10)

    assert res.next_value == "buy milk"
    assert res.next_caret == 4
    assert res.next_value[res.next_caret:] == "milk"
    assert res.committed == ("food",)


def test_scan_ignores_unfinished_tag() -> None:
    res = scan_completed_tags("hello #wor", 10)

    assert res.next_value == "hello #wor"
    assert res.next_caret == 10
    assert res.committed == ()


def test_scan_caret_before_tag_is_untouched() -> None:
    res = scan_completed_tags("ab #x cd", 1)

    assert res.next_value == "ab cd"
    assert res.next_caret == 1
    assert res.committed == ("x",)


def test_scan_without_caret() -> None:
    res = scan_completed_tags("#a #b tail", None)

    assert res.next_value == " tail"
    assert res.next_caret is None
    assert res.committed == ("a", "b")
