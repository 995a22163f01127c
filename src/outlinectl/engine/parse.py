# src/outlinectl/engine/parse.py

"""
Inline token parser.

Turns raw row text into clean text plus metadata:

- `!now` / `!soon` / `!later`   -> intent (first occurrence wins)
- `!m`                          -> momentum on (never turns it off)
- `#name`                       -> tag (lowercased, deduplicated)

Every token must be bounded by start-or-whitespace on the left and
whitespace-or-end on the right. `#partial` inside a word is plain text.

All functions are pure. parse_task_input() is idempotent on its own
output text: a second pass finds no tokens and returns the same text.
"""

import re
from dataclasses import dataclass
from typing import Final, Optional

from .model import Intent, merge_tags


# ---------------------------------------------------------------------
# Token patterns
# ---------------------------------------------------------------------

_INTENT_RE: Final = re.compile(r"(?<!\S)!(now|soon|later)(?!\S)", re.IGNORECASE)
_MOMENTUM_RE: Final = re.compile(r"(?<!\S)!m(?!\S)", re.IGNORECASE)
_TAG_RE: Final = re.compile(r"(?<!\S)#([A-Za-z0-9_-]+)(?!\S)")

# A tag token only counts as "finished" once whitespace follows it.
_FINISHED_TAG_RE: Final = re.compile(r"(^|\s)#([A-Za-z0-9_-]+)(?=\s)")

_WS_RE: Final = re.compile(r"\s+")
_INLINE_WS_RUN_RE: Final = re.compile(r"[ \t]{2,}")


# ---------------------------------------------------------------------
# Result objects
# ---------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ParsedInput:
    """
    Result of parsing one raw input string.

    `momentum` is True when a `!m` token was present and None otherwise;
    absence of the token never means "off".
    """

    text: str
    tags: tuple[str, ...] = ()
    intent: Optional[Intent] = None
    momentum: Optional[bool] = None


@dataclass(frozen=True, slots=True)
class CompletedTags:
    """
    Result of scanning a live edit buffer for finished tag tokens.
    """

    next_value: str
    next_caret: Optional[int]
    committed: tuple[str, ...] = ()


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------

def parse_task_input(raw: str) -> ParsedInput:
    """
    Extract intent, momentum and tags from `raw` and return cleaned text.

    Order of application: intent, momentum, tags, whitespace collapse.
    All intent tokens are removed; only the first one is recorded.
    """
    s = raw or ""

    intent: Optional[Intent] = None
    m = _INTENT_RE.search(s)
    if m:
        intent = Intent(m.group(1).lower())
        s = _INTENT_RE.sub(" ", s)

    momentum: Optional[bool] = None
    s, n = _MOMENTUM_RE.subn(" ", s)
    if n:
        momentum = True

    s, tags = strip_tag_tokens(s)

    return ParsedInput(
        text=collapse_whitespace(s),
        tags=tags,
        intent=intent,
        momentum=momentum,
    )


def strip_tag_tokens(text: str) -> tuple[str, tuple[str, ...]]:
    """
    Remove every `#tag` token from `text`.

    Returns (text with tokens replaced by a space, lowercased unique tags).
    The returned text is NOT whitespace-collapsed.
    """
    found: list[str] = []

    def _take(match: re.Match[str]) -> str:
        found.append(match.group(1))
        return " "

    stripped = _TAG_RE.sub(_take, text)
    return stripped, merge_tags(found)


def collapse_whitespace(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def scan_completed_tags(value: str, caret: Optional[int]) -> CompletedTags:
    """
    Strip finished `#tag` tokens from a live edit buffer.

    Only tokens already followed by whitespace are taken; a trailing
    `#partial` the user is still typing is left alone. The caret is
    translated across every removed span that ends at or before it,
    and across the double-space runs collapsed afterwards.

    Callers should only invoke this right after inserting whitespace.
    """
    committed: list[str] = []
    next_caret = caret

    out: list[str] = []
    last = 0
    for match in _FINISHED_TAG_RE.finditer(value):
        leading = match.group(1)
        tag = match.group(2)
        full_start = match.start()
        token_end = match.end()

        out.append(value[last:full_start])
        out.append(leading)
        last = token_end

        committed.append(tag.lower())

        if next_caret is not None and token_end <= next_caret:
            removed_len = token_end - full_start
            next_caret = max(0, next_caret - (removed_len - len(leading)))

    if last == 0:
        return CompletedTags(next_value=value, next_caret=caret)

    out.append(value[last:])
    joined = "".join(out)

    # Collapse doubled spaces left behind, moving the caret with the text.
    pieces: list[str] = []
    last = 0
    shift = 0
    for run in _INLINE_WS_RUN_RE.finditer(joined):
        pieces.append(joined[last:run.start()])
        pieces.append(" ")
        last = run.end()
        if next_caret is None:
            continue
        if run.end() <= next_caret:
            shift += (run.end() - run.start()) - 1
        elif run.start() < next_caret:
            shift += next_caret - (run.start() + 1)
    pieces.append(joined[last:])
    next_value = "".join(pieces)

    if next_caret is not None:
        next_caret = min(len(next_value), next_caret - shift)

    return CompletedTags(
        next_value=next_value,
        next_caret=next_caret,
        committed=merge_tags(committed),
    )
