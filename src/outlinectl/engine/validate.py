# src/outlinectl/engine/validate.py

"""
Task list validation rules.

This module checks a task list (or a raw payload) against the outline
invariants:

- ids unique across the whole list,
- tags lowercase, unique, and never left inline in text,
- indent within [0, MAX_INDENT] and at most one level below the row above,
- archived rows carry an archive timestamp.

It does NOT repair anything; the store layer normalises on load.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

from .model import MAX_INDENT, Task
from .parse import strip_tag_tokens
from .store import normalize_tasks


# ---------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------

class ValidationError(Exception):
    """
    Fatal validation error used for command flow control.

    Raised when a command must immediately abort (e.g. an unknown or
    ambiguous task id).
    """


# ---------------------------------------------------------------------
# Result objects
# ---------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """
    A single validation problem.

    `code` is a stable identifier suitable for tests and future filtering.
    """

    code: str
    message: str


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """
    Aggregated validation result for one list or payload file.
    """

    path: str
    issues: Sequence[ValidationIssue]

    @property
    def ok(self) -> bool:
        return not self.issues


# ---------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------

def validate_tasks(tasks: Sequence[Task], *, path: str = "<memory>") -> ValidationResult:
    """
    Validate an in-memory list of Task values.
    """
    issues: list[ValidationIssue] = []
    seen: set[str] = set()
    prev_indent = -1

    for i, task in enumerate(tasks, start=1):
        if task.task_id in seen:
            issues.append(
                ValidationIssue(
                    code="id_duplicate",
                    message=f"Row {i}: duplicate id '{task.task_id}'",
                )
            )
        seen.add(task.task_id)

        # Model-level invariants
        try:
            task.validate()
        except ValueError as e:
            issues.append(ValidationIssue(code="model_invariant", message=f"Row {i}: {e}"))

        _, inline = strip_tag_tokens(task.text)
        if inline:
            issues.append(
                ValidationIssue(
                    code="tag_inline",
                    message=f"Row {i}: text still contains tag token(s): {', '.join(inline)}",
                )
            )

        if task.indent > prev_indent + 1:
            issues.append(
                ValidationIssue(
                    code="indent_jump",
                    message=(
                        f"Row {i}: indent {task.indent} is more than one level "
                        f"below the row above ({max(prev_indent, 0)})"
                    ),
                )
            )
        prev_indent = task.indent

    return ValidationResult(path=path, issues=tuple(issues))


def validate_records(records: Sequence[Any], *, path: str = "<memory>") -> ValidationResult:
    """
    Validate raw persisted records before normalisation, then the
    normalised list.
    """
    issues: list[ValidationIssue] = []

    for i, record in enumerate(records, start=1):
        if not isinstance(record, dict):
            issues.append(ValidationIssue(code="record_shape", message=f"Record {i}: not an object"))
            continue

        if not isinstance(record.get("id"), str) or not record.get("id"):
            issues.append(ValidationIssue(code="record_id", message=f"Record {i}: missing string 'id'"))
        if not isinstance(record.get("text"), str):
            issues.append(ValidationIssue(code="record_text", message=f"Record {i}: missing string 'text'"))

        tags = record.get("tags", [])
        if isinstance(tags, list):
            _check_raw_tags(tags, i, issues)
        else:
            issues.append(ValidationIssue(code="tag_shape", message=f"Record {i}: 'tags' must be a list"))

        indent = record.get("indent", 0)
        if not isinstance(indent, int) or isinstance(indent, bool) or not 0 <= indent <= MAX_INDENT:
            issues.append(
                ValidationIssue(
                    code="indent_range",
                    message=f"Record {i}: indent must be an integer in [0, {MAX_INDENT}]",
                )
            )

        if record.get("archived") is True and not record.get("archivedAt"):
            issues.append(
                ValidationIssue(
                    code="archived_no_timestamp",
                    message=f"Record {i}: archived without 'archivedAt'",
                )
            )

    list_result = validate_tasks(normalize_tasks(records), path=path)
    return ValidationResult(path=path, issues=tuple(issues) + tuple(list_result.issues))


def validate_payload_file(path: str | Path) -> ValidationResult:
    """
    Validate a payload file on disk (strict JSON, then records).
    """
    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        return ValidationResult(
            path=str(p),
            issues=(ValidationIssue(code="payload_unreadable", message=str(e)),),
        )

    if isinstance(data, dict):
        if data.get("version") != 1:
            return ValidationResult(
                path=str(p),
                issues=(ValidationIssue(code="payload_version", message="Expected 'version': 1"),),
            )
        records = data.get("tasks")
    else:
        records = data

    if not isinstance(records, list):
        return ValidationResult(
            path=str(p),
            issues=(ValidationIssue(code="payload_shape", message="Missing 'tasks' array"),),
        )

    return validate_records(records, path=str(p))


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def _check_raw_tags(tags: list[Any], idx: int, issues: list[ValidationIssue]) -> None:
    seen: set[str] = set()
    for tag in tags:
        if not isinstance(tag, str):
            issues.append(ValidationIssue(code="tag_shape", message=f"Record {idx}: non-string tag"))
            continue
        if tag != tag.lower():
            issues.append(ValidationIssue(code="tag_case", message=f"Record {idx}: tag '{tag}' is not lowercase"))
        if tag.lower() in seen:
            issues.append(ValidationIssue(code="tag_duplicate", message=f"Record {idx}: duplicate tag '{tag}'"))
        seen.add(tag.lower())
