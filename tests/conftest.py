from __future__ import annotations

from typing import Any, Callable

import pytest

from outlinectl.engine.model import Intent, Task
from outlinectl.engine.outline import Outline


@pytest.fixture
def make_task() -> Callable[..., Task]:
    """
    Build a Task with sensible defaults.

    `order` and `created_at` default to a per-fixture counter so tasks
    built in sequence keep their construction order.
    """
    counter = {"n": 0}

    def _make(task_id: str, text: str = "", **kwargs: Any) -> Task:
        n = counter["n"]
        counter["n"] += 1
        kwargs.setdefault("created_at", 1_700_000_000_000 + n)
        kwargs.setdefault("order", n)
        kwargs.setdefault("intent", Intent.NOW)
        return Task(task_id=task_id, text=text or task_id, **kwargs)

    return _make


@pytest.fixture
def outline(make_task: Callable[..., Task]) -> Callable[..., Outline]:
    """
    Build an Outline from (id, indent) pairs or ready-made tasks.
    """

    def _make(*rows: Any, **kwargs: Any) -> Outline:
        tasks: list[Task] = []
        for row in rows:
            if isinstance(row, Task):
                tasks.append(row)
            elif isinstance(row, tuple):
                task_id, indent = row
                tasks.append(make_task(task_id, indent=indent))
            else:
                tasks.append(make_task(row))
        return Outline(tasks, **kwargs)

    return _make
