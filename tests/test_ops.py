from __future__ import annotations

import json
from pathlib import Path
from typing import Callable

import pytest

from outlinectl.engine.model import Intent, Task
from outlinectl.engine.ops import (
    BACKUP_NAME,
    STORE_DIR_NAME,
    TASKS_NAME,
    UNDO_NAME,
    ParseError,
    ensure_store_dir,
    load_tasks,
    load_undo,
    read_payload,
    render_payload,
    save_tasks,
    save_undo,
)
from outlinectl.engine.scan import find_store_dir
from outlinectl.engine.undo import DeleteAction, EditAction


@pytest.fixture
def store(tmp_path: Path) -> Path:
    return ensure_store_dir(tmp_path, interactive=False)


@pytest.fixture
def sample(make_task: Callable[..., Task]) -> list[Task]:
    return [
        make_task("a", "Buy milk", tags=("errand",)),
        make_task("b", "Write report", indent=1, intent=Intent.SOON, momentum=True),
    ]


def test_save_then_load(store: Path, sample: list[Task]) -> None:
    save_tasks(store, sample)

    assert load_tasks(store) == sample
    assert (store / BACKUP_NAME).read_text(encoding="utf-8") == (store / TASKS_NAME).read_text(encoding="utf-8")


def test_payload_shape(sample: list[Task]) -> None:
    data = json.loads(render_payload(sample))

    assert data["version"] == 1
    assert [r["id"] for r in data["tasks"]] == ["a", "b"]
    assert data["tasks"][0]["meta"] == {"tags": ["errand"]}


def test_corrupt_primary_falls_back_to_backup(store: Path, sample: list[Task]) -> None:
    save_tasks(store, sample)
    (store / TASKS_NAME).write_text("{not json", encoding="utf-8")

    assert load_tasks(store) == sample


def test_undecodable_primary_falls_back_to_backup(store: Path, sample: list[Task]) -> None:
    save_tasks(store, sample)
    (store / TASKS_NAME).write_bytes(b'{"version": 1, "tasks": [\xff\xfe]}')

    with pytest.raises(ParseError):
        read_payload(store / TASKS_NAME)
    assert load_tasks(store) == sample


def test_everything_corrupt_loads_empty(store: Path) -> None:
    (store / TASKS_NAME).write_text("[", encoding="utf-8")
    (store / BACKUP_NAME).write_text('{"version": 1}', encoding="utf-8")

    assert load_tasks(store) == []


def test_missing_files_load_empty(store: Path) -> None:
    assert load_tasks(store) == []
    assert load_undo(store) == []


def test_bare_array_payload(store: Path) -> None:
    (store / TASKS_NAME).write_text(
        json.dumps([{"id": "x", "text": "legacy #Tag", "intent": "now"}]),
        encoding="utf-8",
    )

    (task,) = load_tasks(store)

    assert task.text == "legacy"
    assert task.tags == ("tag",)
    assert task.momentum is True


def test_read_payload_is_strict(tmp_path: Path) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text('{"tasks": "nope"}', encoding="utf-8")

    with pytest.raises(ParseError) as exc:
        read_payload(bad)

    assert str(bad) in str(exc.value)

    with pytest.raises(ParseError):
        read_payload(tmp_path / "missing.json")


def test_undo_sidecar_round_trip(store: Path, sample: list[Task]) -> None:
    actions = (DeleteAction(sample[0], 0), EditAction(sample[1]))

    save_undo(store, actions)

    assert tuple(load_undo(store)) == actions


def test_undo_sidecar_drops_bad_entries(store: Path, sample: list[Task]) -> None:
    save_undo(store, (EditAction(sample[0]),))
    data = json.loads((store / UNDO_NAME).read_text(encoding="utf-8"))
    data["actions"].insert(0, {"type": "mystery"})
    (store / UNDO_NAME).write_text(json.dumps(data), encoding="utf-8")

    assert load_undo(store) == [EditAction(sample[0])]


def test_unreadable_undo_sidecar_is_ignored(store: Path) -> None:
    (store / UNDO_NAME).write_text("]]", encoding="utf-8")

    assert load_undo(store) == []


# ---------------------------------------------------------------------
# Store directory
# ---------------------------------------------------------------------

def test_ensure_store_dir_prompts(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("builtins.input", lambda _prompt: "n")

    with pytest.raises(RuntimeError):
        ensure_store_dir(tmp_path, interactive=True)
    assert not (tmp_path / STORE_DIR_NAME).exists()

    monkeypatch.setattr("builtins.input", lambda _prompt: "")
    assert ensure_store_dir(tmp_path, interactive=True) == tmp_path / STORE_DIR_NAME


def test_find_store_dir_walks_up(tmp_path: Path) -> None:
    store = ensure_store_dir(tmp_path, interactive=False)
    nested = tmp_path / "x" / "y"
    nested.mkdir(parents=True)

    assert find_store_dir(nested) == store.resolve()
