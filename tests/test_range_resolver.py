from __future__ import annotations

from collections.abc import Callable

import pytest

from shy.errors import InvalidArgument, InvalidRange, NotFound
from shy.range_resolver import EMPTY_RANGE, is_empty_range, resolve_range
from shy.store import HistoryStore


class FakeStore:
    def __init__(self, commands: dict[int, str]):
        self.commands = commands
        self.calls: list[tuple[str, int | None]] = []

    def most_recent_id(self) -> int:
        return max(self.commands, default=0)

    def find_most_recent_matching(self, text: str) -> int:
        self.calls.append((text, None))
        return self._find(text, None)

    def find_most_recent_matching_before(self, text: str, before_id: int) -> int:
        self.calls.append((text, before_id))
        return self._find(text, before_id)

    def _find(self, text: str, before_id: int | None) -> int:
        for event_id in sorted(self.commands, reverse=True):
            if before_id is not None and event_id > before_id:
                continue
            if text in self.commands[event_id]:
                return event_id
        return 0


def _numbered(count: int) -> FakeStore:
    return FakeStore({i: f"cmd {i}" for i in range(1, count + 1)})


def test_empty_store_returns_sentinel_for_every_mode() -> None:
    empty = FakeStore({})
    for mode in ("list", "edit", "file-export"):
        assert resolve_range([], mode, empty) == EMPTY_RANGE
        assert resolve_range(["5"], mode, empty) == EMPTY_RANGE
    assert is_empty_range(EMPTY_RANGE)


def test_zero_args_mode_defaults() -> None:
    view = _numbered(50)

    assert resolve_range([], "list", view) == (35, 50)
    assert resolve_range([], "edit", view) == (50, 50)
    assert resolve_range([], "file-export", view) == (1, 50)


def test_zero_args_list_clamps_to_first_event() -> None:
    assert resolve_range([], "list", _numbered(5)) == (1, 5)


def test_single_positive_number() -> None:
    view = _numbered(100)

    assert resolve_range(["40"], "list", view) == (40, 100)
    assert resolve_range(["40"], "edit", view) == (40, 40)
    assert resolve_range(["40"], "file-export", view) == (40, 100)


def test_single_negative_offset() -> None:
    view = _numbered(100)

    assert resolve_range(["-2"], "edit", view) == (99, 99)
    assert resolve_range(["-1"], "list", view) == (100, 100)
    assert resolve_range(["-500"], "list", view) == (1, 100)


def test_single_text_argument() -> None:
    view = FakeStore({1: "make", 2: "git status", 3: "ls", 4: "git push", 5: "pwd"})

    assert resolve_range(["git"], "list", view) == (4, 5)
    assert resolve_range(["git"], "edit", view) == (4, 4)


def test_missing_text_raises_not_found() -> None:
    view = _numbered(3)

    with pytest.raises(NotFound, match="event not found: docker"):
        resolve_range(["docker"], "list", view)


def test_two_text_arguments_keep_most_recent_before_search() -> None:
    view = FakeStore({30: "docker build", 45: "git status", 60: "docker run", 75: "git commit"})

    assert resolve_range(["docker", "git"], "list", view) == (60, 75)
    assert view.calls == [("docker", None), ("git", 75)]


def test_two_numeric_arguments_are_not_widened() -> None:
    view = _numbered(100)

    assert resolve_range(["10", "20"], "list", view) == (10, 20)
    assert resolve_range(["10", "20"], "edit", view) == (10, 20)
    assert resolve_range(["-3", "-1"], "list", view) == (98, 100)
    assert resolve_range(["20", "10"], "list", view) == (20, 10)


def test_too_many_arguments() -> None:
    with pytest.raises(InvalidRange, match="too many arguments"):
        resolve_range(["1", "2", "3"], "list", _numbered(10))


def test_last_n() -> None:
    view = _numbered(50)

    assert resolve_range([], "list", view, last=5) == (46, 50)
    assert resolve_range([], "file-export", view, last=5) == (46, 50)
    assert resolve_range([], "list", view, last=500) == (1, 50)
    with pytest.raises(InvalidArgument):
        resolve_range(["3"], "list", view, last=5)
    with pytest.raises(InvalidArgument):
        resolve_range([], "list", view, last=0)


def test_default_count_override() -> None:
    assert resolve_range([], "list", _numbered(50), default_count=10) == (41, 50)


def test_against_real_store_never_writes(
    store: HistoryStore, add: Callable[..., int]
) -> None:
    for text in ("docker build", "git status", "docker run", "git commit"):
        add(text)
    before = store.count()

    assert resolve_range(["docker", "git"], "list", store) == (3, 4)
    assert resolve_range(["status"], "edit", store) == (2, 2)
    assert store.count() == before
