from __future__ import annotations

from collections.abc import Sequence
from typing import Literal, Protocol

from .errors import InvalidArgument, InvalidRange, NotFound

Mode = Literal["list", "edit", "file-export"]

EMPTY_RANGE: tuple[int, int] = (0, -1)
LIST_DEFAULT_COUNT = 16


class StoreView(Protocol):
    def most_recent_id(self) -> int: ...

    def find_most_recent_matching(self, text: str) -> int: ...

    def find_most_recent_matching_before(self, text: str, before_id: int) -> int: ...


def is_empty_range(bounds: tuple[int, int]) -> bool:
    return bounds[0] > bounds[1]


def _parse_int(arg: str) -> int | None:
    try:
        return int(arg.strip())
    except ValueError:
        return None


def _resolve_numeric(value: int, most_recent: int) -> int:
    if value >= 0:
        return value
    return max(1, most_recent + value + 1)


def _resolve_text(store: StoreView, arg: str, *, before_id: int | None = None) -> int:
    if before_id is None:
        found = store.find_most_recent_matching(arg)
    else:
        found = store.find_most_recent_matching_before(arg, before_id)
    if found == 0:
        raise NotFound(f"event not found: {arg}")
    return found


def resolve_range(
    args: Sequence[str],
    mode: Mode,
    store: StoreView,
    *,
    last: int | None = None,
    default_count: int = LIST_DEFAULT_COUNT,
) -> tuple[int, int]:
    """Turn positional range arguments into an inclusive ``(first, last)`` pair.

    Each argument is an absolute event number, a negative offset from the most
    recent event, or text matched against command lines. ``EMPTY_RANGE`` comes
    back when the store holds no events. Never writes to ``store``.
    """

    if mode not in ("list", "edit", "file-export"):
        raise InvalidArgument(f"unknown range mode: {mode}")
    if len(args) > 2:
        raise InvalidRange("too many arguments")
    if last is not None:
        if args:
            raise InvalidArgument("--last cannot be combined with a range")
        if last <= 0:
            raise InvalidArgument("--last must be positive")

    most_recent = store.most_recent_id()
    if most_recent == 0:
        return EMPTY_RANGE

    if last is not None:
        return max(1, most_recent - last + 1), most_recent

    if not args:
        if mode == "edit":
            return most_recent, most_recent
        if mode == "file-export":
            return 1, most_recent
        return max(1, most_recent - default_count + 1), most_recent

    first_arg = args[0]
    number = _parse_int(first_arg)
    if number is None:
        first = _resolve_text(store, first_arg)
    else:
        first = _resolve_numeric(number, most_recent)

    if len(args) == 1:
        if mode == "edit":
            return first, first
        return first, most_recent

    second_arg = args[1]
    number = _parse_int(second_arg)
    if number is None:
        # Bounded by the newest event, not by ``first``.
        second = _resolve_text(store, second_arg, before_id=most_recent)
    else:
        second = _resolve_numeric(number, most_recent)
    return first, second
