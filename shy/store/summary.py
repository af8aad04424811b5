from __future__ import annotations

import datetime as dt
from collections.abc import Iterable
from typing import TYPE_CHECKING

from ..errors import InvalidArgument
from .types import CommandEvent, ContextSummary, TimeBucket

if TYPE_CHECKING:
    from ._store import HistoryStore

NO_BRANCH = "No branch"
BUCKET_SIZES = ("hour", "period", "day", "week")
PERIODS = ("Morning", "Afternoon", "Evening", "Night")

# (working_dir, git_repo or "")
ContextKey = tuple[str, str]


def context_summary(store: HistoryStore, start_ts: int, end_ts: int) -> list[ContextSummary]:
    rows = store.conn.execute(
        """
        SELECT
            working_dir,
            COALESCE(git_branch, '') AS branch,
            COUNT(*) AS command_count,
            MIN(timestamp) AS first_time,
            MAX(timestamp) AS last_time
        FROM commands
        WHERE timestamp >= ? AND timestamp < ?
        GROUP BY working_dir, COALESCE(git_branch, '')
        ORDER BY (MAX(timestamp) - MIN(timestamp)) DESC, COUNT(*) DESC, working_dir ASC
        """,
        (start_ts, end_ts),
    ).fetchall()
    return [
        ContextSummary(
            working_dir=str(row["working_dir"]),
            git_branch=row["branch"] or None,
            command_count=int(row["command_count"]),
            first_time=int(row["first_time"]),
            last_time=int(row["last_time"]),
        )
        for row in rows
    ]


def day_bounds(date: str, *, today: dt.date | None = None) -> tuple[int, int]:
    """Local-time ``[start, end)`` epoch seconds for ``today``, ``yesterday`` or ``YYYY-MM-DD``."""

    today = today or dt.date.today()
    value = date.strip().lower()
    if value == "today":
        day = today
    elif value == "yesterday":
        day = today - dt.timedelta(days=1)
    else:
        try:
            day = dt.date.fromisoformat(value)
        except ValueError as exc:
            raise InvalidArgument(
                f"invalid date {date!r}: use 'today', 'yesterday' or YYYY-MM-DD"
            ) from exc
    start = dt.datetime.combine(day, dt.time.min)
    end = start + dt.timedelta(days=1)
    return int(start.timestamp()), int(end.timestamp())


def format_duration(duration_ms: int | None) -> str:
    if duration_ms is None:
        return ""
    if duration_ms < 1000:
        return f"{duration_ms}ms"
    seconds = duration_ms // 1000
    if seconds < 60:
        return f"{seconds}s"
    minutes, seconds = divmod(seconds, 60)
    return f"{minutes:02d}:{seconds:02d}"


def period_bounds(period: str, *, today: dt.date | None = None) -> tuple[int, int]:
    """``[start, end)`` for today, yesterday, this-week or last-week; weeks start Monday."""

    today = today or dt.date.today()
    if period in {"today", "yesterday"}:
        return day_bounds(period, today=today)
    monday = today - dt.timedelta(days=today.weekday())
    if period == "last-week":
        monday -= dt.timedelta(days=7)
    elif period != "this-week":
        raise InvalidArgument(f"unknown period: {period}")
    start = dt.datetime.combine(monday, dt.time.min)
    end = start + dt.timedelta(days=7)
    return int(start.timestamp()), int(end.timestamp())


def group_by_context(
    events: Iterable[CommandEvent],
) -> dict[ContextKey, dict[str, list[CommandEvent]]]:
    """Group by directory and repository, then by branch, keeping event order."""

    grouped: dict[ContextKey, dict[str, list[CommandEvent]]] = {}
    for event in events:
        key = (event.working_dir, event.git_repo or "")
        branch = event.git_branch or NO_BRANCH
        grouped.setdefault(key, {}).setdefault(branch, []).append(event)
    return grouped


def ordered_contexts(grouped: dict[ContextKey, dict[str, list[CommandEvent]]]) -> list[ContextKey]:
    return sorted(grouped)


def ordered_branches(branches: dict[str, list[CommandEvent]]) -> list[str]:
    return sorted(branches, key=lambda name: (name == NO_BRANCH, name))


def check_bucket_size(size: str) -> str:
    if size not in BUCKET_SIZES:
        raise InvalidArgument(f"unknown bucket {size!r}: use hour, period, day or week")
    return size


def period_of(hour: int) -> int:
    """Index into ``PERIODS``; the night runs from midnight to 6am."""

    if 6 <= hour < 12:
        return 0
    if 12 <= hour < 18:
        return 1
    if hour >= 18:
        return 2
    return 3


def bucket_id(timestamp: int, size: str) -> int:
    moment = dt.datetime.fromtimestamp(timestamp)
    if size == "hour":
        return moment.hour
    if size == "period":
        return period_of(moment.hour)
    if size == "day":
        return int(dt.datetime.combine(moment.date(), dt.time.min).timestamp())
    return moment.isocalendar()[1]


def bucket_by(events: Iterable[CommandEvent], size: str) -> list[TimeBucket]:
    """Local-time buckets in ascending order, each counting runs per command text."""

    check_bucket_size(size)
    buckets: dict[int, TimeBucket] = {}
    for event in events:
        key = bucket_id(event.timestamp, size)
        bucket = buckets.get(key)
        if bucket is None:
            bucket = TimeBucket(
                size=size, bucket_id=key, first_time=event.timestamp, last_time=event.timestamp
            )
            buckets[key] = bucket
        bucket.commands.append(event)
        bucket.first_time = min(bucket.first_time, event.timestamp)
        bucket.last_time = max(bucket.last_time, event.timestamp)
        bucket.counts[event.command_text] = bucket.counts.get(event.command_text, 0) + 1
    return [buckets[key] for key in sorted(buckets)]


def format_hour(hour: int) -> str:
    if hour == 0:
        return "12am"
    if hour < 12:
        return f"{hour}am"
    if hour == 12:
        return "12pm"
    return f"{hour - 12}pm"


def bucket_label(bucket: TimeBucket) -> str:
    if bucket.size == "hour":
        return format_hour(bucket.bucket_id)
    if bucket.size == "period":
        return PERIODS[bucket.bucket_id]
    if bucket.size == "day":
        return dt.datetime.fromtimestamp(bucket.bucket_id).strftime("%Y-%m-%d")
    return f"Week {bucket.bucket_id}"
