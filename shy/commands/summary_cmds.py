from __future__ import annotations

import datetime as dt
from collections.abc import Callable
from pathlib import Path

import typer
from rich import print
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..store import CommandEvent, ContextSummary, HistoryStore
from ..store.summary import (
    bucket_by,
    bucket_label,
    check_bucket_size,
    day_bounds,
    group_by_context,
    ordered_branches,
    ordered_contexts,
)
from .common import exit_on_error

StoreFactory = Callable[[str | None], HistoryStore]


def tilde_path(path: str) -> str:
    home = str(Path.home())
    if path == home:
        return "~"
    if path.startswith(home + "/"):
        return "~" + path[len(home) :]
    return path


def format_span(summary: ContextSummary) -> str:
    first = dt.datetime.fromtimestamp(summary.first_time).strftime("%H:%M")
    last = dt.datetime.fromtimestamp(summary.last_time).strftime("%H:%M")
    return f"{first}-{last}"


def format_span_duration(seconds: int) -> str:
    hours, remainder = divmod(seconds, 3600)
    minutes = remainder // 60
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m"
    return "<1m"


def summary_table(summaries: list[ContextSummary], title: str) -> Table:
    table = Table(title=title, title_justify="left")
    table.add_column("Directory")
    table.add_column("Branch")
    table.add_column("Commands", justify="right")
    table.add_column("Time Span")
    table.add_column("Duration")
    for item in summaries:
        table.add_row(
            escape(tilde_path(item.working_dir)),
            escape(item.git_branch or "-"),
            str(item.command_count),
            format_span(item),
            format_span_duration(item.span_seconds),
        )
    return table


def tabsum_cmd(
    *,
    store_from_path: StoreFactory,
    db_path: str | None,
    date: str,
    console: Console | None = None,
) -> None:
    with exit_on_error():
        start, end = day_bounds(date)
        store = store_from_path(db_path)
        try:
            summaries = store.context_summary(start, end)
        finally:
            store.close()

    day = dt.datetime.fromtimestamp(start).date().isoformat()
    title = f"Yesterday's Work Summary - {day}" if date == "yesterday" else f"Work Summary - {day}"
    if not summaries:
        print(f"[bold]{title}[/bold]\n\nNo commands found for this date.")
        return
    (console or Console()).print(summary_table(summaries, title))
    total = sum(item.command_count for item in summaries)
    plural = "" if len(summaries) == 1 else "s"
    print(f"Total: {total} commands across {len(summaries)} context{plural}")


def _first_line(text: str) -> str:
    head, newline, _ = text.partition("\n")
    return f"{head} ↵" if newline else text


def _event_time(timestamp: int, size: str) -> str:
    moment = dt.datetime.fromtimestamp(timestamp)
    if size == "hour":
        return moment.strftime(":%M")
    if size == "week":
        return f"{moment:%b} {moment.day} {moment:%I:%M %p}"
    return moment.strftime("%I:%M %p")


def _event_line(event: CommandEvent, size: str) -> str:
    return f"    {_event_time(event.timestamp, size)}  {_first_line(event.command_text)}"


def format_timeline(
    events: list[CommandEvent],
    *,
    day: str,
    size: str = "hour",
    all_commands: bool = False,
    uniq_commands: bool = False,
    multi_commands: bool = False,
) -> str:
    """Render a day's events per context and branch, bucketed by ``size``."""

    title = f"Work Summary - {day}"
    rule = "=" * max(40 - len(title) // 2, 0)
    lines = ["", f"{rule} {title} {rule}", ""]
    grouped = group_by_context(events)
    if not grouped:
        lines.append(f"No commands found for {day}")
        return "\n".join(lines) + "\n"

    for key in ordered_contexts(grouped):
        working_dir, git_repo = key
        branches = grouped[key]
        for branch in ordered_branches(branches):
            place = tilde_path(working_dir)
            lines.append(f"{place}:{branch}" if git_repo else place)
            for bucket in bucket_by(branches[branch], size):
                label = bucket_label(bucket)
                lines.append(f"  {label} {'-' * (78 - len(label))}")
                if all_commands:
                    lines.extend(_event_line(event, size) for event in bucket.commands)
                if multi_commands:
                    repeated = sorted(bucket.counts.items(), key=lambda item: -item[1])
                    lines.extend(
                        f"    {f'⟳ {count}':<4} {_first_line(text)}"
                        for text, count in repeated
                        if count > 1
                    )
                if uniq_commands:
                    lines.extend(
                        _event_line(event, size)
                        for event in bucket.commands
                        if bucket.counts[event.command_text] == 1
                    )
                if not (all_commands or uniq_commands or multi_commands):
                    lines.append(f"    {len(bucket.commands)} commands")
                lines.append("")
    return "\n".join(lines) + "\n"


def summary_cmd(
    *,
    store_from_path: StoreFactory,
    db_path: str | None,
    date: str,
    bucket: str,
    all_commands: bool,
    uniq_commands: bool,
    multi_commands: bool,
) -> None:
    with exit_on_error():
        size = check_bucket_size(bucket)
        start, end = day_bounds(date)
        store = store_from_path(db_path)
        try:
            events = store.list_in_range(start, end)
        finally:
            store.close()

    day = dt.datetime.fromtimestamp(start).date().isoformat()
    typer.echo(
        format_timeline(
            events,
            day=day,
            size=size,
            all_commands=all_commands,
            uniq_commands=uniq_commands,
            multi_commands=multi_commands,
        ),
        nl=False,
    )
