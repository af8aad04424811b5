from __future__ import annotations

import logging
from pathlib import Path

import typer

from . import __version__
from .commands.common import session_id
from .commands.history_cmds import (
    context_cmd,
    delete_cmd,
    fc_cmd,
    fzf_cmd,
    insert_cmd,
    last_command_cmd,
    like_recent_after_cmd,
    like_recent_cmd,
    list_all_cmd,
    list_cmd,
)
from .commands.session_cmds import (
    cleanup_session_cmd,
    close_session_cmd,
    db_current_cmd,
    db_pop_cmd,
    db_push_cmd,
    db_stack_cmd,
    init_db_cmd,
)
from .commands.star_cmds import star_add_cmd, star_list_cmd, star_recent_cmd, star_remove_cmd
from .commands.summary_cmds import summary_cmd, tabsum_cmd
from .config import load_config
from .replay import CommandExecutor, EditorInvoker, ShellExecutor, SubprocessEditor
from .session_stack import SessionRouter, resolve_db_path
from .store import HistoryStore

app = typer.Typer(help="shy: shell history recorder")
db_app = typer.Typer(help="Per-session history database stack")
star_app = typer.Typer(help="Star commands worth keeping", invoke_without_command=True)
app.add_typer(db_app, name="db")
app.add_typer(star_app, name="star")

RANGE_ARGS = {"ignore_unknown_options": True, "allow_extra_args": False}


@app.callback()
def _root(
    verbose: bool = typer.Option(False, "--verbose", help="Log debug output to stderr"),
) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
        )


def _store(db_path: str | None) -> HistoryStore:
    cfg = load_config()
    path = resolve_db_path(db_path, session_id(), cfg)
    return HistoryStore(path, busy_timeout_ms=cfg.busy_timeout_ms)


def _unchecked_store(db_path: str | None) -> HistoryStore:
    cfg = load_config()
    path = resolve_db_path(db_path, session_id(), cfg)
    return HistoryStore(path, busy_timeout_ms=cfg.busy_timeout_ms, check_schema=False)


def _router() -> SessionRouter:
    return SessionRouter(load_config().sessions_dir)


def _default_db_path() -> str:
    return str(load_config().db_path)


def _editor(name: str | None) -> EditorInvoker:
    return SubprocessEditor(name or load_config().resolved_editor())


def _executor() -> CommandExecutor:
    return ShellExecutor()


@app.command("insert")
def insert(
    command: str = typer.Option(..., "--command", help="Command text"),
    directory: str = typer.Option(..., "--dir", help="Working directory"),
    status: int = typer.Option(0, "--status", help="Exit status"),
    git_repo: str = typer.Option(None, "--git-repo", help="Git repository (auto-detected)"),
    git_branch: str = typer.Option(None, "--git-branch", help="Git branch (auto-detected)"),
    timestamp: int = typer.Option(None, "--timestamp", help="Unix timestamp (default: now)"),
    duration: int = typer.Option(None, "--duration", help="Duration in milliseconds"),
    source_app: str = typer.Option(None, "--source-app", help="Shell name, e.g. zsh"),
    source_pid: int = typer.Option(None, "--source-pid", help="Shell process id"),
    best_effort: bool = typer.Option(
        False, "--best-effort", help="Log failures instead of exiting non-zero"
    ),
    db_path: str = typer.Option(None, "--db", help="Path to SQLite database"),
) -> None:
    """Record a command in the history store."""

    insert_cmd(
        store_from_path=_store,
        db_path=db_path,
        cfg=load_config(),
        command=command,
        directory=directory,
        status=status,
        git_repo=git_repo,
        git_branch=git_branch,
        timestamp=timestamp,
        duration_ms=duration,
        source_app=source_app,
        source_pid=source_pid,
        best_effort=best_effort,
    )


@app.command("list")
def list_commands(
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum number of commands (0 = all)"),
    fmt: str = typer.Option(
        None, "--fmt", help="Comma-separated columns: timestamp,status,pwd,cmd,gb,gr,durs,durms"
    ),
    today: bool = typer.Option(False, "--today", help="Only commands from today"),
    yesterday: bool = typer.Option(False, "--yesterday", help="Only commands from yesterday"),
    this_week: bool = typer.Option(False, "--this-week", help="Only commands from this week"),
    last_week: bool = typer.Option(False, "--last-week", help="Only commands from last week"),
    session: str = typer.Option(None, "--session", help="Filter by session (app or app:pid)"),
    current_session: bool = typer.Option(
        False, "--current-session", help="Filter by the current shell session"
    ),
    pwd: bool = typer.Option(False, "--pwd", help="Only commands run in this directory"),
    db_path: str = typer.Option(None, "--db", help="Path to SQLite database"),
) -> None:
    """List recent commands, oldest first."""

    list_cmd(
        store_from_path=_store,
        db_path=db_path,
        limit=limit,
        fmt=fmt,
        today=today,
        yesterday=yesterday,
        this_week=this_week,
        last_week=last_week,
        session=session,
        current_session=current_session,
        pwd=pwd,
    )


@app.command("fc", context_settings=RANGE_ARGS)
def fc(
    args: list[str] = typer.Argument(None, help="[old=new ...] [first [last]]"),
    list_mode: bool = typer.Option(False, "-l", "--list", help="List instead of editing"),
    no_numbers: bool = typer.Option(False, "-n", "--no-numbers", help="Hide event numbers"),
    reverse: bool = typer.Option(False, "-r", "--reverse", help="Newest first"),
    show_time: bool = typer.Option(False, "-d", "--time", help="Show timestamps"),
    show_duration: bool = typer.Option(False, "-D", "--elapsed", help="Show durations"),
    pattern: str = typer.Option(None, "-m", "--match", help="Only commands matching a glob"),
    internal: bool = typer.Option(
        False, "-I", "--internal", help="Only commands from the current session"
    ),
    last: int = typer.Option(None, "--last", help="The last N events"),
    write_file: str = typer.Option(None, "-W", "--write", help="Export history to a file"),
    append_file: str = typer.Option(None, "-A", "--append", help="Append history to a file"),
    read_file: str = typer.Option(None, "-R", "--read", help="Import history from a file"),
    push_path: str = typer.Option(None, "-p", "--push", help="Switch this shell to a database"),
    pop: bool = typer.Option(False, "-P", "--pop", help="Return to the previous database"),
    editor: str = typer.Option(None, "-e", "--editor", help="Editor for edit mode"),
    quick_exec: bool = typer.Option(False, "-s", "--quick-exec", help="Run without editing"),
    db_path: str = typer.Option(None, "--db", help="Path to SQLite database"),
) -> None:
    """List, edit and re-run, export or import history events."""

    cfg = load_config()
    editing = not (list_mode or write_file or append_file or read_file or push_path or pop)
    fc_cmd(
        store_from_path=_store,
        router=SessionRouter(cfg.sessions_dir),
        db_path=db_path,
        cfg=cfg,
        args=list(args or []),
        list_mode=list_mode,
        no_numbers=no_numbers,
        reverse=reverse,
        show_time=show_time,
        show_duration=show_duration,
        pattern=pattern,
        internal=internal,
        last=last,
        write_file=write_file,
        append_file=append_file,
        read_file=read_file,
        push_path=push_path,
        pop=pop,
        editor=_editor(editor) if editing else None,
        executor=_executor() if editing else None,
        quick_exec=quick_exec,
    )


@app.command("history", context_settings=RANGE_ARGS)
def history(
    args: list[str] = typer.Argument(None, help="[first [last]]"),
    no_numbers: bool = typer.Option(False, "-n", "--no-numbers", help="Hide event numbers"),
    reverse: bool = typer.Option(False, "-r", "--reverse", help="Newest first"),
    show_time: bool = typer.Option(False, "-d", "--time", help="Show timestamps"),
    pattern: str = typer.Option(None, "-m", "--match", help="Only commands matching a glob"),
    internal: bool = typer.Option(
        False, "-I", "--internal", help="Only commands from the current session"
    ),
    last: int = typer.Option(None, "--last", help="The last N events"),
    db_path: str = typer.Option(None, "--db", help="Path to SQLite database"),
) -> None:
    """Show numbered history (same as fc -l)."""

    cfg = load_config()
    fc_cmd(
        store_from_path=_store,
        router=SessionRouter(cfg.sessions_dir),
        db_path=db_path,
        cfg=cfg,
        args=list(args or []),
        list_mode=True,
        no_numbers=no_numbers,
        reverse=reverse,
        show_time=show_time,
        show_duration=False,
        pattern=pattern,
        internal=internal,
        last=last,
        write_file=None,
        append_file=None,
        read_file=None,
        push_path=None,
        pop=False,
        editor=None,
        executor=None,
        quick_exec=False,
    )


@app.command("delete")
def delete(
    ids: list[int] = typer.Argument(..., help="Event ids to delete"),
    db_path: str = typer.Option(None, "--db", help="Path to SQLite database"),
) -> None:
    """Delete commands by event id."""

    delete_cmd(store_from_path=_store, db_path=db_path, ids=ids)


@app.command("fzf")
def fzf(
    null: bool = typer.Option(True, "--null/--newline", help="NUL-terminate entries"),
    db_path: str = typer.Option(None, "--db", help="Path to SQLite database"),
) -> None:
    """Print deduplicated history for a fuzzy picker, newest first."""

    fzf_cmd(store_from_path=_store, db_path=db_path, null=null)


@app.command("context")
def context(
    event_id: int = typer.Argument(..., help="Event id"),
    window: int = typer.Option(None, "--window", "-w", help="Events on each side"),
    db_path: str = typer.Option(None, "--db", help="Path to SQLite database"),
) -> None:
    """Show the commands around an event."""

    context_cmd(
        store_from_path=_store,
        db_path=db_path,
        event_id=event_id,
        window=window if window is not None else load_config().context_window,
    )


@app.command("last-command")
def last_command(
    offset: int = typer.Option(1, "--offset", "-n", help="1 = most recent"),
    session: str = typer.Option(None, "--session", help="Session (app:pid)"),
    current_session: bool = typer.Option(
        False, "--current-session", help="Use the current shell session"
    ),
    db_path: str = typer.Option(None, "--db", help="Path to SQLite database"),
) -> None:
    """Print the Nth most recent command, skipping consecutive repeats."""

    last_command_cmd(
        store_from_path=_store,
        db_path=db_path,
        offset=offset,
        session=session,
        current_session=current_session,
    )


@app.command("list-all")
def list_all(
    fmt: str = typer.Option(
        None, "--fmt", help="Comma-separated columns: timestamp,status,pwd,cmd,gb,gr,durs,durms"
    ),
    session: str = typer.Option(None, "--session", help="Filter by session (app or app:pid)"),
    current_session: bool = typer.Option(
        False, "--current-session", help="Filter by the current shell session"
    ),
    db_path: str = typer.Option(None, "--db", help="Path to SQLite database"),
) -> None:
    """List every command, oldest first."""

    list_all_cmd(
        store_from_path=_store,
        db_path=db_path,
        fmt=fmt,
        session=session,
        current_session=current_session,
    )


@app.command("like-recent")
def like_recent(
    prefix: str = typer.Argument(..., help="Command prefix"),
    include_shy: bool = typer.Option(False, "--include-shy", help="Also match shy commands"),
    exclude: str = typer.Option(None, "--exclude", help="Skip commands matching a glob"),
    limit: int = typer.Option(1, "--limit", "-n", help="Maximum number of results (0 = all)"),
    pwd: bool = typer.Option(False, "--pwd", help="Prefer commands from this directory"),
    db_path: str = typer.Option(None, "--db", help="Path to SQLite database"),
) -> None:
    """Print the most recent commands starting with PREFIX."""

    like_recent_cmd(
        store_from_path=_store,
        db_path=db_path,
        prefix=prefix,
        include_shy=include_shy,
        exclude=exclude,
        limit=limit,
        pwd=pwd,
    )


@app.command("like-recent-after")
def like_recent_after(
    prefix: str = typer.Argument(..., help="Command prefix"),
    prev: str = typer.Option(..., "--prev", help="The command that was run just before"),
    include_shy: bool = typer.Option(False, "--include-shy", help="Also match shy commands"),
    exclude: str = typer.Option(None, "--exclude", help="Skip commands matching a glob"),
    limit: int = typer.Option(1, "--limit", "-n", help="Maximum number of results (0 = all)"),
    db_path: str = typer.Option(None, "--db", help="Path to SQLite database"),
) -> None:
    """Print recent commands starting with PREFIX that followed --prev."""

    like_recent_after_cmd(
        store_from_path=_store,
        db_path=db_path,
        prefix=prefix,
        prev=prev,
        include_shy=include_shy,
        exclude=exclude,
        limit=limit,
    )


@app.command("summary")
def summary(
    date: str = typer.Option("yesterday", "--date", help="today, yesterday or YYYY-MM-DD"),
    bucket: str = typer.Option("hour", "--bucket", help="hour, period, day or week"),
    all_commands: bool = typer.Option(False, "--all-commands", help="Show every command"),
    uniq_commands: bool = typer.Option(
        False, "--uniq-commands", help="Show commands run once in a bucket"
    ),
    multi_commands: bool = typer.Option(
        False, "--multi-commands", help="Show repeated commands with run counts"
    ),
    db_path: str = typer.Option(None, "--db", help="Path to SQLite database"),
) -> None:
    """Timeline of a day's work per directory and branch."""

    summary_cmd(
        store_from_path=_store,
        db_path=db_path,
        date=date,
        bucket=bucket,
        all_commands=all_commands,
        uniq_commands=uniq_commands,
        multi_commands=multi_commands,
    )


@app.command("tabsum")
def tabsum(
    date: str = typer.Option("yesterday", "--date", help="today, yesterday or YYYY-MM-DD"),
    db_path: str = typer.Option(None, "--db", help="Path to SQLite database"),
) -> None:
    """Table of a day's work by directory and branch."""

    tabsum_cmd(store_from_path=_store, db_path=db_path, date=date)


@app.command("init-db")
def init_db(
    db_path: str = typer.Option(None, "--db", help="Path to SQLite database"),
) -> None:
    """Create the database, or migrate an existing one."""

    init_db_cmd(open_unchecked=_unchecked_store, db_path=db_path)


@app.command("close-session")
def close_session(
    pid: int = typer.Option(..., "--pid", help="Shell process id"),
    db_path: str = typer.Option(None, "--db", help="Path to SQLite database"),
) -> None:
    """Mark a shell session's commands inactive."""

    close_session_cmd(store_from_path=_store, db_path=db_path, pid=pid)


@app.command("cleanup-session")
def cleanup_session(pid: int = typer.Argument(..., help="Shell process id")) -> None:
    """Remove the database stack file for a shell."""

    cleanup_session_cmd(router=_router(), pid=pid)


@db_app.command("current")
def db_current() -> None:
    """Print the database this shell uses."""

    db_current_cmd(router=_router(), session=session_id(), default_path=_default_db_path())


@db_app.command("stack")
def db_stack() -> None:
    """Print this shell's database stack, top first."""

    db_stack_cmd(router=_router(), session=session_id(), default_path=_default_db_path())


@db_app.command("push")
def db_push(path: Path = typer.Argument(..., help="Database to switch to")) -> None:
    """Switch this shell to another database (same as fc -p)."""

    db_push_cmd(router=_router(), session=session_id(), path=str(path))


@db_app.command("pop")
def db_pop() -> None:
    """Return to the previous database (same as fc -P)."""

    db_pop_cmd(router=_router(), session=session_id(), default_path=_default_db_path())


@star_app.callback()
def star(ctx: typer.Context) -> None:
    """Star the newest command of this session, or manage stars."""

    if ctx.invoked_subcommand is None:
        star_recent_cmd(store_from_path=_store, db_path=None)


@star_app.command("add")
def star_add(
    event_id: int = typer.Argument(..., help="Event id"),
    db_path: str = typer.Option(None, "--db", help="Path to SQLite database"),
) -> None:
    """Star a command."""

    star_add_cmd(store_from_path=_store, db_path=db_path, event_id=event_id)


@star_app.command("remove")
def star_remove(
    event_id: int = typer.Argument(..., help="Event id"),
    db_path: str = typer.Option(None, "--db", help="Path to SQLite database"),
) -> None:
    """Remove a star."""

    star_remove_cmd(store_from_path=_store, db_path=db_path, event_id=event_id)


@star_app.command("list")
def star_list(
    pwd: bool = typer.Option(False, "--pwd", help="Only this directory"),
    current_session: bool = typer.Option(False, "--current-session", help="Only this session"),
    db_path: str = typer.Option(None, "--db", help="Path to SQLite database"),
) -> None:
    """List starred commands."""

    star_list_cmd(
        store_from_path=_store, db_path=db_path, pwd=pwd, current_session=current_session
    )


@app.command("version")
def version() -> None:
    """Print the installed version."""

    typer.echo(__version__)


def main() -> None:
    app()
