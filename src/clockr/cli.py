from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import tzinfo
from pathlib import Path

import typer

from clockr.clock import format_duration, resolve_timezone, utc_now
from clockr.config import ClockrConfig, load_config
from clockr.engine import WorkspaceTimerEngine
from clockr.errors import EmptyExportError, StorageError, ValidationError
from clockr.log import setup_logging
from clockr.model import Entry
from clockr.report.aggregate import summarize, total_today
from clockr.report.export import build_rows, default_export_name, render_csv, write_csv
from clockr.report.records import apply as apply_filter
from clockr.report.records import parse_filter_state
from clockr.store.entries import EntryStore
from clockr.store.paths import default_config_path
from clockr.topology import WorkspaceTopology

app = typer.Typer(add_completion=False, no_args_is_help=True)
workspaces_app = typer.Typer(add_completion=False, no_args_is_help=True)
entries_app = typer.Typer(add_completion=False, no_args_is_help=True)
config_app = typer.Typer(add_completion=False, no_args_is_help=True)
app.add_typer(workspaces_app, name="workspaces")
app.add_typer(entries_app, name="entries")
app.add_typer(config_app, name="config")

_DB_HELP = "SQLite DB path (default: config / XDG data path)"
_TZ_HELP = "IANA timezone for day boundaries and export (default: config / system)"


@dataclass
class _Session:
    store: EntryStore
    engine: WorkspaceTimerEngine
    topology: WorkspaceTopology
    tz: tzinfo


def _load_config() -> ClockrConfig:
    try:
        return load_config()
    except ValueError as e:
        typer.echo(f"invalid config: {e}")
        raise typer.Exit(code=2) from e


@contextmanager
def _errors_reported() -> Iterator[None]:
    try:
        yield
    except ValidationError as e:
        typer.echo(f"error: {e}")
        raise typer.Exit(code=2) from e
    except (StorageError, EmptyExportError) as e:
        typer.echo(f"error: {e}")
        raise typer.Exit(code=1) from e


@contextmanager
def _session(db: Path | None, tz_name: str | None) -> Iterator[_Session]:
    cfg = _load_config()
    with _errors_reported():
        tz = resolve_timezone(tz_name or cfg.timezone)
        store = EntryStore.open(db or cfg.db_path)
        try:
            engine = WorkspaceTimerEngine(store)
            topology = WorkspaceTopology(store, engine)
            topology.load()
            yield _Session(store=store, engine=engine, topology=topology, tz=tz)
        finally:
            store.close()


def _fmt_entry(e: Entry, s: _Session) -> str:
    start = e.start_time.astimezone(s.tz)
    end = e.end_time.astimezone(s.tz)
    return (
        f"{e.id:>4} | {start:%Y-%m-%d %H:%M:%S} → {end:%H:%M:%S} | "
        f"{s.topology.name(e.workspace_id)} | {format_duration(e.duration_ms)} | {e.description}"
    )


def _echo_stopped(e: Entry, s: _Session) -> None:
    typer.echo(
        f"stopped {s.topology.name(e.workspace_id)} "
        f"({format_duration(e.duration_ms)}) entry {e.id}: {e.description}"
    )


@app.callback()
def _root() -> None:
    """clockr: workspace time tracking."""


@app.command()
def start(
    workspace: int = typer.Argument(..., help="Workspace id to start"),
    db: Path | None = typer.Option(None, "--db", help=_DB_HELP),  # noqa: B008
    tz: str | None = typer.Option(None, "--tz", help=_TZ_HELP),
) -> None:
    """Start a workspace timer (stopping any other running one first)."""
    with _session(db, tz) as s, _errors_reported():
        if s.engine.active_workspace == workspace:
            typer.echo(f"already running: {s.topology.name(workspace)}")
            return
        flushed = s.engine.start(workspace)
        if flushed is not None:
            _echo_stopped(flushed, s)
        typer.echo(f"started {s.topology.name(workspace)}")


@app.command()
def stop(
    workspace: int | None = typer.Argument(None, help="Workspace id (default: the running one)"),
    description: str = typer.Option("", "--description", "-d", help="What you worked on"),
    db: Path | None = typer.Option(None, "--db", help=_DB_HELP),  # noqa: B008
    tz: str | None = typer.Option(None, "--tz", help=_TZ_HELP),
) -> None:
    """Stop a timer and record the interval as an entry."""
    with _session(db, tz) as s, _errors_reported():
        if workspace is None:
            entry = s.engine.stop_active(description)
        else:
            entry = s.engine.stop(workspace, description)
        if entry is None:
            typer.echo("not running")
            return
        _echo_stopped(entry, s)


@app.command()
def toggle(
    workspace: int = typer.Argument(..., help="Workspace id to start or stop"),
    description: str = typer.Option("", "--description", "-d", help="Used when stopping"),
    db: Path | None = typer.Option(None, "--db", help=_DB_HELP),  # noqa: B008
    tz: str | None = typer.Option(None, "--tz", help=_TZ_HELP),
) -> None:
    """Stop the workspace if it is running, otherwise start it."""
    with _session(db, tz) as s, _errors_reported():
        was_active = s.engine.active_workspace == workspace
        entry = s.engine.toggle(workspace, description)
        if entry is not None:
            _echo_stopped(entry, s)
        if not was_active:
            typer.echo(f"started {s.topology.name(workspace)}")


@app.command()
def status(
    db: Path | None = typer.Option(None, "--db", help=_DB_HELP),  # noqa: B008
    tz: str | None = typer.Option(None, "--tz", help=_TZ_HELP),
) -> None:
    """Show each workspace's timer and the total worked today."""
    with _session(db, tz) as s:
        for wid in s.topology.visible_ids():
            marker = " (running)" if s.engine.active_workspace == wid else ""
            elapsed = format_duration(s.engine.current_elapsed(wid))
            typer.echo(f"{wid}. {s.topology.name(wid)}: {elapsed}{marker}")

        total = total_today(
            s.engine.visible_entries(),
            s.engine.timers,
            s.engine.active_workspace,
            now=utc_now(),
            tz=s.tz,
        )
        typer.echo(f"today: {format_duration(total)}")


@workspaces_app.command("list")
def workspaces_list(
    db: Path | None = typer.Option(None, "--db", help=_DB_HELP),  # noqa: B008
) -> None:
    """List visible workspaces."""
    with _session(db, None) as s:
        for wid, name in s.topology.visible_names().items():
            typer.echo(f"{wid}\t{name}")


@workspaces_app.command("count")
def workspaces_count(
    count: int = typer.Argument(..., help="Number of workspaces (1-4)"),
    db: Path | None = typer.Option(None, "--db", help=_DB_HELP),  # noqa: B008
) -> None:
    """Change how many workspaces are shown. Entries are never deleted."""
    with _session(db, None) as s, _errors_reported():
        active = s.engine.active_workspace
        s.topology.set_workspace_count(count)
        if active is not None:
            typer.echo(f"stopped {s.topology.name(active)} before resizing")
        typer.echo(f"workspaces: {s.topology.count}")


@workspaces_app.command("rename")
def workspaces_rename(
    workspace: int = typer.Argument(..., help="Workspace id"),
    name: str = typer.Argument(..., help="New name (blank resets to the default)"),
    db: Path | None = typer.Option(None, "--db", help=_DB_HELP),  # noqa: B008
) -> None:
    """Rename a workspace."""
    with _session(db, None) as s, _errors_reported():
        new_name = s.topology.rename_workspace(workspace, name)
        typer.echo(f"{workspace}\t{new_name}")


@entries_app.command("list")
def entries_list(
    workspace: str = typer.Option("all", "--workspace", "-w", help="all or a workspace id"),
    date: str = typer.Option("all", "--date", help="all|today|week|month"),
    db: Path | None = typer.Option(None, "--db", help=_DB_HELP),  # noqa: B008
    tz: str | None = typer.Option(None, "--tz", help=_TZ_HELP),
) -> None:
    """List recorded entries with summary statistics."""
    with _session(db, tz) as s, _errors_reported():
        state = parse_filter_state(workspace, date)
        records = apply_filter(s.store.list_entries(None), state, now=utc_now(), tz=s.tz)
        summary = summarize(records)

        typer.echo(f"entries: {summary.count}")
        typer.echo(f"total: {format_duration(summary.total_duration_ms)}")
        typer.echo(f"average: {format_duration(summary.average_duration_ms)}")
        if not records:
            typer.echo("(no entries)")
            return
        for e in records:
            typer.echo(_fmt_entry(e, s))


@entries_app.command("edit")
def entries_edit(
    entry_id: int = typer.Argument(..., help="Entry id"),
    description: str = typer.Argument(..., help="New description"),
    db: Path | None = typer.Option(None, "--db", help=_DB_HELP),  # noqa: B008
    tz: str | None = typer.Option(None, "--tz", help=_TZ_HELP),
) -> None:
    """Change an entry's description."""
    with _session(db, tz) as s, _errors_reported():
        entry = s.engine.edit_description(entry_id, description)
        typer.echo(_fmt_entry(entry, s))


@entries_app.command("delete")
def entries_delete(
    entry_id: int = typer.Argument(..., help="Entry id"),
    db: Path | None = typer.Option(None, "--db", help=_DB_HELP),  # noqa: B008
) -> None:
    """Delete one entry."""
    with _session(db, None) as s, _errors_reported():
        s.engine.delete_entry(entry_id)
        typer.echo(f"deleted entry {entry_id}")


@entries_app.command("clear")
def entries_clear(
    yes: bool = typer.Option(
        False,
        "--yes",
        help="Actually delete every entry (explicit approval gate)",
    ),  # noqa: B008
    db: Path | None = typer.Option(None, "--db", help=_DB_HELP),  # noqa: B008
) -> None:
    """Delete all entries and discard any running timer.

    Refuses to delete anything unless `--yes` is provided.
    """
    if not yes:
        typer.echo("refusing: pass --yes to delete all entries")
        raise typer.Exit(code=2)

    with _session(db, None) as s, _errors_reported():
        s.engine.clear_all()
        typer.echo("cleared all entries")


@app.command("export")
def export(
    out: str = typer.Option(
        "",
        "--out",
        help="Where to write the CSV (default: clockr-export-<date>.csv)",
    ),  # noqa: B008
    out_dir: str = typer.Option(
        "",
        "--out-dir",
        help="Directory to write `--out` into when `--out` is a filename (default: cwd)",
    ),  # noqa: B008
    db: Path | None = typer.Option(None, "--db", help=_DB_HELP),  # noqa: B008
    tz: str | None = typer.Option(None, "--tz", help=_TZ_HELP),
) -> None:
    """Export every visible workspace's entries as CSV."""
    with _session(db, tz) as s, _errors_reported():
        rows = build_rows(s.engine.visible_entries(), s.topology.visible_names(), tz=s.tz)
        text = render_csv(rows)

        fname = out or default_export_name(utc_now(), s.tz)
        out_path = str(Path(out_dir) / fname) if out_dir and Path(fname).name == fname else fname
        write_csv(out_path, text)
        typer.echo(f"wrote {out_path} ({len(rows)} row(s))")


@config_app.command("show")
def config_show() -> None:
    """Show the effective configuration."""
    cfg = _load_config()
    typer.echo(f"config: {default_config_path()}")
    typer.echo(f"db_path: {cfg.db_path}")
    typer.echo(f"timezone: {cfg.timezone or 'local'}")
    typer.echo(f"log_level: {cfg.log_level}")


def main() -> None:
    try:
        level = load_config().log_level
    except ValueError:
        # Commands report the broken config themselves.
        level = "WARNING"
    setup_logging(level)
    app()
