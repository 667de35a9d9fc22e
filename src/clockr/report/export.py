"""CSV export of time entries.

Rows are rendered in the given local timezone and sorted newest first by
their rendered date and start time. Workspace names and descriptions are
always quoted; every other field is written bare.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, tzinfo
from pathlib import Path

from clockr.clock import format_duration, local_today
from clockr.errors import EmptyExportError
from clockr.model import Entry, default_workspace_name

HEADER = [
    "Workspace",
    "Date",
    "Start Time",
    "End Time",
    "Duration",
    "Duration (seconds)",
    "Description",
]


@dataclass(frozen=True)
class ExportRow:
    workspace: str
    date: str
    start_time: str
    end_time: str
    duration: str
    duration_seconds: int
    description: str


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def _row_for(entry: Entry, workspace: str, tz: tzinfo) -> ExportRow:
    start = entry.start_time.astimezone(tz)
    end = entry.end_time.astimezone(tz)
    return ExportRow(
        workspace=workspace,
        date=start.date().isoformat(),
        start_time=start.strftime("%H:%M:%S"),
        end_time=end.strftime("%H:%M:%S"),
        duration=format_duration(entry.duration_ms),
        duration_seconds=entry.duration_ms // 1000,
        description=entry.description,
    )


def build_rows(
    entries_by_workspace: Mapping[int, Iterable[Entry]],
    workspace_names: Mapping[int, str],
    *,
    tz: tzinfo,
) -> list[ExportRow]:
    rows: list[ExportRow] = []
    for wid, entries in entries_by_workspace.items():
        name = workspace_names.get(wid) or default_workspace_name(wid)
        rows.extend(_row_for(e, name, tz) for e in entries)
    rows.sort(key=lambda r: (r.date, r.start_time), reverse=True)
    return rows


def render_csv(rows: list[ExportRow]) -> str:
    if not rows:
        raise EmptyExportError()

    lines = [",".join(HEADER)]
    for r in rows:
        lines.append(
            ",".join(
                [
                    _quote(r.workspace),
                    r.date,
                    r.start_time,
                    r.end_time,
                    r.duration,
                    str(r.duration_seconds),
                    _quote(r.description),
                ]
            )
        )
    return "\n".join(lines)


def export_csv(
    entries_by_workspace: Mapping[int, Iterable[Entry]],
    workspace_names: Mapping[int, str],
    *,
    tz: tzinfo,
) -> str:
    return render_csv(build_rows(entries_by_workspace, workspace_names, tz=tz))


def default_export_name(now: datetime, tz: tzinfo) -> str:
    return f"clockr-export-{local_today(now, tz).isoformat()}.csv"


def write_csv(path: str | Path, text: str) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8", newline="")
    return p
