from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, tzinfo

from clockr.clock import local_today, ms_between
from clockr.model import Entry, Summary, TimerState


def total_today(
    entries_by_workspace: Mapping[int, Iterable[Entry]],
    timers: Mapping[int, TimerState],
    active_workspace: int | None,
    *,
    now: datetime,
    tz: tzinfo,
) -> int:
    """Milliseconds worked today across all workspaces.

    Counts entries that started on the current local day, plus the live
    portion of the running timer whenever it started.
    """
    today = local_today(now, tz)
    total = 0
    for entries in entries_by_workspace.values():
        for e in entries:
            if e.start_time.astimezone(tz).date() == today:
                total += e.duration_ms

    if active_workspace is not None:
        timer = timers.get(active_workspace)
        if timer is not None:
            total += timer.elapsed_ms
            if timer.start_time is not None:
                total += max(0, ms_between(timer.start_time, now))
    return total


def summarize(entries: Iterable[Entry]) -> Summary:
    count = 0
    total = 0
    for e in entries:
        count += 1
        total += e.duration_ms
    average = total / count if count > 0 else 0
    return Summary(count=count, total_duration_ms=total, average_duration_ms=average)
