from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta, tzinfo

from clockr.clock import local_today, midnight, one_month_before
from clockr.errors import ValidationError
from clockr.model import DATE_SCOPES, Entry, RecordsFilterState


def parse_filter_state(workspace: str = "all", date: str = "all") -> RecordsFilterState:
    ws = workspace.strip().lower()
    if ws == "all":
        scope: str | int = "all"
    else:
        try:
            scope = int(ws)
        except ValueError as e:
            raise ValidationError(f"workspace filter must be 'all' or an id, got {workspace!r}") from e
        if scope < 1:
            raise ValidationError(f"workspace filter must be positive, got {scope}")

    d = date.strip().lower()
    if d not in DATE_SCOPES:
        raise ValidationError(f"date filter must be one of {', '.join(DATE_SCOPES)}")
    return RecordsFilterState(workspace_scope=scope, date_scope=d)  # type: ignore[arg-type]


def date_floor(state: RecordsFilterState, *, now: datetime, tz: tzinfo) -> datetime | None:
    """Earliest start time kept by the date scope, or None for 'all'."""
    if state.date_scope == "all":
        return None
    today = local_today(now, tz)
    if state.date_scope == "today":
        return midnight(today, tz)
    if state.date_scope == "week":
        return midnight(today - timedelta(days=7), tz)
    return midnight(one_month_before(today), tz)


def apply(
    entries: Sequence[Entry],
    state: RecordsFilterState,
    *,
    now: datetime,
    tz: tzinfo,
) -> list[Entry]:
    out = list(entries)

    if state.workspace_scope != "all":
        out = [e for e in out if e.workspace_id == state.workspace_scope]

    floor = date_floor(state, now=now, tz=tz)
    if floor is not None:
        out = [e for e in out if e.start_time >= floor]

    return out
