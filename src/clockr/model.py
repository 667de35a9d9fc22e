from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

DEFAULT_DESCRIPTION = "No description"

DateScope = Literal["all", "today", "week", "month"]
DATE_SCOPES: tuple[str, ...] = ("all", "today", "week", "month")


def default_workspace_name(workspace_id: int) -> str:
    return f"Workspace {workspace_id}"


def normalise_description(description: str | None) -> str:
    return (description or "").strip() or DEFAULT_DESCRIPTION


@dataclass(frozen=True)
class Workspace:
    id: int
    name: str


@dataclass(frozen=True)
class Entry:
    id: int
    workspace_id: int
    start_time: datetime
    end_time: datetime
    duration_ms: int
    description: str


@dataclass
class TimerState:
    start_time: datetime | None = None
    elapsed_ms: int = 0

    @property
    def running(self) -> bool:
        return self.start_time is not None


@dataclass(frozen=True)
class RecordsFilterState:
    workspace_scope: Literal["all"] | int = "all"
    date_scope: DateScope = "all"


@dataclass(frozen=True)
class Summary:
    count: int
    total_duration_ms: int
    average_duration_ms: float
