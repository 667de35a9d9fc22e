"""Per-workspace timers and the entries they produce.

At most one workspace runs at a time. Store calls are made before any
in-memory state changes, so a StorageError leaves the engine as it was.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from loguru import logger

from clockr.clock import ms_between, utc_now
from clockr.errors import ValidationError
from clockr.model import Entry, TimerState, normalise_description
from clockr.store.entries import EntryStore


class WorkspaceTimerEngine:
    def __init__(
        self,
        store: EntryStore,
        *,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._now = now
        self.workspace_count = 0
        self.active_workspace: int | None = None
        self.timers: dict[int, TimerState] = {}
        self.entries: dict[int, list[Entry]] = {}

    def resize(self, count: int) -> None:
        """Expose workspaces 1..count, loading state for ids not seen before.

        State for ids above `count` is kept, so growing again is lossless.
        """
        loaded: dict[int, list[Entry]] = {}
        for i in range(1, count + 1):
            if not self.entries.get(i):
                loaded[i] = self._store.list_entries(i)

        for i in range(1, count + 1):
            self.timers.setdefault(i, TimerState())
        self.entries.update(loaded)
        self.workspace_count = count

    def restore_active_timer(self) -> None:
        marker = self._store.get_active_timer()
        if marker is None:
            return
        workspace_id, start_time = marker
        for timer in self.timers.values():
            timer.start_time = None
        self.timers.setdefault(workspace_id, TimerState()).start_time = start_time
        self.active_workspace = workspace_id
        logger.debug("restored running timer for workspace {}", workspace_id)

    def _check_visible(self, workspace_id: int) -> None:
        if not 1 <= workspace_id <= self.workspace_count:
            raise ValidationError(
                f"workspace {workspace_id} out of range 1..{self.workspace_count}"
            )

    def start(self, workspace_id: int) -> Entry | None:
        """Start a workspace, flushing whichever other one is running first.

        Returns the entry flushed for the previously active workspace, if any.
        """
        self._check_visible(workspace_id)
        if self.active_workspace == workspace_id:
            return None

        flushed = None
        if self.active_workspace is not None:
            flushed = self.stop(self.active_workspace)

        start_time = self._now()
        self._store.set_active_timer(workspace_id, start_time)
        self.timers[workspace_id].start_time = start_time
        self.active_workspace = workspace_id
        logger.info("started workspace {}", workspace_id)
        return flushed

    def stop(self, workspace_id: int, description: str = "") -> Entry | None:
        timer = self.timers.get(workspace_id)
        if timer is None or timer.start_time is None:
            return None

        start_time = timer.start_time
        end_time = max(self._now(), start_time)
        duration_ms = timer.elapsed_ms + ms_between(start_time, end_time)
        desc = normalise_description(description)

        with self._store.atomic():
            entry_id = self._store.create_entry(
                workspace_id, start_time, end_time, duration_ms, desc
            )
            self._store.clear_active_timer()

        entry = Entry(
            id=entry_id,
            workspace_id=workspace_id,
            start_time=start_time,
            end_time=end_time,
            duration_ms=duration_ms,
            description=desc,
        )
        self.entries.setdefault(workspace_id, []).insert(0, entry)
        timer.start_time = None
        timer.elapsed_ms = 0
        if self.active_workspace == workspace_id:
            self.active_workspace = None
        logger.info("stopped workspace {} after {} ms", workspace_id, duration_ms)
        return entry

    def stop_active(self, description: str = "") -> Entry | None:
        if self.active_workspace is None:
            return None
        return self.stop(self.active_workspace, description)

    def toggle(self, workspace_id: int, description: str = "") -> Entry | None:
        if self.active_workspace == workspace_id:
            return self.stop(workspace_id, description)
        return self.start(workspace_id)

    def current_elapsed(self, workspace_id: int) -> int:
        timer = self.timers.get(workspace_id)
        if timer is None:
            return 0
        if timer.start_time is None:
            return timer.elapsed_ms
        return timer.elapsed_ms + max(0, ms_between(timer.start_time, self._now()))

    def running_workspaces(self) -> list[int]:
        return [wid for wid, t in sorted(self.timers.items()) if t.running]

    def visible_entries(self) -> dict[int, list[Entry]]:
        return {i: self.entries.get(i, []) for i in range(1, self.workspace_count + 1)}

    def _require_entry(self, entry_id: int) -> Entry:
        entry = self._store.get_entry(entry_id)
        if entry is None:
            raise ValidationError(f"no entry with id {entry_id}")
        return entry

    def edit_description(self, entry_id: int, description: str) -> Entry:
        entry = self._require_entry(entry_id)
        desc = normalise_description(description)
        self._store.update_entry_description(entry_id, desc)

        updated = replace(entry, description=desc)
        items = self.entries.get(entry.workspace_id, [])
        for i, e in enumerate(items):
            if e.id == entry_id:
                items[i] = replace(e, description=desc)
                updated = items[i]
                break
        return updated

    def delete_entry(self, entry_id: int) -> None:
        entry = self._require_entry(entry_id)
        self._store.delete_entry(entry_id)
        items = self.entries.get(entry.workspace_id)
        if items is not None:
            self.entries[entry.workspace_id] = [e for e in items if e.id != entry_id]
        logger.info("deleted entry {}", entry_id)

    def clear_all(self) -> None:
        """Delete every entry. A running timer is discarded, not flushed."""
        with self._store.atomic():
            self._store.delete_all_entries()
            self._store.clear_active_timer()

        if self.active_workspace is not None:
            logger.info("discarded running timer for workspace {}", self.active_workspace)
        for wid in self.entries:
            self.entries[wid] = []
        for wid in self.timers:
            self.timers[wid] = TimerState()
        self.active_workspace = None
        logger.info("cleared all entries")
