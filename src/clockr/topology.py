from __future__ import annotations

from loguru import logger

from clockr.engine import WorkspaceTimerEngine
from clockr.errors import ValidationError
from clockr.model import default_workspace_name
from clockr.store.entries import EntryStore

MIN_WORKSPACES = 1
MAX_WORKSPACES = 4


class WorkspaceTopology:
    """Workspace count and names, kept in step with the store and the engine."""

    def __init__(self, store: EntryStore, engine: WorkspaceTimerEngine) -> None:
        self._store = store
        self._engine = engine
        self.count = MIN_WORKSPACES
        self.names: dict[int, str] = {}

    def load(self) -> None:
        stored = self._store.get_workspace_count()
        count = stored if stored is not None else MIN_WORKSPACES
        count = min(max(count, MIN_WORKSPACES), MAX_WORKSPACES)

        names = {w.id: w.name for w in self._store.list_workspaces()}
        self._ensure_workspaces(names, count)

        self.names = names
        self.count = count
        self._engine.resize(count)
        self._engine.restore_active_timer()

    def _ensure_workspaces(self, names: dict[int, str], count: int) -> None:
        missing = [i for i in range(1, count + 1) if i not in names]
        if not missing:
            return
        with self._store.atomic():
            for i in missing:
                self._store.upsert_workspace(i, default_workspace_name(i))
        for i in missing:
            names[i] = default_workspace_name(i)

    def visible_ids(self) -> list[int]:
        return list(range(1, self.count + 1))

    def name(self, workspace_id: int) -> str:
        return self.names.get(workspace_id) or default_workspace_name(workspace_id)

    def visible_names(self) -> dict[int, str]:
        return {i: self.name(i) for i in self.visible_ids()}

    def set_workspace_count(self, new_count: int) -> None:
        if not MIN_WORKSPACES <= new_count <= MAX_WORKSPACES:
            raise ValidationError(
                f"workspace count must be between {MIN_WORKSPACES} and {MAX_WORKSPACES}"
            )

        # Flush first so no running interval is lost on resize.
        self._engine.stop_active()

        names = dict(self.names)
        with self._store.atomic():
            self._ensure_workspaces(names, new_count)
            self._store.set_workspace_count(new_count)

        self.names = names
        self._engine.resize(new_count)
        self.count = new_count
        logger.info("workspace count set to {}", new_count)

    def rename_workspace(self, workspace_id: int, name: str) -> str:
        if not 1 <= workspace_id <= self.count:
            raise ValidationError(f"workspace {workspace_id} out of range 1..{self.count}")
        new_name = name.strip() or default_workspace_name(workspace_id)
        self._store.upsert_workspace(workspace_id, new_name)
        self.names[workspace_id] = new_name
        return new_name
