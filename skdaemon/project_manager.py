"""Project manager: owns the current ProjectState snapshot and refreshes it."""
from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Optional

from skdaemon.errors import ProjectLoadError, ProjectRefreshFailure
from skdaemon.models import ProjectState
from skdaemon.observability import record_project_refresh
from skdaemon.parsers.project_file import ProjectModel, YamlProjectModel

logger = logging.getLogger("skdaemon.project")


class ProjectManager:
    """Single owner of the published ProjectState.

    Readers take `current` once per request and keep that snapshot. A refresh
    builds a complete new ProjectState off the event loop and then swaps the
    reference; refreshes are serialized by a lock, and a failed refresh keeps
    the previous snapshot.
    """

    def __init__(self, project_file: Path, model: ProjectModel | None = None):
        self.project_file = Path(project_file)
        self.model = model or YamlProjectModel()
        self._state: Optional[ProjectState] = None
        self._refresh_lock = asyncio.Lock()
        self.refresh_count = 0
        self.last_error: str | None = None

    @property
    def current(self) -> ProjectState:
        state = self._state
        if state is None:
            raise RuntimeError("Project state has not been loaded")
        return state

    @property
    def is_loaded(self) -> bool:
        return self._state is not None

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_lock.locked()

    async def load(self) -> ProjectState:
        """Initial load at startup; errors propagate to the caller."""
        async with self._refresh_lock:
            state = await asyncio.to_thread(self.model.load, self.project_file)
            self._state = state
        logger.info(
            f"Loaded project {state.module_name} from {self.project_file} "
            f"({len(state.source_file_paths)} source files)"
        )
        return state

    async def refresh(self, trigger: str = "watcher") -> bool:
        """Re-derive the ProjectState. Returns False when the refresh failed."""
        async with self._refresh_lock:
            started = time.perf_counter()
            try:
                state = await asyncio.to_thread(self.model.load, self.project_file)
            except ProjectLoadError as exc:
                failure = ProjectRefreshFailure(exc.project_file, exc.reason)
                self._record_failure(failure, started, trigger)
                return False
            except Exception as exc:  # noqa: BLE001
                failure = ProjectRefreshFailure(str(self.project_file), repr(exc))
                self._record_failure(failure, started, trigger)
                return False

            self._state = state
            self.refresh_count += 1
            self.last_error = None

        duration_ms = (time.perf_counter() - started) * 1000.0
        record_project_refresh("success", duration_ms)
        logger.info(
            f"Refreshed project {state.module_name} ({trigger}, {duration_ms:.1f} ms, "
            f"{len(state.source_file_paths)} source files)"
        )
        return True

    def _record_failure(self, failure: ProjectRefreshFailure, started: float, trigger: str) -> None:
        self.last_error = str(failure)
        record_project_refresh("failure", (time.perf_counter() - started) * 1000.0)
        logger.error(f"Refresh failed ({trigger}), keeping previous project state: {failure}")
