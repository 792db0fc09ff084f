"""Project definition watcher using watchfiles.

Watches the directory holding the project definition file and asks the
ProjectManager to refresh whenever that file changes.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import Optional

from watchfiles import Change, awatch

logger = logging.getLogger("skdaemon.watcher")


class WatcherState(str, Enum):
    STOPPED = "stopped"
    WATCHING = "watching"
    REFRESHING = "refreshing"


class ProjectWatcher:
    """Background watcher that triggers a project refresh on change.

    Changes arriving while a refresh runs are batched by `awatch` and yield a
    single follow-up refresh.
    """

    def __init__(self, project_manager, retry_delay: float = 1.0):
        self.project_manager = project_manager
        self.retry_delay = retry_delay
        self.state = WatcherState.STOPPED
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def is_running(self) -> bool:
        return self.state != WatcherState.STOPPED

    async def start(self) -> None:
        if self.is_running:
            logger.warning("Project watcher already running")
            return
        self._stop_event = asyncio.Event()
        self.state = WatcherState.WATCHING
        self._task = asyncio.create_task(self._watch_loop())
        logger.info(f"Monitoring {self.project_manager.project_file} for changes")

    async def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self.state = WatcherState.STOPPED
        logger.info("Project watcher stopped")

    def _is_project_change(self, changes: set[tuple[Change, str]]) -> bool:
        target = self.project_manager.project_file.resolve(strict=False)
        for change_type, path_str in changes:
            path = Path(path_str).resolve(strict=False)
            if path != target:
                continue
            if change_type in (Change.added, Change.modified, Change.deleted):
                return True
        return False

    async def _watch_loop(self) -> None:
        watch_dir = self.project_manager.project_file.resolve(strict=False).parent
        try:
            while not self._stop_event.is_set():
                if not watch_dir.exists():
                    logger.warning(f"Project directory {watch_dir} does not exist, retrying in {self.retry_delay}s")
                    await self._wait_before_retry()
                    continue
                try:
                    async for changes in awatch(watch_dir, stop_event=self._stop_event, recursive=False):
                        if not self._is_project_change(changes):
                            continue
                        self.state = WatcherState.REFRESHING
                        logger.info(f"Refreshing project due to change in: {self.project_manager.project_file}")
                        try:
                            await self.project_manager.refresh(trigger="watcher")
                        except Exception as e:
                            logger.error(f"Error refreshing project: {e}")
                        finally:
                            self.state = WatcherState.WATCHING
                except Exception as e:
                    logger.error(f"Project watcher error, resubscribing in {self.retry_delay}s: {e}")
                    self.state = WatcherState.WATCHING
                    await self._wait_before_retry()
        except asyncio.CancelledError:
            logger.info("Project watcher task cancelled")
        finally:
            self.state = WatcherState.STOPPED

    async def _wait_before_retry(self) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.retry_delay)
        except asyncio.TimeoutError:
            pass
