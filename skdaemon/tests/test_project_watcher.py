import asyncio
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from watchfiles import Change

from skdaemon.services import project_watcher
from skdaemon.services.project_watcher import ProjectWatcher, WatcherState


class _FakeProjectManager:
    def __init__(self, project_file: Path, fail: bool = False) -> None:
        self.project_file = project_file
        self.fail = fail
        self.refreshes: list[str] = []
        self.states_seen: list[WatcherState] = []
        self.watcher: ProjectWatcher | None = None

    async def refresh(self, trigger: str = "watcher") -> bool:
        self.refreshes.append(trigger)
        if self.watcher is not None:
            self.states_seen.append(self.watcher.state)
        if self.fail:
            raise RuntimeError("refresh exploded")
        return True


def _fake_awatch(batches):
    async def fake(*paths, stop_event=None, recursive=True):
        for batch in batches:
            yield batch
        await stop_event.wait()

    return fake


async def _wait_for(predicate, timeout: float = 1.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


class ProjectWatcherTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmpdir.name)
        self.project_file = self.root / "skdaemon.yaml"
        self.project_file.write_text("module: MyApp\nsdk: /sdk\n", encoding="utf-8")

    async def asyncTearDown(self) -> None:
        self.tmpdir.cleanup()

    async def test_refreshes_once_per_relevant_batch(self) -> None:
        manager = _FakeProjectManager(self.project_file)
        watcher = ProjectWatcher(manager)
        manager.watcher = watcher
        batches = [
            {(Change.modified, str(self.root / "notes.txt"))},
            {(Change.modified, str(self.project_file))},
            {(Change.added, str(self.project_file)), (Change.modified, str(self.project_file))},
        ]

        with patch.object(project_watcher, "awatch", _fake_awatch(batches)):
            await watcher.start()
            self.assertTrue(watcher.is_running)
            await _wait_for(lambda: len(manager.refreshes) == 2)
            await watcher.stop()

        self.assertEqual(manager.refreshes, ["watcher", "watcher"])
        self.assertEqual(manager.states_seen, [WatcherState.REFRESHING, WatcherState.REFRESHING])
        self.assertEqual(watcher.state, WatcherState.STOPPED)

    async def test_refresh_error_keeps_watching(self) -> None:
        manager = _FakeProjectManager(self.project_file, fail=True)
        watcher = ProjectWatcher(manager)
        batches = [
            {(Change.modified, str(self.project_file))},
            {(Change.modified, str(self.project_file))},
        ]

        with patch.object(project_watcher, "awatch", _fake_awatch(batches)):
            with self.assertLogs("skdaemon.watcher", level="ERROR"):
                await watcher.start()
                await _wait_for(lambda: len(manager.refreshes) == 2)
            self.assertEqual(watcher.state, WatcherState.WATCHING)
            await watcher.stop()

        self.assertFalse(watcher.is_running)

    async def test_resubscribes_after_watch_error(self) -> None:
        manager = _FakeProjectManager(self.project_file)
        watcher = ProjectWatcher(manager, retry_delay=0.01)
        calls = []

        async def flaky_awatch(*paths, stop_event=None, recursive=True):
            calls.append(paths)
            if len(calls) == 1:
                raise OSError("watch handle lost")
            yield {(Change.modified, str(self.project_file))}
            await stop_event.wait()

        with patch.object(project_watcher, "awatch", flaky_awatch):
            with self.assertLogs("skdaemon.watcher", level="ERROR"):
                await watcher.start()
                await _wait_for(lambda: len(manager.refreshes) == 1)
            self.assertEqual(len(calls), 2)
            self.assertEqual(watcher.state, WatcherState.WATCHING)
            await watcher.stop()

        self.assertEqual(watcher.state, WatcherState.STOPPED)

    async def test_missing_directory_waits_until_it_appears(self) -> None:
        project_file = self.root / "later" / "skdaemon.yaml"
        manager = _FakeProjectManager(project_file)
        watcher = ProjectWatcher(manager, retry_delay=0.01)
        calls = []

        async def fake_awatch(*paths, stop_event=None, recursive=True):
            calls.append(paths)
            yield {(Change.added, str(project_file))}
            await stop_event.wait()

        with patch.object(project_watcher, "awatch", fake_awatch):
            with self.assertLogs("skdaemon.watcher", level="WARNING"):
                await watcher.start()
                await asyncio.sleep(0.05)
            self.assertTrue(watcher.is_running)
            self.assertEqual(calls, [])
            self.assertEqual(manager.refreshes, [])

            project_file.parent.mkdir()
            await _wait_for(lambda: len(manager.refreshes) == 1)
            await watcher.stop()

        self.assertFalse(watcher.is_running)

    async def test_start_twice_is_ignored(self) -> None:
        manager = _FakeProjectManager(self.project_file)
        watcher = ProjectWatcher(manager)

        with patch.object(project_watcher, "awatch", _fake_awatch([])):
            await watcher.start()
            with self.assertLogs("skdaemon.watcher", level="WARNING"):
                await watcher.start()
            await watcher.stop()


if __name__ == "__main__":
    unittest.main()
