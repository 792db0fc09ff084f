import asyncio
import tempfile
import threading
import time
import unittest
from pathlib import Path

from skdaemon.errors import ProjectLoadError
from skdaemon.models import ProjectState
from skdaemon.project_manager import ProjectManager


class _FakeProjectModel:
    def __init__(self) -> None:
        self.module = "MyApp"
        self.fail_with: Exception | None = None
        self.delay = 0.0
        self.loads = 0
        self._active = 0
        self.max_active = 0
        self._guard = threading.Lock()

    def load(self, project_file: Path) -> ProjectState:
        with self._guard:
            self._active += 1
            self.max_active = max(self.max_active, self._active)
        try:
            if self.delay:
                time.sleep(self.delay)
            self.loads += 1
            if self.fail_with is not None:
                raise self.fail_with
            return ProjectState(
                project_file=str(project_file),
                module_name=self.module,
                sdk_root="/sdk",
                source_file_paths=(f"/src/{self.module}.swift",),
            )
        finally:
            with self._guard:
                self._active -= 1


class ProjectManagerTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.model = _FakeProjectModel()
        self.manager = ProjectManager(Path("/tmp/project/skdaemon.yaml"), model=self.model)

    async def test_current_before_load_raises(self) -> None:
        self.assertFalse(self.manager.is_loaded)
        with self.assertRaises(RuntimeError):
            _ = self.manager.current

    async def test_initial_load_publishes_state(self) -> None:
        state = await self.manager.load()
        self.assertIs(self.manager.current, state)
        self.assertEqual(state.module_name, "MyApp")

    async def test_initial_load_failure_propagates(self) -> None:
        self.model.fail_with = ProjectLoadError("/tmp/project/skdaemon.yaml", "missing 'module'")
        with self.assertRaises(ProjectLoadError):
            await self.manager.load()

    async def test_refresh_replaces_snapshot(self) -> None:
        before = await self.manager.load()
        self.model.module = "Renamed"

        ok = await self.manager.refresh(trigger="test")

        self.assertTrue(ok)
        after = self.manager.current
        self.assertIsNot(after, before)
        self.assertEqual(after.module_name, "Renamed")
        self.assertEqual(before.module_name, "MyApp")
        self.assertEqual(self.manager.refresh_count, 1)

    async def test_failed_refresh_keeps_previous_state(self) -> None:
        before = await self.manager.load()
        self.model.fail_with = ProjectLoadError("/tmp/project/skdaemon.yaml", "invalid YAML")

        with self.assertLogs("skdaemon.project", level="ERROR"):
            ok = await self.manager.refresh()

        self.assertFalse(ok)
        self.assertIs(self.manager.current, before)
        self.assertIn("invalid YAML", self.manager.last_error)

    async def test_unexpected_refresh_error_is_swallowed(self) -> None:
        before = await self.manager.load()
        self.model.fail_with = KeyError("boom")

        with self.assertLogs("skdaemon.project", level="ERROR"):
            self.assertFalse(await self.manager.refresh())
        self.assertIs(self.manager.current, before)

    async def test_refreshes_are_serialized(self) -> None:
        await self.manager.load()
        self.model.delay = 0.02

        results = await asyncio.gather(*(self.manager.refresh() for _ in range(4)))

        self.assertEqual(results, [True, True, True, True])
        self.assertEqual(self.model.max_active, 1)

    async def test_readers_see_old_state_while_refresh_runs(self) -> None:
        before = await self.manager.load()
        self.model.delay = 0.05
        self.model.module = "Next"

        refresh = asyncio.create_task(self.manager.refresh())
        await asyncio.sleep(0.01)
        self.assertTrue(self.manager.is_refreshing)
        self.assertIs(self.manager.current, before)

        await refresh
        self.assertEqual(self.manager.current.module_name, "Next")


class ProjectManagerWithYamlTests(unittest.IsolatedAsyncioTestCase):
    async def test_reloads_definition_from_disk(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            project_file = Path(tmp) / "skdaemon.yaml"
            project_file.write_text("module: First\nsdk: /sdk\n", encoding="utf-8")
            manager = ProjectManager(project_file)
            await manager.load()

            project_file.write_text("module: Second\nsdk: /sdk\n", encoding="utf-8")
            self.assertTrue(await manager.refresh())
            self.assertEqual(manager.current.module_name, "Second")

            project_file.write_text("sdk: /sdk\n", encoding="utf-8")
            with self.assertLogs("skdaemon.project", level="ERROR"):
                self.assertFalse(await manager.refresh())
            self.assertEqual(manager.current.module_name, "Second")


if __name__ == "__main__":
    unittest.main()
