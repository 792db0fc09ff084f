import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from skdaemon import cli, config


class CliTests(unittest.TestCase):
    def test_missing_project_file_exits_non_zero(self) -> None:
        with patch("sys.stderr"):
            self.assertEqual(cli.main(["start", "--project", "/definitely/not/here.yaml"]), 2)

    def test_start_configures_and_runs_server(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            project_file = Path(tmp) / "skdaemon.yaml"
            project_file.write_text("module: MyApp\nsdk: /sdk\n", encoding="utf-8")

            with patch.object(config, "PROJECT_FILE", None), patch.object(config, "PORT", 8081), patch(
                "uvicorn.run"
            ) as run:
                code = cli.main(["start", "--project", str(project_file), "--port", "9090"])
                self.assertEqual(config.PROJECT_FILE, project_file.resolve())
                self.assertEqual(config.PORT, 9090)

        self.assertEqual(code, 0)
        _, kwargs = run.call_args
        self.assertEqual(kwargs["port"], 9090)
        self.assertEqual(kwargs["host"], config.HOST)


if __name__ == "__main__":
    unittest.main()
