"""Command line entry point: ``skdaemon start --project skdaemon.yaml``."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from skdaemon import config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="skdaemon", description="Completion daemon for text editors.")
    sub = parser.add_subparsers(dest="command", required=True)

    start = sub.add_parser("start", help="Start the completion server")
    start.add_argument("--project", required=True, help="Path to the project definition file")
    start.add_argument("--host", default=config.HOST)
    start.add_argument("--port", type=int, default=config.PORT)
    start.add_argument("--log-level", default=config.LOG_LEVEL.lower())
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    project_file = Path(args.project).expanduser().resolve(strict=False)
    if not project_file.is_file():
        print(f"Project file not found: {project_file}", file=sys.stderr)
        return 2

    config.PROJECT_FILE = project_file
    config.HOST = args.host
    config.PORT = args.port

    import uvicorn

    from skdaemon.main import app

    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level)
    return 0


if __name__ == "__main__":
    sys.exit(main())
