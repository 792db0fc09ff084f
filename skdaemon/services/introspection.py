"""Client for the external source-introspection service (SourceKitten)."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol, Sequence

from skdaemon import config
from skdaemon.errors import IntrospectionFailure
from skdaemon.models import CompletionCandidate

logger = logging.getLogger("skdaemon.introspection")


class IntrospectionClient(Protocol):
    async def complete(
        self,
        file_path: str,
        contents: str,
        byte_offset: int,
        arguments: Sequence[str],
    ) -> list[CompletionCandidate]: ...


def _candidate_from_item(item: dict[str, Any]) -> CompletionCandidate:
    module = item.get("moduleName")
    return CompletionCandidate(
        source_text=str(item.get("sourcetext") or item.get("sourceText") or ""),
        description_key=str(item.get("descriptionKey") or ""),
        module_name=str(module) if module else None,
        context_tag=str(item.get("context") or ""),
        name=str(item.get("name") or ""),
        kind=str(item.get("kind") or ""),
        type_name=str(item.get("typeName") or ""),
    )


def parse_completion_output(raw: bytes | str) -> list[CompletionCandidate]:
    """Parse the JSON array printed by `sourcekitten complete`."""
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    if not text.strip():
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise IntrospectionFailure(f"Malformed introspection output: {exc.msg}") from exc
    if not isinstance(data, list):
        raise IntrospectionFailure("Malformed introspection output: expected a list")
    return [_candidate_from_item(item) for item in data if isinstance(item, dict)]


class SourceKittenClient:
    """Runs ``sourcekitten complete`` once per request."""

    def __init__(self, binary: str | None = None):
        self.binary = binary or config.SOURCEKITTEN_BIN

    def build_command(self, contents: str, byte_offset: int, arguments: Sequence[str]) -> list[str]:
        return [
            self.binary,
            "complete",
            "--text",
            contents,
            "--offset",
            str(byte_offset),
            "--",
            *arguments,
        ]

    async def complete(
        self,
        file_path: str,
        contents: str,
        byte_offset: int,
        arguments: Sequence[str],
    ) -> list[CompletionCandidate]:
        # The buffer that was read goes in as --text; the path reaches the compiler through -c.
        cmd = self.build_command(contents, byte_offset, arguments)
        logger.debug("Running %s complete for %s at offset %d", self.binary, file_path, byte_offset)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise IntrospectionFailure(f"Could not start {self.binary}: {exc}") from exc

        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise

        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip().splitlines()
            message = detail[-1] if detail else f"exit status {proc.returncode}"
            raise IntrospectionFailure(f"Introspection failed: {message}")

        candidates = parse_completion_output(stdout)
        logger.debug("Introspection returned %d candidates for %s", len(candidates), file_path)
        return candidates
