"""Parse a YAML project definition file into a ProjectState.

Example definition::

    module: MyApp
    sdk: /Applications/Xcode.app/.../iPhoneSimulator.sdk
    target: x86_64-apple-ios12.0-simulator
    frameworkSearchPaths:
      - Carthage/Build/iOS
    compilerFlags:
      - -DDEBUG
    sources:
      - Sources/**/*.swift

Relative paths are resolved against the directory holding the definition file.
"""
from __future__ import annotations

import glob
from pathlib import Path
from typing import Any, Protocol

import yaml

from skdaemon import config
from skdaemon.errors import ProjectLoadError
from skdaemon.models import ProjectState

_KEY_ALIASES = {
    "module": "module",
    "moduleName": "module",
    "module_name": "module",
    "sdk": "sdk",
    "sdkRoot": "sdk",
    "sdk_root": "sdk",
    "target": "target",
    "platformTarget": "target",
    "platform_target": "target",
    "frameworkSearchPaths": "frameworks",
    "framework_search_paths": "frameworks",
    "compilerFlags": "flags",
    "compiler_flags": "flags",
    "otherSwiftFlags": "flags",
    "sources": "sources",
    "sourceFiles": "sources",
}


class ProjectModel(Protocol):
    def load(self, project_file: Path) -> ProjectState: ...


def _normalize_keys(raw: dict[str, Any]) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    for key, value in raw.items():
        canonical = _KEY_ALIASES.get(str(key))
        if canonical and canonical not in normalized:
            normalized[canonical] = value
    return normalized


def _as_str_list(value: Any, field: str, project_file: Path) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None and str(item).strip()]
    raise ProjectLoadError(str(project_file), f"'{field}' must be a string or a list of strings")


def _resolve(root: Path, raw: str) -> Path:
    candidate = Path(raw).expanduser()
    if not candidate.is_absolute():
        candidate = root / candidate
    return candidate.resolve(strict=False)


def expand_sources(root: Path, patterns: list[str]) -> tuple[str, ...]:
    """Expand source globs to absolute file paths.

    Matches of one pattern are sorted; pattern order is kept and duplicates are
    dropped at their first occurrence.
    """
    seen: set[str] = set()
    files: list[str] = []
    for pattern in patterns:
        if glob.has_magic(pattern):
            expanded = Path(pattern).expanduser()
            base = expanded if expanded.is_absolute() else root / expanded
            matches = sorted(glob.glob(str(base), recursive=True))
        else:
            matches = [str(_resolve(root, pattern))]
        for match in matches:
            path = Path(match)
            if not path.is_file():
                continue
            resolved = str(path.resolve(strict=False))
            if resolved in seen:
                continue
            seen.add(resolved)
            files.append(resolved)
    return tuple(files)


def parse_project_text(text: str, project_file: Path) -> ProjectState:
    try:
        raw = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ProjectLoadError(str(project_file), f"invalid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise ProjectLoadError(str(project_file), "top level must be a mapping")

    data = _normalize_keys(raw)
    root = project_file.resolve(strict=False).parent

    module_name = str(data.get("module") or "").strip()
    if not module_name:
        raise ProjectLoadError(str(project_file), "missing 'module'")

    sdk_root = str(data.get("sdk") or config.DEFAULT_SDK_ROOT or "").strip()
    if not sdk_root:
        raise ProjectLoadError(str(project_file), "missing 'sdk' and no SKDAEMON_SDK_ROOT default")

    target = data.get("target")
    platform_target = str(target).strip() if target else None

    frameworks = _as_str_list(data.get("frameworks"), "frameworkSearchPaths", project_file)
    flags = _as_str_list(data.get("flags"), "compilerFlags", project_file)
    sources = _as_str_list(data.get("sources"), "sources", project_file)

    return ProjectState(
        project_file=str(project_file),
        module_name=module_name,
        sdk_root=sdk_root,
        platform_target=platform_target or None,
        framework_search_paths=tuple(str(_resolve(root, p)) for p in frameworks),
        extra_compiler_flags=tuple(flags),
        source_file_paths=expand_sources(root, sources),
    )


class YamlProjectModel:
    """Project model backed by a YAML definition file on disk."""

    def load(self, project_file: Path) -> ProjectState:
        try:
            text = project_file.read_text(encoding="utf-8")
        except OSError as exc:
            raise ProjectLoadError(str(project_file), str(exc)) from exc
        return parse_project_text(text, project_file)
