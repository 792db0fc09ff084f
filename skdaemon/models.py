"""Pydantic models shared by the router, the completion service and the pipeline."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

SUPERCLASS_CONTEXT_MARKER = "superclass"


class RelationType(IntEnum):
    THIS_CLASS = 0
    SUPER_CLASS = 1


# ── Introspection results ───────────────────────────────────────────

class CompletionCandidate(BaseModel):
    """One raw completion item as reported by the introspection service."""

    model_config = ConfigDict(frozen=True)

    source_text: str = ""
    description_key: str = ""
    module_name: Optional[str] = None
    context_tag: str = ""  # e.g. "source.codecompletion.context.superclass"
    name: str = ""
    kind: str = ""
    type_name: str = ""

    @property
    def is_inherited(self) -> bool:
        return SUPERCLASS_CONTEXT_MARKER in self.context_tag.lower()


class RenderedItem(BaseModel):
    """Editor-ready completion entry (vim complete-item shape)."""

    model_config = ConfigDict(frozen=True)

    word: str
    abbr: str
    menu: str = ""


# ── Requests ────────────────────────────────────────────────────────

class CompletionRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    file_path: str
    byte_offset: int = Field(ge=0)
    prefix: str = ""
    cache_key: str = ""
    relation_type: RelationType = RelationType.THIS_CLASS
    session_prefix: str = ""


# ── Project configuration ───────────────────────────────────────────

class ProjectState(BaseModel):
    """Immutable snapshot of the project's build configuration.

    A refresh builds a whole new instance; nothing mutates one in place.
    """

    model_config = ConfigDict(frozen=True)

    project_file: str
    module_name: str
    sdk_root: str
    platform_target: Optional[str] = None
    framework_search_paths: tuple[str, ...] = ()
    extra_compiler_flags: tuple[str, ...] = ()
    source_file_paths: tuple[str, ...] = ()
    loaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
