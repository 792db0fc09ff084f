"""Editor-facing API: ping, project, files and complete."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from skdaemon.errors import (
    FileListUnavailable,
    InvalidOffset,
    InvalidParameter,
    MissingParameter,
)
from skdaemon.models import CompletionRequest, RelationType

logger = logging.getLogger("skdaemon.completion")

completion_router = APIRouter(tags=["completion"])


class Route(str, Enum):
    PING = "/ping"
    PROJECT = "/project"
    FILES = "/files"
    COMPLETE = "/complete"


def _get_project_manager(request: Request):
    project_manager = getattr(request.app.state, "project_manager", None)
    if project_manager is None:
        raise RuntimeError("Project manager not initialized")
    return project_manager


def _get_completion_service(request: Request):
    service = getattr(request.app.state, "completion_service", None)
    if service is None:
        raise RuntimeError("Completion service not initialized")
    return service


def parse_offset(raw: Optional[str]) -> int:
    if raw is None:
        raise MissingParameter("X-Offset", "as completion offset for completion")
    value = raw.strip()
    # Plain ASCII digits only; int() would also take "+5", "1_000" or "٣".
    if not (value.isascii() and value.isdigit()):
        raise InvalidOffset(raw)
    return int(value)


def parse_relation_type(raw: Optional[str]) -> RelationType:
    if raw is None:
        raise MissingParameter("X-Type", "as relation type (0 = this class, 1 = superclass)")
    try:
        return RelationType(int(raw.strip()))
    except ValueError as exc:
        raise InvalidParameter("X-Type", raw, "0 (this class) or 1 (superclass)") from exc


def build_completion_request(
    x_offset: Optional[str],
    x_path: Optional[str],
    x_prefix: Optional[str],
    x_cachekey: Optional[str],
    x_type: Optional[str],
    x_session_prefix: Optional[str] = None,
) -> CompletionRequest:
    offset = parse_offset(x_offset)
    if not x_path:
        raise MissingParameter("X-Path", "as path to the temporary buffer")
    if x_prefix is None:
        raise MissingParameter("X-Prefix")
    if x_cachekey is None:
        raise MissingParameter("X-Cachekey")
    relation = parse_relation_type(x_type)
    return CompletionRequest(
        file_path=x_path,
        byte_offset=offset,
        prefix=x_prefix,
        cache_key=x_cachekey,
        relation_type=relation,
        session_prefix=x_session_prefix or "",
    )


async def ping() -> PlainTextResponse:
    return PlainTextResponse("OK")


async def serve_project(request: Request) -> PlainTextResponse:
    project_manager = _get_project_manager(request)
    return PlainTextResponse(project_manager.current.project_file)


async def serve_files(request: Request) -> JSONResponse:
    service = _get_completion_service(request)
    try:
        files = service.source_files()
    except RuntimeError as exc:
        raise FileListUnavailable(str(exc)) from exc
    return JSONResponse(content=files)


async def serve_complete(
    request: Request,
    x_offset: Optional[str] = Header(None, alias="X-Offset"),
    x_path: Optional[str] = Header(None, alias="X-Path"),
    x_prefix: Optional[str] = Header(None, alias="X-Prefix"),
    x_cachekey: Optional[str] = Header(None, alias="X-Cachekey"),
    x_type: Optional[str] = Header(None, alias="X-Type"),
    x_session_prefix: Optional[str] = Header(None, alias="X-Session-Prefix"),
) -> JSONResponse:
    """Complete at a byte offset of a buffer; parameters travel as headers."""
    completion_request = build_completion_request(
        x_offset, x_path, x_prefix, x_cachekey, x_type, x_session_prefix
    )
    logger.info(
        f"GET /complete X-Offset:{completion_request.byte_offset} "
        f"X-Path:{completion_request.file_path} prefix:{completion_request.prefix!r}"
    )
    service = _get_completion_service(request)
    items = await service.complete(completion_request)
    return JSONResponse(content=[item.model_dump() for item in items])


ROUTE_HANDLERS: dict[Route, Callable] = {
    Route.PING: ping,
    Route.PROJECT: serve_project,
    Route.FILES: serve_files,
    Route.COMPLETE: serve_complete,
}

# Every Route member must have a handler; a missing one fails at import.
for _route in Route:
    completion_router.add_api_route(_route.value, ROUTE_HANDLERS[_route], methods=["GET"])
