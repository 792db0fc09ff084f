"""Completion coordinator: cache, introspection calls and result filtering."""
from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Sequence

from skdaemon import config
from skdaemon.errors import EmptyResult, IntrospectionFailure, UnreadableFile
from skdaemon.models import CompletionCandidate, CompletionRequest, ProjectState, RenderedItem
from skdaemon.observability import record_cache_lookup, record_completion, start_span
from skdaemon.services.completion_cache import CompletionCache, make_signature
from skdaemon.services.fuzzy import SubsequenceMatcher
from skdaemon.services.introspection import IntrospectionClient, SourceKittenClient
from skdaemon.services.result_filter import FilterOptions, ResultFilterPipeline

logger = logging.getLogger("skdaemon.completion")


def build_compiler_arguments(state: ProjectState, file_path: str, parallelism_hint: str = "-j4") -> list[str]:
    """Compiler arguments for one completion; the order is significant."""
    args: list[str] = ["-module-name", state.module_name, "-sdk", state.sdk_root]
    if state.platform_target:
        args += ["-target", state.platform_target]
    for framework_path in state.framework_search_paths:
        args += ["-F", framework_path]
    args += list(state.extra_compiler_flags)
    args += ["-c", file_path]
    args.append(parallelism_hint)
    args += list(state.source_file_paths)
    return args


def _read_source(file_path: str) -> str:
    path = Path(file_path)
    if not path.is_file():
        raise UnreadableFile(file_path, "not a file")
    try:
        return path.read_bytes().decode("utf-8", errors="replace")
    except OSError as exc:
        raise UnreadableFile(file_path, exc.strerror or str(exc)) from exc


class CompletionService:
    """Owns the completion cache and wires introspection → pipeline → cache.

    Each call works on the ProjectState snapshot it captured when it started.
    get+put for one signature is serialized so concurrent misses on the same
    position do a single introspection call.
    """

    def __init__(
        self,
        project_manager,
        introspection: IntrospectionClient | None = None,
        cache: CompletionCache | None = None,
        pipeline: ResultFilterPipeline | None = None,
        *,
        timeout_seconds: float | None = None,
        empty_result_is_error: bool | None = None,
        parallelism_hint: str | None = None,
    ):
        self.project_manager = project_manager
        self.introspection = introspection or SourceKittenClient()
        self.cache = cache or CompletionCache(config.CACHE_CAPACITY)
        self._executor: ThreadPoolExecutor | None = None
        if pipeline is None:
            self._executor = ThreadPoolExecutor(
                max_workers=max(1, config.FILTER_WORKERS),
                thread_name_prefix="skdaemon-filter",
            )
            pipeline = ResultFilterPipeline(
                FilterOptions.from_config(),
                matcher=SubsequenceMatcher() if config.FUZZY_ENABLED else None,
                executor=self._executor,
            )
        self.pipeline = pipeline
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else config.INTROSPECTION_TIMEOUT_SECONDS
        self.empty_result_is_error = (
            empty_result_is_error if empty_result_is_error is not None else config.EMPTY_RESULT_IS_ERROR
        )
        self.parallelism_hint = parallelism_hint or config.PARALLELISM_HINT
        self.hits = 0
        self.misses = 0
        self._signature_locks: dict[str, asyncio.Lock] = {}
        self._signature_users: dict[str, int] = {}

    def source_files(self) -> list[str]:
        return list(self.project_manager.current.source_file_paths)

    def stats(self) -> dict[str, Any]:
        state = self.project_manager.current if self.project_manager.is_loaded else None
        return {
            "hits": self.hits,
            "misses": self.misses,
            "cacheSize": len(self.cache),
            "cacheCapacity": self.cache.capacity,
            "module": state.module_name if state else "",
        }

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    @asynccontextmanager
    async def _signature_guard(self, signature: str):
        lock = self._signature_locks.get(signature)
        if lock is None:
            lock = self._signature_locks[signature] = asyncio.Lock()
            self._signature_users[signature] = 0
        self._signature_users[signature] += 1
        try:
            async with lock:
                yield
        finally:
            self._signature_users[signature] -= 1
            if self._signature_users[signature] == 0:
                del self._signature_users[signature]
                del self._signature_locks[signature]

    async def _introspect(self, state: ProjectState, request: CompletionRequest) -> list[CompletionCandidate]:
        contents = await asyncio.to_thread(_read_source, request.file_path)
        arguments = build_compiler_arguments(state, request.file_path, self.parallelism_hint)
        try:
            return await asyncio.wait_for(
                self.introspection.complete(request.file_path, contents, request.byte_offset, arguments),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise IntrospectionFailure(
                f"Introspection timed out after {self.timeout_seconds:g}s"
            ) from exc

    async def _run_pipeline(
        self,
        candidates: Sequence[CompletionCandidate],
        request: CompletionRequest,
        project_module: str,
    ) -> list[RenderedItem]:
        if len(candidates) > self.pipeline.options.parallel_threshold:
            return await asyncio.to_thread(self.pipeline.apply, candidates, request, project_module)
        return self.pipeline.apply(candidates, request, project_module)

    async def complete(self, request: CompletionRequest) -> list[RenderedItem]:
        state = self.project_manager.current
        signature = make_signature(request.byte_offset, request.file_path, request.cache_key)
        started = time.perf_counter()
        cache_hit = False
        outcome = "error"
        try:
            with start_span("skdaemon.complete", {"offset": request.byte_offset, "path": request.file_path}):
                async with self._signature_guard(signature):
                    cached = self.cache.get(signature)
                    cache_hit = cached is not None
                    record_cache_lookup(cache_hit)
                    if cache_hit:
                        self.hits += 1
                        candidates = cached
                    else:
                        self.misses += 1
                        candidates = tuple(await self._introspect(state, request))

                    items = await self._run_pipeline(candidates, request, state.module_name)

                    if not cache_hit:
                        self.cache.put(signature, candidates)

            logger.info(
                f"complete offset={request.byte_offset} path={request.file_path} "
                f"cache={'hit' if cache_hit else 'miss'} candidates={len(candidates)} items={len(items)}"
            )
            if not items and self.empty_result_is_error:
                outcome = "empty"
                raise EmptyResult()
            outcome = "success"
            return items
        finally:
            record_completion(outcome, (time.perf_counter() - started) * 1000.0, cache_hit=cache_hit)
