"""Turn a raw introspection candidate list into ordered, trimmed editor items.

The pipeline is pure: the same candidates and request always give the same
output. Stages run in a fixed order:

1. prefix match (non-empty prefix) or module bucketing (empty prefix)
2. relation filter (this-class vs. superclass members)
3. fuzzy threshold (non-empty prefix with a matcher configured)
4. rendering to ``{word, abbr, menu}``
"""
from __future__ import annotations

from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Callable, Sequence, TypeVar

from skdaemon import config
from skdaemon.models import CompletionCandidate, CompletionRequest, RelationType, RenderedItem
from skdaemon.services.fuzzy import FuzzyMatcher

T = TypeVar("T")


@dataclass(frozen=True)
class FilterOptions:
    module_markers: tuple[str, ...] = ("UI", "NS", "CG")
    superclass_scan_limit: int = 100
    fuzzy_threshold: float = 0.01
    parallel_threshold: int = 2000

    @classmethod
    def from_config(cls) -> "FilterOptions":
        return cls(
            module_markers=tuple(config.MODULE_BUCKET_MARKERS),
            superclass_scan_limit=max(0, config.SUPERCLASS_SCAN_LIMIT),
            fuzzy_threshold=config.FUZZY_THRESHOLD,
            parallel_threshold=max(1, config.PARALLEL_FILTER_THRESHOLD),
        )


def ordered_filter(
    items: Sequence[T],
    predicate: Callable[[T], bool],
    executor: Executor | None = None,
    chunk_size: int = 2000,
) -> list[T]:
    """Filter `items`, optionally fork-join over index ranges.

    Each chunk is filtered on its own and the partial results are concatenated
    in chunk order, so the output matches the serial filter exactly.
    """
    if executor is None or len(items) <= chunk_size:
        return [item for item in items if predicate(item)]

    ranges = [(start, min(start + chunk_size, len(items))) for start in range(0, len(items), chunk_size)]

    def _filter_range(bounds: tuple[int, int]) -> list[T]:
        start, end = bounds
        return [item for item in items[start:end] if predicate(item)]

    merged: list[T] = []
    for part in executor.map(_filter_range, ranges):
        merged.extend(part)
    return merged


def match_prefix(
    candidates: Sequence[CompletionCandidate],
    prefix: str,
    executor: Executor | None = None,
    chunk_size: int = 2000,
) -> list[CompletionCandidate]:
    return ordered_filter(candidates, lambda c: c.source_text.startswith(prefix), executor, chunk_size)


def bucket_by_module(
    candidates: Sequence[CompletionCandidate],
    project_module: str,
    markers: Sequence[str],
    session_prefix: str = "",
) -> list[CompletionCandidate]:
    """Group candidates by category, keeping the original order inside each group.

    Buckets: same session prefix, project module, one per module marker, rest.
    """
    buckets: list[list[CompletionCandidate]] = [[] for _ in range(len(markers) + 3)]
    rest = len(buckets) - 1
    for candidate in candidates:
        if session_prefix and candidate.description_key.startswith(session_prefix):
            buckets[0].append(candidate)
            continue
        module = candidate.module_name or ""
        if not module:
            buckets[rest].append(candidate)
        elif project_module and module.startswith(project_module):
            buckets[1].append(candidate)
        else:
            for offset, marker in enumerate(markers):
                if marker and module.startswith(marker):
                    buckets[2 + offset].append(candidate)
                    break
            else:
                buckets[rest].append(candidate)
    return [candidate for bucket in buckets for candidate in bucket]


def filter_relation(
    candidates: Sequence[CompletionCandidate],
    relation: RelationType,
    scan_limit: int = 100,
) -> list[CompletionCandidate]:
    if relation == RelationType.THIS_CLASS:
        return [c for c in candidates if not c.is_inherited]

    # Superclass members: walk backward and keep at most `scan_limit`.
    picked: list[CompletionCandidate] = []
    for candidate in reversed(candidates):
        if len(picked) >= scan_limit:
            break
        if candidate.is_inherited:
            picked.append(candidate)
    picked.reverse()
    return picked


def render(candidates: Sequence[CompletionCandidate]) -> list[RenderedItem]:
    return [
        RenderedItem(word=c.source_text, abbr=c.description_key, menu=c.module_name or "")
        for c in candidates
    ]


class ResultFilterPipeline:
    """Configured filter pipeline; `apply` is deterministic and side-effect free."""

    def __init__(
        self,
        options: FilterOptions | None = None,
        matcher: FuzzyMatcher | None = None,
        executor: Executor | None = None,
    ):
        self.options = options or FilterOptions()
        self.matcher = matcher
        self.executor = executor

    def apply(
        self,
        candidates: Sequence[CompletionCandidate],
        request: CompletionRequest,
        project_module: str = "",
    ) -> list[RenderedItem]:
        if not candidates:
            return []

        opts = self.options
        if request.prefix:
            selected = match_prefix(candidates, request.prefix, self.executor, opts.parallel_threshold)
        else:
            selected = bucket_by_module(
                candidates,
                project_module,
                opts.module_markers,
                session_prefix=request.session_prefix,
            )

        selected = filter_relation(selected, request.relation_type, opts.superclass_scan_limit)

        if request.prefix and self.matcher is not None:
            matcher = self.matcher
            threshold = opts.fuzzy_threshold
            selected = ordered_filter(
                selected,
                lambda c: matcher.weight(request.prefix, c.description_key or c.source_text) > threshold,
                self.executor,
                opts.parallel_threshold,
            )

        return render(selected)
