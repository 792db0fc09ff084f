"""skdaemon configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = os.getenv(name)
    if value is None:
        return default
    return tuple(part.strip() for part in value.split(",") if part.strip())


# Project definition file (overridden by `skdaemon start --project`)
_project_file = os.getenv("SKDAEMON_PROJECT_FILE", "")
PROJECT_FILE = Path(_project_file).expanduser() if _project_file else None
DEFAULT_SDK_ROOT = os.getenv("SKDAEMON_SDK_ROOT", "")

# Server settings
HOST = os.getenv("SKDAEMON_HOST", "127.0.0.1")
PORT = _env_int("SKDAEMON_PORT", 8081)
LOG_LEVEL = os.getenv("SKDAEMON_LOG_LEVEL", "INFO").upper()

# Completion cache
CACHE_CAPACITY = _env_int("SKDAEMON_CACHE_CAPACITY", 5)

# Result filtering
SUPERCLASS_SCAN_LIMIT = _env_int("SKDAEMON_SUPERCLASS_SCAN_LIMIT", 100)
FUZZY_ENABLED = _env_bool("SKDAEMON_FUZZY_ENABLED", True)
FUZZY_THRESHOLD = _env_float("SKDAEMON_FUZZY_THRESHOLD", 0.01)
EMPTY_RESULT_IS_ERROR = _env_bool("SKDAEMON_EMPTY_RESULT_IS_ERROR", True)
# UI framework, foundation, graphics (bucket order follows this sequence)
MODULE_BUCKET_MARKERS = _env_list("SKDAEMON_MODULE_BUCKET_MARKERS", ("UI", "NS", "CG"))
PARALLEL_FILTER_THRESHOLD = _env_int("SKDAEMON_PARALLEL_FILTER_THRESHOLD", 2000)
FILTER_WORKERS = _env_int("SKDAEMON_FILTER_WORKERS", 4)

# Introspection service (SourceKitten)
SOURCEKITTEN_BIN = os.getenv("SKDAEMON_SOURCEKITTEN_BIN", "sourcekitten")
INTROSPECTION_TIMEOUT_SECONDS = _env_float("SKDAEMON_INTROSPECTION_TIMEOUT_SECONDS", 10.0)
PARALLELISM_HINT = os.getenv("SKDAEMON_PARALLELISM_HINT", "-j4")

# Observability
OTEL_ENABLED = _env_bool("SKDAEMON_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("SKDAEMON_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("SKDAEMON_OTEL_SERVICE_NAME", "skdaemon")
PROM_PORT = _env_int("SKDAEMON_PROM_PORT", 0)
