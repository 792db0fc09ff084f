"""Error taxonomy for the completion daemon.

Every error a client can see carries its HTTP status code; the exception
handlers in `skdaemon.main` render them as ``{"error": message}``.
"""
from __future__ import annotations


class CompletionDaemonError(Exception):
    """Base class for errors that map onto a client-visible response."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingParameter(CompletionDaemonError):
    def __init__(self, header: str, hint: str = ""):
        message = f"Need {header}" + (f" {hint}" if hint else "")
        super().__init__(message)
        self.header = header


class InvalidParameter(CompletionDaemonError):
    def __init__(self, header: str, value: str, expected: str):
        super().__init__(f"Invalid {header} {value!r}: expected {expected}")
        self.header = header
        self.value = value


class InvalidOffset(InvalidParameter):
    def __init__(self, value: str):
        super().__init__("X-Offset", value, "a non-negative integer byte offset")


class UnknownRoute(CompletionDaemonError):
    def __init__(self, path: str):
        super().__init__(f"Unknown route: {path}")
        self.path = path


class FileListUnavailable(CompletionDaemonError):
    def __init__(self, reason: str = ""):
        super().__init__("Could not generate file list" + (f": {reason}" if reason else ""))


class UnreadableFile(CompletionDaemonError):
    def __init__(self, path: str, reason: str = ""):
        super().__init__(f"Could not read file {path}" + (f" ({reason})" if reason else ""))
        self.path = path


class IntrospectionFailure(CompletionDaemonError):
    """The introspection service reported an error or did not answer in time."""


class EmptyResult(CompletionDaemonError):
    def __init__(self) -> None:
        super().__init__("empty")


class ProjectLoadError(Exception):
    """The project definition file could not be turned into a ProjectState."""

    def __init__(self, project_file: str, reason: str):
        super().__init__(f"Could not load project {project_file}: {reason}")
        self.project_file = project_file
        self.reason = reason


class ProjectRefreshFailure(ProjectLoadError):
    """A refresh failed; the previous ProjectState stays published."""
