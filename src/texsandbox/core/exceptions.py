"""Custom exception hierarchy for the sandboxed compilation pipeline."""

from __future__ import annotations


class CompilationError(RuntimeError):
    """Base exception for compilation orchestration failures."""


class InvalidRequestError(CompilationError):
    """Raised when a build request cannot be serviced as submitted."""


class WorkspaceError(CompilationError):
    """Raised when source files cannot be materialised into a workspace."""


class SandboxError(CompilationError):
    """Raised when the container runtime fails to execute properly."""


class RuntimeUnavailableError(SandboxError):
    """Raised when the container runtime is not installed or not reachable."""


def exception_messages(exc: BaseException) -> list[str]:
    """Return the collected message chain for an exception and its causes."""
    messages: list[str] = []
    visited: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in visited:
        visited.add(id(current))
        text = str(current).strip()
        if text:
            first_line = text.splitlines()[0].strip()
            if first_line:
                messages.append(first_line)
        current = current.__cause__ or current.__context__
    return messages


__all__ = [
    "CompilationError",
    "InvalidRequestError",
    "RuntimeUnavailableError",
    "SandboxError",
    "WorkspaceError",
    "exception_messages",
]
