"""Diagnostic abstractions shared across the compilation pipeline."""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import Any, Protocol, runtime_checkable


logger = logging.getLogger(__name__)


@runtime_checkable
class DiagnosticEmitter(Protocol):
    """Interface used to surface warnings, errors, and structured events."""

    debug_enabled: bool

    def warning(self, message: str, exc: BaseException | None = None) -> None: ...

    def error(self, message: str, exc: BaseException | None = None) -> None: ...

    def event(self, name: str, payload: Mapping[str, Any]) -> None: ...


class NullEmitter:
    """Emitter that ignores every diagnostic."""

    debug_enabled: bool = False

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        return

    def error(self, message: str, exc: BaseException | None = None) -> None:
        return

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        return


class LoggingEmitter:
    """Emitter that forwards diagnostics to the standard logging module."""

    def __init__(
        self, *, logger_obj: logging.Logger | None = None, debug_enabled: bool = False
    ) -> None:
        self._logger = logger_obj or logger
        self.debug_enabled = debug_enabled

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        if exc is not None:
            self._logger.warning(message, exc_info=exc)
        else:
            self._logger.warning(message)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        if exc is not None:
            self._logger.error(message, exc_info=exc)
        else:
            self._logger.error(message)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        message = format_event_message(name, payload)
        if message:
            self._logger.info(message)
            return
        self._logger.debug("diagnostic event %s: %s", name, dict(payload))


def format_event_message(name: str, payload: Mapping[str, Any]) -> str | None:
    """Return a human-friendly summary for selected diagnostic events."""
    data = dict(payload)

    if name == "workspace_created":
        path = data.get("path") or "<unknown>"
        count = data.get("files", 0)
        return f"Workspace ready: {path} ({count} file(s))"

    if name == "plan_ready":
        steps = data.get("steps") or []
        engine = data.get("engine") or "<engine>"
        return f"Plan for {engine}: {' -> '.join(str(step) for step in steps)}"

    if name == "step_finished":
        label = data.get("label") or "<step>"
        if data.get("skipped"):
            return f"Skipped {label}"
        returncode = data.get("returncode")
        suffix = " (tolerated)" if data.get("tolerant") and returncode else ""
        return f"{label} exited with status {returncode}{suffix}"

    if name == "build_finished":
        outcome = data.get("outcome") or "<unknown>"
        errors = data.get("errors", 0)
        warnings = data.get("warnings", 0)
        return f"Build {outcome} (errors: {errors}, warnings: {warnings})"

    return None


__all__ = [
    "DiagnosticEmitter",
    "LoggingEmitter",
    "NullEmitter",
    "format_event_message",
]
