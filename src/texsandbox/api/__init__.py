"""Service layer turning build requests into normalised responses."""

from __future__ import annotations

from .payload import BuildPayload, SourceFilePayload, parse_payload
from .service import BuildOutcome, BuildResponse, CompilationService
from .status import RuntimeStatus, RuntimeStatusCache, StatusProbe


__all__ = [
    "BuildOutcome",
    "BuildPayload",
    "BuildResponse",
    "CompilationService",
    "RuntimeStatus",
    "RuntimeStatusCache",
    "SourceFilePayload",
    "StatusProbe",
    "parse_payload",
]
