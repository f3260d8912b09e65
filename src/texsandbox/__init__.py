"""Sandboxed LaTeX compilation with structured diagnostics."""

from __future__ import annotations

from texsandbox.api import (
    BuildOutcome,
    BuildResponse,
    CompilationService,
    RuntimeStatus,
    StatusProbe,
    parse_payload,
)
from texsandbox.core.analysis import ToolRequirements, analyze
from texsandbox.core.config import CompilerConfig, SandboxConfig, load_config
from texsandbox.core.exceptions import (
    CompilationError,
    InvalidRequestError,
    RuntimeUnavailableError,
    SandboxError,
    WorkspaceError,
)
from texsandbox.core.models import (
    BuildRequest,
    CompilationOptions,
    Diagnostic,
    DiagnosticSeverity,
    Engine,
    SourceFile,
    SourceKind,
)
from texsandbox.core.planning import CompilationPlan, plan
from texsandbox.version import get_version


__version__ = get_version()

__all__ = [
    "BuildOutcome",
    "BuildRequest",
    "BuildResponse",
    "CompilationError",
    "CompilationOptions",
    "CompilationPlan",
    "CompilationService",
    "CompilerConfig",
    "Diagnostic",
    "DiagnosticSeverity",
    "Engine",
    "InvalidRequestError",
    "RuntimeStatus",
    "RuntimeUnavailableError",
    "SandboxConfig",
    "SandboxError",
    "SourceFile",
    "SourceKind",
    "StatusProbe",
    "ToolRequirements",
    "WorkspaceError",
    "__version__",
    "analyze",
    "load_config",
    "parse_payload",
    "plan",
]
