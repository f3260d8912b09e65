"""LaTeX toolchain execution and log classification."""

from __future__ import annotations

from .executor import ExecutionResult, SandboxedExecutor, StepResult
from .log import LatexLogParser, ParsedOutput, parse_compilation_output, split_log_lines


__all__ = [
    "ExecutionResult",
    "LatexLogParser",
    "ParsedOutput",
    "SandboxedExecutor",
    "StepResult",
    "parse_compilation_output",
    "split_log_lines",
]
