"""Helpers shared by the CLI commands."""

from __future__ import annotations

import typer

from texsandbox.api import BuildOutcome, CompilationService
from texsandbox.core.config import CompilerConfig, load_config
from texsandbox.core.exceptions import InvalidRequestError

from ..diagnostics import CliEmitter
from ..state import CLIState, emit_error


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID = 2
EXIT_INTERNAL = 3

_EXIT_CODES = {
    BuildOutcome.OK: EXIT_OK,
    BuildOutcome.FAILED: EXIT_FAILURE,
    BuildOutcome.TIMED_OUT: EXIT_FAILURE,
    BuildOutcome.RUNTIME_UNAVAILABLE: EXIT_FAILURE,
    BuildOutcome.INVALID_REQUEST: EXIT_INVALID,
    BuildOutcome.INTERNAL_ERROR: EXIT_INTERNAL,
}


def exit_code_for(outcome: BuildOutcome) -> int:
    return _EXIT_CODES[outcome]


def resolve_config(state: CLIState) -> CompilerConfig:
    """Load the configuration selected on the command line (or the environment)."""
    try:
        return load_config(state.config_path)
    except InvalidRequestError as exc:
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=EXIT_INVALID) from exc


def make_service(state: CLIState) -> CompilationService:
    config = resolve_config(state)
    return CompilationService(config, emitter=CliEmitter(state=state))


__all__ = [
    "EXIT_FAILURE",
    "EXIT_INTERNAL",
    "EXIT_INVALID",
    "EXIT_OK",
    "exit_code_for",
    "make_service",
    "resolve_config",
]
