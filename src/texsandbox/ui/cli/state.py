"""Per-invocation CLI state and stderr message rendering."""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass, field
from pathlib import Path
import sys
from typing import TYPE_CHECKING

import click

from texsandbox.core.exceptions import exception_messages


if TYPE_CHECKING:
    from rich.console import Console

__all__ = [
    "CLIState",
    "debug_enabled",
    "emit_error",
    "emit_warning",
    "get_cli_state",
    "render_message",
    "set_cli_state",
]


@dataclass(slots=True)
class CLIState:
    """Options given to the root command, shared with every subcommand."""

    verbosity: int = 0
    show_tracebacks: bool = False
    config_path: Path | None = None
    _console: Console | None = field(default=None, init=False, repr=False)
    _err_console: Console | None = field(default=None, init=False, repr=False)

    @property
    def console(self) -> Console:
        from rich.console import Console

        # Rebound when stdout is swapped (CliRunner, capsys).
        if self._console is None or self._console.file is not sys.stdout:
            self._console = Console(file=sys.stdout)
        return self._console

    @property
    def err_console(self) -> Console:
        from rich.console import Console

        if self._err_console is None or self._err_console.file is not sys.stderr:
            self._err_console = Console(file=sys.stderr, highlight=False)
        return self._err_console


# Outlives the click context so main() can still report late failures.
_STATE_VAR: ContextVar[CLIState | None] = ContextVar("texsandbox_cli_state", default=None)


def get_cli_state(ctx: click.Context | None = None) -> CLIState:
    """Return the state attached to the active click context, creating it on demand."""
    ctx = ctx or click.get_current_context(silent=True)
    if ctx is not None:
        state = ctx.find_object(CLIState) or ctx.ensure_object(CLIState)
    else:
        state = _STATE_VAR.get() or CLIState()
    _STATE_VAR.set(state)
    return state


def set_cli_state(
    *,
    ctx: click.Context | None = None,
    verbosity: int | None = None,
    debug: bool | None = None,
    config_path: Path | None = None,
) -> CLIState:
    state = get_cli_state(ctx)
    if verbosity is not None:
        state.verbosity = max(0, verbosity)
    if debug is not None:
        state.show_tracebacks = debug
    if config_path is not None:
        state.config_path = config_path
    return state


def render_message(level: str, message: str, *, exception: BaseException | None = None) -> None:
    """Print ``message`` to stderr; ``info`` only shows up with ``-v``."""
    state = get_cli_state()

    if level == "info":
        if state.verbosity >= 1:
            state.err_console.log(message)
        return

    from rich.text import Text

    style = "red" if level == "error" else "yellow"
    text = Text.assemble((f"{level}: ", f"bold {style}"), (message, style))

    if exception is not None and state.verbosity >= 1:
        extra = [f"type: {type(exception).__name__}"]
        messages = exception_messages(exception)
        if messages and messages[0] not in message:
            extra.insert(0, messages[0])
        if state.verbosity >= 2 and len(messages) > 1:
            extra.append("caused by:")
            extra.extend(f"  {entry}" for entry in messages[1:])
        text.append("\n" + "\n".join(extra), style=style)

    state.err_console.print(text)


def emit_warning(message: str, *, exception: BaseException | None = None) -> None:
    render_message("warning", message, exception=exception)


def emit_error(message: str, *, exception: BaseException | None = None) -> None:
    render_message("error", message, exception=exception)


def debug_enabled() -> bool:
    """Return whether full tracebacks should be displayed."""
    state = _STATE_VAR.get()
    return state is not None and state.show_tracebacks
