"""Rich-aware presenters for build results and runtime status."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from rich import box
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
import typer

from texsandbox.api import BuildOutcome, BuildResponse, RuntimeStatus
from texsandbox.core.models import Diagnostic

from .state import CLIState


if TYPE_CHECKING:  # pragma: no cover - typing only
    from rich.console import Console


def _get_console(state: CLIState, *, stderr: bool = False) -> Console | None:
    """Return the Rich console when writing to a terminal, ``None`` otherwise.

    Piped output and test runners get plain text so it stays grep-friendly.
    """
    console = state.err_console if stderr else state.console
    if getattr(console, "is_terminal", False):
        return console
    return None


def _format_location(diagnostic: Diagnostic) -> str:
    if diagnostic.file is None:
        return ""
    if diagnostic.line is None:
        return diagnostic.file
    return f"{diagnostic.file}:{diagnostic.line}"


def format_diagnostic(diagnostic: Diagnostic) -> str:
    """Render a diagnostic as ``file:line: message`` (location optional)."""
    location = _format_location(diagnostic)
    if location:
        return f"{location}: {diagnostic.message}"
    return diagnostic.message


def _render_diagnostics(
    state: CLIState, errors: Sequence[Diagnostic], warnings: Sequence[str]
) -> None:
    console = _get_console(state, stderr=True)
    if console is not None:
        table = Table(box=box.SQUARE, header_style="bold cyan", title="Diagnostics")
        table.add_column("Severity", no_wrap=True)
        table.add_column("Location", style="cyan")
        table.add_column("Message")
        for error in errors:
            table.add_row(Text("error", style="bold red"), _format_location(error), error.message)
        for warning in warnings:
            table.add_row(Text("warning", style="yellow"), "", warning)
        console.print(table)
        return

    for error in errors:
        typer.echo(f"error: {format_diagnostic(error)}", err=True)
    for warning in warnings:
        typer.echo(f"warning: {warning}", err=True)


def _render_summary(state: CLIState, title: str, rows: Sequence[tuple[str, str]], *, ok: bool) -> None:
    console = _get_console(state)
    if console is not None:
        table = Table(box=box.SQUARE, show_header=False)
        style = "green" if ok else "red"
        for label, value in rows:
            table.add_row(Text(label, style=f"bold {style}"), value)
        console.print(Panel(table, box=box.SQUARE, title=title, border_style=style))
        return

    typer.echo(title)
    for label, value in rows:
        typer.echo(f"  {label}: {value}")


def present_build_response(
    *,
    state: CLIState,
    response: BuildResponse,
    output_path: Path | None,
) -> None:
    """Display diagnostics followed by a one-panel summary of the build."""
    if response.errors or response.warnings:
        _render_diagnostics(state, response.errors, response.warnings)

    if response.outcome is BuildOutcome.OK:
        title = "Build succeeded"
    elif response.outcome is BuildOutcome.FAILED:
        title = "Build failed"
    else:
        title = f"Build {response.outcome.value.replace('_', ' ')}"

    rows = [
        ("Outcome", response.outcome.value),
        ("Errors", str(len(response.errors))),
        ("Warnings", str(len(response.warnings))),
    ]
    if output_path is not None:
        rows.append(("PDF", str(output_path)))
    if response.timeout_ms is not None:
        rows.append(("Timeout", f"{response.timeout_ms} ms"))

    _render_summary(state, title, rows, ok=response.success)

    if state.verbosity >= 2 and response.log:
        typer.echo("\n".join(response.log), err=True)


def present_status(*, state: CLIState, status: RuntimeStatus) -> None:
    """Display the runtime probe result."""
    rows = [
        ("Docker", "running" if status.runtime_up else "unavailable"),
        ("Image", status.toolchain_image_name),
        ("Image pulled", "yes" if status.toolchain_image_present else "no"),
        ("Message", status.probe_message),
    ]
    if status.pull_command:
        rows.append(("Pull with", status.pull_command))
    _render_summary(state, "Runtime status", rows, ok=status.ready)


__all__ = ["format_diagnostic", "present_build_response", "present_status"]
