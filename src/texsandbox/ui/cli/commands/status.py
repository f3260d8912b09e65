"""Implementation of the `texsandbox status` and `capabilities` commands."""

from __future__ import annotations

import json

import typer

from .._options import JsonOption
from ..presenter import present_status
from ..state import get_cli_state
from ._common import EXIT_FAILURE, make_service


def status(json_output: JsonOption = False) -> None:
    """Check that Docker is running and the toolchain image is pulled."""
    state = get_cli_state()
    service = make_service(state)
    result = service.status(refresh=True)

    if json_output:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    else:
        present_status(state=state, status=result)

    if not result.ready:
        raise typer.Exit(code=EXIT_FAILURE)


def capabilities() -> None:
    """Print the engines and features this installation supports, as JSON."""
    state = get_cli_state()
    service = make_service(state)
    typer.echo(json.dumps(service.describe_capabilities(), indent=2))


__all__ = ["capabilities", "status"]
