"""Implementation of the `texsandbox build` command."""

from __future__ import annotations

import base64
from collections.abc import Sequence
import json
import os
from pathlib import Path, PurePosixPath
from typing import Any

import click
import typer

from texsandbox.core.exceptions import InvalidRequestError
from texsandbox.core.models import SourceKind

from .._options import (
    CheckOnlyOption,
    EngineOption,
    InputPathArgument,
    JsonOption,
    MainFileOption,
    OutputOption,
    RequestOption,
    TimeoutOption,
)
from ..presenter import present_build_response
from ..state import emit_error, get_cli_state
from ._common import EXIT_INVALID, EXIT_OK, exit_code_for, make_service


def collect_sources(inputs: Sequence[Path]) -> list[dict[str, str]]:
    """Read ``inputs`` into payload entries relative to their common directory."""
    resolved = [path.resolve() for path in inputs]
    root = Path(os.path.commonpath([str(path.parent) for path in resolved]))
    entries: list[dict[str, str]] = []
    for path in resolved:
        relative = path.relative_to(root).as_posix()
        kind = SourceKind.from_path(relative)
        data = path.read_bytes()
        if kind is SourceKind.IMAGE:
            content = base64.b64encode(data).decode("ascii")
        else:
            content = data.decode("utf-8", errors="replace")
        entries.append({"path": relative, "content": content, "type": kind.value})
    return entries


def _default_main(entries: Sequence[dict[str, str]]) -> str | None:
    markup = [entry["path"] for entry in entries if entry["type"] == SourceKind.MARKUP.value]
    if len(markup) == 1:
        return markup[0]
    return None


def _read_request_file(request_file: Path) -> dict[str, Any]:
    try:
        data = json.loads(request_file.read_text(encoding="utf-8"))
    except OSError as exc:
        raise InvalidRequestError(f"Unable to read '{request_file}': {exc}") from exc
    except json.JSONDecodeError as exc:
        raise InvalidRequestError(f"'{request_file}' is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise InvalidRequestError(f"'{request_file}' must contain a JSON object.")
    return data


def build(
    inputs: InputPathArgument = None,
    request_file: RequestOption = None,
    main_file: MainFileOption = None,
    engine: EngineOption = None,
    timeout: TimeoutOption = None,
    check_only: CheckOnlyOption = False,
    output: OutputOption = None,
    json_output: JsonOption = False,
) -> None:
    """Compile a LaTeX project inside the sandboxed toolchain container."""
    state = get_cli_state()

    if inputs and request_file is not None:
        raise typer.BadParameter("Pass either FILE arguments or --request, not both.")
    if not inputs and request_file is None:
        ctx = click.get_current_context()
        typer.echo(ctx.get_help())
        raise typer.Exit()

    try:
        if request_file is not None:
            payload = _read_request_file(request_file)
        else:
            entries = collect_sources(inputs or [])
            payload = {"files": entries}
            default_main = _default_main(entries)
            if default_main is not None:
                payload["mainFile"] = default_main
    except InvalidRequestError as exc:
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=EXIT_INVALID) from exc

    if main_file:
        payload["mainFile"] = main_file
    if engine:
        payload["engine"] = engine
    if timeout is not None:
        payload["timeout"] = timeout
    if check_only:
        payload["checkOnly"] = True

    service = make_service(state)
    response = service.build_payload(payload)

    written: Path | None = None
    if response.artifact is not None:
        main_name = payload.get("mainFile") or service.config.default_main_file
        written = output or Path(f"{PurePosixPath(str(main_name)).stem}.pdf")
        written.parent.mkdir(parents=True, exist_ok=True)
        written.write_bytes(response.artifact)

    if json_output:
        document = response.to_dict()
        if written is not None:
            document.pop("pdf", None)
        typer.echo(json.dumps(document, indent=2))
    else:
        present_build_response(state=state, response=response, output_path=written)

    code = exit_code_for(response.outcome)
    if code != EXIT_OK:
        raise typer.Exit(code=code)


__all__ = ["build", "collect_sources"]
