"""Shared Typer option definitions for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer


INPUTS_PANEL = "Input Handling"
COMPILATION_PANEL = "Compilation"
OUTPUT_PANEL = "Output"

InputPathArgument = Annotated[
    list[Path] | None,
    typer.Argument(
        metavar="FILE...",
        help=(
            "Project files to compile: the main .tex document plus any .bib, .cls, "
            ".sty and image files it needs."
        ),
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        resolve_path=True,
        rich_help_panel=INPUTS_PANEL,
    ),
]

RequestOption = Annotated[
    Path | None,
    typer.Option(
        "--request",
        help="JSON build payload to submit instead of file arguments.",
        exists=True,
        dir_okay=False,
        readable=True,
        rich_help_panel=INPUTS_PANEL,
    ),
]

MainFileOption = Annotated[
    str | None,
    typer.Option(
        "--main",
        "-m",
        help="Project-relative path of the document to compile.",
        rich_help_panel=INPUTS_PANEL,
    ),
]

EngineOption = Annotated[
    str | None,
    typer.Option(
        "--engine",
        "-e",
        help="TeX engine: pdflatex, xelatex or lualatex.",
        rich_help_panel=COMPILATION_PANEL,
    ),
]

TimeoutOption = Annotated[
    int | None,
    typer.Option(
        "--timeout",
        help="Wall-clock budget for the whole build, in milliseconds.",
        min=1,
        rich_help_panel=COMPILATION_PANEL,
    ),
]

CheckOnlyOption = Annotated[
    bool,
    typer.Option(
        "--check-only",
        help="Run a single engine pass to report errors without producing a PDF.",
        rich_help_panel=COMPILATION_PANEL,
    ),
]

OutputOption = Annotated[
    Path | None,
    typer.Option(
        "--output",
        "-o",
        help="Where to write the PDF (defaults to <main stem>.pdf).",
        dir_okay=False,
        writable=True,
        rich_help_panel=OUTPUT_PANEL,
    ),
]

JsonOption = Annotated[
    bool,
    typer.Option(
        "--json",
        help="Print the response as JSON instead of a summary.",
        rich_help_panel=OUTPUT_PANEL,
    ),
]
