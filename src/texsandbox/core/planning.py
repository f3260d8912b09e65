"""Turn tool requirements into an ordered list of build steps."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import PurePosixPath

from .analysis import BibliographyTool, ToolRequirements
from .models import Engine


ENGINE_FLAGS = ("-interaction=nonstopmode", "-file-line-error")
SHELL_ESCAPE_FLAG = "-shell-escape"
RESOLUTION_PASSES = 2


@dataclass(frozen=True, slots=True)
class ShellStep:
    """A single subprocess invocation inside the sandbox.

    ``tolerant`` steps may fail without aborting the steps that follow.
    """

    label: str
    argv: tuple[str, ...]
    tolerant: bool = False
    is_pass: bool = False

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True, slots=True)
class CompilationPlan:
    """Ordered build steps derived for one request."""

    engine: Engine
    main_file: str
    requirements: ToolRequirements
    steps: tuple[ShellStep, ...]

    @property
    def job_name(self) -> str:
        return PurePosixPath(self.main_file).stem

    @property
    def artifact_name(self) -> str:
        """Name of the PDF the engine writes into the working directory."""
        return f"{self.job_name}.pdf"

    @property
    def requires_bib_tool(self) -> BibliographyTool:
        return self.requirements.bibliography

    @property
    def requires_glossary_tool(self) -> bool:
        return self.requirements.glossary

    @property
    def requires_index_tool(self) -> bool:
        return self.requirements.index

    @property
    def requires_elevated_shell(self) -> bool:
        return self.requirements.shell_escape

    @property
    def engine_passes(self) -> list[ShellStep]:
        return [step for step in self.steps if step.is_pass]

    @property
    def auxiliary_steps(self) -> list[ShellStep]:
        return [step for step in self.steps if not step.is_pass]


def engine_command(engine: Engine, main_file: str, *, shell_escape: bool) -> tuple[str, ...]:
    """Return the argv of a single non-interactive engine pass."""
    flags: list[str] = [SHELL_ESCAPE_FLAG] if shell_escape else []
    flags.extend(ENGINE_FLAGS)
    return (engine.value, *flags, main_file)


def _engine_pass(engine: Engine, main_file: str, number: int, *, shell_escape: bool) -> ShellStep:
    return ShellStep(
        label=f"{engine.value} (pass {number})",
        argv=engine_command(engine, main_file, shell_escape=shell_escape),
        tolerant=False,
        is_pass=True,
    )


def _auxiliary_steps(requirements: ToolRequirements, job: str) -> list[ShellStep]:
    # Bibliography first: glossary and index page numbers only settle once
    # citations are placed. Each tool may legitimately fail on a first run.
    steps: list[ShellStep] = []
    if requirements.bibliography is BibliographyTool.BIBER:
        steps.append(ShellStep("biber", ("biber", job), tolerant=True))
    elif requirements.bibliography is BibliographyTool.BIBTEX:
        steps.append(ShellStep("bibtex", ("bibtex", job), tolerant=True))
    if requirements.glossary:
        steps.append(ShellStep("makeglossaries", ("makeglossaries", job), tolerant=True))
    if requirements.index:
        steps.append(ShellStep("makeindex", ("makeindex", job), tolerant=True))
    return steps


def plan(
    main_file: str,
    requirements: ToolRequirements,
    check_only: bool = False,
    engine: Engine = Engine.PDFLATEX,
) -> CompilationPlan:
    """Build the pass sequence for ``main_file``.

    A check-only plan is always a single engine pass. A full plan runs the
    auxiliary tools after the first pass, then two more engine passes: one
    extra pass does not converge when several tools feed each other.
    """
    shell_escape = requirements.shell_escape
    steps: list[ShellStep] = [_engine_pass(engine, main_file, 1, shell_escape=shell_escape)]

    if not check_only:
        auxiliary = _auxiliary_steps(requirements, PurePosixPath(main_file).stem)
        if auxiliary:
            steps.extend(auxiliary)
            for number in range(2, 2 + RESOLUTION_PASSES):
                steps.append(_engine_pass(engine, main_file, number, shell_escape=shell_escape))

    return CompilationPlan(
        engine=engine,
        main_file=main_file,
        requirements=requirements,
        steps=tuple(steps),
    )


def describe_plan(steps: Sequence[ShellStep]) -> list[str]:
    """Return human-readable command lines for ``steps``."""
    return [" ".join(step.argv) for step in steps]


__all__ = [
    "ENGINE_FLAGS",
    "RESOLUTION_PASSES",
    "SHELL_ESCAPE_FLAG",
    "CompilationPlan",
    "ShellStep",
    "describe_plan",
    "engine_command",
    "plan",
]
