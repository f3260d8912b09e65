from __future__ import annotations

from collections.abc import Iterator
import itertools
from pathlib import Path

from conftest import FakeRunner
import pytest

from texsandbox.adapters.docker import ContainerRun, DockerRunRequest
from texsandbox.adapters.latex.executor import SandboxedExecutor
from texsandbox.core.analysis import BibliographyTool, ToolRequirements
from texsandbox.core.config import SandboxConfig
from texsandbox.core.exceptions import RuntimeUnavailableError
from texsandbox.core.models import SourceFile, SourceKind
from texsandbox.core.planning import plan
from texsandbox.core.workspace import Workspace


BIBER_PLAN = plan("main.tex", ToolRequirements(bibliography=BibliographyTool.BIBER))


@pytest.fixture
def workspace(tmp_path: Path) -> Iterator[Workspace]:
    with Workspace(root=tmp_path) as ws:
        yield ws


class _RecordingEmitter:
    debug_enabled = False

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, object]]] = []

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        return

    def error(self, message: str, exc: BaseException | None = None) -> None:
        return

    def event(self, name: str, payload: dict[str, object]) -> None:
        self.events.append((name, dict(payload)))


def test_container_requests_are_isolated(workspace: Workspace) -> None:
    runner = FakeRunner()
    executor = SandboxedExecutor(SandboxConfig(), runner=runner)

    executor.run_plan(workspace, plan("main.tex", ToolRequirements()), 10_000)

    request = runner.requests[0]
    assert request.network == "none"
    assert request.workdir == "/workdir"
    assert request.image == "texlive/texlive:latest-full"
    assert tuple(request.args) == plan("main.tex", ToolRequirements()).steps[0].argv
    assert Path(request.mounts[0].source) == workspace.path
    assert request.mounts[0].target == "/workdir"
    assert request.environment["HOME"] == "/tmp"
    assert request.name is not None and request.name.startswith("texsandbox-")


def test_execute_materialises_sources_before_running(workspace: Workspace) -> None:
    seen: list[str] = []

    def handler(request: DockerRunRequest, workdir: Path) -> ContainerRun:
        seen.append((workdir / "chapters" / "intro.tex").read_text(encoding="utf-8"))
        return ContainerRun(returncode=0)

    emitter = _RecordingEmitter()
    executor = SandboxedExecutor(runner=FakeRunner(handler), emitter=emitter)
    files = [
        SourceFile("main.tex", "\\input{chapters/intro}", SourceKind.MARKUP),
        SourceFile("chapters/intro.tex", "Intro.", SourceKind.MARKUP),
    ]

    executor.execute(workspace, files, plan("main.tex", ToolRequirements()), 10_000)

    assert seen == ["Intro."]
    names = [name for name, _ in emitter.events]
    assert names == ["workspace_created", "step_finished"]
    assert emitter.events[0][1]["files"] == 2


def test_tolerant_step_failure_continues(workspace: Workspace) -> None:
    def handler(request: DockerRunRequest, workdir: Path) -> ContainerRun:
        if request.args[0] == "biber":
            return ContainerRun(returncode=2, stderr="ERROR - Cannot find 'refs.bib'!")
        return ContainerRun(returncode=0, stdout=f"ran {request.args[0]}")

    runner = FakeRunner(handler)
    result = SandboxedExecutor(runner=runner).run_plan(workspace, BIBER_PLAN, 10_000)

    assert [args[0] for args in runner.commands] == ["pdflatex", "biber", "pdflatex", "pdflatex"]
    assert result.steps[1].failed is True
    assert not any(step.skipped for step in result.steps)
    assert "ERROR - Cannot find 'refs.bib'!" in result.stderr
    assert result.stdout.count("ran pdflatex") == 3


def test_fatal_step_failure_skips_remaining(workspace: Workspace) -> None:
    runner = FakeRunner(lambda request, workdir: ContainerRun(returncode=1, stdout="! Emergency stop."))

    result = SandboxedExecutor(runner=runner).run_plan(workspace, BIBER_PLAN, 10_000)

    assert len(runner.requests) == 1
    assert [step.skipped for step in result.steps] == [False, True, True, True]
    assert result.timed_out is False
    assert "! Emergency stop." in result.combined_output


def test_timeout_stops_the_plan(workspace: Workspace) -> None:
    runner = FakeRunner(
        lambda request, workdir: ContainerRun(returncode=None, stdout="partial", timed_out=True)
    )

    result = SandboxedExecutor(runner=runner).run_plan(workspace, BIBER_PLAN, 10_000)

    assert result.timed_out is True
    assert len(runner.requests) == 1
    assert result.stdout == "partial"
    assert all(step.skipped for step in result.steps[1:])


def test_deadline_is_shared_across_steps(workspace: Workspace) -> None:
    ticks = itertools.chain([0.0, 0.0, 0.5, 2.0], itertools.repeat(2.0))
    runner = FakeRunner()
    emitter = _RecordingEmitter()
    executor = SandboxedExecutor(runner=runner, emitter=emitter, clock=lambda: next(ticks))

    result = executor.run_plan(workspace, BIBER_PLAN, 1_000)

    assert runner.timeouts == [1.0, 0.5]
    assert result.timed_out is True
    assert [step.skipped for step in result.steps] == [False, False, True, True]
    reported = [payload["skipped"] for name, payload in emitter.events if name == "step_finished"]
    assert reported == [False, False, True, True]


def test_runtime_unavailable_is_reported_not_raised(workspace: Workspace) -> None:
    def handler(request: DockerRunRequest, workdir: Path) -> ContainerRun:
        raise RuntimeUnavailableError("Docker executable could not be located.")

    runner = FakeRunner(handler)
    result = SandboxedExecutor(runner=runner).run_plan(workspace, BIBER_PLAN, 10_000)

    assert result.runtime_unavailable is True
    assert result.runtime_message == "Docker executable could not be located."
    assert len(runner.requests) == 1
    assert all(step.skipped for step in result.steps)


def test_each_step_gets_its_own_container(workspace: Workspace) -> None:
    runner = FakeRunner()

    SandboxedExecutor(runner=runner).run_plan(workspace, BIBER_PLAN, 10_000)

    names = [request.name for request in runner.requests]
    assert len(set(names)) == 4
    assert all(name is not None and name.endswith(f"-{index}") for index, name in enumerate(names, 1))
