from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from texsandbox.adapters.docker import ContainerRun, DockerRunRequest
from texsandbox.core.config import CompilerConfig
from texsandbox.core.exceptions import RuntimeUnavailableError


Handler = Callable[[DockerRunRequest, Path], ContainerRun]


def _succeed(_request: DockerRunRequest, _workdir: Path) -> ContainerRun:
    return ContainerRun(returncode=0)


class FakeRunner:
    """Stand-in for :class:`DockerRunner` that never spawns processes."""

    def __init__(self, handler: Handler | None = None) -> None:
        self.handler: Handler = handler or _succeed
        self.requests: list[DockerRunRequest] = []
        self.timeouts: list[float | None] = []
        self.resets = 0
        self.info_calls = 0
        self.runtime_error: str | None = None
        self.image_available = True

    def run(self, request: DockerRunRequest, *, timeout: float | None = None) -> ContainerRun:
        self.requests.append(request)
        self.timeouts.append(timeout)
        workdir = Path(request.mounts[0].source)
        return self.handler(request, workdir)

    def reset(self) -> None:
        self.resets += 1

    def info(self, *, timeout: float) -> Any:
        self.info_calls += 1
        if self.runtime_error is not None:
            raise RuntimeUnavailableError(self.runtime_error)
        return None

    def image_present(self, image: str, *, timeout: float) -> bool:
        return self.image_available

    @property
    def commands(self) -> list[tuple[str, ...]]:
        return [tuple(request.args) for request in self.requests]


def write_pdf(workdir: Path, name: str = "main.pdf") -> None:
    (workdir / name).write_bytes(b"%PDF-1.5\n%fake\n")


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def workspace_root(tmp_path: Path) -> Path:
    return tmp_path / "workspaces"


@pytest.fixture
def config(workspace_root: Path) -> CompilerConfig:
    return CompilerConfig(workspace_root=workspace_root)
