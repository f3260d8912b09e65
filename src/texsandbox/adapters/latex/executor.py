"""Run compilation plans inside a network-disabled toolchain container."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
import logging
import time
import uuid

from texsandbox.adapters.docker import (
    DockerLimits,
    DockerRunner,
    DockerRunRequest,
    VolumeMount,
)
from texsandbox.core.config import SandboxConfig
from texsandbox.core.diagnostics import DiagnosticEmitter, NullEmitter
from texsandbox.core.exceptions import RuntimeUnavailableError
from texsandbox.core.models import SourceFile
from texsandbox.core.planning import CompilationPlan, ShellStep
from texsandbox.core.workspace import Workspace


logger = logging.getLogger(__name__)

# Containers run as the host uid, which has no passwd entry and no home.
_CONTAINER_ENV = {
    "HOME": "/tmp",
    "TEXMFVAR": "/tmp/texmf-var",
    "TEXMFCONFIG": "/tmp/texmf-config",
}


@dataclass(slots=True)
class StepResult:
    """Captured output of one plan step."""

    step: ShellStep
    returncode: int | None = None
    stdout: str = ""
    stderr: str = ""
    skipped: bool = False
    timed_out: bool = False

    @property
    def failed(self) -> bool:
        return not self.skipped and self.returncode != 0


@dataclass(slots=True)
class ExecutionResult:
    """Buffered output of a plan run, with its abnormal-termination flags."""

    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    runtime_unavailable: bool = False
    runtime_message: str | None = None
    steps: list[StepResult] = field(default_factory=list)

    @property
    def combined_output(self) -> str:
        return f"{self.stdout}\n{self.stderr}".strip()


class SandboxedExecutor:
    """Materialise sources into a workspace and run a plan step by step.

    Each step is its own ``docker run`` with its own captured output. A fatal
    step that fails skips the remainder; a tolerant one does not. The timeout
    is one deadline shared by every step.
    """

    def __init__(
        self,
        config: SandboxConfig | None = None,
        *,
        runner: DockerRunner | None = None,
        emitter: DiagnosticEmitter | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or SandboxConfig()
        self.runner = runner or DockerRunner(
            self.config.docker_executable, kill_timeout=self.config.kill_timeout_ms / 1000.0
        )
        self.emitter = emitter or NullEmitter()
        self._clock = clock

    def execute(
        self,
        workspace: Workspace,
        files: Iterable[SourceFile],
        plan: CompilationPlan,
        timeout_ms: int,
    ) -> ExecutionResult:
        """Write ``files`` into ``workspace`` and run ``plan`` under ``timeout_ms``."""
        written = workspace.materialize(files)
        self.emitter.event(
            "workspace_created", {"path": str(workspace.path), "files": len(written)}
        )
        return self.run_plan(workspace, plan, timeout_ms)

    def run_plan(self, workspace: Workspace, plan: CompilationPlan, timeout_ms: int) -> ExecutionResult:
        result = ExecutionResult()
        deadline = self._clock() + timeout_ms / 1000.0
        build_id = uuid.uuid4().hex[:12]
        aborted = False

        for index, step in enumerate(plan.steps, start=1):
            if aborted or result.timed_out or result.runtime_unavailable:
                result.steps.append(StepResult(step=step, skipped=True))
                self._report(result.steps[-1])
                continue

            remaining = deadline - self._clock()
            if remaining <= 0:
                result.timed_out = True
                result.steps.append(StepResult(step=step, skipped=True))
                self._report(result.steps[-1])
                continue

            request = self._build_request(workspace, step, name=f"texsandbox-{build_id}-{index}")
            try:
                run = self.runner.run(request, timeout=remaining)
            except RuntimeUnavailableError as exc:
                logger.error("Container runtime unavailable: %s", exc)
                result.runtime_unavailable = True
                result.runtime_message = str(exc)
                result.steps.append(StepResult(step=step, skipped=True))
                self._report(result.steps[-1])
                continue

            step_result = StepResult(
                step=step,
                returncode=run.returncode,
                stdout=run.stdout,
                stderr=run.stderr,
                timed_out=run.timed_out,
            )
            result.steps.append(step_result)
            self._report(step_result)

            if run.timed_out:
                result.timed_out = True
            elif step_result.failed and not step.tolerant:
                logger.info("%s failed with status %s; skipping remaining steps", step.label, run.returncode)
                aborted = True

        result.stdout = "\n".join(step.stdout for step in result.steps if step.stdout)
        result.stderr = "\n".join(step.stderr for step in result.steps if step.stderr)
        return result

    def _build_request(self, workspace: Workspace, step: ShellStep, *, name: str) -> DockerRunRequest:
        config = self.config
        limits = config.limits
        return DockerRunRequest(
            image=config.image,
            args=step.argv,
            mounts=(VolumeMount(workspace.path, config.workdir),),
            environment=dict(_CONTAINER_ENV),
            workdir=config.workdir,
            use_host_user=config.use_host_user,
            limits=DockerLimits(cpus=limits.cpus, memory=limits.memory, pids_limit=limits.pids_limit),
            network=config.network,
            name=name,
        )

    def _report(self, step_result: StepResult) -> None:
        self.emitter.event(
            "step_finished",
            {
                "label": step_result.step.label,
                "returncode": step_result.returncode,
                "tolerant": step_result.step.tolerant,
                "skipped": step_result.skipped,
            },
        )


__all__ = ["ExecutionResult", "SandboxedExecutor", "StepResult"]
