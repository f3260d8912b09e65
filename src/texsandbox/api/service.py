"""Build orchestration: validate, analyse, plan, execute, classify, assemble."""

from __future__ import annotations

import base64
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
import logging
from pathlib import PurePosixPath
from typing import Any

from texsandbox.adapters.docker import DockerRunner
from texsandbox.adapters.latex.executor import ExecutionResult, SandboxedExecutor
from texsandbox.adapters.latex.log import parse_compilation_output, split_log_lines
from texsandbox.core.analysis import RequirementPolicy, analyze
from texsandbox.core.config import CompilerConfig
from texsandbox.core.diagnostics import DiagnosticEmitter, LoggingEmitter
from texsandbox.core.exceptions import InvalidRequestError, WorkspaceError
from texsandbox.core.models import (
    BuildRequest,
    Diagnostic,
    DiagnosticSeverity,
    Engine,
    SourceFile,
    SourceKind,
    normalise_logical_path,
)
from texsandbox.core.planning import CompilationPlan, describe_plan, plan
from texsandbox.core.workspace import Workspace, safe_relative_path

from .payload import parse_payload
from .status import RuntimeStatus, RuntimeStatusCache, StatusProbe


__all__ = [
    "BuildOutcome",
    "BuildResponse",
    "CompilationService",
]


logger = logging.getLogger(__name__)


class BuildOutcome(Enum):
    """Distinguished build outcomes and their transport status codes."""

    OK = "ok"
    FAILED = "failed"
    INVALID_REQUEST = "invalid_request"
    TIMED_OUT = "timed_out"
    RUNTIME_UNAVAILABLE = "runtime_unavailable"
    INTERNAL_ERROR = "internal_error"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]

    @property
    def hard_failure(self) -> bool:
        """True when the request itself could not be serviced."""
        return self in {BuildOutcome.INVALID_REQUEST, BuildOutcome.INTERNAL_ERROR}


_HTTP_STATUS = {
    BuildOutcome.OK: 200,
    BuildOutcome.FAILED: 200,
    BuildOutcome.INVALID_REQUEST: 400,
    BuildOutcome.TIMED_OUT: 408,
    BuildOutcome.RUNTIME_UNAVAILABLE: 503,
    BuildOutcome.INTERNAL_ERROR: 500,
}


@dataclass(slots=True)
class BuildResponse:
    """Normalised result of :meth:`CompilationService.build`."""

    success: bool
    outcome: BuildOutcome
    artifact: bytes | None = None
    log: list[str] = field(default_factory=list)
    errors: list[Diagnostic] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    timeout_ms: int | None = None
    execution: ExecutionResult | None = field(default=None, repr=False)

    @classmethod
    def failure(
        cls, outcome: BuildOutcome, message: str, *, log: list[str] | None = None
    ) -> BuildResponse:
        return cls(
            success=False,
            outcome=outcome,
            log=log if log is not None else [message],
            errors=[Diagnostic(severity=DiagnosticSeverity.ERROR, message=message)],
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the wire representation (artifact base64-encoded)."""
        payload: dict[str, Any] = {
            "success": self.success,
            "outcome": self.outcome.value,
            "log": list(self.log),
            "errors": [error.to_dict() for error in self.errors],
            "warnings": list(self.warnings),
        }
        if self.artifact is not None:
            payload["pdf"] = base64.b64encode(self.artifact).decode("ascii")
        if self.timeout_ms is not None:
            payload["timeoutMs"] = self.timeout_ms
        return payload


class CompilationService:
    """High-level façade running one sandboxed build per request.

    The service is stateless between requests apart from the status cache, so
    one instance may serve concurrent builds.
    """

    def __init__(
        self,
        config: CompilerConfig | None = None,
        *,
        runner: DockerRunner | None = None,
        executor: SandboxedExecutor | None = None,
        policy: RequirementPolicy | None = None,
        emitter: DiagnosticEmitter | None = None,
        status_cache: RuntimeStatusCache | None = None,
    ) -> None:
        self.config = config or CompilerConfig()
        self.emitter = emitter or LoggingEmitter()
        self.runner = runner or DockerRunner(
            self.config.sandbox.docker_executable,
            kill_timeout=self.config.sandbox.kill_timeout_ms / 1000.0,
        )
        self.executor = executor or SandboxedExecutor(
            self.config.sandbox, runner=self.runner, emitter=self.emitter
        )
        self.policy = policy
        self.probe = StatusProbe(self.config, runner=self.runner, cache=status_cache)

    def build_payload(self, data: Mapping[str, Any] | str | bytes) -> BuildResponse:
        """Validate a wire payload then :meth:`build` it."""
        try:
            request = parse_payload(data, self.config)
        except InvalidRequestError as exc:
            return BuildResponse.failure(BuildOutcome.INVALID_REQUEST, str(exc))
        return self.build(request)

    def build(self, request: BuildRequest) -> BuildResponse:
        """Compile ``request`` and apply the success policy.

        Input problems are rejected before a workspace exists. Every other path
        (success, toolchain failure, timeout, unavailable runtime, unexpected
        exception) removes the workspace before returning.
        """
        try:
            main = self.validate(request)
        except InvalidRequestError as exc:
            self.emitter.warning(f"Rejected build request: {exc}")
            return BuildResponse.failure(BuildOutcome.INVALID_REQUEST, str(exc))

        options = request.options
        try:
            requirements = analyze(main.text(), self.policy)
            build_plan = plan(
                normalise_logical_path(main.path),
                requirements,
                check_only=options.check_only,
                engine=options.engine,
            )
            self.emitter.event(
                "plan_ready",
                {"engine": options.engine.value, "steps": [str(step) for step in build_plan.steps]},
            )
            logger.debug("planned commands: %s", describe_plan(build_plan.steps))

            with Workspace(
                root=self.config.workspace_root, prefix=self.config.workspace_prefix
            ) as workspace:
                execution = self.executor.execute(
                    workspace, request.files, build_plan, options.timeout_ms
                )
                response = self._assemble(workspace, build_plan, execution, request)
        except Exception as exc:
            logger.exception("Compilation failed unexpectedly")
            self.emitter.error(f"Internal error during compilation: {exc}")
            return BuildResponse.failure(
                BuildOutcome.INTERNAL_ERROR,
                f"Internal error: {exc}",
                log=[f"Server error: {exc}"],
            )

        self.emitter.event(
            "build_finished",
            {
                "outcome": response.outcome.value,
                "errors": len(response.errors),
                "warnings": len(response.warnings),
            },
        )
        return response

    def validate(self, request: BuildRequest) -> SourceFile:
        """Check ``request`` and return its main source file."""
        if not request.files:
            raise InvalidRequestError("LaTeX content or project files are required.")

        seen: set[str] = set()
        directories: set[str] = set()
        total = 0
        for source in request.files:
            try:
                relative = safe_relative_path(source.path)
            except WorkspaceError as exc:
                raise InvalidRequestError(str(exc)) from exc
            key = relative.as_posix()
            if key in seen:
                raise InvalidRequestError(f"Source path '{source.path}' is listed more than once.")
            seen.add(key)
            directories.update(parent.as_posix() for parent in relative.parents if parent.parts)
            if source.kind is SourceKind.IMAGE:
                try:
                    source.payload()
                except WorkspaceError as exc:
                    raise InvalidRequestError(str(exc)) from exc
            total += source.size

        clashes = sorted(seen & directories)
        if clashes:
            raise InvalidRequestError(
                f"Source path '{clashes[0]}' is also used as a directory by other files."
            )

        if total > self.config.max_payload_bytes:
            limit = self.config.max_payload_bytes
            raise InvalidRequestError(f"LaTeX content exceeds the maximum size ({limit} bytes).")

        main_name = (request.main_file or "").strip()
        if not main_name:
            raise InvalidRequestError("No main file was designated.")
        if main_name.startswith("-") or main_name.rsplit("/", 1)[-1].startswith("-"):
            raise InvalidRequestError(f"Main file name '{main_name}' is not allowed.")
        main = request.find(main_name)
        if main is None:
            raise InvalidRequestError(f"Main file '{main_name}' not found in project.")
        if main.kind is SourceKind.IMAGE:
            raise InvalidRequestError(f"Main file '{main_name}' is not a markup document.")

        # Reserved for the PDF the engine writes.
        artifact = f"{PurePosixPath(normalise_logical_path(main.path)).stem}.pdf"
        if artifact in seen:
            raise InvalidRequestError(f"Source path '{artifact}' is reserved for the build output.")
        return main

    def status(self, *, refresh: bool = False) -> RuntimeStatus:
        """Probe Docker and the toolchain image (cached)."""
        return self.probe.probe(refresh=refresh)

    def describe_capabilities(self) -> dict[str, Any]:
        """Summarise what this service can compile."""
        return {
            "supportedEngines": [engine.value for engine in Engine],
            "features": [
                "biblatex + biber",
                "BibTeX",
                "glossaries",
                "makeindex",
                "minted (shell-escape)",
                "check-only single pass",
            ],
            "toolchainImage": self.config.sandbox.image,
            "defaultTimeoutMs": self.config.default_timeout_ms,
            "maxPayloadBytes": self.config.max_payload_bytes,
        }

    def _assemble(
        self,
        workspace: Workspace,
        build_plan: CompilationPlan,
        execution: ExecutionResult,
        request: BuildRequest,
    ) -> BuildResponse:
        options = request.options

        if execution.runtime_unavailable:
            self.probe.invalidate()
            detail = execution.runtime_message or "Docker is not available"
            response = BuildResponse.failure(
                BuildOutcome.RUNTIME_UNAVAILABLE,
                "Docker is not running or not installed.",
                log=["Docker is not available", detail],
            )
            response.execution = execution
            return response

        output = execution.combined_output
        log_lines = split_log_lines(output)
        parsed = parse_compilation_output(output)

        if execution.timed_out:
            seconds = f"{options.timeout_ms / 1000:g}"
            timeout_error = Diagnostic(
                severity=DiagnosticSeverity.ERROR,
                message="Compilation timed out. Document may be too complex.",
            )
            return BuildResponse(
                success=False,
                outcome=BuildOutcome.TIMED_OUT,
                log=[*log_lines, f"Compilation timed out after {seconds} seconds"],
                errors=[timeout_error, *parsed.errors],
                warnings=parsed.warning_messages,
                timeout_ms=options.timeout_ms,
                execution=execution,
            )

        artifact: bytes | None = None
        if options.check_only:
            # A single pass can report errors a full build would resolve.
            exists = workspace.has_artifact(build_plan.artifact_name)
            success = not parsed.errors or exists
        else:
            # Later passes may emit transient errors; the PDF on disk decides.
            artifact = workspace.read_artifact(build_plan.artifact_name) or None
            success = artifact is not None

        return BuildResponse(
            success=success,
            outcome=BuildOutcome.OK if success else BuildOutcome.FAILED,
            artifact=artifact,
            log=log_lines,
            errors=parsed.errors,
            warnings=parsed.warning_messages,
            execution=execution,
        )
