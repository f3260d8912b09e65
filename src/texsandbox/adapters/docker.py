"""Abstractions for invoking Docker containers safely."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
import shutil
import subprocess

from texsandbox.core.exceptions import RuntimeUnavailableError, SandboxError


logger = logging.getLogger(__name__)

# Docker CLI messages meaning the daemon cannot be reached at all.
_DAEMON_UNREACHABLE_MARKERS = (
    "cannot connect to the docker daemon",
    "is the docker daemon running",
    "error during connect",
    "permission denied while trying to connect to the docker daemon",
    "docker daemon is not running",
)


@dataclass(slots=True)
class VolumeMount:
    """Bind mount configuration."""

    source: Path | str
    target: str


@dataclass(slots=True)
class DockerLimits:
    """Runtime constraints for Docker containers."""

    cpus: float | int | None = None
    memory: str | None = None
    pids_limit: int | None = None


@dataclass(slots=True)
class DockerRunRequest:
    """Full request payload for a Docker execution."""

    image: str
    args: Sequence[str] = field(default_factory=tuple)
    mounts: Sequence[VolumeMount] = field(default_factory=tuple)
    environment: Mapping[str, str] = field(default_factory=dict)
    workdir: str | None = None
    use_host_user: bool = True
    limits: DockerLimits | None = None
    network: str | None = None
    name: str | None = None


@dataclass(slots=True)
class ContainerRun:
    """Captured outcome of one container invocation."""

    returncode: int | None
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False


def is_daemon_unreachable(message: str) -> bool:
    """Return True when Docker CLI output reports an unreachable daemon."""
    lowered = message.lower()
    return any(marker in lowered for marker in _DAEMON_UNREACHABLE_MARKERS)


def _as_text(value: str | bytes | None) -> str:
    # TimeoutExpired carries raw bytes even for text-mode runs on POSIX.
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


class DockerRunner:
    """Utility class encapsulating Docker invocations."""

    def __init__(self, executable: str | None = None, *, kill_timeout: float = 10.0) -> None:
        self._explicit_executable = executable
        self._cached_executable: str | None = None
        self.kill_timeout = kill_timeout

    def reset(self) -> None:
        """Clear cached executable lookup results."""
        self._cached_executable = None

    def run(self, request: DockerRunRequest, *, timeout: float | None = None) -> ContainerRun:
        """Execute Docker with the supplied request.

        A non-zero exit status is returned as data. Only an unreachable runtime
        raises (:class:`RuntimeUnavailableError`). On timeout the container is
        force-removed and whatever output was buffered is returned.
        """
        command = self._build_run_command(request)
        try:
            result = subprocess.run(
                command,
                check=False,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as exc:
            logger.warning("Container %s exceeded %.1fs budget", request.name or request.image, timeout)
            if request.name:
                self.remove_container(request.name)
            return ContainerRun(
                returncode=None,
                stdout=_as_text(exc.stdout),
                stderr=_as_text(exc.stderr),
                timed_out=True,
            )
        except FileNotFoundError as exc:
            self._cached_executable = None
            raise RuntimeUnavailableError("Docker executable could not be located.") from exc
        except OSError as exc:
            raise SandboxError(f"Failed to invoke Docker: {exc}") from exc

        stdout = result.stdout or ""
        stderr = result.stderr or ""
        if result.returncode != 0 and is_daemon_unreachable(stderr):
            raise RuntimeUnavailableError(stderr.strip().splitlines()[0])
        return ContainerRun(returncode=result.returncode, stdout=stdout, stderr=stderr)

    def remove_container(self, name: str, *, timeout: float | None = None) -> bool:
        """Force-remove a (possibly still running) container."""
        executable = self._resolve_executable(optional=True)
        if executable is None:
            return False
        try:
            result = subprocess.run(
                [executable, "rm", "--force", name],
                check=False,
                capture_output=True,
                text=True,
                timeout=timeout if timeout is not None else self.kill_timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.warning("Unable to remove container %s: %s", name, exc)
            return False
        return result.returncode == 0

    def info(self, *, timeout: float) -> subprocess.CompletedProcess[str]:
        """Run ``docker info``; raises :class:`RuntimeUnavailableError` when unreachable."""
        result = self._run_cli(["info"], timeout=timeout)
        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            raise RuntimeUnavailableError(detail or "Docker daemon did not respond.")
        return result

    def image_present(self, image: str, *, timeout: float) -> bool:
        """Return True when ``image`` is available locally."""
        result = self._run_cli(["images", "-q", image], timeout=timeout)
        if result.returncode != 0:
            detail = (result.stderr or "").strip()
            if is_daemon_unreachable(detail):
                raise RuntimeUnavailableError(detail)
            raise SandboxError(f"Unable to list Docker images: {detail}")
        return bool((result.stdout or "").strip())

    def _run_cli(self, args: Sequence[str], *, timeout: float) -> subprocess.CompletedProcess[str]:
        executable = self._resolve_executable(optional=False)
        assert executable is not None
        try:
            return subprocess.run(
                [executable, *args],
                check=False,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except FileNotFoundError as exc:
            self._cached_executable = None
            raise RuntimeUnavailableError("Docker executable could not be located.") from exc
        except subprocess.TimeoutExpired as exc:
            raise RuntimeUnavailableError(
                f"Docker did not answer 'docker {args[0]}' within {timeout:g}s."
            ) from exc
        except OSError as exc:
            raise SandboxError(f"Failed to invoke Docker: {exc}") from exc

    def _build_run_command(self, request: DockerRunRequest) -> list[str]:
        executable = self._resolve_executable(optional=False)
        assert executable is not None
        command: list[str] = [executable, "run", "--rm"]

        if request.name:
            command.extend(["--name", request.name])

        user = self._resolve_host_user() if request.use_host_user else None
        if user:
            command.extend(["--user", user])

        if request.environment:
            for key in sorted(request.environment):
                value = request.environment[key]
                command.extend(["-e", f"{key}={value}"])

        if request.workdir:
            command.extend(["--workdir", request.workdir])

        if request.network:
            command.extend(["--network", request.network])

        command.extend(self._build_mounts(request.mounts))
        command.extend(self._build_limits(request.limits))

        command.append(request.image)
        command.extend(request.args)
        return command

    def _build_mounts(self, mounts: Sequence[VolumeMount]) -> list[str]:
        flags: list[str] = []
        for mount in mounts:
            host = Path(mount.source).expanduser()
            if not host.exists():
                raise SandboxError(f"Docker mount source '{host}' does not exist.")
            try:
                resolved = host.resolve(strict=True)
            except (OSError, RuntimeError):
                resolved = host.absolute()

            flags.extend(["--mount", f"type=bind,src={resolved},dst={mount.target}"])
        return flags

    def _build_limits(self, limits: DockerLimits | None) -> list[str]:
        if limits is None:
            return []

        flags: list[str] = []
        if limits.cpus is not None:
            flags.extend(["--cpus", str(limits.cpus)])
        if limits.memory:
            flags.extend(["--memory", str(limits.memory)])
        if limits.pids_limit is not None:
            flags.extend(["--pids-limit", str(limits.pids_limit)])
        return flags

    def _resolve_executable(self, *, optional: bool) -> str | None:
        if self._explicit_executable:
            return self._explicit_executable

        if self._cached_executable:
            return self._cached_executable

        try:
            executable = shutil.which("docker")
        except (AssertionError, OSError, ValueError):
            executable = None

        if executable:
            self._cached_executable = executable
            return executable

        if optional:
            return None

        raise RuntimeUnavailableError("Docker is required but was not found on PATH.")

    def _resolve_host_user(self) -> str | None:
        getuid = getattr(os, "getuid", None)
        getgid = getattr(os, "getgid", None)

        if callable(getuid) and callable(getgid):
            try:
                uid = getuid()
                gid = getgid()
            except OSError:
                return None
            return f"{uid}:{gid}"

        return None


__all__ = [
    "ContainerRun",
    "DockerLimits",
    "DockerRunRequest",
    "DockerRunner",
    "VolumeMount",
    "is_daemon_unreachable",
]
