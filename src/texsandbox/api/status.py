"""Availability probe for the container runtime and the toolchain image."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import logging
import threading
import time
from typing import Any

from texsandbox.adapters.docker import DockerRunner
from texsandbox.core.config import CompilerConfig
from texsandbox.core.exceptions import RuntimeUnavailableError, SandboxError


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RuntimeStatus:
    """Result of one availability probe."""

    runtime_up: bool
    toolchain_image_present: bool
    toolchain_image_name: str
    probe_message: str
    pull_command: str | None = None

    @property
    def ready(self) -> bool:
        return self.runtime_up and self.toolchain_image_present

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "runtimeUp": self.runtime_up,
            "toolchainImagePresent": self.toolchain_image_present,
            "toolchainImageName": self.toolchain_image_name,
            "probeMessage": self.probe_message,
        }
        if self.pull_command:
            payload["pullCommand"] = self.pull_command
        return payload


class RuntimeStatusCache:
    """Holds the last probe result for ``ttl`` seconds until invalidated."""

    def __init__(self, ttl: float = 30.0, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._value: RuntimeStatus | None = None
        self._stored_at = 0.0

    def get(self) -> RuntimeStatus | None:
        with self._lock:
            if self._value is None:
                return None
            if self._clock() - self._stored_at > self.ttl:
                self._value = None
                return None
            return self._value

    def store(self, status: RuntimeStatus) -> None:
        with self._lock:
            self._value = status
            self._stored_at = self._clock()

    def invalidate(self) -> None:
        with self._lock:
            self._value = None


def _runtime_message(detail: str) -> str:
    lowered = detail.lower()
    if "not found" in lowered or "could not be located" in lowered:
        return "Docker is not installed. Install Docker and make sure 'docker' is on PATH."
    if "cannot connect" in lowered or "daemon" in lowered:
        return "Docker is installed but not running. Start the Docker daemon."
    return f"Docker is not available: {detail}" if detail else "Docker is not available."


class StatusProbe:
    """Report runtime and toolchain-image availability outside of any build."""

    def __init__(
        self,
        config: CompilerConfig | None = None,
        *,
        runner: DockerRunner | None = None,
        cache: RuntimeStatusCache | None = None,
    ) -> None:
        self.config = config or CompilerConfig()
        self.runner = runner or DockerRunner(self.config.sandbox.docker_executable)
        self.cache = cache or RuntimeStatusCache(self.config.status_cache_ttl_s)

    @property
    def image(self) -> str:
        return self.config.sandbox.image

    @property
    def pull_command(self) -> str:
        return f"docker pull {self.image}"

    def probe(self, *, refresh: bool = False) -> RuntimeStatus:
        """Return the cached status, probing Docker when stale or ``refresh`` is set."""
        if not refresh:
            cached = self.cache.get()
            if cached is not None:
                return cached
        status = self._probe()
        self.cache.store(status)
        return status

    def invalidate(self) -> None:
        self.cache.invalidate()
        self.runner.reset()

    def _probe(self) -> RuntimeStatus:
        try:
            self.runner.info(timeout=self.config.probe_timeout_ms / 1000.0)
        except SandboxError as exc:
            logger.info("Docker runtime probe failed: %s", exc)
            return RuntimeStatus(
                runtime_up=False,
                toolchain_image_present=False,
                toolchain_image_name=self.image,
                probe_message=_runtime_message(str(exc)),
                pull_command=self.pull_command,
            )

        try:
            present = self.runner.image_present(
                self.image, timeout=self.config.image_probe_timeout_ms / 1000.0
            )
        except RuntimeUnavailableError as exc:
            return RuntimeStatus(
                runtime_up=False,
                toolchain_image_present=False,
                toolchain_image_name=self.image,
                probe_message=_runtime_message(str(exc)),
                pull_command=self.pull_command,
            )
        except SandboxError as exc:
            logger.info("Docker image probe failed: %s", exc)
            present = False

        if present:
            return RuntimeStatus(
                runtime_up=True,
                toolchain_image_present=True,
                toolchain_image_name=self.image,
                probe_message="Docker is ready for LaTeX compilation.",
            )
        return RuntimeStatus(
            runtime_up=True,
            toolchain_image_present=False,
            toolchain_image_name=self.image,
            probe_message=f"Docker is running but the image '{self.image}' has not been pulled.",
            pull_command=self.pull_command,
        )


__all__ = ["RuntimeStatus", "RuntimeStatusCache", "StatusProbe"]
