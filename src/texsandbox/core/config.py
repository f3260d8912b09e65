"""Configuration models for the sandboxed compiler.

SandboxConfig

`image` (`str`)
: Toolchain image bundling the TeX engines and auxiliary tools.

`docker_executable` (`str | None`)
: Explicit path to the Docker CLI. Looked up on `PATH` when omitted.

`network` (`str`)
: Docker network mode for build containers. Keep `none` unless the toolchain
  image genuinely needs the network.

`workdir` (`str`)
: Mount point of the workspace inside the container.

`use_host_user` (`bool`)
: Run containers with the host uid:gid so generated files stay removable.

`limits` (`ContainerLimits`)
: Optional CPU, memory and process-count caps.

`kill_timeout_ms` (`int`)
: Budget for force-removing a container after a timeout.

CompilerConfig

`default_engine` (`str`)
: Engine used when a request does not pick one.

`default_timeout_ms` (`int`)
: Wall-clock budget for a whole build.

`default_main_file` (`str`)
: Conventional main document name.

`probe_timeout_ms` / `image_probe_timeout_ms` (`int`)
: Budgets for the runtime and image availability checks.

`status_cache_ttl_s` (`float`)
: How long a status probe result is reused before re-probing.

`max_payload_bytes` (`int`)
: Upper bound on the total size of submitted sources.

`workspace_root` (`Path | None`)
: Parent directory for ephemeral workspaces (system temp dir by default).
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
import yaml

from .exceptions import InvalidRequestError
from .models import Engine


CONFIG_ENV_VAR = "TEXSANDBOX_CONFIG"
DEFAULT_IMAGE = "texlive/texlive:latest-full"


class ContainerLimits(BaseModel):
    """Runtime constraints applied to build containers."""

    model_config = ConfigDict(extra="forbid")

    cpus: float | None = None
    memory: str | None = None
    pids_limit: int | None = None


class SandboxConfig(BaseModel):
    """Isolation settings for the container runtime."""

    model_config = ConfigDict(extra="forbid")

    image: str = DEFAULT_IMAGE
    docker_executable: str | None = None
    network: str = "none"
    workdir: str = "/workdir"
    use_host_user: bool = True
    limits: ContainerLimits = Field(default_factory=ContainerLimits)
    kill_timeout_ms: int = Field(default=10_000, gt=0)


class CompilerConfig(BaseModel):
    """Top-level configuration for :class:`texsandbox.api.CompilationService`."""

    model_config = ConfigDict(extra="forbid")

    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)
    default_engine: str = Engine.PDFLATEX.value
    default_timeout_ms: int = Field(default=180_000, gt=0)
    default_main_file: str = "main.tex"
    probe_timeout_ms: int = Field(default=5_000, gt=0)
    image_probe_timeout_ms: int = Field(default=10_000, gt=0)
    status_cache_ttl_s: float = Field(default=30.0, ge=0)
    max_payload_bytes: int = Field(default=2_000_000, gt=0)
    workspace_root: Path | None = None
    workspace_prefix: str = "texsandbox-"

    @field_validator("default_engine")
    @classmethod
    def _check_engine(cls, value: str) -> str:
        return Engine.parse(value).value

    @property
    def engine(self) -> Engine:
        return Engine(self.default_engine)


def load_config(path: Path | str | None = None) -> CompilerConfig:
    """Load configuration from YAML, falling back to ``$TEXSANDBOX_CONFIG`` then defaults."""
    candidate = path or os.environ.get(CONFIG_ENV_VAR)
    if not candidate:
        return CompilerConfig()

    config_path = Path(candidate).expanduser()
    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise InvalidRequestError(f"Unable to read configuration '{config_path}': {exc}") from exc

    try:
        data: Any = yaml.safe_load(raw) or {}
    except yaml.YAMLError as exc:
        raise InvalidRequestError(f"Invalid YAML in '{config_path}': {exc}") from exc

    if not isinstance(data, dict):
        raise InvalidRequestError(f"Configuration '{config_path}' must be a mapping.")
    try:
        return CompilerConfig.model_validate(data)
    except ValidationError as exc:
        raise InvalidRequestError(f"Invalid configuration in '{config_path}': {exc}") from exc


__all__ = [
    "CONFIG_ENV_VAR",
    "DEFAULT_IMAGE",
    "CompilerConfig",
    "ContainerLimits",
    "SandboxConfig",
    "load_config",
]
