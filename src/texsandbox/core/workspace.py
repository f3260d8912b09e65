"""Ephemeral on-disk workspaces holding one request's sources."""

from __future__ import annotations

from collections.abc import Iterable
import logging
from pathlib import Path, PurePosixPath
import shutil
import tempfile
from types import TracebackType

from .exceptions import WorkspaceError
from .models import SourceFile


logger = logging.getLogger(__name__)


def safe_relative_path(logical_path: str) -> PurePosixPath:
    """Validate ``logical_path`` and return it as a relative POSIX path.

    Absolute paths and ``..`` segments are rejected so nothing can be written
    outside the workspace.
    """
    cleaned = logical_path.strip().replace("\\", "/")
    candidate = PurePosixPath(cleaned)
    if not cleaned or candidate.is_absolute() or cleaned.startswith("~"):
        raise WorkspaceError(f"Source path '{logical_path}' must be relative to the project.")
    if any(part == ".." for part in candidate.parts):
        raise WorkspaceError(f"Source path '{logical_path}' escapes the project directory.")
    if not candidate.parts or candidate.as_posix() == ".":
        raise WorkspaceError(f"Source path '{logical_path}' does not name a file.")
    return candidate


class Workspace:
    """Uniquely named temporary directory, removed when the context exits."""

    def __init__(self, *, root: Path | None = None, prefix: str = "texsandbox-") -> None:
        self._root = root
        self._prefix = prefix
        self._path: Path | None = None

    @property
    def path(self) -> Path:
        if self._path is None:
            raise WorkspaceError("Workspace has not been created.")
        return self._path

    @property
    def active(self) -> bool:
        return self._path is not None

    def create(self) -> Path:
        if self._path is not None:
            return self._path
        if self._root is not None:
            self._root.mkdir(parents=True, exist_ok=True)
        self._path = Path(tempfile.mkdtemp(prefix=self._prefix, dir=self._root))
        logger.debug("created workspace %s", self._path)
        return self._path

    def cleanup(self) -> None:
        if self._path is None:
            return
        path, self._path = self._path, None
        shutil.rmtree(path, ignore_errors=True)
        if path.exists():
            logger.warning("Failed to remove workspace %s", path)
        else:
            logger.debug("removed workspace %s", path)

    def materialize(self, files: Iterable[SourceFile]) -> list[Path]:
        """Write every source at its logical path, creating parent directories."""
        written: list[Path] = []
        base = self.path
        for source in files:
            target = base.joinpath(*safe_relative_path(source.path).parts)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(source.payload())
            except OSError as exc:
                raise WorkspaceError(f"Unable to write '{source.path}': {exc}") from exc
            written.append(target)
        return written

    def read_artifact(self, name: str) -> bytes | None:
        """Return the bytes of ``name`` if it exists in the workspace."""
        candidate = self.path / name
        if not candidate.is_file():
            return None
        return candidate.read_bytes()

    def has_artifact(self, name: str) -> bool:
        return (self.path / name).is_file()

    def __enter__(self) -> Workspace:
        self.create()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.cleanup()


__all__ = ["Workspace", "safe_relative_path"]
