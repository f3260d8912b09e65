"""Data model shared by the analysis, planning, execution and assembly stages."""

from __future__ import annotations

import base64
import binascii
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Any

from .exceptions import WorkspaceError


class SourceKind(Enum):
    """Role of a source file inside a compilation project."""

    MARKUP = "tex"
    BIBLIOGRAPHY = "bib"
    CLASS = "cls"
    STYLE = "sty"
    IMAGE = "image"
    OTHER = "other"

    @classmethod
    def from_path(cls, path: str) -> SourceKind:
        """Infer the kind from the file suffix."""
        suffix = PurePosixPath(path).suffix.lower()
        return _SUFFIX_KINDS.get(suffix, cls.OTHER)


_SUFFIX_KINDS: dict[str, SourceKind] = {
    ".tex": SourceKind.MARKUP,
    ".ltx": SourceKind.MARKUP,
    ".bib": SourceKind.BIBLIOGRAPHY,
    ".bibtex": SourceKind.BIBLIOGRAPHY,
    ".cls": SourceKind.CLASS,
    ".sty": SourceKind.STYLE,
    ".png": SourceKind.IMAGE,
    ".jpg": SourceKind.IMAGE,
    ".jpeg": SourceKind.IMAGE,
    ".gif": SourceKind.IMAGE,
    ".pdf": SourceKind.IMAGE,
    ".eps": SourceKind.IMAGE,
}


class Engine(Enum):
    """Primary rendering engines bundled in the toolchain image."""

    PDFLATEX = "pdflatex"
    XELATEX = "xelatex"
    LUALATEX = "lualatex"

    @classmethod
    def parse(cls, value: str | Engine | None, default: Engine | None = None) -> Engine:
        if isinstance(value, Engine):
            return value
        candidate = (value or "").strip().lower()
        if not candidate:
            return default or cls.PDFLATEX
        try:
            return cls(candidate)
        except ValueError as exc:
            supported = ", ".join(engine.value for engine in cls)
            raise ValueError(f"Unsupported engine '{value}' (expected one of: {supported}).") from exc


@dataclass(slots=True)
class SourceFile:
    """A single input file, addressed by its project-relative logical path.

    Image content travels base64-encoded; every other kind is text or raw bytes.
    """

    path: str
    content: bytes | str
    kind: SourceKind = SourceKind.OTHER

    @classmethod
    def create(cls, path: str, content: bytes | str, kind: SourceKind | str | None = None) -> SourceFile:
        if kind is None or kind == "":
            resolved = SourceKind.from_path(path)
        elif isinstance(kind, SourceKind):
            resolved = kind
        else:
            resolved = SourceKind(str(kind).strip().lower())
        return cls(path=path, content=content, kind=resolved)

    @property
    def size(self) -> int:
        if isinstance(self.content, str):
            return len(self.content.encode("utf-8"))
        return len(self.content)

    def text(self) -> str:
        """Return the content decoded as text (used for analysis)."""
        if isinstance(self.content, bytes):
            return self.content.decode("utf-8", errors="replace")
        return self.content

    def payload(self) -> bytes:
        """Return the bytes to write on disk, decoding image transport encoding."""
        if self.kind is SourceKind.IMAGE:
            try:
                raw = self.content.encode("ascii") if isinstance(self.content, str) else self.content
                # Line-wrapped (MIME style) base64 is accepted.
                return base64.b64decode(b"".join(raw.split()), validate=True)
            except (binascii.Error, ValueError) as exc:
                raise WorkspaceError(f"Image '{self.path}' is not valid base64 data.") from exc
        if isinstance(self.content, str):
            return self.content.encode("utf-8")
        return self.content


@dataclass(frozen=True, slots=True)
class CompilationOptions:
    """Immutable per-request compilation options."""

    engine: Engine = Engine.PDFLATEX
    timeout_ms: int = 180_000
    check_only: bool = False

    def __post_init__(self) -> None:
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be a positive number of milliseconds.")


class DiagnosticSeverity(Enum):
    """Severity of a classified toolchain message."""

    ERROR = "error"
    WARNING = "warning"


@dataclass(slots=True)
class Diagnostic:
    """Structured error or warning extracted from toolchain output."""

    severity: DiagnosticSeverity
    message: str
    file: str | None = None
    line: int | None = None
    column: int | None = None
    details: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"message": self.message}
        if self.file is not None:
            payload["file"] = self.file
        if self.line is not None:
            payload["line"] = self.line
        if self.column is not None:
            payload["column"] = self.column
        return payload


@dataclass(slots=True)
class BuildRequest:
    """Validated request for a single compilation."""

    files: Sequence[SourceFile]
    main_file: str = "main.tex"
    options: CompilationOptions = field(default_factory=CompilationOptions)

    @classmethod
    def single(
        cls,
        content: str,
        *,
        main_file: str = "main.tex",
        options: CompilationOptions | None = None,
    ) -> BuildRequest:
        """Build a request for the single-document case."""
        return cls(
            files=[SourceFile(path=main_file, content=content, kind=SourceKind.MARKUP)],
            main_file=main_file,
            options=options or CompilationOptions(),
        )

    def find(self, logical_path: str) -> SourceFile | None:
        target = normalise_logical_path(logical_path)
        for source in self.files:
            if normalise_logical_path(source.path) == target:
                return source
        return None


def normalise_logical_path(path: str) -> str:
    """Return a canonical POSIX form of a project-relative path (``./a.tex`` -> ``a.tex``)."""
    return PurePosixPath(path.strip().replace("\\", "/")).as_posix()


__all__ = [
    "BuildRequest",
    "CompilationOptions",
    "Diagnostic",
    "DiagnosticSeverity",
    "Engine",
    "SourceFile",
    "SourceKind",
    "normalise_logical_path",
]
