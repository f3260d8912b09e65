"""Classify free-text TeX toolchain output into structured diagnostics."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
import re

from texsandbox.core.models import Diagnostic, DiagnosticSeverity


# TeX hard-wraps terminal output at max_print_line (79 by default).
MAX_PRINT_LINE = 79
LINE_LOOKAHEAD = 4

_FILE_LINE_ERROR = re.compile(
    r"^(?:\./)?(?P<file>[^\s:()]+\.[A-Za-z0-9]+):(?P<line>\d+):"
    r"(?:(?P<column>\d+):)?\s*(?P<summary>\S.*)$"
)

_MESSAGE_PATTERNS: list[tuple[re.Pattern[str], DiagnosticSeverity]] = [
    (re.compile(r"^! (?P<summary>.+)$"), DiagnosticSeverity.ERROR),
    (re.compile(r"^LaTeX Error: (?P<summary>.+)$"), DiagnosticSeverity.ERROR),
    (re.compile(r"^ERROR - (?P<summary>.+)$"), DiagnosticSeverity.ERROR),
    (re.compile(r"^LaTeX (?:Font )?Warning: (?P<summary>.+)$"), DiagnosticSeverity.WARNING),
    (
        re.compile(r"^Package (?P<context>\S+) Warning: (?P<summary>.+)$"),
        DiagnosticSeverity.WARNING,
    ),
    (
        re.compile(r"^Class (?P<context>\S+) Warning: (?P<summary>.+)$"),
        DiagnosticSeverity.WARNING,
    ),
    (re.compile(r"^pdfTeX warning (?P<summary>.+)$", re.I), DiagnosticSeverity.WARNING),
    (
        re.compile(r"^(?P<summary>(?:Overfull|Underfull) \\[hv]box .+)$"),
        DiagnosticSeverity.WARNING,
    ),
    (re.compile(r"^Missing character: ?(?P<summary>.+)$", re.I), DiagnosticSeverity.WARNING),
    (re.compile(r"^WARN - (?P<summary>.+)$"), DiagnosticSeverity.WARNING),
    (re.compile(r"^Warning--(?P<summary>.+)$"), DiagnosticSeverity.WARNING),
    (re.compile(r"^Warning: (?P<summary>.+)$"), DiagnosticSeverity.WARNING),
]

_ERROR_CONTINUATIONS = (
    "Emergency stop.",
    "==> Fatal error occurred, no output PDF file produced!",
)

_SOURCE_LINE = re.compile(r"^l\.(?P<line>\d+)\b")
_PACKAGE_CONTINUATION = re.compile(r"^\([A-Za-z0-9@._-]+\)\s")


@dataclass(slots=True)
class ParsedOutput:
    """Errors and warnings classified from one build's output."""

    errors: list[Diagnostic] = field(default_factory=list)
    warnings: list[Diagnostic] = field(default_factory=list)

    @property
    def warning_messages(self) -> list[str]:
        return [warning.message for warning in self.warnings]


class LatexLogParser:
    """Incrementally parse TeX output into diagnostics.

    Lines that match no marker are informational and produce nothing.
    """

    def __init__(self) -> None:
        self._current: Diagnostic | None = None
        self._current_wrapped = False
        self._last_error: Diagnostic | None = None
        self._lookahead = 0
        self._messages: list[Diagnostic] = []

    @property
    def messages(self) -> Sequence[Diagnostic]:
        """Return the diagnostics accumulated so far."""
        return tuple(self._messages)

    def process_line(self, line: str) -> list[Diagnostic]:
        """Process one output line and return diagnostics that have just completed."""
        raw = line.rstrip("\r\n")
        payload = raw.strip()
        completed: list[Diagnostic] = []
        if not payload:
            return completed

        self._assign_source_line(payload)

        diagnostic = self._match_message(payload)
        if diagnostic is not None:
            if (
                diagnostic.severity is DiagnosticSeverity.ERROR
                and diagnostic.message in _ERROR_CONTINUATIONS
                and self._last_error is not None
            ):
                self._last_error.details.append(diagnostic.message)
                return completed
            completed.extend(self._finalize_current())
            self._current = diagnostic
            self._current_wrapped = len(raw) >= MAX_PRINT_LINE
            if diagnostic.severity is DiagnosticSeverity.ERROR:
                self._last_error = diagnostic
                self._lookahead = LINE_LOOKAHEAD if diagnostic.line is None else 0
            return completed

        if self._current is None:
            return completed

        if self._current_wrapped and not self._is_detail_line(raw):
            self._current.message += payload
            self._current_wrapped = len(raw) >= MAX_PRINT_LINE
            return completed

        if self._is_detail_line(raw):
            self._current.details.append(payload)
            self._current_wrapped = False
            return completed

        completed.extend(self._finalize_current())
        return completed

    def finalize(self) -> list[Diagnostic]:
        """Flush any pending diagnostic."""
        return self._finalize_current()

    def _finalize_current(self) -> list[Diagnostic]:
        if self._current is None:
            return []
        current, self._current = self._current, None
        self._current_wrapped = False
        self._messages.append(current)
        return [current]

    def _assign_source_line(self, payload: str) -> None:
        # "! ..." errors report their location on a later "l.<n>" context line.
        if self._lookahead <= 0 or self._last_error is None:
            return
        self._lookahead -= 1
        match = _SOURCE_LINE.match(payload)
        if match and self._last_error.line is None:
            self._last_error.line = int(match.group("line"))
            self._lookahead = 0

    @staticmethod
    def _is_detail_line(line: str) -> bool:
        detail_prefixes = (
            "Type ",
            "Enter file name",
            "or enter new name",
            "<read ",
            "<recently read>",
            "<argument>",
            "<to be read again>",
            "*** ",
            "l.",
        )
        stripped = line.strip()
        return (
            stripped.startswith(detail_prefixes)
            or bool(_PACKAGE_CONTINUATION.match(stripped))
            or (line.startswith(" ") and bool(stripped))
        )

    @staticmethod
    def _match_message(line: str) -> Diagnostic | None:
        match = _FILE_LINE_ERROR.match(line)
        if match:
            column = match.group("column")
            return Diagnostic(
                severity=DiagnosticSeverity.ERROR,
                message=match.group("summary").strip(),
                file=match.group("file"),
                line=int(match.group("line")),
                column=int(column) if column else None,
            )
        for pattern, severity in _MESSAGE_PATTERNS:
            match = pattern.match(line)
            if match:
                summary = match.groupdict().get("summary", "").strip()
                return Diagnostic(severity=severity, message=summary or line.strip())
        return None


def _deduplicate(diagnostics: Iterable[Diagnostic]) -> list[Diagnostic]:
    # Every engine pass repeats the same messages.
    seen: set[tuple[object, ...]] = set()
    unique: list[Diagnostic] = []
    for diagnostic in diagnostics:
        key = (diagnostic.severity, diagnostic.message, diagnostic.file, diagnostic.line)
        if key in seen:
            continue
        seen.add(key)
        unique.append(diagnostic)
    return unique


def parse_compilation_output(output: str) -> ParsedOutput:
    """Classify combined toolchain output into errors and warnings."""
    parser = LatexLogParser()
    for line in output.splitlines():
        parser.process_line(line)
    parser.finalize()

    diagnostics = _deduplicate(parser.messages)
    return ParsedOutput(
        errors=[d for d in diagnostics if d.severity is DiagnosticSeverity.ERROR],
        warnings=[d for d in diagnostics if d.severity is DiagnosticSeverity.WARNING],
    )


def split_log_lines(output: str) -> list[str]:
    """Split raw output into lines, dropping blank ones."""
    return [line for line in output.splitlines() if line.strip()]


__all__ = [
    "LatexLogParser",
    "ParsedOutput",
    "parse_compilation_output",
    "split_log_lines",
]
