"""Detect which auxiliary tools a LaTeX source needs.

Detection is a heuristic line scan rather than a parse: TeX macros are too
permissive to parse faithfully, and directives hidden behind ``\\input`` or
conditionals stay invisible. The scan lives behind :class:`RequirementPolicy`
so a fuller analyser can replace it without touching the planner.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import re
from typing import Protocol, runtime_checkable


class BibliographyTool(Enum):
    """Bibliography processor required by a document."""

    NONE = "none"
    BIBER = "biber"
    BIBTEX = "bibtex"


@dataclass(frozen=True, slots=True)
class ToolRequirements:
    """Verdict of a requirement policy for one document."""

    bibliography: BibliographyTool = BibliographyTool.NONE
    glossary: bool = False
    index: bool = False
    shell_escape: bool = False

    @property
    def auxiliary_count(self) -> int:
        """Number of auxiliary tool steps a full build runs."""
        return (
            int(self.bibliography is not BibliographyTool.NONE)
            + int(self.glossary)
            + int(self.index)
        )

    @property
    def needs_auxiliary_tools(self) -> bool:
        return self.auxiliary_count > 0


@runtime_checkable
class RequirementPolicy(Protocol):
    """Strategy deciding tool requirements from markup source."""

    def analyze(self, source: str) -> ToolRequirements: ...


def _package_pattern(*names: str) -> re.Pattern[str]:
    # Matches \usepackage[opts]{a,b,name,c} and \RequirePackage.
    alternatives = "|".join(re.escape(name) for name in names)
    return re.compile(
        r"\\(?:usepackage|RequirePackage)\s*(?:\[[^\]]*\])?\s*"
        r"\{[^}]*?(?<![\w-])(?:" + alternatives + r")(?![\w-])[^}]*\}"
    )


_BIBLATEX = _package_pattern("biblatex")
_BIBTEX_DIRECTIVES = re.compile(r"\\bibliography(?:style)?\s*\{")
_GLOSSARIES = (_package_pattern("glossaries", "glossaries-extra"), re.compile(r"\\makeglossaries\b"))
_INDEX = (re.compile(r"\\makeindex\b"), _package_pattern("makeidx", "imakeidx"))
_SHELL_ESCAPE = (_package_pattern("minted", "pythontex", "svg", "gnuplottex"),)

# A % preceded by an even run of backslashes starts a comment.
_COMMENT = re.compile(r"((?<!\\)(?:\\\\)*)%.*$", re.MULTILINE)


def strip_comments(source: str) -> str:
    """Remove TeX line comments, keeping escaped ``\\%``."""
    return _COMMENT.sub(r"\1", source)


class RegexRequirementPolicy:
    """Default policy: structural regex matching over comment-stripped source."""

    def analyze(self, source: str) -> ToolRequirements:
        text = strip_comments(source)

        bibliography = BibliographyTool.NONE
        if _BIBLATEX.search(text):
            bibliography = BibliographyTool.BIBER
        elif _BIBTEX_DIRECTIVES.search(text):
            bibliography = BibliographyTool.BIBTEX

        return ToolRequirements(
            bibliography=bibliography,
            glossary=any(pattern.search(text) for pattern in _GLOSSARIES),
            index=any(pattern.search(text) for pattern in _INDEX),
            shell_escape=any(pattern.search(text) for pattern in _SHELL_ESCAPE),
        )


_default_policy = RegexRequirementPolicy()


def analyze(source: str, policy: RequirementPolicy | None = None) -> ToolRequirements:
    """Return the tool requirements of ``source`` using ``policy`` (regex scan by default)."""
    return (policy or _default_policy).analyze(source)


__all__ = [
    "BibliographyTool",
    "RegexRequirementPolicy",
    "RequirementPolicy",
    "ToolRequirements",
    "analyze",
    "strip_comments",
]
