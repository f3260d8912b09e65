from __future__ import annotations

import pytest

from texsandbox.core.analysis import (
    BibliographyTool,
    RegexRequirementPolicy,
    ToolRequirements,
    analyze,
    strip_comments,
)


PLAIN = r"""\documentclass{article}
\begin{document}
Hello world.
\end{document}
"""


def test_plain_document_needs_no_tools() -> None:
    requirements = analyze(PLAIN)

    assert requirements == ToolRequirements()
    assert requirements.auxiliary_count == 0
    assert requirements.needs_auxiliary_tools is False


@pytest.mark.parametrize(
    "preamble",
    [
        r"\usepackage{biblatex}",
        r"\usepackage[backend=biber,style=authoryear]{biblatex}",
        r"\RequirePackage{biblatex}",
        r"\usepackage{csquotes,biblatex}",
    ],
)
def test_biblatex_selects_biber(preamble: str) -> None:
    assert analyze(preamble).bibliography is BibliographyTool.BIBER


@pytest.mark.parametrize(
    "directive",
    [r"\bibliography{refs}", r"\bibliographystyle{plain}", r"\bibliography {refs,more}"],
)
def test_legacy_directives_select_bibtex(directive: str) -> None:
    assert analyze(directive).bibliography is BibliographyTool.BIBTEX


def test_biber_suppresses_bibtex_when_both_present() -> None:
    source = "\\usepackage{biblatex}\n\\bibliographystyle{plain}\n\\bibliography{refs}\n"

    requirements = analyze(source)

    assert requirements.bibliography is BibliographyTool.BIBER
    assert requirements.auxiliary_count == 1


@pytest.mark.parametrize(
    "source",
    [
        r"\usepackage{glossaries}",
        r"\usepackage[acronym]{glossaries-extra}",
        r"\makeglossaries",
    ],
)
def test_glossary_detection(source: str) -> None:
    assert analyze(source).glossary is True


@pytest.mark.parametrize(
    "source",
    [r"\makeindex", r"\usepackage{makeidx}", r"\usepackage[intoc]{imakeidx}"],
)
def test_index_detection(source: str) -> None:
    assert analyze(source).index is True


@pytest.mark.parametrize(
    "source",
    [
        r"\usepackage{minted}",
        r"\usepackage[outputdir=build]{minted}",
        r"\usepackage{pythontex}",
        r"\usepackage{svg}",
    ],
)
def test_shell_escape_packages(source: str) -> None:
    assert analyze(source).shell_escape is True


def test_package_names_must_match_whole_words() -> None:
    requirements = analyze(r"\usepackage{svgcolor}" "\n" r"\usepackage{mintedstyle}")

    assert requirements.shell_escape is False


def test_makeindex_requires_word_boundary() -> None:
    requirements = analyze(r"\makeindexentries")

    assert requirements.index is False


def test_commented_directives_are_ignored() -> None:
    source = "% \\usepackage{biblatex}\n%\\makeindex\nText.\n"

    assert analyze(source) == ToolRequirements()


def test_escaped_percent_is_not_a_comment() -> None:
    source = "Growth of 100\\% \\bibliography{refs}\n"

    assert analyze(source).bibliography is BibliographyTool.BIBTEX


def test_strip_comments_keeps_text_before_percent() -> None:
    assert strip_comments("keep % drop\nnext") == "keep \nnext"


def test_percent_after_line_break_starts_a_comment() -> None:
    source = "Text\\\\% \\usepackage{biblatex}\n\\bibliography{refs}\n"

    assert analyze(source).bibliography is BibliographyTool.BIBTEX
    assert strip_comments("a\\\\% gone\nb\\\\\\% kept") == "a\\\\\nb\\\\\\% kept"


def test_all_tools_combined() -> None:
    source = "\n".join(
        [
            r"\usepackage{glossaries}",
            r"\usepackage{makeidx}",
            r"\usepackage{minted}",
            r"\bibliography{refs}",
        ]
    )

    requirements = analyze(source)

    assert requirements == ToolRequirements(
        bibliography=BibliographyTool.BIBTEX,
        glossary=True,
        index=True,
        shell_escape=True,
    )
    assert requirements.auxiliary_count == 3


def test_custom_policy_replaces_regex_scan() -> None:
    class AlwaysIndex:
        def analyze(self, source: str) -> ToolRequirements:
            return ToolRequirements(index=True)

    assert analyze(PLAIN, AlwaysIndex()).index is True
    assert isinstance(RegexRequirementPolicy().analyze(PLAIN), ToolRequirements)
