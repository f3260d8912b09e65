from __future__ import annotations

import itertools

import pytest

from texsandbox.core.analysis import BibliographyTool, ToolRequirements, analyze
from texsandbox.core.models import Engine
from texsandbox.core.planning import (
    ENGINE_FLAGS,
    RESOLUTION_PASSES,
    SHELL_ESCAPE_FLAG,
    describe_plan,
    engine_command,
    plan,
)


def _all_requirements() -> list[ToolRequirements]:
    combos = itertools.product(
        list(BibliographyTool), [False, True], [False, True], [False, True]
    )
    return [
        ToolRequirements(bibliography=bib, glossary=glossary, index=index, shell_escape=shell)
        for bib, glossary, index, shell in combos
    ]


@pytest.mark.parametrize("requirements", _all_requirements())
@pytest.mark.parametrize("check_only", [False, True])
def test_plan_length_follows_auxiliary_count(
    requirements: ToolRequirements, check_only: bool
) -> None:
    result = plan("main.tex", requirements, check_only=check_only)

    aux = requirements.auxiliary_count
    if check_only or aux == 0:
        expected = 1
    else:
        expected = 1 + aux + RESOLUTION_PASSES
    assert len(result.steps) == expected
    if check_only:
        assert len(result.engine_passes) == 1


def test_single_file_without_tools_runs_one_pass() -> None:
    result = plan("main.tex", ToolRequirements())

    assert [step.label for step in result.steps] == ["pdflatex (pass 1)"]
    assert result.steps[0].argv == ("pdflatex", *ENGINE_FLAGS, "main.tex")
    assert result.steps[0].tolerant is False


def test_biblatex_with_legacy_style_plans_biber_only() -> None:
    source = "\\usepackage{biblatex}\n\\bibliographystyle{plain}\n"

    result = plan("main.tex", analyze(source))

    assert [step.label for step in result.steps] == [
        "pdflatex (pass 1)",
        "biber",
        "pdflatex (pass 2)",
        "pdflatex (pass 3)",
    ]
    assert result.steps[1].argv == ("biber", "main")
    assert result.requires_bib_tool is BibliographyTool.BIBER


def test_check_only_plans_a_single_pass() -> None:
    source = "\\usepackage{biblatex}\n\\bibliographystyle{plain}\n"

    result = plan("main.tex", analyze(source), check_only=True)

    assert len(result.steps) == 1
    assert result.steps[0].is_pass
    assert result.auxiliary_steps == []


def test_auxiliary_tools_run_in_order_and_are_tolerant() -> None:
    requirements = ToolRequirements(
        bibliography=BibliographyTool.BIBTEX, glossary=True, index=True
    )

    result = plan("thesis.tex", requirements)

    assert [step.argv for step in result.auxiliary_steps] == [
        ("bibtex", "thesis"),
        ("makeglossaries", "thesis"),
        ("makeindex", "thesis"),
    ]
    assert all(step.tolerant for step in result.auxiliary_steps)
    assert not any(step.tolerant for step in result.engine_passes)
    assert len(result.engine_passes) == 1 + RESOLUTION_PASSES


def test_shell_escape_applies_to_every_pass() -> None:
    requirements = ToolRequirements(bibliography=BibliographyTool.BIBER, shell_escape=True)

    result = plan("main.tex", requirements)

    assert result.requires_elevated_shell is True
    for step in result.engine_passes:
        assert step.argv[1] == SHELL_ESCAPE_FLAG
    for step in result.auxiliary_steps:
        assert SHELL_ESCAPE_FLAG not in step.argv


def test_engine_choice_is_honoured() -> None:
    result = plan("main.tex", ToolRequirements(), engine=Engine.XELATEX)

    assert result.steps[0].argv[0] == "xelatex"
    assert result.steps[0].label == "xelatex (pass 1)"


def test_nested_main_file_uses_stem_for_job_and_artifact() -> None:
    result = plan("chapters/book.tex", ToolRequirements(index=True))

    assert result.job_name == "book"
    assert result.artifact_name == "book.pdf"
    assert result.requires_index_tool is True
    assert result.steps[0].argv[-1] == "chapters/book.tex"
    assert result.auxiliary_steps[0].argv == ("makeindex", "book")


def test_engine_command_without_shell_escape() -> None:
    assert engine_command(Engine.LUALATEX, "doc.tex", shell_escape=False) == (
        "lualatex",
        "-interaction=nonstopmode",
        "-file-line-error",
        "doc.tex",
    )


def test_describe_plan_joins_argv() -> None:
    result = plan("main.tex", ToolRequirements(glossary=True))

    assert describe_plan(result.steps)[:2] == [
        "pdflatex -interaction=nonstopmode -file-line-error main.tex",
        "makeglossaries main",
    ]
    assert str(result.steps[1]) == "makeglossaries"
    assert result.requires_glossary_tool is True
