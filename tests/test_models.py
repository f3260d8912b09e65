from __future__ import annotations

import pytest

from texsandbox.core.exceptions import WorkspaceError
from texsandbox.core.models import (
    BuildRequest,
    CompilationOptions,
    Diagnostic,
    DiagnosticSeverity,
    Engine,
    SourceFile,
    SourceKind,
    normalise_logical_path,
)


@pytest.mark.parametrize(
    ("path", "kind"),
    [
        ("main.tex", SourceKind.MARKUP),
        ("refs.BIB", SourceKind.BIBLIOGRAPHY),
        ("lib/thesis.cls", SourceKind.CLASS),
        ("macros.sty", SourceKind.STYLE),
        ("figures/plot.pdf", SourceKind.IMAGE),
        ("README", SourceKind.OTHER),
    ],
)
def test_kind_from_suffix(path: str, kind: SourceKind) -> None:
    assert SourceKind.from_path(path) is kind


def test_create_accepts_kind_names() -> None:
    assert SourceFile.create("a.txt", "x", "tex").kind is SourceKind.MARKUP
    assert SourceFile.create("a.tex", "x").kind is SourceKind.MARKUP
    with pytest.raises(ValueError):
        SourceFile.create("a.tex", "x", "video")


def test_text_payload_is_utf8() -> None:
    source = SourceFile("main.tex", "Caf\u00e9", SourceKind.MARKUP)

    assert source.payload() == "Caf\u00e9".encode()
    assert source.size == 5


def test_image_payload_is_base64_decoded() -> None:
    source = SourceFile("logo.png", "aGVsbG8=", SourceKind.IMAGE)

    assert source.payload() == b"hello"


def test_invalid_image_data_is_rejected() -> None:
    source = SourceFile("logo.png", "not base64!", SourceKind.IMAGE)

    with pytest.raises(WorkspaceError):
        source.payload()


def test_engine_parse() -> None:
    assert Engine.parse(None) is Engine.PDFLATEX
    assert Engine.parse("", default=Engine.XELATEX) is Engine.XELATEX
    assert Engine.parse(" XeLaTeX ") is Engine.XELATEX
    with pytest.raises(ValueError, match="Unsupported engine"):
        Engine.parse("tectonic")


def test_options_reject_non_positive_timeout() -> None:
    with pytest.raises(ValueError):
        CompilationOptions(timeout_ms=0)


def test_find_normalises_paths() -> None:
    request = BuildRequest(files=[SourceFile("chapters\\one.tex", "x")])

    assert request.find("./chapters/one.tex") is request.files[0]
    assert request.find("two.tex") is None


def test_normalise_logical_path() -> None:
    assert normalise_logical_path("./a/b.tex") == "a/b.tex"
    assert normalise_logical_path(" a\\b.tex ") == "a/b.tex"


def test_diagnostic_to_dict_omits_missing_location() -> None:
    diagnostic = Diagnostic(DiagnosticSeverity.ERROR, "Oops")

    assert diagnostic.to_dict() == {"message": "Oops"}
