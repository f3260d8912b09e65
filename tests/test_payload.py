from __future__ import annotations

import base64
import json

import pytest

from texsandbox.api.payload import parse_payload
from texsandbox.core.config import CompilerConfig
from texsandbox.core.exceptions import InvalidRequestError
from texsandbox.core.models import Engine, SourceKind


def test_single_content_becomes_main_file() -> None:
    request = parse_payload({"content": "\\documentclass{article}"})

    assert request.main_file == "main.tex"
    assert len(request.files) == 1
    assert request.files[0].kind is SourceKind.MARKUP
    assert request.options.engine is Engine.PDFLATEX
    assert request.options.timeout_ms == 180_000
    assert request.options.check_only is False


def test_project_files_with_camel_case_keys() -> None:
    logo = base64.b64encode(b"\x89PNG").decode("ascii")
    request = parse_payload(
        {
            "files": [
                {"path": "thesis.tex", "content": "x"},
                {"path": "refs.bib", "content": "@book{}"},
                {"path": "logo.png", "content": logo, "type": "image"},
            ],
            "mainFile": "thesis.tex",
            "engine": "LuaLaTeX",
            "timeout": 60000,
            "checkOnly": True,
        }
    )

    assert request.main_file == "thesis.tex"
    assert [source.kind for source in request.files] == [
        SourceKind.MARKUP,
        SourceKind.BIBLIOGRAPHY,
        SourceKind.IMAGE,
    ]
    assert request.files[2].payload() == b"\x89PNG"
    assert request.options.engine is Engine.LUALATEX
    assert request.options.timeout_ms == 60_000
    assert request.options.check_only is True


def test_json_text_is_accepted() -> None:
    request = parse_payload(json.dumps({"content": "x", "mainFile": "paper.tex"}))

    assert request.find("paper.tex") is not None


def test_config_supplies_defaults() -> None:
    config = CompilerConfig(default_engine="xelatex", default_timeout_ms=1_000, default_main_file="doc.tex")

    request = parse_payload({"content": "x"}, config)

    assert request.options.engine is Engine.XELATEX
    assert request.options.timeout_ms == 1_000
    assert request.main_file == "doc.tex"


@pytest.mark.parametrize(
    ("data", "fragment"),
    [
        ("{not json", "not valid JSON"),
        ("[1, 2]", "JSON object"),
        ({}, "required"),
        ({"content": "x", "engine": "context"}, "Unsupported engine"),
        ({"content": "x", "timeout": 0}, "timeout_ms"),
        ({"files": [{"path": "a.tex", "content": "x", "extra": 1}]}, "Malformed"),
        ({"files": [{"path": "a.tex", "content": "x", "type": "video"}]}, "Unsupported file type"),
        ({"content": 42}, "Malformed"),
    ],
)
def test_invalid_payloads(data: object, fragment: str) -> None:
    with pytest.raises(InvalidRequestError) as excinfo:
        parse_payload(data)  # type: ignore[arg-type]

    assert fragment in str(excinfo.value)
