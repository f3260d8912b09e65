"""Validation of transport-level build payloads."""

from __future__ import annotations

from collections.abc import Mapping
import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from texsandbox.core.config import CompilerConfig
from texsandbox.core.exceptions import InvalidRequestError
from texsandbox.core.models import (
    BuildRequest,
    CompilationOptions,
    Engine,
    SourceFile,
    SourceKind,
)


class SourceFilePayload(BaseModel):
    """One project file as submitted by a client."""

    model_config = ConfigDict(extra="forbid")

    path: str
    content: str
    type: str | None = None


class BuildPayload(BaseModel):
    """Build request in its wire shape (camelCase keys accepted)."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    content: str | None = None
    files: list[SourceFilePayload] | None = None
    main_file: str | None = Field(default=None, alias="mainFile")
    engine: str | None = None
    timeout: int | None = None
    check_only: bool = Field(default=False, alias="checkOnly")

    def to_request(self, config: CompilerConfig | None = None) -> BuildRequest:
        """Convert to a :class:`BuildRequest`, applying configuration defaults."""
        config = config or CompilerConfig()
        main_file = (self.main_file or "").strip() or config.default_main_file

        try:
            options = CompilationOptions(
                engine=Engine.parse(self.engine, default=config.engine),
                timeout_ms=self.timeout if self.timeout is not None else config.default_timeout_ms,
                check_only=self.check_only,
            )
        except ValueError as exc:
            raise InvalidRequestError(str(exc)) from exc

        if self.content:
            files = [SourceFile(path=main_file, content=self.content, kind=SourceKind.MARKUP)]
        elif self.files:
            try:
                files = [SourceFile.create(f.path, f.content, f.type) for f in self.files]
            except ValueError as exc:
                raise InvalidRequestError(f"Unsupported file type: {exc}") from exc
        else:
            raise InvalidRequestError("LaTeX content or project files are required.")

        return BuildRequest(files=files, main_file=main_file, options=options)


def parse_payload(
    data: Mapping[str, Any] | str | bytes, config: CompilerConfig | None = None
) -> BuildRequest:
    """Validate a JSON document or mapping and return the matching request."""
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as exc:
            raise InvalidRequestError(f"Request body is not valid JSON: {exc}") from exc
    if not isinstance(data, Mapping):
        raise InvalidRequestError("Request body must be a JSON object.")
    try:
        payload = BuildPayload.model_validate(dict(data))
    except ValidationError as exc:
        raise InvalidRequestError(f"Malformed build request: {exc}") from exc
    return payload.to_request(config)


__all__ = ["BuildPayload", "SourceFilePayload", "parse_payload"]
