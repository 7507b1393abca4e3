"""Parameter models for each protocol method."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class Params(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class NoParams(Params):
    pass


class SetWorkspaceParams(Params):
    path: str = Field(min_length=1)
    alt_path: str | None = Field(
        default=None,
        validation_alias=AliasChoices("altPath", "macPath", "windowsPath", "alt_path"),
    )


class ExecuteCommandParams(Params):
    command: str
    cwd: str | None = None
    env: dict[str, str] | None = None
    timeout: int | None = Field(default=None, ge=0)


class PathParams(Params):
    path: str


class FileExistsParams(Params):
    # Anything goes; a non-string path simply does not exist
    path: Any = None


class WriteFileParams(Params):
    path: str
    content: str


class CopyFileParams(Params):
    src: str
    dest: str


class RunClaudeCodeParams(Params):
    prompt: str
    cwd: str | None = None
    model: str | None = None
    max_turns: int | None = Field(
        default=None, ge=0, validation_alias=AliasChoices("maxTurns", "max_turns")
    )
    system_prompt: str | None = Field(
        default=None, validation_alias=AliasChoices("systemPrompt", "system_prompt")
    )
    env: dict[str, str] | None = None
