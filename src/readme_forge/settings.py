from __future__ import annotations

import os
from pathlib import Path

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, model_validator

from readme_forge.config import GITHUB_API_URL
from readme_forge.generation import DEFAULT_MODEL

ENV_FILE = find_dotenv(usecwd=True)
if ENV_FILE:
    load_dotenv(ENV_FILE)

REPO_COMMANDS = frozenset({"context", "generate"})


def _env_token() -> str:
    return os.getenv("GITHUB_TOKEN", "")


def _env_api_key() -> str:
    return os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY", "")


class Settings(BaseModel):
    """Configuration settings for one readme_forge invocation."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    command: str = Field(default="generate", description="Subcommand to run.")
    repo: str = Field(default="", description="GitHub repository URL.")
    archive: Path | None = Field(default=None, description="Zip archive of the repository.")
    output: Path | None = Field(default=None, description="Output file.")
    format: str = Field(default="", description="Force export format (md, txt, pdf).")
    log_file: str = Field(default="", description="Log file path.")

    token: str = Field(default_factory=_env_token, description="GitHub personal access token.")
    api_url: str = Field(default=GITHUB_API_URL, description="GitHub API root.")
    timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds.")
    max_concurrency: int = Field(
        default=0,
        ge=0,
        description="Cap on concurrent file fetches (0 = unlimited).",
    )

    api_key: str = Field(default_factory=_env_api_key, description="Gemini API key.")
    model: str = Field(default=DEFAULT_MODEL, description="Model used for README generation.")
    thinking: bool = Field(default=False, description="Enable extended thinking.")
    stream: bool = Field(default=False, description="Stream the model answer.")

    input: Path | None = Field(default=None, description="Document to edit.")
    instruction: str = Field(default="", description="Edit instruction.")
    selection: str = Field(default="", description="Text to edit (default: whole document).")

    message: list[str] = Field(default_factory=list, description="Chat messages (default: read stdin).")

    @model_validator(mode="after")
    def _check_source(self) -> Settings:
        if self.command in REPO_COMMANDS and bool(self.repo) == bool(self.archive):
            msg = "exactly one of --repo or --archive is required"
            raise ValueError(msg)
        return self

    @property
    def source(self) -> str | Path:
        return self.archive if self.archive is not None else self.repo
