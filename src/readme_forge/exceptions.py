from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ReadmeForgeError(Exception):
    """Base exception for errors in the readme_forge package."""

    message: str = "README generation failed."

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class InvalidLocatorError(ReadmeForgeError):
    """Raised when a repository locator cannot be resolved. No I/O has happened yet."""

    locator: str = ""
    message: str = "Invalid GitHub repository URL."


@dataclass(frozen=True)
class InvalidArchiveError(InvalidLocatorError):
    """Raised when an uploaded archive is not a readable zip file."""

    message: str = "The uploaded file is not a valid zip archive."


@dataclass(frozen=True)
class RepositoryNotFoundError(ReadmeForgeError):
    """Raised on a 404 from the hosting API."""

    context: str = ""
    message: str = (
        "Repository not found. Please check the URL. "
        "If it's a private repository, provide a Personal Access Token."
    )


@dataclass(frozen=True)
class InvalidCredentialError(ReadmeForgeError):
    """Raised on a 401 from the hosting API."""

    context: str = ""
    message: str = "Invalid Personal Access Token. Please check your token and its permissions."


@dataclass(frozen=True)
class RateLimitedError(ReadmeForgeError):
    """Raised on a 403 carrying a rate-limit reset header."""

    context: str = ""
    retry_after_minutes: int | None = None
    message: str = "GitHub API rate limit exceeded."


@dataclass(frozen=True)
class ForbiddenError(ReadmeForgeError):
    """Raised on a 403 that is not a rate-limit condition."""

    context: str = ""
    message: str = (
        "GitHub API rate limit exceeded or access forbidden. "
        "For private repos, a PAT with 'repo' scope is required."
    )


@dataclass(frozen=True)
class UpstreamError(ReadmeForgeError):
    """Raised for any other failure of an enumeration step."""

    status_code: int = 0
    context: str = ""
    message: str = "Failed to fetch data from GitHub."


@dataclass(frozen=True)
class FileFetchError(ReadmeForgeError):
    """A single file could not be retrieved or decoded.

    Never fatal: backends log it and drop the file from the context.
    """

    path: str = ""
    reason: str = ""
    message: str = "Could not fetch file content."


@dataclass(frozen=True)
class EmptyContextError(ReadmeForgeError):
    """Raised when no file survives filtering and fetching."""

    message: str = (
        "Could not find any relevant files to analyze in the repository. "
        "Please check the repo, your token permissions, and the file types."
    )


@dataclass(frozen=True)
class GenerationError(ReadmeForgeError):
    """Raised when the generative model call fails."""

    message: str = "Failed to generate README. Please check the repository URL and try again."


@dataclass(frozen=True)
class UnsupportedFormatError(ReadmeForgeError):
    """Raised when an export format is not supported."""

    fmt: str = ""
    message: str = "Unsupported export format."
