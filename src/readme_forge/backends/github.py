"""GitHub REST API backend.

Enumeration uses two sequential calls (repository metadata for the default
branch, then a recursive tree listing). Blobs are fetched one request per
file; the pipeline issues those concurrently.
"""

from __future__ import annotations

import base64
import math
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

import httpx
import structlog

from readme_forge.backends.base import SourceBackend
from readme_forge.config import (
    GITHUB_ACCEPT,
    GITHUB_API_URL,
    GITHUB_HOST,
    IGNORE_FILE_NAME,
    ContentUnit,
    FileEntry,
    GitHubLocator,
    IgnoreRuleSet,
)
from readme_forge.exceptions import (
    FileFetchError,
    ForbiddenError,
    InvalidCredentialError,
    InvalidLocatorError,
    RateLimitedError,
    RepositoryNotFoundError,
    UpstreamError,
)
from readme_forge.ignore_rules import load_rule_set

if TYPE_CHECKING:
    from readme_forge.exceptions import ReadmeForgeError

logger = structlog.get_logger(__name__)

RATE_LIMIT_RESET_HEADER = "x-ratelimit-reset"


def parse_repo_url(url: str) -> GitHubLocator:
    """Extract owner and repository name from a GitHub URL.

    Args:
        url (str): e.g. ``https://github.com/acme/widgets.git``

    Raises:
        InvalidLocatorError: if the host is not GitHub or the owner/repo segments are missing

    Returns:
        GitHubLocator: the parsed owner and repository name
    """
    try:
        parsed = urlparse(url.strip())
    except ValueError as e:
        raise InvalidLocatorError(locator=url) from e
    if parsed.scheme not in {"http", "https"} or parsed.hostname != GITHUB_HOST:
        raise InvalidLocatorError(locator=url)
    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) < 2:  # noqa: PLR2004
        raise InvalidLocatorError(locator=url)
    repo = parts[1].removesuffix(".git")
    if not repo:
        raise InvalidLocatorError(locator=url)
    return GitHubLocator(owner=parts[0], repo=repo)


def build_headers(token: str | None = None) -> dict[str, str]:
    headers = {"Accept": GITHUB_ACCEPT}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def minutes_until_reset(reset_header: str, now: datetime | None = None) -> int | None:
    """Minutes to wait until a rate-limit window resets, rounded up.

    Returns None when the header is not an epoch timestamp.
    """
    try:
        reset_at = int(reset_header)
    except ValueError:
        return None
    current = (now or datetime.now(UTC)).timestamp()
    return math.ceil((reset_at - current) / 60)


def translate_error(response: httpx.Response, context: str, now: datetime | None = None) -> ReadmeForgeError:
    """Map a non-success GitHub response to the matching fatal error."""
    status = response.status_code
    if status == httpx.codes.NOT_FOUND:
        return RepositoryNotFoundError(
            context=context,
            message=(
                f"{context}: Repository not found. Please check the URL. "
                "If it's a private repository, provide a Personal Access Token."
            ),
        )
    if status == httpx.codes.UNAUTHORIZED:
        return InvalidCredentialError(
            context=context,
            message=f"{context}: Invalid Personal Access Token. Please check your token and its permissions.",
        )
    if status == httpx.codes.FORBIDDEN:
        reset_header = response.headers.get(RATE_LIMIT_RESET_HEADER)
        if reset_header is not None:
            minutes = minutes_until_reset(reset_header, now)
            if minutes is not None and minutes > 0:
                wait = f"Please try again in about {minutes} minute(s)."
            else:
                wait = "Please try again shortly."
            return RateLimitedError(
                context=context,
                retry_after_minutes=minutes if minutes is not None and minutes > 0 else None,
                message=(
                    f"{context}: GitHub API rate limit exceeded. {wait} Using a PAT can increase your rate limit."
                ),
            )
        return ForbiddenError(
            context=context,
            message=(
                f"{context}: GitHub API rate limit exceeded or access forbidden. "
                "For private repos, a PAT with 'repo' scope is required."
            ),
        )
    return UpstreamError(
        status_code=status,
        context=context,
        message=f"{context}: Failed to fetch data from GitHub. Status: {status}",
    )


def raise_for_github_status(response: httpx.Response, context: str) -> None:
    if not response.is_success:
        raise translate_error(response, context)


class GitHubBackend(SourceBackend):
    """Read a repository through the GitHub REST API.

    Args:
        locator: parsed locator or a repository URL
        token: optional personal access token, sent as a bearer credential
        api_url: API root, overridable for GitHub Enterprise
        client: an existing ``httpx.AsyncClient``; the backend closes only clients it created
        timeout: request timeout in seconds for a client created here
    """

    def __init__(
        self,
        locator: GitHubLocator | str,
        token: str | None = None,
        *,
        api_url: str = GITHUB_API_URL,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.locator = parse_repo_url(locator) if isinstance(locator, str) else locator
        self.api_url = api_url.rstrip("/")
        self.headers = build_headers(token)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self.default_branch: str | None = None
        self.truncated = False

    def describe(self) -> str:
        return self.locator.full_name

    def _url(self, path: str) -> str:
        return f"{self.api_url}/repos/{self.locator.owner}/{self.locator.repo}{path}"

    async def _get(self, path: str, params: dict[str, str] | None = None) -> httpx.Response:
        return await self._client.get(self._url(path), headers=self.headers, params=params)

    async def _get_json(self, path: str, context: str, params: dict[str, str] | None = None) -> Any:  # noqa: ANN401
        """GET an enumeration endpoint; every failure here is fatal."""
        try:
            response = await self._get(path, params)
        except httpx.HTTPError as e:
            raise UpstreamError(context=context, message=f"{context}: Could not reach GitHub: {e}") from e
        raise_for_github_status(response, context)
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                status_code=response.status_code,
                context=context,
                message=f"{context}: GitHub returned an unreadable response.",
            ) from e

    async def resolve_default_branch(self) -> str:
        if self.default_branch is None:
            context = "Fetching repository info"
            data = await self._get_json("", context)
            branch = data.get("default_branch") if isinstance(data, dict) else None
            if not branch:
                raise UpstreamError(context=context, message=f"{context}: Repository has no default branch.")
            self.default_branch = str(branch)
        return self.default_branch

    async def enumerate(self) -> list[FileEntry]:
        branch = await self.resolve_default_branch()
        context = "Fetching file tree"
        data = await self._get_json(f"/git/trees/{branch}", context, params={"recursive": "1"})
        tree = data.get("tree") if isinstance(data, dict) else None
        if not isinstance(tree, list):
            raise UpstreamError(context=context, message=f"{context}: GitHub returned an unexpected payload.")
        self.truncated = bool(data.get("truncated"))
        if self.truncated:
            logger.warning("file_tree_truncated", repo=self.describe(), branch=branch)

        entries: list[FileEntry] = []
        skipped = 0
        for item in tree:
            if not isinstance(item, dict) or not isinstance(item.get("path"), str) or not item["path"]:
                skipped += 1
                continue
            kind = item.get("type")
            if kind not in {"blob", "tree"}:
                # submodules show up as "commit"
                continue
            size = item.get("size")
            sha = item.get("sha")
            entries.append(
                FileEntry(
                    path=item["path"],
                    size=size if isinstance(size, int) and size >= 0 else 0,
                    is_dir=kind == "tree",
                    sha=sha if isinstance(sha, str) else "",
                ),
            )
        if skipped:
            logger.warning("file_tree_items_skipped", repo=self.describe(), count=skipped)
        return entries

    async def load_ignore_rules(self) -> IgnoreRuleSet:
        branch = await self.resolve_default_branch()
        try:
            response = await self._get(f"/contents/{IGNORE_FILE_NAME}", params={"ref": branch})
            if not response.is_success:
                logger.info("ignore_file_missing", repo=self.describe(), status=response.status_code)
                return IgnoreRuleSet.empty()
            payload = response.json()
            encoded = payload.get("content") if isinstance(payload, dict) else None
            if not encoded:
                return IgnoreRuleSet.empty()
            text = base64.b64decode(encoded).decode("utf-8")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("ignore_file_unreadable", repo=self.describe(), error=str(e))
            return IgnoreRuleSet.empty()
        return load_rule_set(text)

    async def _read(self, entry: FileEntry) -> ContentUnit:
        if not entry.sha:
            raise FileFetchError(path=entry.path, reason="missing blob sha")
        try:
            response = await self._get(f"/git/blobs/{entry.sha}")
        except httpx.HTTPError as e:
            raise FileFetchError(path=entry.path, reason=str(e)) from e
        if not response.is_success:
            raise FileFetchError(path=entry.path, reason=f"status {response.status_code}")
        try:
            payload = response.json()
            encoding = payload.get("encoding")
            if encoding != "base64":
                raise FileFetchError(path=entry.path, reason=f"unsupported encoding {encoding!r}")
            content = base64.b64decode(payload.get("content", "")).decode("utf-8")
        except (ValueError, AttributeError) as e:
            raise FileFetchError(path=entry.path, reason=f"undecodable blob: {e}") from e
        return ContentUnit(path=entry.path, content=content)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
