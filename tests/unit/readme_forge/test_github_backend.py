from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import httpx
import pytest

from readme_forge.backends.github import (
    GitHubBackend,
    build_headers,
    minutes_until_reset,
    parse_repo_url,
    translate_error,
)
from readme_forge.config import FileEntry, GitHubLocator
from readme_forge.exceptions import (
    ForbiddenError,
    InvalidCredentialError,
    InvalidLocatorError,
    RateLimitedError,
    RepositoryNotFoundError,
    UpstreamError,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from tests.conftest import FakeGitHub

NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=UTC)


@pytest.mark.unit
def test_parse_repo_url_strips_git_suffix() -> None:
    assert parse_repo_url("https://github.com/acme/widgets.git") == GitHubLocator(owner="acme", repo="widgets")


@pytest.mark.unit
def test_parse_repo_url_ignores_extra_segments() -> None:
    locator = parse_repo_url("https://github.com/acme/widgets/tree/main/src")

    assert locator.full_name == "acme/widgets"


@pytest.mark.unit
@pytest.mark.parametrize(
    "url",
    [
        "https://example.com/acme/widgets",
        "https://github.com/acme",
        "https://github.com/",
        "github.com/acme/widgets",
        "not a url",
        "https://github.com/acme/.git",
    ],
)
def test_parse_repo_url_rejects_malformed_urls(url: str) -> None:
    with pytest.raises(InvalidLocatorError, match="Invalid GitHub repository URL"):
        parse_repo_url(url)


@pytest.mark.unit
def test_invalid_url_fails_before_any_request() -> None:
    calls: list[httpx.Request] = []
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: calls.append(r) or httpx.Response(200)))

    with pytest.raises(InvalidLocatorError):
        GitHubBackend("https://example.com/acme/widgets", client=client)

    assert calls == []


@pytest.mark.unit
def test_build_headers() -> None:
    assert build_headers() == {"Accept": "application/vnd.github.v3+json"}
    assert build_headers("s3cret")["Authorization"] == "Bearer s3cret"


@pytest.mark.unit
def test_minutes_until_reset_rounds_up() -> None:
    reset = int(NOW.timestamp()) + 61

    assert minutes_until_reset(str(reset), NOW) == 2
    assert minutes_until_reset("soon", NOW) is None


@pytest.mark.unit
@pytest.mark.parametrize(
    ("status", "error_type"),
    [
        (404, RepositoryNotFoundError),
        (401, InvalidCredentialError),
        (403, ForbiddenError),
        (500, UpstreamError),
    ],
)
def test_translate_error_maps_status_codes(status: int, error_type: type[Exception]) -> None:
    error = translate_error(httpx.Response(status), "Fetching file tree")

    assert type(error) is error_type
    assert str(error).startswith("Fetching file tree: ")


@pytest.mark.unit
def test_translate_error_keeps_status_of_generic_failures() -> None:
    error = translate_error(httpx.Response(502), "Fetching repository info")

    assert isinstance(error, UpstreamError)
    assert error.status_code == 502
    assert "Status: 502" in str(error)


@pytest.mark.unit
def test_rate_limit_error_estimates_wait() -> None:
    reset = int(NOW.timestamp()) + 5 * 60
    response = httpx.Response(403, headers={"x-ratelimit-reset": str(reset)})

    error = translate_error(response, "Fetching repository info", now=NOW)

    assert isinstance(error, RateLimitedError)
    assert error.retry_after_minutes == 5
    assert "try again in about 5 minute(s)" in str(error)


@pytest.mark.unit
def test_rate_limit_error_with_past_reset() -> None:
    reset = int(NOW.timestamp()) - 30
    response = httpx.Response(403, headers={"X-RateLimit-Reset": str(reset)})

    error = translate_error(response, "Fetching file tree", now=NOW)

    assert isinstance(error, RateLimitedError)
    assert error.retry_after_minutes is None
    assert "try again shortly" in str(error)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_enumerate_resolves_default_branch_then_tree(
    make_github: Callable[..., tuple[GitHubBackend, FakeGitHub]],
) -> None:
    backend, fake = make_github({"src/app.py": "print('hi')\n", "README.md": "# W\n"}, branch="trunk")

    entries = await backend.enumerate()

    assert backend.default_branch == "trunk"
    assert fake.paths_requested() == ["/repos/acme/widgets", "/repos/acme/widgets/git/trees/trunk"]
    assert fake.requests[1].url.params["recursive"] == "1"
    by_path = {e.path: e for e in entries}
    assert by_path["src"].is_dir
    assert by_path["src/app.py"] == FileEntry(path="src/app.py", size=12, sha=fake.sha("src/app.py"))


@pytest.mark.unit
@pytest.mark.asyncio
async def test_enumerate_skips_submodules(make_github: Callable[..., tuple[GitHubBackend, FakeGitHub]]) -> None:
    backend, fake = make_github({"a.py": "a"})
    fake.route_overrides["/repos/acme/widgets/git/trees/main"] = httpx.Response(
        200,
        json={"tree": [{"path": "lib/sub", "type": "commit", "sha": "abc"}, {"path": "a.py", "type": "blob", "size": 1, "sha": "x"}]},
    )

    entries = await backend.enumerate()

    assert [e.path for e in entries] == ["a.py"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_truncated_tree_is_not_fatal(make_github: Callable[..., tuple[GitHubBackend, FakeGitHub]]) -> None:
    backend, _fake = make_github({"a.py": "a"}, truncated=True)

    entries = await backend.enumerate()

    assert backend.truncated
    assert [e.path for e in entries] == ["a.py"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_requests_carry_accept_and_bearer_headers(
    make_github: Callable[..., tuple[GitHubBackend, FakeGitHub]],
) -> None:
    backend, fake = make_github({"a.py": "a"}, token="ghp_test")

    await backend.enumerate()

    for request in fake.requests:
        assert request.headers["Accept"] == "application/vnd.github.v3+json"
        assert request.headers["Authorization"] == "Bearer ghp_test"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_anonymous_requests_have_no_authorization(
    make_github: Callable[..., tuple[GitHubBackend, FakeGitHub]],
) -> None:
    backend, fake = make_github({"a.py": "a"})

    await backend.enumerate()

    assert all("Authorization" not in r.headers for r in fake.requests)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_missing_repository_is_fatal(make_github: Callable[..., tuple[GitHubBackend, FakeGitHub]]) -> None:
    backend, fake = make_github({})
    fake.route_overrides["/repos/acme/widgets"] = httpx.Response(404)

    with pytest.raises(RepositoryNotFoundError, match="Fetching repository info"):
        await backend.enumerate()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_tree_failure_is_fatal(make_github: Callable[..., tuple[GitHubBackend, FakeGitHub]]) -> None:
    backend, fake = make_github({"a.py": "a"})
    fake.route_overrides["/repos/acme/widgets/git/trees/main"] = httpx.Response(500)

    with pytest.raises(UpstreamError) as exc_info:
        await backend.enumerate()

    assert exc_info.value.status_code == 500
    assert exc_info.value.context == "Fetching file tree"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_transport_failure_during_enumeration_is_upstream_error() -> None:
    def explode(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(explode))
    backend = GitHubBackend("https://github.com/acme/widgets", client=client)

    with pytest.raises(UpstreamError, match="Could not reach GitHub"):
        await backend.enumerate()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_load_ignore_rules_decodes_base64(make_github: Callable[..., tuple[GitHubBackend, FakeGitHub]]) -> None:
    backend, fake = make_github({"a.py": "a"}, gitignore="node_modules/\n# c\n/dist\n")

    rule_set = await backend.load_ignore_rules()

    assert rule_set.loaded
    assert rule_set.rules == ("node_modules", "dist")
    assert fake.requests[-1].url.params["ref"] == "main"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_missing_gitignore_is_not_fatal(make_github: Callable[..., tuple[GitHubBackend, FakeGitHub]]) -> None:
    backend, _fake = make_github({"a.py": "a"})

    rule_set = await backend.load_ignore_rules()

    assert not rule_set.loaded


@pytest.mark.unit
@pytest.mark.asyncio
async def test_garbled_gitignore_is_not_fatal(make_github: Callable[..., tuple[GitHubBackend, FakeGitHub]]) -> None:
    backend, fake = make_github({"a.py": "a"})
    fake.route_overrides["/repos/acme/widgets/contents/.gitignore"] = httpx.Response(200, content=b"<html>")

    rule_set = await backend.load_ignore_rules()

    assert not rule_set.loaded


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fetch_content_decodes_blob(make_github: Callable[..., tuple[GitHubBackend, FakeGitHub]]) -> None:
    backend, fake = make_github({"src/app.py": "print('héllo')\n"})
    entry = FileEntry(path="src/app.py", size=16, sha=fake.sha("src/app.py"))

    unit = await backend.fetch_content(entry)

    assert unit is not None
    assert unit.content == "print('héllo')\n"


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500),
        httpx.Response(200, json={"content": "plain", "encoding": "utf-8"}),
        httpx.Response(200, json={"content": "//79", "encoding": "base64"}),
        httpx.Response(200, content=b"not json"),
    ],
)
async def test_fetch_content_failures_return_none(
    make_github: Callable[..., tuple[GitHubBackend, FakeGitHub]],
    response: httpx.Response,
) -> None:
    backend, fake = make_github({"a.py": "a"})
    sha = fake.sha("a.py")
    fake.blob_overrides[sha] = response

    assert await backend.fetch_content(FileEntry(path="a.py", size=1, sha=sha)) is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fetch_content_without_sha_returns_none(
    make_github: Callable[..., tuple[GitHubBackend, FakeGitHub]],
) -> None:
    backend, fake = make_github({"a.py": "a"})

    assert await backend.fetch_content(FileEntry(path="a.py", size=1)) is None
    assert fake.requests == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_backend_closes_only_its_own_client() -> None:
    shared = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))

    async with GitHubBackend("https://github.com/acme/widgets", client=shared):
        pass
    assert not shared.is_closed

    owned = GitHubBackend("https://github.com/acme/widgets")
    async with owned:
        pass
    assert owned._client.is_closed


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{"tree": None}, {"tree": "a.py"}, {"sha": "abc"}, ["a.py"]])
async def test_tree_without_item_list_is_upstream_error(
    make_github: Callable[..., tuple[GitHubBackend, FakeGitHub]],
    payload: object,
) -> None:
    backend, fake = make_github({"a.py": "a"})
    fake.route_overrides["/repos/acme/widgets/git/trees/main"] = httpx.Response(200, json=payload)

    with pytest.raises(UpstreamError) as exc_info:
        await backend.enumerate()

    assert exc_info.value.context == "Fetching file tree"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_malformed_tree_items_are_skipped(make_github: Callable[..., tuple[GitHubBackend, FakeGitHub]]) -> None:
    backend, fake = make_github({"a.py": "a"})
    fake.route_overrides["/repos/acme/widgets/git/trees/main"] = httpx.Response(
        200,
        json={
            "tree": [
                42,
                {"type": "blob", "size": 3, "sha": "nopath"},
                {"path": None, "type": "blob"},
                {"path": "b.py", "type": "blob", "size": "big", "sha": 7},
                {"path": "a.py", "type": "blob", "size": 1, "sha": "x"},
            ],
        },
    )

    entries = await backend.enumerate()

    assert entries == [FileEntry(path="b.py", size=0), FileEntry(path="a.py", size=1, sha="x")]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fetch_content_connection_error_returns_none(
    make_github: Callable[..., tuple[GitHubBackend, FakeGitHub]],
) -> None:
    backend, fake = make_github({"a.py": "a"})
    sha = fake.sha("a.py")
    fake.blob_failures.add(sha)

    assert await backend.fetch_content(FileEntry(path="a.py", size=1, sha=sha)) is None
