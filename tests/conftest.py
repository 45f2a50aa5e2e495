from __future__ import annotations

import base64
import hashlib
import io
import zipfile
from typing import TYPE_CHECKING

import httpx
import pytest

from readme_forge.backends.github import GitHubBackend

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping


def b64(data: str | bytes) -> str:
    raw = data.encode("utf-8") if isinstance(data, str) else data
    return base64.b64encode(raw).decode("ascii")


class FakeGitHub:
    """In-memory stand-in for the parts of the GitHub REST API the backend calls."""

    def __init__(
        self,
        files: Mapping[str, str | bytes],
        *,
        owner: str = "acme",
        repo: str = "widgets",
        branch: str = "main",
        gitignore: str | None = None,
        truncated: bool = False,
        sizes: Mapping[str, int] | None = None,
    ) -> None:
        self.files = dict(files)
        self.prefix = f"/repos/{owner}/{repo}"
        self.branch = branch
        self.gitignore = gitignore
        self.truncated = truncated
        self.sizes = dict(sizes or {})
        self.blob_overrides: dict[str, httpx.Response] = {}
        self.blob_failures: set[str] = set()
        self.route_overrides: dict[str, httpx.Response] = {}
        self.requests: list[httpx.Request] = []

    @staticmethod
    def sha(path: str) -> str:
        return hashlib.sha1(path.encode("utf-8")).hexdigest()  # noqa: S324

    def _raw(self, path: str) -> bytes:
        data = self.files[path]
        return data.encode("utf-8") if isinstance(data, str) else data

    def tree(self) -> list[dict[str, object]]:
        dirs: set[str] = set()
        items: list[dict[str, object]] = []
        for path in self.files:
            parts = path.split("/")
            dirs.update("/".join(parts[:i]) for i in range(1, len(parts)))
            items.append(
                {
                    "path": path,
                    "type": "blob",
                    "size": self.sizes.get(path, len(self._raw(path))),
                    "sha": self.sha(path),
                },
            )
        items.extend({"path": d, "type": "tree", "sha": self.sha(d)} for d in sorted(dirs))
        return items

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path in self.route_overrides:
            return self.route_overrides[path]
        if path == self.prefix:
            return httpx.Response(200, json={"default_branch": self.branch})
        if path == f"{self.prefix}/contents/.gitignore":
            if self.gitignore is None:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json={"content": b64(self.gitignore), "encoding": "base64"})
        if path == f"{self.prefix}/git/trees/{self.branch}":
            return httpx.Response(200, json={"tree": self.tree(), "truncated": self.truncated})
        if path.startswith(f"{self.prefix}/git/blobs/"):
            sha = path.rsplit("/", 1)[-1]
            if sha in self.blob_failures:
                msg = "connection reset"
                raise httpx.ConnectError(msg, request=request)
            if sha in self.blob_overrides:
                return self.blob_overrides[sha]
            for file_path in self.files:
                if self.sha(file_path) == sha:
                    return httpx.Response(200, json={"content": b64(self._raw(file_path)), "encoding": "base64"})
        return httpx.Response(404, json={"message": "Not Found"})

    def paths_requested(self) -> list[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture
def make_github() -> Callable[..., tuple[GitHubBackend, FakeGitHub]]:
    """Build a backend wired to a FakeGitHub through httpx.MockTransport."""

    def factory(
        files: Mapping[str, str | bytes],
        *,
        token: str | None = None,
        **kwargs: object,
    ) -> tuple[GitHubBackend, FakeGitHub]:
        fake = FakeGitHub(files, **kwargs)  # type: ignore[arg-type]
        client = httpx.AsyncClient(transport=httpx.MockTransport(fake))
        backend = GitHubBackend("https://github.com/acme/widgets", token, client=client)
        return backend, fake

    return factory


@pytest.fixture
def make_zip() -> Callable[..., bytes]:
    """Build a zip archive in memory from a path -> content mapping."""

    def factory(files: Mapping[str, str | bytes], dirs: tuple[str, ...] = ()) -> bytes:
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for d in dirs:
                zf.writestr(d.rstrip("/") + "/", b"")
            for path, content in files.items():
                zf.writestr(path, content)
        return buf.getvalue()

    return factory
