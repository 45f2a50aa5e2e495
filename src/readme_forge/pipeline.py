from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

import structlog

from readme_forge.aggregator import assemble
from readme_forge.backends.archive import ArchiveBackend
from readme_forge.backends.github import GitHubBackend
from readme_forge.config import GITHUB_API_URL, MAX_TOTAL_CONTENT_SIZE, ContentUnit
from readme_forge.relevance import select_relevant

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from readme_forge.backends.base import SourceBackend
    from readme_forge.config import FileEntry

    ProgressCallback = Callable[[str], None]

logger = structlog.get_logger(__name__)

TOTAL_STEPS = 5


def _report(on_progress: ProgressCallback | None, step: int, message: str) -> None:
    logger.info("pipeline_step", step=step, message=message)
    if on_progress is not None:
        on_progress(f"Step {step}/{TOTAL_STEPS}: {message}")


async def fetch_all(
    backend: SourceBackend,
    entries: Sequence[FileEntry],
    max_concurrency: int | None = None,
) -> list[ContentUnit]:
    """Fetch every entry at once and keep the ones that produced text.

    All fetches are awaited to completion; one failing file never cancels the
    others. Results keep the order of `entries`.

    Args:
        backend (SourceBackend): backend the entries came from
        entries (Sequence[FileEntry]): files to fetch
        max_concurrency (int | None): cap on in-flight fetches; None or 0 means no cap

    Returns:
        list[ContentUnit]: successfully decoded files
    """
    semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    async def fetch(entry: FileEntry) -> ContentUnit | None:
        if semaphore is None:
            return await backend.fetch_content(entry)
        async with semaphore:
            return await backend.fetch_content(entry)

    results = await asyncio.gather(*(fetch(e) for e in entries), return_exceptions=True)

    units: list[ContentUnit] = []
    for entry, result in zip(entries, results, strict=True):
        if isinstance(result, ContentUnit):
            units.append(result)
        elif isinstance(result, Exception):
            logger.warning("file_fetch_crashed", path=entry.path, error=repr(result))
        elif isinstance(result, BaseException):
            raise result
    return units


async def collect_context(
    backend: SourceBackend,
    *,
    on_progress: ProgressCallback | None = None,
    max_concurrency: int | None = None,
    budget: int = MAX_TOTAL_CONTENT_SIZE,
) -> str:
    """Run the selection pipeline against one backend.

    Args:
        backend (SourceBackend): the repository source
        on_progress (ProgressCallback | None): optional sink for step messages
        max_concurrency (int | None): cap on concurrent content fetches
        budget (int): maximum total size of file contents in the result

    Raises:
        ReadmeForgeError: on any fatal enumeration failure, or `EmptyContextError`
            when no file qualifies

    Returns:
        str: the assembled context document
    """
    _report(on_progress, 1, backend.enumerate_step.format(label=backend.describe()))
    entries = await backend.enumerate()

    _report(on_progress, 2, "Analyzing repository structure...")
    rule_set = await backend.load_ignore_rules()
    if not rule_set.loaded:
        logger.info("ignore_rules_fallback", source=backend.describe())

    _report(on_progress, 3, "Identifying relevant files...")
    selected = select_relevant(entries, rule_set)
    logger.info("files_selected", source=backend.describe(), total=len(entries), selected=len(selected))

    _report(on_progress, 4, backend.fetch_step.format(count=len(selected)))
    units = await fetch_all(backend, selected, max_concurrency=max_concurrency)

    _report(on_progress, 5, "Assembling context for AI...")
    return assemble(units, budget=budget)


def backend_for(
    source: str | Path | bytes | BinaryIO,
    token: str | None = None,
    *,
    api_url: str = GITHUB_API_URL,
    timeout: float = 30.0,
) -> SourceBackend:
    """Pick the backend matching the kind of locator supplied.

    Paths, raw bytes and binary streams are zip archives; strings naming an
    existing ``.zip`` file are too. Any other string is a GitHub URL.
    """
    if isinstance(source, (bytes, bytearray)):
        return ArchiveBackend(bytes(source))
    if isinstance(source, Path):
        return ArchiveBackend.from_path(source)
    if isinstance(source, str):
        candidate = Path(source)
        if candidate.suffix.lower() == ".zip" and candidate.is_file():
            return ArchiveBackend.from_path(candidate)
        return GitHubBackend(source, token, api_url=api_url, timeout=timeout)
    return ArchiveBackend(source, name=Path(str(getattr(source, "name", "archive.zip"))).name)


async def get_repo_content(
    repo_url: str,
    token: str | None = None,
    on_progress: ProgressCallback | None = None,
    *,
    max_concurrency: int | None = None,
) -> str:
    """Assemble the context document of a GitHub repository."""
    async with GitHubBackend(repo_url, token) as backend:
        return await collect_context(backend, on_progress=on_progress, max_concurrency=max_concurrency)


async def get_archive_content(
    data: bytes | BinaryIO,
    on_progress: ProgressCallback | None = None,
) -> str:
    """Assemble the context document of an uploaded zip archive."""
    async with ArchiveBackend(data) as backend:
        return await collect_context(backend, on_progress=on_progress)
