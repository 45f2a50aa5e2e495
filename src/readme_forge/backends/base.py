from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import structlog

from readme_forge.exceptions import FileFetchError

if TYPE_CHECKING:
    from types import TracebackType
    from typing import Self

    from readme_forge.config import ContentUnit, FileEntry, IgnoreRuleSet


logger = structlog.get_logger(__name__)


class SourceBackend(ABC):
    """A place repository files come from.

    Every backend feeds the same selection pipeline. Failures of
    `enumerate` and `load_ignore_rules` that leave nothing to analyze are
    fatal and raised. Reading a single file never is: `_read` raises
    `FileFetchError` and `fetch_content` turns it into a logged None, so
    the rest of the repository still makes it into the context.
    """

    #: progress wording for the enumeration and content steps
    enumerate_step = "Fetching repository info for {label}..."
    fetch_step = "Fetching content of {count} files..."

    @abstractmethod
    def describe(self) -> str:
        """Short human-readable label for logs and prompts."""

    @abstractmethod
    async def enumerate(self) -> list[FileEntry]:
        """List every entry of the repository."""

    @abstractmethod
    async def load_ignore_rules(self) -> IgnoreRuleSet:
        """Load the repository's ignore file, or an empty, not-loaded rule set."""

    @abstractmethod
    async def _read(self, entry: FileEntry) -> ContentUnit:
        """Return the decoded text of `entry`.

        Raises:
            FileFetchError: for binary, undecodable or unreachable files
        """

    async def fetch_content(self, entry: FileEntry) -> ContentUnit | None:
        try:
            return await self._read(entry)
        except FileFetchError as e:
            logger.warning("file_fetch_failed", source=self.describe(), path=e.path, reason=e.reason)
            return None

    async def aclose(self) -> None:
        return None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
