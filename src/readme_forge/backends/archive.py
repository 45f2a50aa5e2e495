from __future__ import annotations

import io
import zipfile
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

import structlog

from readme_forge.backends.base import SourceBackend
from readme_forge.config import IGNORE_FILE_NAME, ContentUnit, FileEntry, IgnoreRuleSet
from readme_forge.exceptions import FileFetchError, InvalidArchiveError
from readme_forge.ignore_rules import load_rule_set

if TYPE_CHECKING:
    from os import PathLike

logger = structlog.get_logger(__name__)

REPLACEMENT_CHAR = "\ufffd"


class ArchiveBackend(SourceBackend):
    """Read repository files from a zip archive held in memory.

    Archive members carry no text/binary marker, so a member whose UTF-8
    decoding produces a replacement character is treated as binary.
    """

    enumerate_step = "Unzipping repository archive..."
    fetch_step = "Reading content of {count} files..."

    def __init__(self, data: bytes | BinaryIO, name: str = "archive.zip") -> None:
        self.name = name
        stream = io.BytesIO(data) if isinstance(data, (bytes, bytearray)) else data
        try:
            self._zip = zipfile.ZipFile(stream)
        except (zipfile.BadZipFile, OSError) as e:
            raise InvalidArchiveError(locator=name) from e

    @classmethod
    def from_path(cls, path: str | PathLike[str]) -> ArchiveBackend:
        p = Path(path)
        try:
            data = p.read_bytes()
        except OSError as e:
            raise InvalidArchiveError(locator=str(p), message=f"Could not read archive {p}: {e}") from e
        return cls(data, name=p.name)

    def describe(self) -> str:
        return self.name

    async def enumerate(self) -> list[FileEntry]:
        return [
            FileEntry(path=info.filename, size=info.file_size, is_dir=info.is_dir())
            for info in self._zip.infolist()
        ]

    async def load_ignore_rules(self) -> IgnoreRuleSet:
        info = next(
            (i for i in self._zip.infolist() if i.filename.endswith(IGNORE_FILE_NAME)),
            None,
        )
        if info is None or info.is_dir():
            return IgnoreRuleSet.empty()
        try:
            text = self._zip.read(info).decode("utf-8")
        except (UnicodeDecodeError, zipfile.BadZipFile, OSError, RuntimeError) as e:
            logger.warning("ignore_file_unreadable", archive=self.name, path=info.filename, error=str(e))
            return IgnoreRuleSet.empty()
        return load_rule_set(text)

    async def _read(self, entry: FileEntry) -> ContentUnit:
        try:
            data = self._zip.read(entry.path)
        except (KeyError, zipfile.BadZipFile, OSError, RuntimeError) as e:
            # RuntimeError: encrypted member without a password
            raise FileFetchError(path=entry.path, reason=str(e)) from e
        content = data.decode("utf-8", errors="replace")
        if REPLACEMENT_CHAR in content:
            raise FileFetchError(path=entry.path, reason="binary content")
        return ContentUnit(path=entry.path, content=content)

    async def aclose(self) -> None:
        self._zip.close()
