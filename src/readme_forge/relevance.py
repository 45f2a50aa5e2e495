from __future__ import annotations

from typing import TYPE_CHECKING

from readme_forge.config import (
    EXCLUDED_DIRECTORIES,
    EXCLUDED_FILENAMES,
    MAX_FILE_SIZE,
    RELEVANT_EXTENSIONS,
    RELEVANT_FILENAMES,
)
from readme_forge.ignore_rules import compile_ignore_rules

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from readme_forge.config import FileEntry, IgnoreRuleSet


def file_extension(filename: str) -> str:
    """Return the lowercased text after the last dot, or the whole name when there is none.

    ``Dockerfile`` therefore yields ``dockerfile`` and ``.gitignore`` yields ``gitignore``.
    """
    return filename.rsplit(".", 1)[-1].lower()


def is_relevant(
    path: str,
    size: int,
    is_ignored: Callable[[str], bool],
    ignore_rules_loaded: bool,  # noqa: FBT001
) -> bool:
    """Decide whether a file belongs in the AI context.

    Rules are applied in order and the first one that matches decides:

    1) empty files and files above ``MAX_FILE_SIZE`` are dropped;
    2) paths matched by the ignore predicate are dropped;
    3) lockfiles are dropped;
    4) when no ignore file was loaded, anything under a well-known build,
       dependency or IDE directory is dropped;
    5) the file is kept when its name is a known project manifest or its
       extension is a known source, config or doc extension.

    Args:
        path (str): repository-relative path
        size (int): size in bytes
        is_ignored (Callable[[str], bool]): compiled ignore predicate
        ignore_rules_loaded (bool): whether an ignore file was loaded; loaded rules
            replace the directory fallback of rule 4

    Returns:
        bool: True if the file should be fetched for the context
    """
    if size > MAX_FILE_SIZE or size == 0:
        return False

    if is_ignored(path):
        return False

    parts = path.split("/")
    filename = parts[-1]

    if filename in EXCLUDED_FILENAMES:
        return False
    if not ignore_rules_loaded and any(part in EXCLUDED_DIRECTORIES for part in parts):
        return False

    return filename.lower() in RELEVANT_FILENAMES or file_extension(filename) in RELEVANT_EXTENSIONS


def select_relevant(entries: Iterable[FileEntry], rule_set: IgnoreRuleSet) -> list[FileEntry]:
    """Filter backend entries down to the files worth fetching.

    Args:
        entries (Iterable[FileEntry]): entries as enumerated by a backend
        rule_set (IgnoreRuleSet): ignore rules loaded by the same backend

    Returns:
        list[FileEntry]: relevant, non-directory entries in enumeration order
    """
    is_ignored = compile_ignore_rules(rule_set)
    return [
        entry
        for entry in entries
        if not entry.is_dir and is_relevant(entry.path, entry.size, is_ignored, rule_set.loaded)
    ]
