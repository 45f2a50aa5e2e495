from readme_forge.backends.archive import ArchiveBackend
from readme_forge.backends.base import SourceBackend
from readme_forge.backends.github import GitHubBackend, parse_repo_url

__all__ = ["ArchiveBackend", "GitHubBackend", "SourceBackend", "parse_repo_url"]
