from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, computed_field

MAX_FILE_SIZE = 100 * 1024
MAX_TOTAL_CONTENT_SIZE = int(1.5 * 1024 * 1024)  # keeps the prompt within model context limits

IGNORE_FILE_NAME = ".gitignore"

GITHUB_HOST = "github.com"
GITHUB_API_URL = "https://api.github.com"
GITHUB_ACCEPT = "application/vnd.github.v3+json"

RELEVANT_EXTENSIONS = frozenset(
    {
        # source code
        "js",
        "ts",
        "jsx",
        "tsx",
        "py",
        "java",
        "go",
        "rs",
        "cs",
        "php",
        "rb",
        "swift",
        "kt",
        "kts",
        "c",
        "cpp",
        "h",
        "hpp",
        "m",
        "mm",
        # web
        "html",
        "css",
        "scss",
        "less",
        "vue",
        "svelte",
        # config
        "json",
        "yaml",
        "yml",
        "toml",
        "xml",
        "env",
        "ini",
        "cfg",
        # scripts
        "sh",
        "bash",
        "ps1",
        # docs
        "md",
        "mdx",
        "txt",
        # data
        "sql",
        # extensionless names seen as their own "extension"
        "dockerfile",
        "gitignore",
    },
)

RELEVANT_FILENAMES = frozenset(
    {
        "package.json",
        "composer.json",
        "pom.xml",
        "build.gradle",
        "requirements.txt",
        "gemfile",
        "dockerfile",
        "docker-compose.yml",
        "vite.config.js",
        "vite.config.ts",
        "webpack.config.js",
        "tailwind.config.js",
        "next.config.js",
        "remix.config.js",
        "tsconfig.json",
        "pyproject.toml",
        "cargo.toml",
        "go.mod",
        "readme.md",
    },
)

EXCLUDED_DIRECTORIES = frozenset(
    {
        "node_modules",
        "vendor",
        "dist",
        "build",
        "target",
        ".git",
        ".vscode",
        ".idea",
        "__pycache__",
        "env",
        "venv",
        "public",
        "assets",
    },
)

EXCLUDED_FILENAMES = frozenset(
    {
        "package-lock.json",
        "yarn.lock",
        "pnpm-lock.yaml",
        "composer.lock",
    },
)


class FileEntry(BaseModel):
    """One entry of a repository listing, as yielded by a backend.

    Attributes:
        path: Repository-relative path with POSIX separators.
        size: Size in bytes (uncompressed size for archive members).
        is_dir: Whether the entry is a directory.
        sha: Content hash of the blob on the hosting API (empty for archives).
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Repository-relative path")
    size: int = Field(default=0, ge=0, description="Size in bytes")
    is_dir: bool = Field(default=False, description="Directory flag")
    sha: str = Field(default="", description="Blob hash on the hosting API")

    @computed_field
    @property
    def name(self) -> str:
        """Last path segment."""
        return self.path.rstrip("/").rsplit("/", 1)[-1]

    @property
    def parts(self) -> list[str]:
        return self.path.split("/")


class ContentUnit(BaseModel):
    """Decoded text content of one file."""

    model_config = ConfigDict(frozen=True)

    path: str
    content: str


class IgnoreRuleSet(BaseModel):
    """Normalized ignore rules plus whether an ignore file was actually loaded."""

    model_config = ConfigDict(frozen=True)

    rules: tuple[str, ...] = ()
    loaded: bool = False

    @classmethod
    def empty(cls) -> IgnoreRuleSet:
        return cls()


class GitHubLocator(BaseModel):
    """Owner and repository name parsed from a GitHub URL."""

    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"
