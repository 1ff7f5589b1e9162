from __future__ import annotations

import time
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field

MAX_FILE_SIZE = 10 * 1024 * 1024
MAX_DIRECTORY_DEPTH = 20
MAX_TOTAL_SIZE_BYTES = 500 * 1024 * 1024
CHUNK_SIZE = 1024 * 1024
TEXT_SNIFF_BYTES = 4096
MAX_TREE_NODES = 5000

FILE_START_MARKER = "### CODEDIGEST_FILE: {path} ###"
FILE_END_MARKER = "### CODEDIGEST_END ###"
NO_EXTENSION = ".<no_ext>"

DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (
    # python
    "*.pyc",
    "*.pyo",
    "*.pyd",
    "__pycache__",
    ".pytest_cache",
    ".coverage",
    ".tox",
    ".nox",
    ".mypy_cache",
    ".ruff_cache",
    ".hypothesis",
    "poetry.lock",
    "Pipfile.lock",
    # javascript
    "node_modules",
    "bower_components",
    "package-lock.json",
    "yarn.lock",
    ".npm",
    ".yarn",
    ".pnpm-store",
    # jvm
    "*.class",
    "*.jar",
    "*.war",
    "*.ear",
    "*.nar",
    ".gradle/",
    "build/",
    ".settings/",
    ".classpath",
    "gradle-app.setting",
    "*.gradle",
    ".project",
    # native
    "*.o",
    "*.obj",
    "*.dll",
    "*.dylib",
    "*.exe",
    "*.lib",
    "*.out",
    "*.a",
    "*.pdb",
    # apple
    ".build/",
    "*.xcodeproj/",
    "*.xcworkspace/",
    "*.pbxuser",
    "*.mode1v3",
    "*.mode2v3",
    "*.perspectivev3",
    "*.xcuserstate",
    "xcuserdata/",
    ".swiftpm/",
    # ruby
    "*.gem",
    ".bundle/",
    "vendor/bundle",
    "Gemfile.lock",
    ".ruby-version",
    ".ruby-gemset",
    ".rvmrc",
    # rust
    "Cargo.lock",
    "**/*.rs.bk",
    "target/",
    # go / dotnet
    "pkg/",
    "obj/",
    "*.suo",
    "*.user",
    "*.userosscache",
    "*.sln.docstates",
    "packages/",
    "*.nupkg",
    "bin/",
    # vcs
    ".git",
    ".svn",
    ".hg",
    ".gitignore",
    ".gitattributes",
    ".gitmodules",
    # media
    "*.svg",
    "*.png",
    "*.jpg",
    "*.jpeg",
    "*.gif",
    "*.ico",
    "*.pdf",
    "*.mov",
    "*.mp4",
    "*.mp3",
    "*.wav",
    # environments and editors
    "venv",
    ".venv",
    "env",
    ".env",
    "virtualenv",
    ".idea",
    ".vscode",
    ".vs",
    "*.swo",
    "*.swn",
    ".settings",
    "*.sublime-*",
    # temporary and caches
    "*.log",
    "*.bak",
    "*.swp",
    "*.tmp",
    "*.temp",
    ".cache",
    ".sass-cache",
    ".eslintcache",
    ".DS_Store",
    "Thumbs.db",
    "desktop.ini",
    # build output
    "build",
    "dist",
    "target",
    "out",
    "*.egg-info",
    "*.egg",
    "*.whl",
    "*.so",
    "site-packages",
    ".docusaurus",
    ".next",
    ".nuxt",
    "*.min.js",
    "*.min.css",
    "*.map",
    ".terraform",
    "*.tfstate*",
    "vendor/",
)

TEXT_EXTENSIONS: frozenset[str] = frozenset({
    ".txt", ".md", ".log", ".csv", ".tsv", ".json", ".xml", ".yaml", ".yml",
    ".ini", ".cfg", ".toml", ".sh", ".bash", ".zsh", ".csh", ".bat", ".cmd",
    ".ps1", ".py", ".js", ".mjs", ".ts", ".jsx", ".tsx", ".html", ".htm",
    ".css", ".scss", ".sass", ".less", ".styl", ".php", ".java", ".rb", ".go",
    ".rs", ".c", ".h", ".cpp", ".hpp", ".cs", ".swift", ".kt", ".kts",
    ".scala", ".pl", ".pm", ".r", ".lua", ".sql", ".gitignore", ".gitattributes",
    ".gitmodules", ".editorconfig", ".env",
})  # fmt: skip

TEXT_FILENAMES: frozenset[str] = frozenset({"dockerfile", "makefile"})


def now_iso() -> str:
    """Return the current UTC date and time in ISO 8601 format.

    Returns:
        str: the current date and time, e.g. ``2024-01-01T12:00:00.000Z``
    """
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class PatternRule(BaseModel):
    """One compiled gitignore-style pattern line.

    Attributes:
        segments: Pattern tokens split on unescaped ``/``; literal, glob or ``**``.
        negated: The line started with ``!``.
        anchored: The line started with ``/`` and only matches from the root.
        directory_only: The line ended with ``/``.
    """

    model_config = ConfigDict(frozen=True)

    segments: tuple[str, ...] = Field(default=(), description="Pattern segments")
    negated: bool = Field(default=False, description="Leading '!'")
    anchored: bool = Field(default=False, description="Leading '/'")
    directory_only: bool = Field(default=False, description="Trailing '/'")

    @computed_field
    @property
    def pattern(self) -> str:
        """Reconstruct the pattern text this rule was compiled from."""
        text = "/".join(seg.replace("\\", "\\\\").replace("/", "\\/") for seg in self.segments)
        if self.directory_only:
            text += "/"
        if self.anchored:
            text = "/" + text
        if self.negated:
            text = "!" + text
        return text


class CollectedFile(BaseModel):
    """A file admitted into the digest.

    Attributes:
        path: Path relative to the traversal root, with forward slashes.
        content: File text, or a bracketed placeholder when content was elided.
        size: File size in bytes.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Traversal-relative path")
    content: str = Field(..., description="File content or placeholder")
    size: int = Field(..., ge=0, description="File size in bytes")


class ScanError(BaseModel):
    """An error recorded during a traversal."""

    model_config = ConfigDict(frozen=True)

    timestamp: str
    message: str


class ScanState(BaseModel):
    """Mutable statistics and cycle guards for a single traversal.

    One instance belongs to one ``traverse`` call and is passed explicitly
    down its call chain.
    """

    seen_paths: set[str] = Field(default_factory=set)
    seen_symlinks: set[tuple[str, str]] = Field(default_factory=set)
    total_size: int = 0
    file_count: int = 0
    skipped_files: int = 0
    filtered_files: int = 0
    non_text_files: int = 0
    size_limit_reached: bool = False
    matched_ignore_patterns: set[str] = Field(default_factory=set)
    matched_include_patterns: set[str] = Field(default_factory=set)
    extension_sizes: dict[str, int] = Field(default_factory=dict)
    errors: list[ScanError] = Field(default_factory=list)
    truncated_paths: list[str] = Field(default_factory=list)
    started_at: float = Field(default_factory=time.monotonic)

    def add_error(self, message: str) -> None:
        """Record an error with the current timestamp."""
        self.errors.append(ScanError(timestamp=now_iso(), message=message))

    def elapsed(self) -> float:
        """Seconds since the traversal started."""
        return time.monotonic() - self.started_at
