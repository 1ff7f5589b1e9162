from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class CodeDigestError(Exception):
    """Base exception for errors in the codedigest package."""

    message: str = "codedigest failed."

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class PatternFileError(CodeDigestError):
    """Raised when an ignore or include pattern file cannot be read."""

    file: Path = field(default_factory=Path)
    message: str = "Failed to read pattern file."


@dataclass(frozen=True)
class ConfigFileError(CodeDigestError):
    """Raised when a YAML configuration file is unreadable or malformed."""

    file: Path = field(default_factory=Path)
    message: str = "Invalid configuration file."


@dataclass(frozen=True)
class InvalidArgumentsError(CodeDigestError):
    """Raised when command-line settings fail validation."""

    errors: tuple[str, ...] = ()
    message: str = "Invalid arguments."

    def __str__(self) -> str:
        lines = [f"- {err}" for err in self.errors]
        return "\n".join([f"{self.message}", *lines])


@dataclass(frozen=True)
class DigestNotFoundError(CodeDigestError):
    """Raised when the digest file to import does not exist."""

    file: Path = field(default_factory=Path)
    message: str = "Digest file not found."


@dataclass(frozen=True)
class ImportTargetError(CodeDigestError):
    """Raised when the import target directory cannot be created."""

    folder: Path = field(default_factory=Path)
    message: str = "Failed to create target directory."


@dataclass(frozen=True)
class OutputError(CodeDigestError):
    """Raised when the digest output file cannot be written."""

    file: Path = field(default_factory=Path)
    message: str = "Failed to write output file."


@dataclass(frozen=True)
class DigestReadError(CodeDigestError):
    """Raised when the digest file cannot be read or is not valid UTF-8."""

    file: Path = field(default_factory=Path)
    message: str = "Failed to read digest file."
