"""Recreate files from a digest, using checksums to skip unchanged ones."""

from __future__ import annotations

import hashlib
import io
import re
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field

from codedigest.exceptions import DigestNotFoundError, DigestReadError, ImportTargetError
from codedigest.logging import logger

if TYPE_CHECKING:
    from pathlib import Path

FILE_START_REGEX = re.compile(r"^### CODEDIGEST_FILE: (.+) ###$")
FILE_END_REGEX = re.compile(r"^### CODEDIGEST_END ###$")
LEGACY_CHECKSUM_REGEX = re.compile(r"^### CHECKSUM: [a-f0-9]+ ###$")
# only LF and CRLF end lines; form feeds and Unicode separators are content
LINE_BREAK_REGEX = re.compile(r"\r?\n")
MAX_LISTED = 15

ImportAction = Literal["create", "update", "unchanged"]


class DigestEntry(BaseModel):
    """One file section parsed from a digest."""

    model_config = ConfigDict(frozen=True)

    path: str
    content: str


class ImportFailure(BaseModel):
    """A per-file failure during import."""

    model_config = ConfigDict(frozen=True)

    path: str
    error: str


class ImportSummary(BaseModel):
    """Outcome of an import, one list per action."""

    created: list[str] = Field(default_factory=list)
    updated: list[str] = Field(default_factory=list)
    unchanged: list[str] = Field(default_factory=list)
    skipped_outside_target: list[str] = Field(default_factory=list)
    errors: list[ImportFailure] = Field(default_factory=list)


def calculate_checksum(content: str) -> str:
    """Short SHA-256 checksum (12 hex characters) of UTF-8 text."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:12]


def parse_digest_content(text: str) -> list[DigestEntry]:
    """Extract file sections from digest text.

    Every section must be closed by an end marker; a section interrupted by a
    new start marker or by the end of input is dropped with a warning. Lines
    outside sections and legacy checksum lines are ignored.

    Args:
        text (str): the digest text

    Returns:
        list[DigestEntry]: the complete sections, in digest order
    """
    entries: list[DigestEntry] = []
    current: str | None = None
    lines: list[str] = []

    raw_lines = LINE_BREAK_REGEX.split(text)
    if raw_lines and raw_lines[-1] == "":
        raw_lines.pop()

    for line in raw_lines:
        start = FILE_START_REGEX.match(line)
        if start:
            if current is not None:
                logger.warning("digest_section_interrupted", path=current)
            current = start.group(1)
            lines = []
        elif current is not None and FILE_END_REGEX.match(line):
            content = "\n".join(lines)
            entries.append(DigestEntry(path=current, content=f"{content}\n" if lines else ""))
            current = None
            lines = []
        elif current is not None and not LEGACY_CHECKSUM_REGEX.match(line):
            lines.append(line)

    if current is not None:
        logger.warning("digest_section_unterminated", path=current)
    return entries


def _plan_action(entry: DigestEntry, destination: Path, summary: ImportSummary) -> ImportAction | None:
    if not destination.exists():
        summary.created.append(entry.path)
        return "create"
    try:
        existing = destination.read_bytes().decode("utf-8", errors="replace")
    except OSError as e:
        summary.errors.append(
            ImportFailure(path=entry.path, error=f"Could not read existing file for comparison: {e}"),
        )
        logger.error("import_compare_failed", path=entry.path, error=str(e))
        return None
    if calculate_checksum(existing) == calculate_checksum(entry.content):
        summary.unchanged.append(entry.path)
        return "unchanged"
    summary.updated.append(entry.path)
    return "update"


def import_digest(digest_file: Path, target_dir: Path, *, dry_run: bool = False) -> ImportSummary:
    """Create or update files under ``target_dir`` from a digest.

    Existing files are compared by checksum; only new or changed files are
    written. Paths that would resolve outside the target are skipped.

    Args:
        digest_file (Path): the digest to import
        target_dir (Path): the directory receiving the files
        dry_run (bool): report what would happen without writing anything

    Raises:
        DigestNotFoundError: if ``digest_file`` does not exist
        DigestReadError: if ``digest_file`` cannot be read or is not UTF-8
        ImportTargetError: if the target directory cannot be created

    Returns:
        ImportSummary: what was (or would be) created, updated or left alone
    """
    if not digest_file.exists():
        raise DigestNotFoundError(file=digest_file, message=f"Digest file not found: {digest_file}")
    try:
        text = digest_file.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise DigestReadError(file=digest_file, message=f"Failed to read digest file {digest_file}: {e}") from e

    base = target_dir.resolve()
    if not dry_run and not base.exists():
        try:
            base.mkdir(parents=True)
        except OSError as e:
            raise ImportTargetError(folder=base, message=f"Failed to create target directory {base}: {e}") from e
        logger.info("import_target_created", target=str(base))

    entries = parse_digest_content(text)
    logger.info("digest_parsed", entries=len(entries), digest=str(digest_file))

    summary = ImportSummary()
    for entry in entries:
        destination = (base / entry.path).resolve()
        if destination != base and not destination.is_relative_to(base):
            summary.skipped_outside_target.append(entry.path)
            logger.error("import_path_outside_target", path=entry.path, target=str(base))
            continue

        action = _plan_action(entry, destination, summary)
        if action is None or action == "unchanged":
            continue
        if dry_run:
            logger.info(f"would_{action}", path=entry.path)
            continue

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(entry.content.encode("utf-8"))
        except OSError as e:
            summary.errors.append(ImportFailure(path=entry.path, error=f"Failed to write file: {e}"))
            logger.error("import_write_failed", path=entry.path, error=str(e))
            continue
        logger.info("created" if action == "create" else "updated", path=entry.path)

    return summary


def _listing(out: io.StringIO, label: str, items: list[str]) -> None:
    if not items:
        return
    out.write(f"{label}\n")
    for item in items[:MAX_LISTED]:
        out.write(f"  {item}\n")
    if len(items) > MAX_LISTED:
        out.write(f"  ...and {len(items) - MAX_LISTED} more\n")
    out.write("\n")


def build_import_report(summary: ImportSummary, *, dry_run: bool) -> str:
    """Build the plain-text report printed after an import."""
    verb = "Would be" if dry_run else "Were"
    verb_past = "Would have been" if dry_run else "Were"
    out = io.StringIO()
    out.write(f" Import Summary{' (Dry Run)' if dry_run else ''} \n")
    out.write(f"Files {verb} created:      {len(summary.created)}\n")
    out.write(f"Files {verb} updated (checksum mismatch): {len(summary.updated)}\n")
    out.write(f"Files {verb} unchanged (checksum match):    {len(summary.unchanged)}\n")
    out.write(f"Path outside target (skipped): {len(summary.skipped_outside_target)}\n")
    out.write(f"Other errors during processing: {len(summary.errors)}\n\n")

    _listing(out, f"{verb_past} Created:", summary.created)
    _listing(out, f"{verb_past} Updated (Checksum Mismatch):", summary.updated)
    _listing(out, "Paths Outside Target (Skipped):", summary.skipped_outside_target)
    _listing(out, "Errors During Processing:", [f"{e.path}: {e.error}" for e in summary.errors])
    return out.getvalue()
