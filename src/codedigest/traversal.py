"""Filtered, cycle-safe directory traversal that collects digest content.

The walk is depth-first and synchronous. Ignore rules prune directories
before they are read; include rules only ever filter files. Every directory
is visited at most once by canonical path, and every symlink (link, target)
pair is followed at most once, so symlink loops terminate.
"""

from __future__ import annotations

import codecs
import os
import stat
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from codedigest.config import (
    CHUNK_SIZE,
    MAX_DIRECTORY_DEPTH,
    MAX_FILE_SIZE,
    MAX_TOTAL_SIZE_BYTES,
    NO_EXTENSION,
    TEXT_EXTENSIONS,
    TEXT_FILENAMES,
    TEXT_SNIFF_BYTES,
    CollectedFile,
    PatternRule,
    ScanState,
)
from codedigest.logging import logger
from codedigest.matching import is_path_excluded, is_path_included
from codedigest.output_construction import format_bytes

if TYPE_CHECKING:
    from collections.abc import Sequence


class TraversalOptions(BaseModel):
    """Immutable inputs shared by every step of one traversal."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    root: Path
    ignore_rules: tuple[PatternRule, ...] = ()
    include_rules: tuple[PatternRule, ...] = ()
    max_depth: int = MAX_DIRECTORY_DEPTH
    max_file_size: int = MAX_FILE_SIZE
    max_total_size: int = MAX_TOTAL_SIZE_BYTES


def is_text_file(path: Path, size: int = -1) -> bool:
    """Decide whether a file should be treated as text.

    Known text extensions and file names are trusted without reading. Other
    files are sampled: a NUL byte in the first 4 KiB marks them as binary.

    Args:
        path (Path): the file to classify
        size (int): the file size if already known, -1 otherwise

    Returns:
        bool: True for text files, False for binary or unreadable ones
    """
    if path.suffix.lower() in TEXT_EXTENSIONS or path.name.lower() in TEXT_FILENAMES:
        return True

    to_read = TEXT_SNIFF_BYTES if size < 0 else min(size, TEXT_SNIFF_BYTES)
    if to_read == 0:
        return True
    try:
        with path.open("rb") as f:
            sample = f.read(to_read)
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning("text_check_failed", path=str(path), error=str(e))
        return False
    return b"\x00" not in sample


def read_file_content(path: Path, max_file_size: int) -> str:
    """Read a file's text for the digest.

    Files over 1 MiB are decoded chunk by chunk. Invalid UTF-8 is replaced
    rather than rejected.

    Args:
        path (Path): the file to read
        max_file_size (int): the individual size limit in bytes

    Returns:
        str: the file text, or a bracketed placeholder if the file is too
            large, not text, or unreadable
    """
    try:
        size = path.stat().st_size
        if size > max_file_size:
            return f"[File too large to display, size: {format_bytes(size)}]"
        if not is_text_file(path, size):
            return "[Non-text file]"
        if size <= CHUNK_SIZE:
            return path.read_bytes().decode("utf-8", errors="replace")

        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        parts: list[str] = []
        with path.open("rb") as f:
            for block in iter(lambda: f.read(CHUNK_SIZE), b""):
                parts.append(decoder.decode(block))
        parts.append(decoder.decode(b"", final=True))
        return "".join(parts)
    except OSError as e:
        logger.error("file_read_failed", path=str(path), error=str(e))
        return f"[Error reading file: {e}]"


def admit_file(path: Path, rel: str, options: TraversalOptions, state: ScanState) -> CollectedFile | None:
    """Apply size and type checks to a file and collect it if it passes.

    Args:
        path (Path): the file on disk (the resolved target for symlinks)
        rel (str): the path recorded in the digest
        options (TraversalOptions): traversal limits
        state (ScanState): the running traversal state

    Returns:
        CollectedFile | None: the admitted file, or None if it was skipped
    """
    try:
        size = path.stat().st_size
    except FileNotFoundError:
        logger.warning("file_vanished", path=rel)
        return None
    except OSError as e:
        state.add_error(f"Error processing file {rel}: {e}")
        logger.error("file_stat_failed", path=rel, error=str(e))
        return None

    if size > options.max_file_size:
        state.skipped_files += 1
        logger.info(
            "file_too_large",
            path=rel,
            size=format_bytes(size),
            max_file_size=format_bytes(options.max_file_size),
        )
        return None

    if state.total_size + size > options.max_total_size:
        state.size_limit_reached = True
        logger.warning("total_size_limit_reached", path=rel, max_total_size=format_bytes(options.max_total_size))
        return None

    if not is_text_file(path, size):
        state.non_text_files += 1
        logger.info("non_text_file_skipped", path=rel)
        return None

    state.total_size += size
    state.file_count += 1
    ext = path.suffix.lower() or NO_EXTENSION
    state.extension_sizes[ext] = state.extension_sizes.get(ext, 0) + size

    logger.info("file_added", path=rel, size=format_bytes(size))
    return CollectedFile(path=rel, content=read_file_content(path, options.max_file_size), size=size)


def process_symlink(
    link: Path,
    rel: str,
    depth: int,
    options: TraversalOptions,
    state: ScanState,
) -> list[CollectedFile]:
    """Follow a symlink that lies inside the traversal root.

    Directory targets are walked under the link's own relative path; file
    targets are include-checked against the link's path and admitted under it.

    Args:
        link (Path): the symlink itself
        rel (str): the link's path relative to the root
        depth (int): depth of the directory containing the link
        options (TraversalOptions): traversal inputs
        state (ScanState): the running traversal state

    Returns:
        list[CollectedFile]: files collected through the link
    """
    try:
        target = link.resolve(strict=True)
        target_stat = target.stat()
    except FileNotFoundError:
        logger.warning("broken_symlink", path=rel, target=_raw_link_target(link))
        return []
    except PermissionError as e:
        state.add_error(f"Permission error for symlink target {rel}: {e}")
        logger.error("symlink_permission_error", path=rel, error=str(e))
        return []
    except (OSError, RuntimeError) as e:
        state.add_error(f"Error processing symlink {rel}: {e}")
        logger.error("symlink_failed", path=rel, error=str(e))
        return []

    if not target.is_relative_to(options.root):
        logger.warning("symlink_outside_root", path=rel, target=str(target))
        return []

    key = (str(link), str(target))
    if key in state.seen_symlinks:
        logger.warning("symlink_cycle", path=rel, target=str(target))
        return []
    state.seen_symlinks.add(key)

    if stat.S_ISDIR(target_stat.st_mode):
        return process_directory(target, rel, depth + 1, options, state)
    if stat.S_ISREG(target_stat.st_mode):
        if not is_path_included(rel, options.include_rules, state):
            state.filtered_files += 1
            logger.info("filtered_no_include_match", path=rel)
            return []
        admitted = admit_file(target, rel, options, state)
        return [admitted] if admitted is not None else []

    logger.info("symlink_target_unsupported", path=rel, target=str(target))
    return []


def _raw_link_target(link: Path) -> str:
    try:
        return os.readlink(link)
    except OSError:
        return "?"


def process_directory(
    directory: Path,
    rel_dir: str,
    depth: int,
    options: TraversalOptions,
    state: ScanState,
) -> list[CollectedFile]:
    """Collect files from one directory and, recursively, its children.

    Args:
        directory (Path): the directory on disk
        rel_dir (str): its path relative to the root ("" for the root itself)
        depth (int): its depth, the root being 0
        options (TraversalOptions): traversal inputs
        state (ScanState): the running traversal state

    Returns:
        list[CollectedFile]: files collected in this subtree, in listing order
    """
    files: list[CollectedFile] = []
    shown = rel_dir or "."

    if depth > options.max_depth:
        state.truncated_paths.append(shown)
        logger.warning("max_depth_reached", max_depth=options.max_depth, path=shown)
        return files

    canonical = os.path.realpath(directory)
    if canonical in state.seen_paths:
        logger.warning("directory_cycle", path=shown)
        return files
    state.seen_paths.add(canonical)

    try:
        with os.scandir(canonical) as it:
            entries = list(it)
    except FileNotFoundError:
        logger.warning("directory_vanished", path=shown)
        return files
    except PermissionError as e:
        state.add_error(f"Permission error reading directory {canonical}: {e}")
        logger.error("directory_permission_error", path=shown, error=str(e))
        return files
    except OSError as e:
        state.add_error(f"Error reading directory {canonical}: {e}")
        logger.error("directory_read_failed", path=shown, error=str(e))
        return files

    for entry in entries:
        if state.size_limit_reached:
            break

        rel = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
        is_link = entry.is_symlink()
        is_dir = not is_link and entry.is_dir(follow_symlinks=False)

        if is_path_excluded(rel, options.ignore_rules, state):
            state.filtered_files += 1
            logger.info("excluded_by_pattern", path=rel + ("/" if is_dir else ""))
            continue

        if is_link:
            files.extend(process_symlink(Path(entry.path), rel, depth, options, state))
        elif is_dir:
            files.extend(process_directory(Path(entry.path), rel, depth + 1, options, state))
        elif entry.is_file(follow_symlinks=False):
            if not is_path_included(rel, options.include_rules, state):
                state.filtered_files += 1
                logger.info("filtered_no_include_match", path=rel)
                continue
            admitted = admit_file(Path(entry.path), rel, options, state)
            if admitted is not None:
                files.append(admitted)
        else:
            logger.info("unsupported_file_type", path=rel)

    return files


def traverse(
    root: Path | str,
    ignore_rules: Sequence[PatternRule],
    include_rules: Sequence[PatternRule],
    max_depth: int = MAX_DIRECTORY_DEPTH,
    max_file_size: int = MAX_FILE_SIZE,
    max_total_size: int = MAX_TOTAL_SIZE_BYTES,
) -> tuple[list[CollectedFile], ScanState]:
    """Walk ``root`` and collect every admitted file.

    Args:
        root (Path | str): the directory to walk
        ignore_rules (Sequence[PatternRule]): rules excluding files and pruning directories
        include_rules (Sequence[PatternRule]): rules files must match; empty means all files
        max_depth (int): deepest directory level read, the root being 0
        max_file_size (int): individual file size limit in bytes
        max_total_size (int): cumulative size budget in bytes

    Returns:
        tuple[list[CollectedFile], ScanState]: the collected files in walk order
            and the statistics of this traversal
    """
    options = TraversalOptions(
        root=Path(root).resolve(),
        ignore_rules=tuple(ignore_rules),
        include_rules=tuple(include_rules),
        max_depth=max_depth,
        max_file_size=max_file_size,
        max_total_size=max_total_size,
    )
    state = ScanState()
    files = process_directory(options.root, "", 0, options, state)
    return files, state
