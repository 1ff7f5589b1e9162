from __future__ import annotations

import io
import math
from typing import TYPE_CHECKING

from codedigest.config import FILE_END_MARKER, FILE_START_MARKER, now_iso

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path

    from codedigest.config import CollectedFile, ScanState
    from codedigest.settings import Settings

SECTION_RULE = "=" * 50
BAR_LENGTH = 30
MIN_PERCENTAGE_THRESHOLD = 0.5
_SIZE_UNITS = ("Bytes", "KB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB")


def format_bytes(size: float, decimals: int = 2) -> str:
    """Format a byte count for humans, using 1024-based units.

    Args:
        size (float): the number of bytes
        decimals (int): maximum number of decimals kept

    Returns:
        str: e.g. ``"0 Bytes"``, ``"1.5 KB"``, ``"10 MB"``; ``"Invalid size"``
            for negative or non-finite input
    """
    if not math.isfinite(size) or size < 0:
        return "Invalid size"
    if size == 0:
        return "0 Bytes"
    dm = max(decimals, 0)
    index = 0
    while size >= 1024 ** (index + 1) and index < len(_SIZE_UNITS) - 1:
        index += 1
    value = round(size / 1024**index, dm)
    text = f"{value:.{dm}f}".rstrip("0").rstrip(".") if dm else f"{value:.0f}"
    return f"{text} {_SIZE_UNITS[index]}"


def build_file_sections(files: Sequence[CollectedFile]) -> str:
    """Frame every collected file between the digest start and end markers.

    Files are sorted by path, case-insensitively, so digests are stable across runs.

    Args:
        files (Sequence[CollectedFile]): the collected files

    Returns:
        str: the concatenated file sections
    """
    out = io.StringIO()
    for rec in sorted(files, key=lambda f: (f.path.lower(), f.path)):
        content = rec.content
        if content and not content.endswith("\n"):
            content += "\n"
        out.write(FILE_START_MARKER.format(path=rec.path) + "\n")
        out.write(content)
        out.write(FILE_END_MARKER + "\n\n")
    return out.getvalue()


def build_digest(
    root: Path,
    files: Sequence[CollectedFile],
    state: ScanState,
    tree: str,
) -> str:
    """Build the full digest text.

    The digest opens with a header naming the root and generation time, then
    the directory tree, then one framed section per collected file.

    Args:
        root (Path): the traversal root
        files (Sequence[CollectedFile]): the collected files
        state (ScanState): statistics of the traversal that produced ``files``
        tree (str): the rendered directory tree

    Returns:
        str: the digest text
    """
    out = io.StringIO()
    out.write(f"Code Digest for Directory: {root.resolve()}\n")
    out.write(f"Generated: {now_iso()}\n\n")
    out.write(f"Directory Structure ({state.file_count} included files shown)\n")
    out.write(f"{SECTION_RULE}\n")
    out.write(f"{tree}\n\n")
    out.write(f"Included File Contents ({format_bytes(state.total_size)})\n")
    out.write(f"{SECTION_RULE}\n\n")
    out.write(build_file_sections(files))
    return out.getvalue()


def calculate_extension_percentages(extension_sizes: Mapping[str, int], total_size: int) -> dict[str, float]:
    """Share of the included bytes per extension.

    Extensions under 0.5% are folded into ``.other``, which is only reported
    when it is itself significant or when there are few main categories.

    Args:
        extension_sizes (Mapping[str, int]): bytes per extension
        total_size (int): total included bytes

    Returns:
        dict[str, float]: percentage per extension
    """
    if total_size == 0:
        return {}
    percentages: dict[str, float] = {}
    other_size = 0
    for ext, size in extension_sizes.items():
        percent = size / total_size * 100
        if percent >= MIN_PERCENTAGE_THRESHOLD:
            percentages[ext] = percent
        else:
            other_size += size
    if other_size > 0:
        other_percent = other_size / total_size * 100
        if other_percent >= MIN_PERCENTAGE_THRESHOLD or len(percentages) < 5:  # noqa: PLR2004
            percentages[".other"] = other_percent
    return percentages


def build_bar_graph(percentages: Mapping[str, float]) -> str:
    """Render extension percentages as text bars, largest first."""
    if not percentages:
        return "  (No text files included)"
    lines: list[str] = []
    for ext, percent in sorted(percentages.items(), key=lambda kv: kv[1], reverse=True):
        if percent == 0:
            continue
        filled = max(1, round(percent / 100 * BAR_LENGTH))
        empty = max(0, BAR_LENGTH - filled)
        lines.append(f"  {ext:<10}: [{'█' * filled}{'─' * empty}] {percent:.1f}%")
    return "\n".join(lines)


def _pattern_list(patterns: set[str]) -> str:
    if not patterns:
        return "  None"
    return "\n".join(f"  {p}" for p in sorted(patterns))


def build_summary(root: Path, state: ScanState, settings: Settings, output_file: Path | None) -> str:
    """Build the plain-text report printed after a digest is generated.

    Args:
        root (Path): the traversal root
        state (ScanState): statistics of the traversal
        settings (Settings): the limits the traversal ran with
        output_file (Path | None): the written digest, if any

    Returns:
        str: the report
    """
    out = io.StringIO()
    limit_note = " (Limit Reached)" if state.size_limit_reached else ""
    out.write(" Code Digest Summary \n")
    out.write(f"Processed Path:          {root.resolve()}\n")
    out.write(f"Output File:             {output_file.resolve() if output_file else 'N/A'}\n")
    out.write(f"Execution Time:          {state.elapsed():.2f} seconds\n\n")

    out.write(" Content Stats \n")
    out.write(f"Text Files Included:     {state.file_count}\n")
    out.write(f"Total Size Included:     {format_bytes(state.total_size)}{limit_note}\n")
    out.write("Files Excluded:\n")
    out.write(f"  by ignore pattern:     {state.filtered_files}\n")
    out.write(f"  non-text files:        {state.non_text_files}\n")
    out.write(f"  size > max_file:       {state.skipped_files}\n")
    if state.truncated_paths:
        out.write(f"Depth-truncated dirs:    {len(state.truncated_paths)}\n")
    out.write("\n")

    out.write(" Configuration \n")
    out.write(f"Max File Size:           {format_bytes(settings.max_size)}\n")
    out.write(f"Max Total Size:          {format_bytes(settings.max_total_size)}\n")
    out.write(f"Max Directory Depth:     {settings.max_depth}\n")
    out.write("Follow Symlinks:         Yes (within root)\n\n")

    out.write(" Filters Applied \n")
    out.write("Ignore Patterns Matched:\n")
    out.write(_pattern_list(state.matched_ignore_patterns) + "\n")
    out.write("Include Patterns Matched:\n")
    out.write(_pattern_list(state.matched_include_patterns) + "\n\n")

    out.write(" Size by Extension (Included Text Files) \n")
    percentages = calculate_extension_percentages(state.extension_sizes, state.total_size)
    out.write(build_bar_graph(percentages) + "\n\n")

    out.write(f" Errors ({len(state.errors)}) \n")
    if state.errors:
        out.write("\n".join(f"  {err.timestamp}: {err.message}" for err in state.errors) + "\n")
    else:
        out.write("  No errors reported.\n")
    return out.getvalue()
