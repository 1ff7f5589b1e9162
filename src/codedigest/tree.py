"""Render the filtered directory tree shown at the top of a digest."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from codedigest.config import MAX_DIRECTORY_DEPTH, MAX_TREE_NODES
from codedigest.logging import logger
from codedigest.matching import is_path_excluded, is_path_included

if TYPE_CHECKING:
    from collections.abc import Sequence

    from codedigest.config import PatternRule

TOO_MANY_ENTRIES = "[Tree truncated - too many entries]"
MAX_DEPTH_REACHED = "[Tree truncated - max depth reached]"


@dataclass
class _TreeResult:
    lines: list[str] = field(default_factory=list)
    count: int = 0
    truncated: bool = False


@dataclass(frozen=True)
class _TreeOptions:
    root: Path
    ignore_rules: Sequence[PatternRule]
    include_rules: Sequence[PatternRule]
    max_depth: int
    max_nodes: int


def _visible_entries(directory: Path, rel_dir: str, options: _TreeOptions) -> list[os.DirEntry[str]]:
    with os.scandir(directory) as it:
        entries = list(it)

    visible: list[os.DirEntry[str]] = []
    for entry in entries:
        rel = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
        if is_path_excluded(rel, options.ignore_rules):
            continue
        if entry.is_symlink() or entry.is_dir(follow_symlinks=False):
            visible.append(entry)
        elif entry.is_file(follow_symlinks=False) and is_path_included(rel, options.include_rules):
            visible.append(entry)

    def sort_key(entry: os.DirEntry[str]) -> tuple[int, str, str]:
        is_dir_like = entry.is_symlink() or entry.is_dir(follow_symlinks=False)
        return (0 if is_dir_like else 1, entry.name.lower(), entry.name)

    return sorted(visible, key=sort_key)


def _link_description(entry: os.DirEntry[str], root: Path) -> str:
    try:
        target = os.readlink(entry.path)
    except OSError:
        return " [Broken Link]"
    absolute = Path(os.path.normpath(Path(entry.path).parent / target))
    if absolute != root and absolute.is_relative_to(root):
        return f" {absolute.relative_to(root).as_posix()}"
    return f" {target}"


def _render_directory(
    directory: Path,
    rel_dir: str,
    depth: int,
    prefix: str,
    options: _TreeOptions,
    result: _TreeResult,
) -> None:
    if result.truncated:
        return
    if result.count >= options.max_nodes:
        result.lines.append(f"{prefix}{TOO_MANY_ENTRIES}")
        result.truncated = True
        return
    if depth > options.max_depth:
        result.lines.append(f"{prefix}{MAX_DEPTH_REACHED}")
        return

    try:
        entries = _visible_entries(directory, rel_dir, options)
    except OSError as e:
        logger.error("tree_directory_read_failed", path=rel_dir or ".", error=str(e))
        reason = e.strerror or str(e)
        result.lines.append(f"{prefix}└── [Error reading directory: {reason}]")
        result.count += 1
        return

    for index, entry in enumerate(entries):
        is_last = index == len(entries) - 1
        connector = "└── " if is_last else "├── "
        if result.truncated:
            return
        if result.count >= options.max_nodes:
            result.lines.append(f"{prefix}{connector}{TOO_MANY_ENTRIES}")
            result.truncated = True
            return

        if entry.is_symlink():
            label = f"{entry.name} ->{_link_description(entry, options.root)}"
            is_dir = False
        elif entry.is_dir(follow_symlinks=False):
            label = f"{entry.name}/"
            is_dir = True
        else:
            label = entry.name
            is_dir = False

        result.lines.append(f"{prefix}{connector}{label}")
        result.count += 1

        # symlinked directories are listed but never entered
        if is_dir:
            rel = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
            child_prefix = prefix + ("    " if is_last else "│   ")
            _render_directory(Path(entry.path), rel, depth + 1, child_prefix, options, result)


def render_tree(
    root: Path | str,
    ignore_rules: Sequence[PatternRule],
    include_rules: Sequence[PatternRule],
    max_depth: int = MAX_DIRECTORY_DEPTH,
    *,
    max_nodes: int = MAX_TREE_NODES,
) -> str:
    """Render the directory tree that a digest of ``root`` would cover.

    Uses the same ignore/include evaluation as the traversal but reads no file
    content. Directories (and symlinks) are listed before files, both in
    case-insensitive alphabetical order. Symlinks are shown with their target
    and are not followed.

    Args:
        root (Path | str): the directory to render
        ignore_rules (Sequence[PatternRule]): rules hiding files and directories
        include_rules (Sequence[PatternRule]): rules files must match; empty means all
        max_depth (int): deepest directory level listed, the root being 0
        max_nodes (int): maximum number of entries rendered before truncating

    Returns:
        str: the tree, one line per entry, newline terminated (empty for an empty tree)
    """
    options = _TreeOptions(
        root=Path(root).resolve(),
        ignore_rules=ignore_rules,
        include_rules=include_rules,
        max_depth=max_depth,
        max_nodes=max_nodes,
    )
    result = _TreeResult()
    _render_directory(options.root, "", 0, "", options, result)
    return "".join(f"{line}\n" for line in result.lines)
