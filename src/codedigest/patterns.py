"""Compile gitignore-style pattern text into ordered ``PatternRule`` lists."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from codedigest.config import PatternRule
from codedigest.exceptions import PatternFileError
from codedigest.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence


def split_into_segments(pattern: str) -> list[str]:
    """Split a pattern on unescaped forward slashes.

    A backslash escapes the next character: ``a\\/b`` is the single segment
    ``a/b``. Empty segments (from doubled or edge slashes) are dropped.

    Args:
        pattern (str): the pattern text without its leading ``!``/``/`` markers

    Returns:
        list[str]: the non-empty segments, in order
    """
    segments: list[str] = []
    current: list[str] = []
    escaped = False
    for ch in pattern:
        if not escaped and ch == "\\":
            escaped = True
            continue
        if not escaped and ch == "/":
            if current:
                segments.append("".join(current))
            current = []
            continue
        current.append(ch)
        escaped = False
    if current:
        segments.append("".join(current))
    return segments


def parse_pattern_line(line: str) -> PatternRule | None:
    """Compile a single pattern line.

    Args:
        line (str): one raw line of pattern text

    Returns:
        PatternRule | None: the compiled rule, or None for blank and comment lines
    """
    text = line.strip()
    if not text or text.startswith("#"):
        return None

    negated = text.startswith("!")
    if negated:
        text = text[1:]
    anchored = text.startswith("/")
    if anchored:
        text = text[1:]
    directory_only = text.endswith("/")
    if directory_only:
        text = text[:-1]

    return PatternRule(
        segments=tuple(split_into_segments(text)),
        negated=negated,
        anchored=anchored,
        directory_only=directory_only,
    )


def parse_patterns(text: str) -> list[PatternRule]:
    """Compile a block of gitignore-style pattern text.

    Source order is kept: later rules override earlier ones during evaluation.

    Args:
        text (str): pattern text, one pattern per line

    Returns:
        list[PatternRule]: the compiled rules in source order
    """
    rules: list[PatternRule] = []
    for raw in text.splitlines():
        rule = parse_pattern_line(raw)
        if rule is not None:
            rules.append(rule)
    return rules


def build_pattern_text(
    defaults: Iterable[str] | None = None,
    file_text: str | None = None,
    inline: Sequence[str] = (),
) -> str:
    """Concatenate pattern sources in precedence order.

    Defaults come first, then the pattern file, then inline patterns, so that
    later sources can override (or negate) earlier ones.

    Args:
        defaults (Iterable[str] | None): built-in default patterns, or None to skip them
        file_text (str | None): contents of a pattern file, if any
        inline (Sequence[str]): patterns given one by one on the command line

    Returns:
        str: the combined pattern text
    """
    parts: list[str] = []
    if defaults is not None:
        parts.extend(defaults)
    if file_text:
        parts.append(file_text)
    parts.extend(inline)
    return "\n".join(parts) + "\n" if parts else ""


def load_pattern_file(path: Path | str | None) -> str:
    """Read a pattern file.

    Args:
        path (Path | str | None): the pattern file path; None yields an empty string

    Raises:
        PatternFileError: if the file cannot be read

    Returns:
        str: the file contents
    """
    if not path:
        return ""
    file = Path(path)
    try:
        return file.read_text(encoding="utf-8")
    except OSError as e:
        raise PatternFileError(file=file, message=f"Failed to read pattern file {file}: {e}") from e


def output_exclusion_rule(root: Path, output: Path) -> PatternRule | None:
    """Build the anchored ignore rule that keeps a digest from including itself.

    Args:
        root (Path): the traversal root
        output (Path): the digest output file

    Returns:
        PatternRule | None: an anchored rule for the output's relative path, or None
            when the output lies outside the root
    """
    root_path = root.resolve()
    out_path = output.resolve()
    if out_path == root_path or not out_path.is_relative_to(root_path):
        return None
    rel = out_path.relative_to(root_path).as_posix()
    logger.info("auto_excluding_output_file", path=rel)
    return PatternRule(segments=tuple(split_into_segments(rel)), anchored=True)
