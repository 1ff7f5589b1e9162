"""Match relative paths against compiled gitignore-style rules.

Matching happens per ``/`` segment. ``*`` and ``?`` never cross a segment
boundary; a whole-segment ``**`` absorbs zero or more segments and is handled
by backtracking over the two segment cursors.

Rule sets resolve with "last match wins": every rule is checked in source
order and the final structural match decides the verdict, so ``!keep.log``
after ``*.log`` re-admits ``keep.log``.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from codedigest.config import PatternRule, ScanState

GLOBSTAR = "**"


@lru_cache(maxsize=1024)
def _segment_regex(pattern: str) -> re.Pattern[str]:
    parts: list[str] = []
    for ch in pattern:
        if ch == "*":
            parts.append("[^/]*")
        elif ch == "?":
            parts.append("[^/]")
        else:
            parts.append(re.escape(ch))
    return re.compile("^" + "".join(parts) + "$")


def segment_match(segment: str, pattern: str) -> bool:
    """Check one path segment against one pattern segment.

    Args:
        segment (str): the path segment
        pattern (str): the pattern segment, possibly containing ``*`` or ``?``

    Returns:
        bool: True if the segment matches
    """
    if "*" not in pattern and "?" not in pattern:
        return segment == pattern
    return _segment_regex(pattern).match(segment) is not None


def match_segments(
    path_segs: Sequence[str],
    p_index: int,
    pattern_segs: Sequence[str],
    s_index: int,
) -> bool:
    """Match ``pattern_segs[s_index:]`` against exactly ``path_segs[p_index:]``.

    Args:
        path_segs (Sequence[str]): the candidate path segments
        p_index (int): cursor into the path segments
        pattern_segs (Sequence[str]): the rule segments
        s_index (int): cursor into the rule segments

    Returns:
        bool: True if the remaining pattern consumes the remaining path entirely
    """
    while s_index < len(pattern_segs):
        token = pattern_segs[s_index]

        if token == GLOBSTAR:
            s_index += 1
            if s_index == len(pattern_segs):
                return True
            # shortest absorption first, down to the empty suffix
            for start in range(p_index, len(path_segs) + 1):
                if match_segments(path_segs, start, pattern_segs, s_index):
                    return True
            return False

        if p_index == len(path_segs):
            return False
        if not segment_match(path_segs[p_index], token):
            return False
        p_index += 1
        s_index += 1

    return p_index == len(path_segs)


def matches_rule(path_segs: Sequence[str], rule: PatternRule) -> bool:
    """Check whether a rule structurally matches a path, ignoring negation.

    Anchored rules match from the first segment only; other rules may start
    at any segment of the path.

    Note that ``rule.directory_only`` is not consulted here: a rule written
    as ``build/`` also matches a file named ``build``.

    Args:
        path_segs (Sequence[str]): the candidate path segments
        rule (PatternRule): the compiled rule

    Returns:
        bool: True if the rule matches
    """
    if rule.anchored:
        return match_segments(path_segs, 0, rule.segments, 0)
    return any(match_segments(path_segs, start, rule.segments, 0) for start in range(len(path_segs)))


def split_path(path: str) -> list[str]:
    """Split a forward-slash relative path into its non-empty segments."""
    return [seg for seg in path.split("/") if seg]


def match_path_by_rules(
    path: str,
    rules: Sequence[PatternRule],
    matched: set[str] | None = None,
) -> bool:
    """Evaluate a rule set with last-match-wins semantics.

    Args:
        path (str): forward-slash path relative to the traversal root
        rules (Sequence[PatternRule]): rules in source order
        matched (set[str] | None): if given, receives the pattern text of the
            deciding rule when the verdict is positive

    Returns:
        bool: True when the last matching rule is not negated; False when it is
            negated or when no rule matches
    """
    segments = split_path(path)
    verdict = False
    deciding: PatternRule | None = None
    for rule in rules:
        if matches_rule(segments, rule):
            verdict = not rule.negated
            deciding = rule
    if verdict and deciding is not None and matched is not None:
        matched.add(deciding.pattern)
    return verdict


def is_path_excluded(path: str, ignore_rules: Sequence[PatternRule], state: ScanState | None = None) -> bool:
    """Return True if the ignore rules exclude ``path``."""
    matched = state.matched_ignore_patterns if state is not None else None
    return match_path_by_rules(path, ignore_rules, matched)


def is_path_included(path: str, include_rules: Sequence[PatternRule], state: ScanState | None = None) -> bool:
    """Return True if ``path`` passes the include rules.

    An empty include rule set includes everything.
    """
    if not include_rules:
        return True
    matched = state.matched_include_patterns if state is not None else None
    return match_path_by_rules(path, include_rules, matched)
