from __future__ import annotations

import pytest

from codedigest.config import PatternRule, ScanState
from codedigest.matching import (
    is_path_excluded,
    is_path_included,
    match_path_by_rules,
    match_segments,
    matches_rule,
    segment_match,
)
from codedigest.patterns import parse_pattern_line, parse_patterns


def _rule(line: str) -> PatternRule:
    rule = parse_pattern_line(line)
    assert rule is not None
    return rule


@pytest.mark.unit
@pytest.mark.parametrize(
    ("segment", "pattern", "expected"),
    [
        ("main.py", "main.py", True),
        ("main.py", "*.py", True),
        ("main.pyc", "*.py", False),
        ("a1", "a?", True),
        ("a12", "a?", False),
        ("a+b", "a+b", True),
        ("axb", "a.b", False),
        ("", "*", True),
    ],
)
def test_segment_match(segment: str, pattern: str, expected: bool) -> None:  # noqa: FBT001
    assert segment_match(segment, pattern) is expected


@pytest.mark.unit
@pytest.mark.parametrize(
    ("path", "expected"),
    [
        (["a"], True),
        (["a", "b"], True),
        (["a", "b", "c"], True),
        (["x"], False),
    ],
)
def test_trailing_globstar_absorbs_any_suffix(path: list[str], expected: bool) -> None:  # noqa: FBT001
    assert match_segments(path, 0, ["a", "**"], 0) is expected


@pytest.mark.unit
@pytest.mark.parametrize(
    ("path", "expected"),
    [
        (["a", "b", "b2", "c"], True),
        (["a", "c"], True),
        (["a", "b"], False),
    ],
)
def test_middle_globstar_backtracks(path: list[str], expected: bool) -> None:  # noqa: FBT001
    assert match_segments(path, 0, ["a", "**", "c"], 0) is expected


@pytest.mark.unit
def test_match_segments_requires_full_consumption() -> None:
    assert match_segments(["a", "b"], 0, ["a"], 0) is False
    assert match_segments(["a"], 0, ["a", "b"], 0) is False


@pytest.mark.unit
def test_anchored_rule_only_matches_from_root() -> None:
    anchored = _rule("/build")
    floating = _rule("build")

    assert matches_rule(["build"], anchored) is True
    assert matches_rule(["x", "build"], anchored) is False
    assert matches_rule(["x", "build"], floating) is True


@pytest.mark.unit
def test_unanchored_multi_segment_rule_matches_at_any_offset() -> None:
    rule = _rule("src/*.py")

    assert matches_rule(["pkg", "src", "main.py"], rule) is True
    assert matches_rule(["src", "deep", "main.py"], rule) is False


@pytest.mark.unit
def test_directory_only_flag_is_not_enforced() -> None:
    # a trailing slash is recorded on the rule but a plain file still matches
    assert matches_rule(["build"], _rule("build/")) is True


@pytest.mark.unit
def test_last_match_wins_and_order_matters() -> None:
    ignore_then_keep = parse_patterns("*.log\n!keep.log\n")
    keep_then_ignore = parse_patterns("!keep.log\n*.log\n")

    assert match_path_by_rules("logs/keep.log", ignore_then_keep) is False
    assert match_path_by_rules("logs/other.log", ignore_then_keep) is True
    assert match_path_by_rules("logs/keep.log", keep_then_ignore) is True


@pytest.mark.unit
def test_no_matching_rule_means_no_match() -> None:
    assert match_path_by_rules("src/main.py", parse_patterns("*.log\n")) is False
    assert match_path_by_rules("src/main.py", []) is False


@pytest.mark.unit
def test_matched_pattern_recorded_only_for_positive_verdict() -> None:
    rules = parse_patterns("*.log\n!keep.log\n")
    matched: set[str] = set()

    match_path_by_rules("keep.log", rules, matched)
    assert matched == set()

    match_path_by_rules("other.log", rules, matched)
    assert matched == {"*.log"}


@pytest.mark.unit
def test_is_path_excluded_records_into_state() -> None:
    state = ScanState()

    assert is_path_excluded("node_modules", parse_patterns("node_modules\n"), state) is True
    assert state.matched_ignore_patterns == {"node_modules"}


@pytest.mark.unit
def test_is_path_included_with_empty_rules_includes_everything() -> None:
    assert is_path_included("anything/at/all.bin", []) is True


@pytest.mark.unit
def test_is_path_included_records_into_state() -> None:
    state = ScanState()
    rules = parse_patterns("*.py\n")

    assert is_path_included("src/app.py", rules, state) is True
    assert is_path_included("README.md", rules, state) is False
    assert state.matched_include_patterns == {"*.py"}
