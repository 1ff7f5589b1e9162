from __future__ import annotations

from pathlib import Path

import pytest

from codedigest.config import CollectedFile, ScanState
from codedigest.output_construction import (
    build_bar_graph,
    build_digest,
    build_file_sections,
    build_summary,
    calculate_extension_percentages,
    format_bytes,
)
from codedigest.settings import Settings


@pytest.mark.unit
@pytest.mark.parametrize(
    ("size", "expected"),
    [
        (0, "0 Bytes"),
        (100, "100 Bytes"),
        (1536, "1.5 KB"),
        (10 * 1024 * 1024, "10 MB"),
        (-1, "Invalid size"),
    ],
)
def test_format_bytes(size: int, expected: str) -> None:
    assert format_bytes(size) == expected


@pytest.mark.unit
def test_build_file_sections_sorts_and_terminates_content() -> None:
    files = [
        CollectedFile(path="b.txt", content="no newline", size=10),
        CollectedFile(path="a.txt", content="line\n", size=5),
        CollectedFile(path="empty.txt", content="", size=0),
    ]

    sections = build_file_sections(files)

    assert sections == (
        "### CODEDIGEST_FILE: a.txt ###\nline\n### CODEDIGEST_END ###\n\n"
        "### CODEDIGEST_FILE: b.txt ###\nno newline\n### CODEDIGEST_END ###\n\n"
        "### CODEDIGEST_FILE: empty.txt ###\n### CODEDIGEST_END ###\n\n"
    )


@pytest.mark.unit
def test_build_digest_has_header_tree_and_sections(tmp_path: Path) -> None:
    state = ScanState(file_count=1, total_size=2)
    files = [CollectedFile(path="a.txt", content="hi", size=2)]

    digest = build_digest(tmp_path, files, state, "└── a.txt\n")

    assert digest.startswith(f"Code Digest for Directory: {tmp_path.resolve()}\n")
    assert "Generated: " in digest
    assert "Directory Structure (1 included files shown)" in digest
    assert "└── a.txt" in digest
    assert "Included File Contents (2 Bytes)" in digest
    assert digest.endswith("### CODEDIGEST_FILE: a.txt ###\nhi\n### CODEDIGEST_END ###\n\n")


@pytest.mark.unit
def test_calculate_extension_percentages_folds_small_extensions() -> None:
    percentages = calculate_extension_percentages({".py": 996, ".md": 4}, 1000)

    assert percentages[".py"] == pytest.approx(99.6)
    assert ".md" not in percentages
    assert percentages[".other"] == pytest.approx(0.4)


@pytest.mark.unit
def test_calculate_extension_percentages_empty_total() -> None:
    assert calculate_extension_percentages({}, 0) == {}


@pytest.mark.unit
def test_build_bar_graph() -> None:
    graph = build_bar_graph({".py": 75.0, ".md": 25.0})
    lines = graph.splitlines()

    assert lines[0].startswith("  .py")
    assert "█" * 22 + "─" * 8 in lines[0]
    assert lines[0].endswith("75.0%")
    assert build_bar_graph({}) == "  (No text files included)"


@pytest.mark.unit
def test_build_summary_reports_stats_and_errors(tmp_path: Path) -> None:
    state = ScanState(
        file_count=2,
        total_size=2048,
        filtered_files=3,
        size_limit_reached=True,
        extension_sizes={".py": 2048},
    )
    state.matched_ignore_patterns.add("node_modules")
    state.add_error("Permission error reading directory x")
    settings = Settings(max_size=1024, max_total_size=4096, max_depth=3)

    summary = build_summary(tmp_path, state, settings, tmp_path / "digest.txt")

    assert "Text Files Included:     2" in summary
    assert "Total Size Included:     2 KB (Limit Reached)" in summary
    assert "by ignore pattern:     3" in summary
    assert "Max File Size:           1 KB" in summary
    assert "Max Directory Depth:     3" in summary
    assert "  node_modules" in summary
    assert "Include Patterns Matched:\n  None" in summary
    assert " Errors (1) " in summary
    assert "Permission error reading directory x" in summary


@pytest.mark.unit
def test_build_file_sections_sorts_case_insensitively() -> None:
    files = [
        CollectedFile(path="Zeta.txt", content="z\n", size=2),
        CollectedFile(path="alpha.txt", content="a\n", size=2),
        CollectedFile(path="Alpha.txt", content="A\n", size=2),
    ]

    sections = build_file_sections(files)
    order = [line.split(": ", 1)[1].removesuffix(" ###") for line in sections.splitlines() if "CODEDIGEST_FILE" in line]

    assert order == ["Alpha.txt", "alpha.txt", "Zeta.txt"]
