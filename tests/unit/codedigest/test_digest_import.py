from __future__ import annotations

from pathlib import Path

import pytest

from codedigest.config import CollectedFile
from codedigest.digest_import import (
    DigestEntry,
    ImportSummary,
    build_import_report,
    calculate_checksum,
    import_digest,
    parse_digest_content,
)
from codedigest.exceptions import DigestNotFoundError, DigestReadError
from codedigest.output_construction import build_file_sections

DIGEST = """Code Digest for Directory: /somewhere
Generated: 2024-01-01T00:00:00.000Z

### CODEDIGEST_FILE: a.txt ###
hello
### CODEDIGEST_END ###

### CODEDIGEST_FILE: src/b.py ###
### CHECKSUM: abc123 ###
print('b')

### CODEDIGEST_END ###

### CODEDIGEST_FILE: empty.txt ###
### CODEDIGEST_END ###
"""


def _write_digest(tmp_path: Path, text: str = DIGEST) -> Path:
    digest = tmp_path / "digest.txt"
    digest.write_text(text, encoding="utf-8")
    return digest


@pytest.mark.unit
def test_calculate_checksum_is_short_sha256() -> None:
    checksum = calculate_checksum("hello\n")

    assert len(checksum) == 12
    assert checksum == calculate_checksum("hello\n")
    assert checksum != calculate_checksum("hello")


@pytest.mark.unit
def test_parse_digest_content_extracts_sections() -> None:
    entries = parse_digest_content(DIGEST)

    assert entries == [
        DigestEntry(path="a.txt", content="hello\n"),
        DigestEntry(path="src/b.py", content="print('b')\n\n"),
        DigestEntry(path="empty.txt", content=""),
    ]


@pytest.mark.unit
def test_parse_digest_content_drops_incomplete_sections() -> None:
    text = (
        "### CODEDIGEST_FILE: cut.txt ###\n"
        "partial\n"
        "### CODEDIGEST_FILE: ok.txt ###\n"
        "fine\n"
        "### CODEDIGEST_END ###\n"
        "### CODEDIGEST_FILE: open.txt ###\n"
        "never closed\n"
    )

    assert parse_digest_content(text) == [DigestEntry(path="ok.txt", content="fine\n")]


@pytest.mark.unit
def test_import_digest_creates_updates_and_skips(tmp_path: Path) -> None:
    digest = _write_digest(tmp_path)
    target = tmp_path / "out"
    target.mkdir()
    (target / "a.txt").write_text("hello\n", encoding="utf-8")
    (target / "empty.txt").write_text("stale", encoding="utf-8")

    summary = import_digest(digest, target)

    assert summary.created == ["src/b.py"]
    assert summary.updated == ["empty.txt"]
    assert summary.unchanged == ["a.txt"]
    assert (target / "src" / "b.py").read_text(encoding="utf-8") == "print('b')\n\n"
    assert (target / "empty.txt").read_text(encoding="utf-8") == ""


@pytest.mark.unit
def test_import_digest_dry_run_writes_nothing(tmp_path: Path) -> None:
    digest = _write_digest(tmp_path)
    target = tmp_path / "missing_target"

    summary = import_digest(digest, target, dry_run=True)

    assert sorted(summary.created) == ["a.txt", "empty.txt", "src/b.py"]
    assert not target.exists()


@pytest.mark.unit
def test_import_digest_rejects_paths_outside_target(tmp_path: Path) -> None:
    digest = _write_digest(
        tmp_path,
        "### CODEDIGEST_FILE: ../escape.txt ###\nnope\n### CODEDIGEST_END ###\n",
    )
    target = tmp_path / "out"

    summary = import_digest(digest, target)

    assert summary.skipped_outside_target == ["../escape.txt"]
    assert not (tmp_path / "escape.txt").exists()


@pytest.mark.unit
def test_import_digest_missing_digest_raises(tmp_path: Path) -> None:
    with pytest.raises(DigestNotFoundError):
        import_digest(tmp_path / "nope.txt", tmp_path)


@pytest.mark.unit
def test_build_import_report_lists_and_caps_items() -> None:
    summary = ImportSummary(created=[f"f{i}.txt" for i in range(20)], unchanged=["same.txt"])

    report = build_import_report(summary, dry_run=True)

    assert "Import Summary (Dry Run)" in report
    assert "Files Would be created:      20" in report
    assert "Would have been Created:" in report
    assert "  f14.txt" in report
    assert "  f15.txt" not in report
    assert "...and 5 more" in report
    assert "same.txt" not in report


@pytest.mark.unit
def test_parse_digest_content_keeps_form_feeds_and_unicode_separators() -> None:
    content = "page one\n\x0cpage two\nsep x\x85y\r\n"
    sections = build_file_sections([CollectedFile(path="gnu.c", content=content, size=len(content))])

    entries = parse_digest_content(sections)

    assert entries == [DigestEntry(path="gnu.c", content="page one\n\x0cpage two\nsep x\x85y\n")]


@pytest.mark.unit
def test_import_digest_round_trip_preserves_checksum(tmp_path: Path) -> None:
    content = "page one\n\x0cpage two\nsep x\n"
    digest = _write_digest(tmp_path, build_file_sections([CollectedFile(path="gnu.c", content=content, size=0)]))
    target = tmp_path / "out"

    import_digest(digest, target)
    again = import_digest(digest, target)

    assert (target / "gnu.c").read_bytes().decode("utf-8") == content
    assert again.unchanged == ["gnu.c"]


@pytest.mark.unit
def test_import_digest_directory_raises_read_error(tmp_path: Path) -> None:
    with pytest.raises(DigestReadError) as exc_info:
        import_digest(tmp_path, tmp_path / "out")

    assert exc_info.value.file == tmp_path
    assert not (tmp_path / "out").exists()


@pytest.mark.unit
def test_import_digest_invalid_utf8_raises_read_error(tmp_path: Path) -> None:
    digest = tmp_path / "digest.txt"
    digest.write_bytes(b"\xff\xfe### CODEDIGEST_FILE: a.txt ###\n")

    with pytest.raises(DigestReadError, match="digest.txt"):
        import_digest(digest, tmp_path / "out")
