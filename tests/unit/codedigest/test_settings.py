from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from codedigest.config import MAX_DIRECTORY_DEPTH, MAX_FILE_SIZE
from codedigest.exceptions import ConfigFileError
from codedigest.settings import (
    Settings,
    find_config_file,
    load_config_file,
    load_defaults,
    load_env_defaults,
    parse_size_string,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2048", 2048),
        ("10MB", 10 * 1024**2),
        ("512 kb", 512 * 1024),
        ("1gb", 1024**3),
        ("2TB", 2 * 1024**4),
        (42, 42),
    ],
)
def test_parse_size_string(value: str | int, expected: int) -> None:
    assert parse_size_string(value) == expected


@pytest.mark.unit
@pytest.mark.parametrize("value", ["ten", "10 PB", "-5", "1.5MB", -1])
def test_parse_size_string_rejects_garbage(value: str | int) -> None:
    with pytest.raises(ValueError, match="Invalid size"):
        parse_size_string(value)


@pytest.mark.unit
def test_settings_defaults() -> None:
    settings = Settings()

    assert settings.path == Path()
    assert settings.output == Path("digest.txt")
    assert settings.max_size == MAX_FILE_SIZE
    assert settings.max_depth == MAX_DIRECTORY_DEPTH
    assert settings.import_file is None
    assert settings.ignore_patterns == []


@pytest.mark.unit
def test_settings_accepts_size_strings() -> None:
    settings = Settings(max_size="1MB", max_total_size="2 GB")

    assert settings.max_size == 1024**2
    assert settings.max_total_size == 2 * 1024**3


@pytest.mark.unit
def test_settings_rejects_unknown_and_invalid_fields() -> None:
    with pytest.raises(ValidationError):
        Settings(repo=Path())  # type: ignore[call-arg]
    with pytest.raises(ValidationError):
        Settings(max_depth=-1)
    with pytest.raises(ValidationError):
        Settings(max_size=0)


@pytest.mark.unit
def test_find_config_file(tmp_path: Path) -> None:
    assert find_config_file(tmp_path) is None

    config = tmp_path / ".codedigest.yaml"
    config.write_text("max_depth: 3\n", encoding="utf-8")

    assert find_config_file(tmp_path) == config


@pytest.mark.unit
def test_load_config_file_normalises_keys(tmp_path: Path) -> None:
    config = tmp_path / "cfg.yml"
    config.write_text("max-depth: 3\nignore_patterns:\n  - '*.log'\n", encoding="utf-8")

    assert load_config_file(config) == {"max_depth": 3, "ignore_patterns": ["*.log"]}


@pytest.mark.unit
@pytest.mark.parametrize(
    "content",
    ["- just\n- a list\n", "unknown_key: 1\n", "key: [unclosed\n"],
)
def test_load_config_file_rejects_bad_files(tmp_path: Path, content: str) -> None:
    config = tmp_path / "cfg.yml"
    config.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigFileError) as exc_info:
        load_config_file(config)

    assert exc_info.value.file == config


@pytest.mark.unit
def test_load_config_file_missing(tmp_path: Path) -> None:
    with pytest.raises(ConfigFileError):
        load_config_file(tmp_path / "missing.yml")


@pytest.mark.unit
def test_load_env_defaults_environment_beats_dotenv(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text(
        "CODEDIGEST_MAX_DEPTH=4\nCODEDIGEST_IGNORE_PATTERNS=*.log, tmp/\nOTHER=1\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("CODEDIGEST_MAX_DEPTH", "7")
    monkeypatch.setenv("CODEDIGEST_NOT_A_FIELD", "x")

    defaults = load_env_defaults(str(env_file))

    assert defaults == {"max_depth": "7", "ignore_patterns": ["*.log", "tmp/"]}


@pytest.mark.unit
def test_load_defaults_env_overrides_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = tmp_path / "cfg.yml"
    config.write_text("max_depth: 3\nquiet: true\n", encoding="utf-8")
    monkeypatch.setenv("CODEDIGEST_MAX_DEPTH", "9")

    defaults = load_defaults(config, env_file="")

    assert defaults == {"max_depth": "9", "quiet": True}
