from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from codedigest.config import MAX_DIRECTORY_DEPTH, MAX_FILE_SIZE, MAX_TOTAL_SIZE_BYTES
from codedigest.exceptions import ConfigFileError

ENV_FILE = find_dotenv(usecwd=True)
DEFAULT_CONFIG_FILES = (".codedigest.yml", ".codedigest.yaml")
ENV_PREFIX = "CODEDIGEST_"

_SIZE_PATTERN = re.compile(r"^(\d+)\s*(KB|MB|GB|TB)?$")
_SIZE_UNITS = {None: 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3, "TB": 1024**4}


def parse_size_string(value: str | int) -> int:
    """Parse a byte size such as ``"10MB"``, ``"512 kb"`` or ``"2048"``.

    Args:
        value (str | int): the size, optionally suffixed with KB, MB, GB or TB

    Raises:
        ValueError: if the value is not a non-negative size

    Returns:
        int: the size in bytes
    """
    if isinstance(value, int):
        if value < 0:
            msg = f"Invalid size: {value}"
            raise ValueError(msg)
        return value
    match = _SIZE_PATTERN.match(str(value).strip().upper())
    if not match:
        msg = f"Invalid size: {value}"
        raise ValueError(msg)
    return int(match.group(1)) * _SIZE_UNITS[match.group(2)]


class Settings(BaseModel):
    """Configuration settings for a codedigest run."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    path: Path = Field(default=Path(), description="Directory to process.")
    output: Path = Field(default=Path("digest.txt"), description="Output digest file.")
    ignore_file: Path | None = Field(default=None, description="Gitignore-style ignore file.")
    include_file: Path | None = Field(default=None, description="Gitignore-style include file.")
    ignore_patterns: list[str] = Field(default_factory=list, description="Inline ignore patterns.")
    include_patterns: list[str] = Field(default_factory=list, description="Inline include patterns.")
    max_size: int = Field(default=MAX_FILE_SIZE, gt=0, description="Max individual file size.")
    max_total_size: int = Field(default=MAX_TOTAL_SIZE_BYTES, gt=0, description="Max total size.")
    max_depth: int = Field(default=MAX_DIRECTORY_DEPTH, ge=0, description="Max recursion depth.")
    skip_default_ignore: bool = Field(default=False, description="Skip built-in ignore patterns.")
    quiet: bool = Field(default=False, description="Suppress file add/skip messages.")
    ultra_quiet: bool = Field(default=False, description="Suppress all but fatal output.")

    import_file: Path | None = Field(default=None, description="Digest file to import.")
    target: Path = Field(default=Path(), description="Import target directory.")
    dry_run: bool = Field(default=False, description="Report import actions only.")

    log_file: str = Field(default="", description="Log file path.")
    config: Path | None = Field(default=None, description="YAML configuration file.")

    @field_validator("max_size", "max_total_size", mode="before")
    @classmethod
    def _parse_sizes(cls, value: Any) -> Any:  # noqa: ANN401
        if isinstance(value, str):
            return parse_size_string(value)
        return value


def find_config_file(cwd: Path | None = None) -> Path | None:
    """Locate a default configuration file in ``cwd``.

    Returns:
        Path | None: the first of ``.codedigest.yml``/``.codedigest.yaml`` found, or None
    """
    base = cwd or Path.cwd()
    for name in DEFAULT_CONFIG_FILES:
        candidate = base / name
        if candidate.is_file():
            return candidate
    return None


def load_config_file(path: Path) -> dict[str, Any]:
    """Load settings defaults from a YAML file.

    Keys are ``Settings`` field names (dashes are accepted in place of
    underscores).

    Args:
        path (Path): the YAML file

    Raises:
        ConfigFileError: if the file is unreadable, not a mapping, or has unknown keys

    Returns:
        dict[str, Any]: the defaults found in the file
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigFileError(file=path, message=f"Failed to load config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigFileError(file=path, message=f"Config file {path} must contain a mapping")

    out = {str(k).replace("-", "_"): v for k, v in data.items()}
    unknown = sorted(set(out) - set(Settings.model_fields) - {"config"})
    if unknown:
        raise ConfigFileError(file=path, message=f"Unknown keys in config file {path}: {', '.join(unknown)}")
    return out


def load_env_defaults(env_file: str | None = None) -> dict[str, Any]:
    """Read ``CODEDIGEST_*`` defaults from the ``.env`` file and the environment.

    Process environment variables take precedence over the ``.env`` file.
    ``CODEDIGEST_IGNORE_PATTERNS`` and ``CODEDIGEST_INCLUDE_PATTERNS`` are
    comma-separated lists.

    Returns:
        dict[str, Any]: the defaults found, keyed by ``Settings`` field name
    """
    source = env_file if env_file is not None else ENV_FILE
    values: dict[str, str | None] = dict(dotenv_values(source)) if source else {}
    values.update({k: v for k, v in os.environ.items() if k.startswith(ENV_PREFIX)})

    out: dict[str, Any] = {}
    for key, raw in values.items():
        if not key.startswith(ENV_PREFIX) or raw is None:
            continue
        name = key.removeprefix(ENV_PREFIX).lower()
        if name not in Settings.model_fields:
            continue
        if name in {"ignore_patterns", "include_patterns"}:
            out[name] = [p.strip() for p in raw.split(",") if p.strip()]
        else:
            out[name] = raw
    return out


def load_defaults(config: Path | None = None, env_file: str | None = None) -> dict[str, Any]:
    """Merge file and environment defaults; the environment wins.

    Args:
        config (Path | None): explicit config file; the working directory is searched otherwise
        env_file (str | None): explicit ``.env`` file; the nearest one is used otherwise

    Returns:
        dict[str, Any]: defaults to apply before command-line flags
    """
    config_path = config or find_config_file()
    defaults: dict[str, Any] = load_config_file(config_path) if config_path else {}
    defaults.update(load_env_defaults(env_file))
    return defaults
