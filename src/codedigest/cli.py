"""codedigest — export a directory tree as a single text digest, or import one back.

Generate mode (default) walks ``--path``, skips everything matched by the
built-in and user ignore patterns, keeps only files matched by the include
patterns (when any are given), and writes a digest with a directory tree
followed by one framed section per text file.

Import mode (``--import``) reads a digest and creates or updates the files it
contains under ``--target``, leaving files whose checksum already matches.

Usage
-----
    codedigest -p src/ -o my_digest.txt
    codedigest -i "*.log" -t 50MB
    codedigest --import my_digest.txt --target ./output_dir --dry-run
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from codedigest import __version__
from codedigest.config import DEFAULT_IGNORE_PATTERNS
from codedigest.digest_import import build_import_report, import_digest
from codedigest.exceptions import CodeDigestError, InvalidArgumentsError, OutputError
from codedigest.logging import logger, setup_logging, verbosity_level
from codedigest.output_construction import build_digest, build_summary, format_bytes
from codedigest.patterns import build_pattern_text, load_pattern_file, output_exclusion_rule, parse_patterns
from codedigest.settings import Settings, load_defaults, parse_size_string
from codedigest.traversal import traverse
from codedigest.tree import render_tree

if TYPE_CHECKING:
    from collections.abc import Sequence


def _size_arg(value: str) -> int:
    try:
        return parse_size_string(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for both generate and import modes.

    Returns:
        argparse.ArgumentParser: the configured parser
    """
    p = argparse.ArgumentParser(
        prog="codedigest",
        description="Generate or import a digest of a directory's text file contents.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--config", type=Path, default=None, help="YAML configuration file.")
    p.add_argument("--log-file", type=str, default="", help="Log file path.")

    gen = p.add_argument_group("generate mode")
    gen.add_argument("--path", "-p", type=Path, default=Path(), help="Directory to process (default: .).")
    gen.add_argument(
        "--output",
        "-o",
        type=Path,
        default=Path("digest.txt"),
        help="Output digest file (default: digest.txt).",
    )
    gen.add_argument("--ignore", "-g", dest="ignore_file", type=Path, help="Load ignore patterns from a file.")
    gen.add_argument("--include", "-n", dest="include_file", type=Path, help="Load include patterns from a file.")
    gen.add_argument(
        "--ignore-pattern",
        "-i",
        dest="ignore_patterns",
        action="append",
        default=[],
        help="Add an ignore pattern (repeatable).",
    )
    gen.add_argument(
        "--include-pattern",
        "-I",
        dest="include_patterns",
        action="append",
        default=[],
        help="Add an include pattern (repeatable).",
    )
    gen.add_argument(
        "--max-size",
        "-s",
        type=_size_arg,
        default="10MB",
        help="Max individual file size, e.g. 10MB (default: 10 MB).",
    )
    gen.add_argument(
        "--max-total-size",
        "-t",
        type=_size_arg,
        default="500MB",
        help="Max total size of included files (default: 500 MB).",
    )
    gen.add_argument("--max-depth", "-d", type=int, default=20, help="Max directory depth (default: 20).")
    gen.add_argument(
        "--skip-default-ignore",
        "-k",
        action="store_true",
        help="Do not use the built-in ignore patterns.",
    )

    imp = p.add_argument_group("import mode")
    imp.add_argument("--import", "-im", dest="import_file", type=Path, help="Digest file to import.")
    imp.add_argument("--target", "-tg", type=Path, default=Path(), help="Import target directory (default: .).")
    imp.add_argument("--dry-run", "-dr", action="store_true", help="Show what would happen without writing.")

    p.add_argument("--quiet", "-q", action="store_true", help="Suppress file add/skip messages.")
    p.add_argument("--ultra-quiet", "-uq", action="store_true", help="Suppress all output except fatal errors.")
    return p


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    """Parse command-line arguments on top of config-file and environment defaults.

    Args:
        argv (Sequence[str] | None): arguments, ``sys.argv[1:]`` when None

    Returns:
        Settings: the validated settings
    """
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", type=Path, default=None)
    known, _ = pre.parse_known_args(argv)

    p = build_parser()
    p.set_defaults(**load_defaults(known.config))
    args = p.parse_args(argv)
    if args.ultra_quiet:
        args.quiet = True
    try:
        return Settings(**vars(args))
    except ValidationError as e:
        problems = "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors())
        p.error(problems)


def validate_settings(settings: Settings) -> None:
    """Check the filesystem preconditions of the selected mode.

    Args:
        settings (Settings): parsed settings

    Raises:
        InvalidArgumentsError: listing every problem found
    """
    errors: list[str] = []
    if settings.import_file is None:
        if settings.ignore_file and not settings.ignore_file.exists():
            errors.append(f"Ignore file not found: {settings.ignore_file}")
        if settings.include_file and not settings.include_file.exists():
            errors.append(f"Include file not found: {settings.include_file}")
        if not settings.path.exists():
            errors.append(f"Input path not found: {settings.path}")
        elif not settings.path.is_dir():
            errors.append(f"Input path is not a directory: {settings.path}")
    elif not settings.import_file.exists():
        errors.append(f"Import digest file not found: {settings.import_file}")
    elif not settings.import_file.is_file():
        errors.append(f"Import digest path is not a file: {settings.import_file}")
    if errors:
        raise InvalidArgumentsError(errors=tuple(errors), message="Invalid arguments:")


def write_output(path: Path, content: str) -> None:
    """Write the digest, creating its parent directory if needed.

    Raises:
        OutputError: if the directory or the file cannot be written
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise OutputError(file=path, message=f"Failed to write output {path}: {e}") from e


def run_generate(settings: Settings) -> int:
    """Generate a digest according to ``settings``.

    Returns:
        int: the process exit code
    """
    root = settings.path.resolve()
    output = settings.output.resolve()
    logger.info(
        "digest_generation_started",
        root=str(root),
        output=str(output),
        max_size=format_bytes(settings.max_size),
        max_total_size=format_bytes(settings.max_total_size),
        max_depth=settings.max_depth,
    )

    defaults = None if settings.skip_default_ignore else DEFAULT_IGNORE_PATTERNS
    ignore_rules = parse_patterns(
        build_pattern_text(defaults, load_pattern_file(settings.ignore_file), settings.ignore_patterns),
    )
    include_rules = parse_patterns(
        build_pattern_text(None, load_pattern_file(settings.include_file), settings.include_patterns),
    )
    self_rule = output_exclusion_rule(root, output)
    if self_rule is not None:
        ignore_rules.append(self_rule)

    files, state = traverse(
        root,
        ignore_rules,
        include_rules,
        max_depth=settings.max_depth,
        max_file_size=settings.max_size,
        max_total_size=settings.max_total_size,
    )
    tree = render_tree(root, ignore_rules, include_rules, settings.max_depth)
    write_output(output, build_digest(root, files, state, tree))

    if not settings.ultra_quiet:
        print(build_summary(root, state, settings, output))
        print(f"Digest generation complete. Output written to {output}")
    if state.errors:
        logger.warning("errors_during_processing", count=len(state.errors))
    return 0


def run_import(settings: Settings) -> int:
    """Import a digest according to ``settings``.

    Returns:
        int: the process exit code
    """
    if settings.import_file is None:
        msg = "run_import requires an import file"
        raise ValueError(msg)
    logger.info(
        "digest_import_started",
        digest=str(settings.import_file.resolve()),
        target=str(settings.target.resolve()),
        dry_run=settings.dry_run,
    )
    summary = import_digest(settings.import_file, settings.target, dry_run=settings.dry_run)
    if not settings.ultra_quiet:
        print(build_import_report(summary, dry_run=settings.dry_run))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point of the ``codedigest`` command.

    Returns:
        int: 0 on success, 1 on a fatal error
    """
    try:
        settings = parse_args(argv)
        if settings.log_file or settings.quiet:
            setup_logging(
                settings.log_file or None,
                verbosity_level(quiet=settings.quiet, ultra_quiet=settings.ultra_quiet),
                force=True,
            )
        validate_settings(settings)
        if settings.import_file is not None:
            return run_import(settings)
        return run_generate(settings)
    except CodeDigestError as e:
        logger.error("fatal_error", error=str(e))
        print(f"\nFatal error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
