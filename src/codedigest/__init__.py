"""Generate and import text digests of a directory tree."""

__version__ = "0.1.0"
