"""Utility helpers for string normalization and path handling."""

from __future__ import annotations

import re

SLUG_PATTERN = re.compile(r"[^a-z0-9]+")
_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')
_WHITESPACE = re.compile(r"\s+")
_HYPHEN_RUNS = re.compile(r"-+")


def slugify(value: str, fallback: str = "page") -> str:
    """Generate a filesystem-friendly slug using ASCII characters only."""
    normalized = value.encode("ascii", "ignore").decode("ascii")
    normalized = normalized.lower()
    normalized = SLUG_PATTERN.sub("-", normalized).strip("-")
    return normalized or fallback


def sanitize_for_file_name(name: str, max_length: int = 30) -> str:
    """Turn a page title into a lowercase, hyphenated file name prefix."""
    cleaned = _INVALID_FILENAME_CHARS.sub("", name)
    cleaned = _WHITESPACE.sub("-", cleaned)
    cleaned = _HYPHEN_RUNS.sub("-", cleaned)
    if cleaned.startswith("-"):
        cleaned = cleaned[1:]
    if cleaned.endswith("-"):
        cleaned = cleaned[:-1]
    return cleaned[:max_length].lower()
