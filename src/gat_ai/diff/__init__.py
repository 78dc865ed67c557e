"""Diff preparation: ignore filtering and size bounding."""

from __future__ import annotations

from collections.abc import Sequence

from .ignore import filter_ignored, load_ignore_patterns, matches_pattern
from .sections import DiffSection, split_sections
from .truncate import DEFAULT_MAX_CHARS, clip, truncate


def prepare_diff(diff: str, patterns: Sequence[str] = (), max_chars: int = DEFAULT_MAX_CHARS) -> str:
    """Filter ignored files out of ``diff`` then bound it to ``max_chars``."""
    return truncate(filter_ignored(diff, patterns), max_chars)


__all__ = [
    "DiffSection",
    "clip",
    "filter_ignored",
    "load_ignore_patterns",
    "matches_pattern",
    "prepare_diff",
    "split_sections",
    "truncate",
]
