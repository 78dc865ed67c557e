"""Drop diff sections for files matching repository ignore patterns."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from gat_ai.diff.sections import split_sections

IGNORE_FILENAME = ".gatignore"

logger = logging.getLogger(__name__)


def load_ignore_patterns(root: str | Path, filename: str = IGNORE_FILENAME) -> list[str]:
    """Read patterns from the ignore file in ``root``; blank lines and ``#`` comments are skipped."""
    path = Path(root) / filename
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("Cannot read ignore file %s: %s", path, exc)
        return []
    patterns = [line.strip() for line in content.splitlines()]
    return [p for p in patterns if p and not p.startswith("#")]


def matches_pattern(path: str, pattern: str) -> bool:
    """Case-sensitive match of a repo-relative path against one ignore pattern.

    Supported forms: exact path, ``*.ext`` suffix, ``dir/`` or ``dir/**``
    prefix, and a bare file name matched against the basename.
    """
    if path == pattern:
        return True
    if pattern.startswith("*."):
        return path.endswith(pattern[1:])

    directory = pattern.removesuffix("/**").removesuffix("/")
    if directory != pattern:
        return path == directory or path.startswith(directory + "/")

    if "/" not in pattern and "*" not in pattern:
        return path.rsplit("/", 1)[-1] == pattern
    return False


def filter_ignored(diff: str, patterns: Sequence[str]) -> str:
    """Remove every file section whose path matches any of ``patterns``."""
    if not patterns or not diff:
        return diff

    preamble, sections = split_sections(diff)
    kept = [preamble]
    for section in sections:
        if section.file_path is not None and any(matches_pattern(section.file_path, p) for p in patterns):
            logger.debug("Ignoring diff for %s", section.file_path)
            continue
        kept.append(section.text)
    return "".join(kept)
