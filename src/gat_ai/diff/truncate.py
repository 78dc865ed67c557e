"""Bound diff size before it is sent to a model."""

from __future__ import annotations

import logging

from gat_ai.diff.sections import DiffSection, parse_section, split_sections

DEFAULT_MAX_CHARS = 8000
DIFF_TRUNCATED_MARKER = "\n...(diff truncated)"
TRUNCATED_MARKER = "\n...(truncated)"

logger = logging.getLogger(__name__)


def truncate(diff: str, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    """Pack whole file sections, in order, into ``max_chars`` characters.

    Files that do not fit are named in a trailing comment block which does
    not count against the budget. If the first section alone is larger than
    the budget, its prefix is kept with a marker and packing stops there.
    """
    if len(diff) <= max_chars:
        return diff

    preamble, sections = split_sections(diff)
    if preamble:
        sections.insert(0, parse_section(preamble))

    result: list[str] = []
    skipped: list[DiffSection] = []
    total = 0
    for section in sections:
        if not section.text.strip():
            continue
        if total + len(section) <= max_chars:
            result.append(section.text)
            total += len(section)
        elif not result:
            result.append(section.text[:max_chars] + DIFF_TRUNCATED_MARKER)
            break
        else:
            skipped.append(section)

    if skipped:
        logger.debug("Omitting %d diff section(s) over the %d character budget", len(skipped), max_chars)
        result.append(omitted_note(skipped))
    return "".join(result)


def omitted_note(skipped: list[DiffSection]) -> str:
    lines = [f"\n# {len(skipped)} file(s) omitted due to size:"]
    lines.extend(f"# - {section.label}" for section in skipped)
    return "\n".join(lines)


def clip(text: str, max_chars: int, marker: str = TRUNCATED_MARKER) -> str:
    """Plain head truncation for text without file structure."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + marker
