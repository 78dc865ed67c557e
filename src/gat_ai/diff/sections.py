"""Split unified diffs into per-file sections."""

from __future__ import annotations

import re
from dataclasses import dataclass

_BOUNDARY = re.compile(r"(?=^diff --git )", re.MULTILINE)
_HEADER = re.compile(r"^diff --git a/(.*?) b/")


@dataclass(frozen=True)
class DiffSection:
    """The part of a diff that belongs to one file.

    ``header`` keeps its line terminator so ``header + body`` reproduces the
    section exactly.
    """

    header: str
    file_path: str | None
    body: str

    @property
    def text(self) -> str:
        return self.header + self.body

    @property
    def label(self) -> str:
        """Name used when the section has to be reported."""
        return self.file_path or self.header.strip()

    def __len__(self) -> int:
        return len(self.header) + len(self.body)


def parse_section(text: str) -> DiffSection:
    first, newline, rest = text.partition("\n")
    match = _HEADER.match(first)
    return DiffSection(
        header=first + newline,
        file_path=match.group(1) if match else None,
        body=rest,
    )


def split_sections(diff: str) -> tuple[str, list[DiffSection]]:
    """Return the content before the first file header and the file sections in order."""
    parts = _BOUNDARY.split(diff)
    preamble = ""
    if parts and not parts[0].startswith("diff --git "):
        preamble = parts.pop(0)
    return preamble, [parse_section(part) for part in parts if part]
