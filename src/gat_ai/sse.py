"""Incremental parser for OpenAI-style ``text/event-stream`` bodies."""

from __future__ import annotations

import json
import logging
from typing import Any

_DATA_PREFIX = "data:"
_DONE_SENTINEL = "[DONE]"

logger = logging.getLogger(__name__)


def try_parse_event(payload: str) -> dict[str, Any] | None:
    """Parse one ``data:`` payload, returning None for anything that is not a JSON object."""
    try:
        event = json.loads(payload)
    except json.JSONDecodeError:
        return None
    return event if isinstance(event, dict) else None


def extract_delta_text(event: dict[str, Any]) -> str:
    """Extract the standard streaming text delta (choices[0].delta.content)."""
    choices = event.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    choice0 = choices[0]
    if not isinstance(choice0, dict):
        return ""
    delta = choice0.get("delta") or {}
    content = delta.get("content") if isinstance(delta, dict) else None
    return content if isinstance(content, str) else ""


class StreamSession:
    """Line buffer and running text for one streaming response.

    Transport chunks may end anywhere, including inside ``data:`` or between
    ``\\r`` and ``\\n``, so only complete lines are parsed and the trailing
    fragment waits for the next chunk.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._parts: list[str] = []
        self.lines_skipped = 0

    @property
    def full_text(self) -> str:
        return "".join(self._parts)

    def feed(self, chunk: str) -> list[str]:
        """Consume one chunk and return the deltas from the lines it completed."""
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")
        return self._process(lines)

    def flush(self) -> list[str]:
        """Process an unterminated final line once the body has ended."""
        line, self._buffer = self._buffer, ""
        return self._process([line])

    def _process(self, lines: list[str]) -> list[str]:
        deltas: list[str] = []
        for line in lines:
            text = self._parse_line(line)
            if text:
                self._parts.append(text)
                deltas.append(text)
        return deltas

    def _parse_line(self, line: str) -> str:
        line = line.strip()
        if not line.startswith(_DATA_PREFIX):
            return ""

        payload = line[len(_DATA_PREFIX) :].strip()
        # end of body is authoritative for completion
        if payload == _DONE_SENTINEL:
            return ""

        event = try_parse_event(payload)
        if event is None:
            self.lines_skipped += 1
            logger.debug("Skipping non-JSON streaming chunk: %s", payload)
            return ""
        return extract_delta_text(event)
