"""
Line parsers for the two streaming framings providers use.

httpx's `Response.aiter_lines()` reassembles lines split across network
reads; these parsers only turn one complete line into a payload. Lines
that fail to parse are logged and skipped so one corrupt line never loses
the rest of a response.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

SSE_DONE = "[DONE]"


def parse_ndjson_line(line: str) -> dict | None:
    """One NDJSON line → its JSON object, or None for blank/malformed lines."""
    line = line.strip()
    if not line:
        return None
    try:
        item = json.loads(line)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed NDJSON line: %.200s", line)
        return None
    if not isinstance(item, dict):
        logger.debug("Skipping non-object NDJSON line: %.200s", line)
        return None
    return item


@dataclass
class SSEEvent:
    event: str
    data: dict


class SSEDecoder:
    """
    Server-sent events carrying JSON payloads in `data:` lines.

    Only single-line data fields are supported, which is all the providers
    send. `event:` names are attached to the next data line. After the
    `[DONE]` sentinel, `done` is set and further lines are ignored.
    """

    def __init__(self):
        self._event = ""
        self.done = False

    def decode(self, line: str) -> SSEEvent | None:
        line = line.rstrip("\r")
        if self.done:
            return None
        if not line:
            # Blank line ends an event
            self._event = ""
            return None
        if line.startswith(":"):
            return None
        if line.startswith("event:"):
            self._event = line[6:].strip()
            return None
        if not line.startswith("data:"):
            return None

        payload = line[5:].strip()
        if payload == SSE_DONE:
            self.done = True
            return None
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            logger.debug("Skipping malformed SSE data: %.200s", payload)
            return None
        if not isinstance(data, dict):
            logger.debug("Skipping non-object SSE data: %.200s", payload)
            return None
        return SSEEvent(event=self._event or data.get("type", ""), data=data)
