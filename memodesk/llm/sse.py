"""Server-sent event parsing for chunked completion streams.

The transport hands us byte chunks with no alignment to protocol lines:
a chunk may hold several events, half an event, or half a UTF-8 character.
`LineReassembler` turns those chunks back into whole lines; the helpers
below turn a line into an optional text delta.
"""

import codecs
import json
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class LineReassembler:
    """Accumulates decoded text and hands out newline-terminated lines.

    Usage:
        reassembler = LineReassembler()
        for chunk in chunks:
            for line in reassembler.feed(chunk):
                handle(line)
        tail = reassembler.flush()
    """

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""

    @property
    def pending(self) -> str:
        """Text received after the last newline."""
        return self._pending

    def feed(self, chunk: bytes) -> list[str]:
        """Add a chunk and return the lines it completed."""
        self._pending += self._decoder.decode(chunk)
        *lines, self._pending = self._pending.split("\n")
        return lines

    def flush(self) -> Optional[str]:
        """Return the unterminated final line at end of stream, if any."""
        self._pending += self._decoder.decode(b"", final=True)
        tail, self._pending = self._pending, ""
        return tail or None


def iter_lines(chunks: Iterable[bytes]) -> Iterator[str]:
    """Lazily yield complete lines from an iterable of byte chunks."""
    reassembler = LineReassembler()
    for chunk in chunks:
        yield from reassembler.feed(chunk)
    tail = reassembler.flush()
    if tail is not None:
        yield tail


@dataclass
class Delta:
    """Text extracted from one completion event."""
    content: str = ""
    reasoning: str = ""


def parse_event_line(line: str) -> Optional[str]:
    """Return the payload of a `data: ` line, or None for anything else.

    Blank lines separate events and comment lines keep the connection
    alive; neither carries data.
    """
    trimmed = line.strip()
    if not trimmed.startswith(DATA_PREFIX):
        return None
    return trimmed[len(DATA_PREFIX):]


def _text_at(delta: dict, key: str) -> str:
    value = delta.get(key)
    return value if isinstance(value, str) else ""


def decode_delta(payload: str) -> Optional[Delta]:
    """Extract `choices[0].delta` text from an event payload.

    Unparseable payloads and events without text yield None.
    """
    if payload == DONE_SENTINEL:
        return None
    try:
        event = json.loads(payload)
    except ValueError:
        return None

    try:
        delta = event["choices"][0]["delta"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(delta, dict):
        return None

    content = _text_at(delta, "content")
    reasoning = _text_at(delta, "reasoning_content")
    if not content and not reasoning:
        return None
    return Delta(content=content, reasoning=reasoning)
