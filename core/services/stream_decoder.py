"""
Incremental decoder for the assistant's response stream.

The server sends UTF-8 text in arbitrary chunks. Logical records are lines of
the form ``data: {json}``; chunks carry no alignment to those lines, so the
decoder keeps a rolling buffer and only emits complete lines.
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import AsyncIterable, AsyncIterator, Optional

from pydantic import ValidationError

from core.constants import EVENT_PREFIX
from core.services.cancellation import CancellationToken
from core.types import StreamRecord

logger = logging.getLogger(__name__)


def parse_record_line(line: str) -> Optional[StreamRecord]:
    """
    Parse one line of the stream.

    Returns:
        The record, or None when the line is not a record or is malformed
    """
    if not line.startswith(EVENT_PREFIX):
        return None

    raw = line[len(EVENT_PREFIX):]
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("Dropping malformed stream record: %.200s", raw)
        return None

    if not isinstance(payload, dict):
        logger.debug("Dropping non-object stream record: %.200s", raw)
        return None

    try:
        return StreamRecord.model_validate(payload)
    except ValidationError as exc:
        logger.debug("Dropping invalid stream record: %s", exc)
        return None


class StreamDecoder:
    """Turns raw byte chunks into `StreamRecord`s."""

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    @property
    def pending_text(self) -> str:
        """Text received after the last line break."""
        return self._buffer

    def feed(self, chunk: bytes) -> list[StreamRecord]:
        """Consume a chunk and return the records completed by it."""
        self._buffer += self._decoder.decode(chunk)
        if "\n" not in self._buffer:
            return []

        *lines, self._buffer = self._buffer.split("\n")
        return self._parse_lines(lines)

    def flush(self) -> list[StreamRecord]:
        """Consume whatever is left once the stream has ended."""
        self._buffer += self._decoder.decode(b"", final=True)
        remainder, self._buffer = self._buffer, ""
        if not remainder:
            return []
        return self._parse_lines(remainder.split("\n"))

    @staticmethod
    def _parse_lines(lines: list[str]) -> list[StreamRecord]:
        records = []
        for line in lines:
            record = parse_record_line(line.rstrip("\r"))
            if record is not None:
                records.append(record)
        return records


async def iter_records(
    chunks: AsyncIterable[bytes],
    cancel_token: Optional[CancellationToken] = None,
) -> AsyncIterator[StreamRecord]:
    """
    Yield records from a byte stream in arrival order.

    Stops right after the first `turn_complete` record without reading any
    further chunk, or when the stream ends.

    Raises:
        TurnCancelledError: If the token is cancelled between reads
    """
    def check_cancelled() -> None:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

    decoder = StreamDecoder()
    async for chunk in chunks:
        check_cancelled()
        for record in decoder.feed(chunk):
            yield record
            if record.is_turn_complete:
                return
            check_cancelled()

    check_cancelled()
    for record in decoder.flush():
        yield record
        if record.is_turn_complete:
            return
