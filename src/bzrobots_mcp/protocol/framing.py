"""Newline framing for the BZRobots text stream and token matching.

The server speaks ASCII, one message per line::

    ack 1302.41
    begin
    team red 3
    team blue 2
    end

Bytes arrive from the socket in arbitrary fragments. :class:`LineBuffer`
accumulates them and hands out complete lines, in arrival order, to
coroutines waiting in :meth:`LineBuffer.next_line`.

Tokens on a line are separated by runs of whitespace. :func:`expect` and
:func:`expect_one_of` compare a tokenized line against the grammar the
caller expects at that point, either in *full* mode (exact content and
length) or *prefix* mode (the leading tokens must match; the rest is
payload handed back to the caller).
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Sequence

from .errors import ConnectionClosed, ProtocolViolation

logger = logging.getLogger(__name__)

NEWLINE = b"\n"
ENCODING = "ascii"


class LineBuffer:
    """Accumulates raw bytes and yields complete newline-terminated lines.

    Coroutines that ask for a line while none is buffered are parked in a
    FIFO and resumed, oldest first, as lines complete. No line is ever
    delivered twice or out of order.
    """

    def __init__(self) -> None:
        self._data = bytearray()
        self._waiters: deque[asyncio.Future[str]] = deque()
        self._closed: BaseException | None = None

    def __len__(self) -> int:
        return len(self._data)

    @property
    def waiting(self) -> int:
        """Number of coroutines currently parked on :meth:`next_line`."""
        return sum(1 for w in self._waiters if not w.done())

    def has_line(self) -> bool:
        return NEWLINE in self._data

    def feed(self, data: bytes) -> None:
        """Append received bytes and wake waiters for every completed line."""
        if self._closed is not None:
            logger.debug("Dropping %d bytes fed after close", len(data))
            return
        self._data.extend(data)
        while self._waiters and self.has_line():
            waiter = self._waiters.popleft()
            if waiter.done():
                # Cancelled while parked; the line goes to the next waiter.
                continue
            waiter.set_result(self._pop_line())

    async def next_line(self) -> str:
        """Return the next complete line, without its terminating newline.

        Raises:
            ConnectionClosed: If the stream ended before a line completed.
        """
        while self._waiters and self._waiters[0].done():
            self._waiters.popleft()
        if not self._waiters and self.has_line():
            return self._pop_line()
        if self._closed is not None:
            raise self._closed
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        return await waiter

    def close(self, exc: BaseException | None = None) -> None:
        """Mark the stream as ended and fail every parked waiter.

        Lines already complete in the buffer remain readable.
        """
        if self._closed is not None:
            return
        self._closed = exc if exc is not None else ConnectionClosed("Connection closed")
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_exception(self._closed)

    def _pop_line(self) -> str:
        index = self._data.index(NEWLINE)
        raw = bytes(self._data[:index])
        del self._data[: index + 1]
        line = raw.decode(ENCODING, errors="replace")
        logger.debug("Received: %s", line)
        return line


def tokenize(line: str) -> list[str]:
    """Split a line on runs of whitespace."""
    return line.split()


def _as_tokens(expected: str | Sequence[str]) -> list[str]:
    if isinstance(expected, str):
        return expected.split()
    return list(expected)


def _matches(tokens: Sequence[str], expected: Sequence[str], full: bool) -> bool:
    if full and len(tokens) != len(expected):
        return False
    if len(tokens) < len(expected):
        return False
    return all(a == b for a, b in zip(tokens, expected))


def expect(
    tokens: Sequence[str],
    expected: str | Sequence[str],
    full: bool = False,
) -> list[str]:
    """Match *tokens* against *expected* and return the trailing payload.

    In full mode the payload is always empty.

    Raises:
        ProtocolViolation: If the tokens do not match.
    """
    wanted = _as_tokens(expected)
    if not _matches(tokens, wanted, full):
        raise ProtocolViolation(" ".join(wanted), tokens)
    return list(tokens[len(wanted):])


def expect_one_of(
    tokens: Sequence[str],
    alternatives: Sequence[str | Sequence[str]],
    full: bool = False,
) -> tuple[int, list[str]]:
    """Match *tokens* against the first fitting alternative.

    Returns:
        ``(index, payload)`` where *index* is the position of the matching
        alternative in *alternatives*.

    Raises:
        ProtocolViolation: If no alternative matches.
    """
    options = [_as_tokens(alt) for alt in alternatives]
    for index, wanted in enumerate(options):
        if _matches(tokens, wanted, full):
            return index, list(tokens[len(wanted):])
    raise ProtocolViolation(
        " or ".join(" ".join(wanted) for wanted in options), tokens
    )
