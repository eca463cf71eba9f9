"""Error types raised by the protocol engine."""

from __future__ import annotations

from typing import Sequence


class ProtocolError(RuntimeError):
    """Base class for every error the client reports."""


class ProtocolViolation(ProtocolError):
    """A received line did not match the grammar expected at that point.

    The wire protocol carries no correlation identifiers, so there is no
    way to resynchronize after a violation; it is terminal for the
    operation that observed it.
    """

    def __init__(self, expected: str, received: Sequence[str]) -> None:
        self.expected = expected
        self.received = list(received)
        super().__init__(
            f"Unexpected response: expected {expected!r}, "
            f"received {' '.join(self.received)!r}"
        )


class ConnectionClosed(ProtocolError):
    """The server closed the stream (or the client was closed)."""
