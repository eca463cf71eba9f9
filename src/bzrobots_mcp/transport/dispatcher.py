"""Serialized execution of request/response exchanges.

The wire protocol has no request identifiers: the only way to tell which
command a response line belongs to is that responses arrive in command
order. The dispatcher therefore keeps a FIFO of pending operations and
lets exactly one of them be *active* at a time. The next command line is
written only after the active operation has consumed its whole response.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from ..protocol.errors import ProtocolError, ProtocolViolation
from ..protocol.parser import LineReader

logger = logging.getLogger(__name__)

Decoder = Callable[[LineReader], Awaitable[Any]]


@dataclass(eq=False)
class Operation:
    """One queued exchange: a command line and the reader for its reply.

    ``command`` is ``None`` for exchanges that start by reading, such as
    the server greeting.
    """

    command: str | None
    decode: Decoder
    future: asyncio.Future = field(repr=False)

    @property
    def name(self) -> str:
        return self.command.split()[0] if self.command else "handshake"


class CommandDispatcher:
    """Runs queued operations one at a time, in enqueue order.

    Args:
        send: Writes one command line to the connection.
        lines: Source of response lines.
    """

    def __init__(self, send: Callable[[str], None], lines: LineReader) -> None:
        self._send = send
        self._lines = lines
        self._queue: deque[Operation] = deque()
        self._active: Operation | None = None
        self._task: asyncio.Task | None = None
        self._halted: ProtocolError | None = None

    @property
    def active(self) -> Operation | None:
        return self._active

    @property
    def pending(self) -> tuple[Operation, ...]:
        return tuple(self._queue)

    @property
    def halted(self) -> ProtocolError | None:
        """The error that stopped the dispatcher, if any."""
        return self._halted

    def submit(self, command: str | None, decode: Decoder) -> asyncio.Future:
        """Queue a new operation and return the future for its result."""
        future = asyncio.get_running_loop().create_future()
        return self.enqueue(Operation(command=command, decode=decode, future=future))

    def enqueue(self, operation: Operation) -> asyncio.Future:
        if self._halted is not None:
            operation.future.set_exception(self._halted_error())
            return operation.future
        self._queue.append(operation)
        self._activate_next()
        return operation.future

    def close(self, exc: ProtocolError) -> None:
        """Stop dispatching and fail every active and pending operation."""
        if self._halted is None:
            self._halted = exc
        if self._queue or self._active is not None:
            logger.warning(
                "Failing %d queued operation(s): %s",
                len(self._queue) + (self._active is not None),
                exc,
            )
        if self._active is not None and not self._active.future.done():
            self._active.future.set_exception(exc)
        while self._queue:
            operation = self._queue.popleft()
            if not operation.future.done():
                operation.future.set_exception(self._halted_error())

    async def drain(self) -> None:
        """Wait until every queued operation has finished."""
        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    def _halted_error(self) -> ProtocolError:
        if isinstance(self._halted, ProtocolViolation):
            error = ProtocolError(f"Protocol engine halted after violation: {self._halted}")
            error.__cause__ = self._halted
            return error
        # A fresh instance per future; re-raising one shared exception
        # keeps appending to its traceback.
        error = type(self._halted)(str(self._halted))
        error.__cause__ = self._halted
        return error

    def _activate_next(self) -> None:
        if self._active is not None or self._halted is not None:
            return
        while self._queue:
            operation = self._queue.popleft()
            if operation.future.done():
                # Cancelled before it was sent; nothing to consume.
                continue
            self._active = operation
            self._task = asyncio.get_running_loop().create_task(self._run(operation))
            return

    async def _run(self, operation: Operation) -> None:
        try:
            if operation.command is not None:
                self._send(operation.command)
            result = await operation.decode(self._lines)
        except asyncio.CancelledError:
            operation.future.cancel()
            raise
        except ProtocolViolation as e:
            logger.error(
                "Protocol violation in %s: expected %r, received %r",
                operation.name, e.expected, " ".join(e.received),
            )
            self._fail(operation, e)
            self._halt(e)
        except ProtocolError as e:
            self._fail(operation, e)
            self._halt(e)
        except Exception as e:
            logger.exception("Operation %s failed", operation.name)
            self._fail(operation, e)
            self._halt(ProtocolError(f"Operation {operation.name} failed: {e}"))
        else:
            if not operation.future.done():
                operation.future.set_result(result)
        finally:
            self._active = None
            self._activate_next()

    @staticmethod
    def _fail(operation: Operation, exc: BaseException) -> None:
        if not operation.future.done():
            operation.future.set_exception(exc)

    def _halt(self, exc: ProtocolError) -> None:
        if self._halted is not None:
            return
        self._halted = exc
        error = self._halted_error()
        while self._queue:
            operation = self._queue.popleft()
            self._fail(operation, error)
