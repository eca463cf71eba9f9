"""Tests for serialized command dispatch."""

import asyncio

import pytest

from bzrobots_mcp.protocol.errors import ConnectionClosed, ProtocolError, ProtocolViolation
from bzrobots_mcp.protocol.framing import LineBuffer
from bzrobots_mcp.protocol.parser import read_ack, read_boolean, read_teams
from bzrobots_mcp.transport.dispatcher import CommandDispatcher, Operation


async def _settle():
    for _ in range(10):
        await asyncio.sleep(0)


async def _action(reader):
    await read_ack(reader)
    return await read_boolean(reader)


def _make():
    lines = LineBuffer()
    sent: list[str] = []
    return CommandDispatcher(sent.append, lines), lines, sent


def test_next_command_waits_for_full_response():
    """B is not written until A's terminal line has been consumed."""

    async def scenario():
        dispatcher, lines, sent = _make()
        first = dispatcher.submit("shoot 1", _action)
        second = dispatcher.submit("shoot 2", _action)
        await _settle()
        assert sent == ["shoot 1"]
        assert dispatcher.active.command == "shoot 1"
        assert [op.command for op in dispatcher.pending] == ["shoot 2"]

        lines.feed(b"ack\n")
        await _settle()
        assert sent == ["shoot 1"]

        lines.feed(b"ok\n")
        assert await first is True
        await _settle()
        assert sent == ["shoot 1", "shoot 2"]

        lines.feed(b"ack\nfail\n")
        assert await second is False
        await _settle()
        assert dispatcher.active is None

    asyncio.run(scenario())


def test_single_operation_in_flight():
    """At most one command is outstanding however many are queued."""

    async def scenario():
        dispatcher, lines, sent = _make()
        futures = [dispatcher.submit(f"shoot {i}", _action) for i in range(5)]
        for i in range(5):
            await _settle()
            assert len(sent) == i + 1
            assert sent[-1] == f"shoot {i}"
            lines.feed(b"ack\nok\n")
            assert await futures[i] is True
        return sent

    assert asyncio.run(scenario()) == [f"shoot {i}" for i in range(5)]


def test_response_arriving_early_is_kept_in_order():
    """Lines buffered before a reader asks for them are not lost."""

    async def scenario():
        dispatcher, lines, sent = _make()
        lines.feed(b"ack\nok\nack 1.0\nbegin\nteam red 2\nend\n")
        first = dispatcher.submit("shoot 0", _action)

        async def teams(reader):
            await read_ack(reader)
            return await read_teams(reader)

        second = dispatcher.submit("teams", teams)
        return await first, await second

    ok, teams = asyncio.run(scenario())
    assert ok is True
    assert teams[0].count == 2


def test_operation_without_command_writes_nothing():
    async def scenario():
        dispatcher, lines, sent = _make()
        lines.feed(b"ok\n")
        result = await dispatcher.submit(None, read_boolean)
        return result, sent

    assert asyncio.run(scenario()) == (True, [])


def test_violation_halts_dispatcher():
    """After a violation no further command reaches the wire."""

    async def scenario():
        dispatcher, lines, sent = _make()
        first = dispatcher.submit("shoot 1", _action)
        second = dispatcher.submit("shoot 2", _action)
        lines.feed(b"ack\nmaybe\n")
        with pytest.raises(ProtocolViolation) as info:
            await first
        assert info.value.received == ["maybe"]
        with pytest.raises(ProtocolError) as queued:
            await second
        assert isinstance(queued.value.__cause__, ProtocolViolation)
        with pytest.raises(ProtocolError):
            await dispatcher.submit("shoot 3", _action)
        await _settle()
        assert sent == ["shoot 1"]
        assert isinstance(dispatcher.halted, ProtocolViolation)

    asyncio.run(scenario())


def test_close_fails_active_and_pending():
    async def scenario():
        dispatcher, lines, sent = _make()
        first = dispatcher.submit("shoot 1", _action)
        second = dispatcher.submit("shoot 2", _action)
        await _settle()
        error = ConnectionClosed("gone")
        lines.close(error)
        dispatcher.close(error)
        for future in (first, second):
            with pytest.raises(ConnectionClosed):
                await future
        with pytest.raises(ConnectionClosed):
            await dispatcher.submit("shoot 3", _action)
        await _settle()
        assert sent == ["shoot 1"]

    asyncio.run(scenario())


def test_cancelled_pending_operation_is_skipped():
    async def scenario():
        dispatcher, lines, sent = _make()
        first = dispatcher.submit("shoot 1", _action)
        second = dispatcher.submit("shoot 2", _action)
        third = dispatcher.submit("shoot 3", _action)
        second.cancel()
        lines.feed(b"ack\nok\nack\nok\n")
        await first
        assert await third is True
        return sent

    assert asyncio.run(scenario()) == ["shoot 1", "shoot 3"]


def test_enqueue_explicit_operation():
    async def scenario():
        dispatcher, lines, sent = _make()
        future = asyncio.get_running_loop().create_future()
        operation = Operation(command="angvel 0 0.5", decode=_action, future=future)
        assert operation.name == "angvel"
        assert dispatcher.enqueue(operation) is future
        lines.feed(b"ack\nok\n")
        await dispatcher.drain()
        return future.result(), sent

    assert asyncio.run(scenario()) == (True, ["angvel 0 0.5"])


def test_calls_after_close_get_their_own_error():
    """Each failed call raises a distinct error chained to the close."""

    async def scenario():
        dispatcher, lines, sent = _make()
        error = ConnectionClosed("gone")
        dispatcher.close(error)
        raised = []
        for i in range(3):
            with pytest.raises(ConnectionClosed) as info:
                await dispatcher.submit(f"shoot {i}", _action)
            raised.append(info.value)
        return error, raised

    error, raised = asyncio.run(scenario())
    assert len({id(exc) for exc in raised}) == 3
    assert all(exc is not error and exc.__cause__ is error for exc in raised)
