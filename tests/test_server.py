"""Tests for the MCP tool layer."""

from __future__ import annotations

import asyncio
import json
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from bzrobots_mcp.config import ClientConfig
from bzrobots_mcp.models.occgrid import OccupancyGrid
from bzrobots_mcp.models.records import MyTank, Point, Team


def _get_server_module():
    """Import server module with FastMCP mocked to avoid init issues."""
    mock_fastmcp_cls = MagicMock()
    mock_fastmcp_instance = MagicMock()
    # Make the @mcp.tool() decorator a no-op that returns the function unchanged
    mock_fastmcp_instance.tool.return_value = lambda fn: fn
    mock_fastmcp_instance.resource.return_value = lambda fn: fn
    mock_fastmcp_cls.return_value = mock_fastmcp_instance

    with patch("mcp.server.fastmcp.FastMCP", mock_fastmcp_cls):
        sys.modules.pop("bzrobots_mcp.server", None)
        import bzrobots_mcp.server as server_mod

    return server_mod


def _mock_client() -> MagicMock:
    client = MagicMock()
    client.connected = True
    client.config = ClientConfig(port=50100, host="example")
    return client


def test_tools_require_connection():
    server = _get_server_module()
    with pytest.raises(RuntimeError, match="connect"):
        asyncio.run(server.shoot(0))


def test_action_tools_report_result():
    server = _get_server_module()
    client = _mock_client()
    client.shoot = AsyncMock(return_value=True)
    client.set_speed = AsyncMock(return_value=False)
    client.set_angular_velocity = AsyncMock(return_value=True)

    with patch.object(server, "_get_client", return_value=client):
        assert asyncio.run(server.shoot(2)) == {"ok": True}
        assert asyncio.run(server.set_speed(2, 0.5)) == {"ok": False}
        assert asyncio.run(server.set_angular_velocity(2, -1.0)) == {"ok": True}

    client.shoot.assert_awaited_once_with(2)
    client.set_speed.assert_awaited_once_with(2, 0.5)
    client.set_angular_velocity.assert_awaited_once_with(2, -1.0)


def test_query_tools_render_records():
    server = _get_server_module()
    client = _mock_client()
    tank = MyTank(
        index=0, callsign="red0", status="alive", shots_available=3,
        time_to_reload=0.0, flag="-", location=Point(1.0, 2.0),
        angle=0.5, vx=0.0, vy=0.0, angvel=0.0,
    )
    client.get_teams = AsyncMock(return_value=([Team("red", 4)], 12.0))
    client.get_my_tanks = AsyncMock(return_value=([tank], 13.0))
    client.get_constants = AsyncMock(return_value=({"team": "red"}, 14.0))

    with patch.object(server, "_get_client", return_value=client):
        teams = asyncio.run(server.get_teams())
        tanks = asyncio.run(server.get_my_tanks())
        constants = asyncio.run(server.get_constants())

    assert teams == {"timestamp": 12.0, "teams": [{"color": "red", "count": 4}]}
    assert tanks["tanks"][0]["location"] == {"x": 1.0, "y": 2.0}
    assert tanks["tanks"][0]["shots_available"] == 3
    assert constants == {"timestamp": 14.0, "constants": {"team": "red"}}
    json.dumps(tanks)


def test_occupancy_grid_tool():
    server = _get_server_module()
    client = _mock_client()
    grid = OccupancyGrid(origin=Point(0.0, 0.0), size=(1, 2), cells={(0, 0): True, (0, 1): False})
    client.get_occupancy_grid = AsyncMock(return_value=(grid, 3.0))

    with patch.object(server, "_get_client", return_value=client):
        result = asyncio.run(server.get_occupancy_grid(1))

    client.get_occupancy_grid.assert_awaited_once_with(1)
    assert result["grid"]["rows"] == ["10"]
    assert result["grid"]["size"] == {"width": 1, "height": 2}


def test_connect_uses_environment_when_port_omitted(monkeypatch):
    server = _get_server_module()
    monkeypatch.setenv("BZROBOTS_PORT", "50123")
    monkeypatch.setenv("BZROBOTS_HOST", "arena")
    connect = AsyncMock(return_value=_mock_client())

    with patch.object(server.BZRobotsClient, "connect", connect):
        result = asyncio.run(server.connect())

    assert result == {"connected": True, "host": "arena", "port": 50123}
    assert connect.await_args.kwargs["config"] == ClientConfig(port=50123, host="arena")
    assert json.loads(server.resource_connection_status())["connected"] is True

    assert asyncio.run(server.disconnect()) == {"disconnected": True}
    assert json.loads(server.resource_connection_status()) == {"connected": False}
