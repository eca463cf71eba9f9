"""Asynchronous client and MCP server for the BZRobots tank control protocol."""

from .client import BZRobotsClient
from .config import ClientConfig
from .protocol.errors import ConnectionClosed, ProtocolError, ProtocolViolation

__version__ = "0.1.0"
