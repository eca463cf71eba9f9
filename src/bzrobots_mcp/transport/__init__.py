"""Transport layer: the TCP stream and serialized command execution."""

from .tcp_connection import TCPConnection
from .dispatcher import CommandDispatcher, Operation
