"""Protocol layer: line framing, command builders, and response parsing."""

from .framing import LineBuffer, expect, expect_one_of, tokenize
from .commands import Command, build_command
from .errors import ConnectionClosed, ProtocolError, ProtocolViolation
