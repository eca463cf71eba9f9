"""Client configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_HOST = "localhost"


@dataclass(frozen=True)
class ClientConfig:
    """Where the game server listens and how chatty the client is.

    ``connect_timeout`` bounds only the TCP connect; once connected an
    operation waits as long as the server takes to answer.
    """

    port: int
    host: str = DEFAULT_HOST
    debug: bool = False
    connect_timeout: float = 10.0

    def __post_init__(self) -> None:
        if not 0 < self.port < 65536:
            raise ValueError(f"Port must be 1-65535, got {self.port}")
        if self.connect_timeout <= 0:
            raise ValueError(
                f"connect_timeout must be positive, got {self.connect_timeout}"
            )

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> ClientConfig:
        """Build a config from ``BZROBOTS_HOST``/``_PORT``/``_DEBUG``."""
        env = os.environ if environ is None else environ
        if "BZROBOTS_PORT" not in env:
            raise ValueError("BZROBOTS_PORT is not set")
        return cls(
            port=int(env["BZROBOTS_PORT"]),
            host=env.get("BZROBOTS_HOST", DEFAULT_HOST),
            debug=env.get("BZROBOTS_DEBUG", "").lower() in {"1", "true", "yes", "on"},
        )
