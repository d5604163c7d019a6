"""
Configuration Schema (``homebox_config.schema``).

Responsibility
--------------
Frozen dataclasses describing the server's runtime configuration.  Every
field has a default, so an empty file (or no file) yields a runnable
single-user setup: SQLite in the working directory, in-process cache,
listening on 127.0.0.1:3000.

Invariants enforced
-------------------
* All dataclasses are frozen.  Configuration is read once at start-up.
* ``__post_init__`` rejects out-of-range values with ``ValueError``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

DEFAULT_ADDRESS = "127.0.0.1:3000"
DEFAULT_DATABASE_URL = "sqlite:///homebox.db"


def split_address(address: str) -> tuple[str, int]:
    """
    Split ``host:port`` into its parts.  IPv6 hosts are bracketed:
    ``[::1]:3000``.

    Raises:
        ValueError: no port, or a port outside 1..65535.
    """
    host, sep, port_text = address.rpartition(":")
    if not sep or not host:
        raise ValueError(f"address must be host:port, got {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"address port is not a number: {address!r}") from None
    if not 0 < port < 65536:
        raise ValueError(f"address port out of range: {address!r}")
    return host, port


@dataclass(frozen=True)
class ServerConfig:
    address: str = DEFAULT_ADDRESS

    def __post_init__(self) -> None:
        split_address(self.address)

    @property
    def host(self) -> str:
        return split_address(self.address)[0]

    @property
    def port(self) -> int:
        return split_address(self.address)[1]


@dataclass(frozen=True)
class DatabaseConfig:
    """Relational store.  Any SQLAlchemy URL for SQLite or PostgreSQL."""

    url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    busy_timeout: float = 30.0

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("database.url must not be empty")
        if self.pool_size < 1:
            raise ValueError("database.pool_size must be at least 1")
        if self.max_overflow < 0:
            raise ValueError("database.max_overflow must not be negative")
        if self.pool_timeout <= 0 or self.busy_timeout <= 0:
            raise ValueError("database timeouts must be positive")


@dataclass(frozen=True)
class CacheConfig:
    """
    Secondary key-value store.  ``url`` None keeps the cache in process;
    ``redis://...`` uses a Redis server.  Only rebuildable data lives here.
    """

    url: str | None = None
    ttl_seconds: int = 3600

    def __post_init__(self) -> None:
        if self.ttl_seconds <= 0:
            raise ValueError("cache.ttl_seconds must be positive")


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    file: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(logging.getLevelName(self.level.upper()), int):
            raise ValueError(f"logging.level is not a known level: {self.level!r}")

    @property
    def level_number(self) -> int:
        return logging.getLevelName(self.level.upper())


@dataclass(frozen=True)
class HomeboxConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
