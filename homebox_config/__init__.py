"""
homebox_config -- runtime configuration for the Homebox server.

Responsibility:
    ``load_config()`` is the one place configuration files and ``HOMEBOX_*``
    environment variables are read.  The result is a tree of frozen
    dataclasses handed to the server entrypoint.

Architecture position:
    Configuration sits beside the services layer.  The kernel MUST NEVER
    import from ``homebox_config``; the entrypoint passes plain values
    (URLs, pool sizes) down into the kernel.
"""

from homebox_config.loader import ENV_OVERRIDES, load_config, parse_config
from homebox_config.schema import (
    CacheConfig,
    DatabaseConfig,
    HomeboxConfig,
    LoggingConfig,
    ServerConfig,
    split_address,
)

__all__ = [
    "load_config",
    "parse_config",
    "ENV_OVERRIDES",
    "HomeboxConfig",
    "ServerConfig",
    "DatabaseConfig",
    "CacheConfig",
    "LoggingConfig",
    "split_address",
]
