"""
Entry point: ``python -m homebox_server``.

Precedence for every setting, lowest first: built-in defaults,
config file, HOMEBOX_* environment variables, command-line flags.
"""

import argparse
import logging
import sys
from dataclasses import replace

import uvicorn
import yaml

from homebox_config import HomeboxConfig, load_config
from homebox_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
)
from homebox_kernel.logging_config import configure_logging, get_logger
from homebox_server.app import create_app
from homebox_services.facade import InventoryFacade
from homebox_services.keyvalue import create_key_value_store

logger = get_logger("server.main")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="homebox_server",
        description="Backend for Homebox",
    )
    parser.add_argument("-a", "--address", help="Listening address, format host:port")
    parser.add_argument(
        "-c", "--config", default=None,
        help="Path to the config file (default: ./config.yaml if present)",
    )
    parser.add_argument("-d", "--database", help="SQLAlchemy URL of the relational store")
    parser.add_argument("--cache", help="Key-value store URL (redis://... or memory://)")
    return parser.parse_args(argv)


def apply_cli_overrides(config: HomeboxConfig, args: argparse.Namespace) -> HomeboxConfig:
    if args.address:
        config = replace(config, server=replace(config.server, address=args.address))
    if args.database:
        config = replace(config, database=replace(config.database, url=args.database))
    if args.cache:
        config = replace(config, cache=replace(config.cache, url=args.cache))
    return config


def build_facade(config: HomeboxConfig) -> InventoryFacade:
    db = config.database
    engine = init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        busy_timeout=db.busy_timeout,
    )
    create_tables(engine)
    cache = create_key_value_store(config.cache.url, ttl_seconds=config.cache.ttl_seconds)
    return InventoryFacade(
        get_session_factory(),
        cache=cache,
        cache_ttl=config.cache.ttl_seconds,
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        config = apply_cli_overrides(load_config(args.config), args)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as exc:
        print(f"Error in config file `{args.config or 'config.yaml'}`: {exc}", file=sys.stderr)
        return 2

    handler = logging.FileHandler(config.logging.file) if config.logging.file else None
    configure_logging(level=config.logging.level_number, handler=handler)

    facade = build_facade(config)
    app = create_app(facade)

    logger.info("server_starting", extra={"address": config.server.address})
    uvicorn.run(app, host=config.server.host, port=config.server.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
