"""
Configuration Loader (``homebox_config.loader``).

Responsibility
--------------
Reads a YAML file (PyYAML ``safe_load``) and the ``HOMEBOX_*`` environment
variables into a ``HomeboxConfig``.  Precedence, lowest first: dataclass
defaults, file, environment.  Command-line flags are applied on top by
``homebox_server.__main__``.

Failure modes
-------------
* Explicit path that does not exist  -> ``FileNotFoundError``.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown section or key, wrong type, out-of-range value  -> ``ValueError``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import fields, replace
from pathlib import Path
from typing import Any

import yaml

from homebox_config.schema import (
    CacheConfig,
    DatabaseConfig,
    HomeboxConfig,
    LoggingConfig,
    ServerConfig,
)

ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "HOMEBOX_ADDRESS": ("server", "address"),
    "HOMEBOX_DATABASE_URL": ("database", "url"),
    "HOMEBOX_CACHE_URL": ("cache", "url"),
    "HOMEBOX_LOG_LEVEL": ("logging", "level"),
}

_SECTIONS: dict[str, type] = {
    "server": ServerConfig,
    "database": DatabaseConfig,
    "cache": CacheConfig,
    "logging": LoggingConfig,
}

# Older config files name the sqlite database "metadata".
_KEY_ALIASES: dict[tuple[str, str], str] = {
    ("database", "metadata"): "url",
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def _coerce(section: str, key: str, expected: Any, value: Any) -> Any:
    if value is None:
        if "None" in str(expected):
            return None
        raise ValueError(f"{section}.{key} must not be null")
    if expected in (bool, "bool"):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("true", "false", "1", "0", "yes", "no"):
            return value.lower() in ("true", "1", "yes")
        raise ValueError(f"{section}.{key} must be a boolean, got {value!r}")
    if expected in (int, "int"):
        if isinstance(value, bool):
            raise ValueError(f"{section}.{key} must be an integer, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValueError(f"{section}.{key} must be an integer, got {value!r}") from None
    if expected in (float, "float"):
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValueError(f"{section}.{key} must be a number, got {value!r}") from None
    if isinstance(value, (dict, list)):
        raise ValueError(f"{section}.{key} must be a scalar, got {type(value).__name__}")
    return str(value)


def parse_section(name: str, raw: Mapping[str, Any] | None) -> Any:
    cls = _SECTIONS[name]
    if raw is None:
        return cls()
    if not isinstance(raw, Mapping):
        raise ValueError(f"section '{name}' must be a mapping")

    declared = {f.name: f.type for f in fields(cls)}
    kwargs: dict[str, Any] = {}
    for key, value in raw.items():
        key = _KEY_ALIASES.get((name, key), key)
        if key not in declared:
            raise ValueError(f"unknown key '{name}.{key}'")
        kwargs[key] = _coerce(name, key, declared[key], value)
    return cls(**kwargs)


def parse_config(data: Mapping[str, Any]) -> HomeboxConfig:
    unknown = set(data) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"unknown configuration section(s): {', '.join(sorted(unknown))}")
    return HomeboxConfig(
        **{name: parse_section(name, data.get(name)) for name in _SECTIONS}
    )


def apply_environment(config: HomeboxConfig, environ: Mapping[str, str]) -> HomeboxConfig:
    for var, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value is None or value == "":
            continue
        current = getattr(config, section)
        config = replace(config, **{section: replace(current, **{key: value})})
    return config


def load_config(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> HomeboxConfig:
    """
    Build the runtime configuration.

    Args:
        path: YAML file.  When None, ``config.yaml`` in the working directory
            is read if present; otherwise defaults apply.
        environ: Environment mapping.  Defaults to ``os.environ``.
    """
    if path is not None:
        data = load_yaml_file(Path(path))
    else:
        default = Path("config.yaml")
        data = load_yaml_file(default) if default.is_file() else {}

    config = parse_config(data)
    return apply_environment(config, os.environ if environ is None else environ)
