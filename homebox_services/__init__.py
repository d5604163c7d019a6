"""
homebox_services -- the API surface above the kernel.

InventoryFacade executes request documents; LabelService issues and
resolves label payloads; the key-value store holds rebuildable hints.
"""

from homebox_services.facade import OPERATIONS, InventoryFacade
from homebox_services.keyvalue import (
    CacheUnavailableError,
    KeyValueStore,
    MemoryKeyValueStore,
    RedisKeyValueStore,
    create_key_value_store,
)
from homebox_services.label_service import LabelService
from homebox_services.selection import SCHEMA, parse_selection

__all__ = [
    "InventoryFacade",
    "OPERATIONS",
    "LabelService",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "RedisKeyValueStore",
    "CacheUnavailableError",
    "create_key_value_store",
    "SCHEMA",
    "parse_selection",
]
