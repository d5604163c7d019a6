"""
LabelService -- printable optical-code payloads and scan resolution.

Responsibility:
    Turns a Container or Item id into the byte payload a label printer
    renders as a Data Matrix symbol, and turns a scanned payload back into
    the live entity.

Architecture position:
    Services layer.  Composes the kernel's HierarchySelector and
    SymbolCodec with the secondary key-value store.  Runs inside the
    caller's session; never commits.

Invariants enforced:
    - The key-value store never decides an answer.  A cached kind hint is
      always confirmed against the relational store, and a hint that no
      longer matches is deleted before falling back to a full lookup.
    - Cache outages degrade to uncached lookups, logged at WARNING.

Failure modes:
    - DecodeError subclasses for unreadable payloads.
    - EntityNotFoundError when the payload is valid but names nothing.
    - InvalidArgumentError when a label is requested for a Location.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from homebox_kernel.domain.dtos import EntityInfo, EntityKind, LabelInfo, LocationInfo
from homebox_kernel.domain.symbol import SymbolCodec
from homebox_kernel.exceptions import InvalidArgumentError, NotFoundError
from homebox_kernel.logging_config import get_logger
from homebox_kernel.selectors.hierarchy_selector import HierarchySelector
from homebox_services.keyvalue import (
    DEFAULT_TTL_SECONDS,
    CacheUnavailableError,
    KeyValueStore,
    symbol_kind_key,
)

logger = get_logger("services.labels")


class LabelService:
    def __init__(
        self,
        session: Session,
        cache: KeyValueStore | None = None,
        codec: SymbolCodec | None = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ):
        self._selector = HierarchySelector(session)
        self._cache = cache
        self._codec = codec or SymbolCodec()
        self._ttl = ttl_seconds

    def label_for(self, entity_id: UUID | str) -> LabelInfo:
        entity = self._selector.get(entity_id)
        if isinstance(entity, LocationInfo):
            raise InvalidArgumentError("id", "labels are printed for containers and items only")

        payload = self._codec.encode(entity.id)
        self._remember(entity.id, entity.kind)
        logger.debug("label_issued", extra={"entity_id": str(entity.id), "kind": entity.kind.value})
        return LabelInfo(id=entity.id, kind=entity.kind, payload=payload)

    def resolve_scan(self, payload: bytes | str) -> EntityInfo:
        """
        Decode a scanned payload and return the entity it names.

        Raises:
            DecodeError: payload malformed, wrong version, or corrupted.
            EntityNotFoundError: payload valid but the entity is gone.
        """
        entity_id = self._codec.decode(payload)
        key = symbol_kind_key(entity_id)

        hint = self._cache_get(key)
        if hint is not None:
            entity = self._lookup_kind(entity_id, hint)
            if entity is not None:
                logger.debug("scan_resolved", extra={"entity_id": str(entity_id), "cache": "hit"})
                return entity
            logger.info("stale_symbol_hint_dropped", extra={"entity_id": str(entity_id), "hint": hint})
            self._cache_delete(key)

        entity = self._selector.get(entity_id)
        self._remember(entity.id, entity.kind)
        logger.debug("scan_resolved", extra={"entity_id": str(entity_id), "cache": "miss"})
        return entity

    def _lookup_kind(self, entity_id: UUID, hint: str) -> EntityInfo | None:
        getters = {
            EntityKind.LOCATION.value: self._selector.get_location,
            EntityKind.CONTAINER.value: self._selector.get_container,
            EntityKind.ITEM.value: self._selector.get_item,
        }
        getter = getters.get(hint)
        if getter is None:
            return None
        try:
            return getter(entity_id)
        except NotFoundError:
            return None

    def _remember(self, entity_id: UUID, kind: EntityKind) -> None:
        if self._cache is None:
            return
        try:
            self._cache.set(symbol_kind_key(entity_id), kind.value, ttl=self._ttl)
        except CacheUnavailableError:
            logger.warning("key_value_store_unavailable", extra={"operation_step": "set"}, exc_info=True)

    def _cache_get(self, key: str) -> str | None:
        if self._cache is None:
            return None
        try:
            return self._cache.get(key)
        except CacheUnavailableError:
            logger.warning("key_value_store_unavailable", extra={"operation_step": "get"}, exc_info=True)
            return None

    def _cache_delete(self, key: str) -> None:
        if self._cache is None:
            return
        try:
            self._cache.delete(key)
        except CacheUnavailableError:
            logger.warning("key_value_store_unavailable", extra={"operation_step": "delete"}, exc_info=True)
