"""LabelService: issuing label payloads and resolving scans through the hint cache."""

from uuid import uuid4

import pytest

from homebox_kernel.domain.dtos import ContainerInfo, EntityKind, ItemInfo
from homebox_kernel.domain.symbol import SymbolCodec
from homebox_kernel.exceptions import (
    DecodeError,
    EntityNotFoundError,
    InvalidArgumentError,
    SymbolChecksumError,
)
from homebox_services.keyvalue import CacheUnavailableError, symbol_kind_key
from homebox_services.label_service import LabelService


class BrokenStore:
    """Key-value store whose transport is down."""

    def __init__(self):
        self.calls = 0

    def get(self, key):
        self.calls += 1
        raise CacheUnavailableError("connection refused")

    def set(self, key, value, ttl=None):
        self.calls += 1
        raise CacheUnavailableError("connection refused")

    def delete(self, key):
        self.calls += 1
        raise CacheUnavailableError("connection refused")


class TestLabelFor:
    def test_item_label(self, hierarchy, labels, kv_store):
        box = hierarchy.create_container("Box")
        hammer = hierarchy.create_item("Hammer", box.id)

        label = labels.label_for(hammer.id)
        assert label.kind == EntityKind.ITEM
        assert label.payload.startswith(b"HB1")
        assert len(label.payload) == 35
        assert SymbolCodec().decode(label.payload) == hammer.id
        assert kv_store.get(symbol_kind_key(hammer.id)) == "Item"

    def test_container_label(self, hierarchy, labels):
        box = hierarchy.create_container("Box")
        label = labels.label_for(str(box.id))
        assert label.kind == EntityKind.CONTAINER
        assert label.payload_text.isascii()

    def test_location_has_no_label(self, hierarchy, labels):
        garage = hierarchy.create_location("Garage")
        with pytest.raises(InvalidArgumentError):
            labels.label_for(garage.id)

    def test_missing_entity(self, labels):
        with pytest.raises(EntityNotFoundError):
            labels.label_for(uuid4())

    def test_same_entity_same_payload(self, hierarchy, labels):
        box = hierarchy.create_container("Box")
        assert labels.label_for(box.id).payload == labels.label_for(box.id).payload


class TestResolveScan:
    def test_round_trip(self, hierarchy, labels):
        box = hierarchy.create_container("Box")
        hammer = hierarchy.create_item("Hammer", box.id)
        payload = labels.label_for(hammer.id).payload

        resolved = labels.resolve_scan(payload)
        assert isinstance(resolved, ItemInfo)
        assert resolved.id == hammer.id

    def test_text_payload(self, hierarchy, labels):
        box = hierarchy.create_container("Box")
        payload = labels.label_for(box.id).payload_text
        assert isinstance(labels.resolve_scan(payload), ContainerInfo)

    def test_cold_cache_resolves_and_remembers(self, hierarchy, session, kv_store):
        box = hierarchy.create_container("Box")
        payload = SymbolCodec().encode(box.id)

        service = LabelService(session, cache=kv_store)
        assert service.resolve_scan(payload).id == box.id
        assert kv_store.get(symbol_kind_key(box.id)) == "Container"

    def test_stale_hint_is_verified_and_dropped(self, hierarchy, labels, kv_store, captured_logs):
        box = hierarchy.create_container("Box")
        hammer = hierarchy.create_item("Hammer", box.id)
        kv_store.set(symbol_kind_key(hammer.id), "Container")

        resolved = labels.resolve_scan(SymbolCodec().encode(hammer.id))
        assert isinstance(resolved, ItemInfo)
        assert kv_store.get(symbol_kind_key(hammer.id)) == "Item"
        assert any(r["message"] == "stale_symbol_hint_dropped" for r in captured_logs())

    def test_garbage_hint_is_ignored(self, hierarchy, labels, kv_store):
        box = hierarchy.create_container("Box")
        kv_store.set(symbol_kind_key(box.id), "Spaceship")
        assert labels.resolve_scan(SymbolCodec().encode(box.id)).id == box.id

    def test_deleted_entity_not_found(self, hierarchy, labels, kv_store):
        box = hierarchy.create_container("Box")
        payload = labels.label_for(box.id).payload
        hierarchy.delete_container(box.id)

        with pytest.raises(EntityNotFoundError):
            labels.resolve_scan(payload)
        assert kv_store.get(symbol_kind_key(box.id)) is None

    def test_well_formed_payload_for_unknown_id(self, labels):
        with pytest.raises(EntityNotFoundError):
            labels.resolve_scan(SymbolCodec().encode(uuid4()))

    def test_corrupted_payload(self, hierarchy, labels):
        box = hierarchy.create_container("Box")
        payload = bytearray(labels.label_for(box.id).payload)
        payload[10] = ord("A") if payload[10] != ord("A") else ord("B")
        with pytest.raises(DecodeError):
            labels.resolve_scan(bytes(payload))

    def test_checksum_mismatch_is_reported(self, labels):
        good = SymbolCodec().encode(uuid4())
        other = SymbolCodec().encode(uuid4())
        # Leading id bytes from one id; the last id byte and checksum from another.
        spliced = good[:27] + other[27:]
        if spliced == good:
            pytest.skip("checksums collided")
        with pytest.raises(SymbolChecksumError):
            labels.resolve_scan(spliced)


class TestCacheOutage:
    def test_resolves_without_cache(self, hierarchy, session, captured_logs):
        box = hierarchy.create_container("Box")
        store = BrokenStore()
        service = LabelService(session, cache=store)

        payload = service.label_for(box.id).payload
        assert service.resolve_scan(payload).id == box.id
        assert store.calls >= 2

        warnings = [r for r in captured_logs() if r["message"] == "key_value_store_unavailable"]
        assert {r["operation_step"] for r in warnings} >= {"get", "set"}
        assert all(r["level"] == "WARNING" for r in warnings)

    def test_no_cache_configured(self, hierarchy, session):
        box = hierarchy.create_container("Box")
        service = LabelService(session)
        assert service.resolve_scan(service.label_for(box.id).payload).id == box.id
