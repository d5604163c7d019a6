"""
DTOs -- immutable views of hierarchy entities.

Responsibility:
    Defines the frozen dataclasses that cross the kernel boundary.  Services
    and selectors return these, never ORM instances, so callers cannot
    accidentally lazy-load or mutate rows outside a transaction.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  ``from_model()`` classmethods are
    boundary converters invoked only from services/ and selectors/.

Invariants enforced:
    None directly.  DTOs mirror what the store holds at read time.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from homebox_kernel.invariants import HierarchyInvariant

if TYPE_CHECKING:
    from homebox_kernel.models.container import Container as ContainerModel
    from homebox_kernel.models.item import Item as ItemModel
    from homebox_kernel.models.location import Location as LocationModel


class _Unset:
    """Marker for "argument not supplied" in partial updates."""

    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


class EntityKind(str, Enum):
    LOCATION = "Location"
    CONTAINER = "Container"
    ITEM = "Item"


@dataclass(frozen=True)
class LocationInfo:
    id: UUID
    name: str

    kind = EntityKind.LOCATION

    @classmethod
    def from_model(cls, model: LocationModel) -> LocationInfo:
        return cls(id=model.id, name=model.name)


@dataclass(frozen=True)
class ContainerInfo:
    id: UUID
    created: datetime
    updated: datetime
    name: str | None
    location_id: UUID | None

    kind = EntityKind.CONTAINER

    @property
    def is_unassigned(self) -> bool:
        return self.location_id is None

    @classmethod
    def from_model(cls, model: ContainerModel) -> ContainerInfo:
        return cls(
            id=model.id,
            created=model.created,
            updated=model.updated,
            name=model.name,
            location_id=model.location_id,
        )


@dataclass(frozen=True)
class ItemInfo:
    id: UUID
    created: datetime
    updated: datetime
    name: str
    description: str | None
    quantity: int
    container_id: UUID

    kind = EntityKind.ITEM

    @classmethod
    def from_model(cls, model: ItemModel) -> ItemInfo:
        return cls(
            id=model.id,
            created=model.created,
            updated=model.updated,
            name=model.name,
            description=model.description,
            quantity=model.quantity,
            container_id=model.container_id,
        )


EntityInfo = LocationInfo | ContainerInfo | ItemInfo


@dataclass(frozen=True)
class ContainerTotals:
    """Rollup over the items of one container."""

    container_id: UUID
    item_count: int
    total_quantity: int


@dataclass(frozen=True)
class LocationTotals:
    """
    Rollup over the containers of one location.

    ``location_id`` is None for the rollup over unassigned containers.
    """

    location_id: UUID | None
    container_count: int
    item_count: int
    total_quantity: int


@dataclass(frozen=True)
class LabelInfo:
    """Payload to print for a container or item."""

    id: UUID
    kind: EntityKind
    payload: bytes

    @property
    def payload_text(self) -> str:
        return self.payload.decode("ascii")


@dataclass(frozen=True)
class DeleteResult:
    """Outcome of a delete, including what the cascade touched."""

    id: UUID
    kind: EntityKind
    deleted_item_count: int = 0
    unassigned_container_count: int = 0


@dataclass(frozen=True)
class IntegrityViolation:
    """One row that breaks a structural invariant."""

    invariant: HierarchyInvariant
    entity_kind: EntityKind
    entity_id: UUID | str
    detail: str
