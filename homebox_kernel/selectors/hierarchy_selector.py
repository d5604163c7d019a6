"""
Module: homebox_kernel.selectors.hierarchy_selector
Responsibility: Read side of the hierarchy store adapter.  Point lookups by
    id (per kind, or any kind) and lazy, ordered listings filtered by parent.
Architecture position: Kernel > Selectors.

Ordering:
    Locations   -- (name, id).  Locations carry no timestamps.
    Containers  -- (created, id).
    Items       -- (created, id).
    The trailing id makes every ordering total, so paging with limit/offset
    is stable between calls.

Failure modes:
    - InvalidIdentifierError for an unparseable id.
    - <Kind>NotFoundError for a missing entity, or for a parent filter
      naming a missing parent.  The parent check runs when the listing is
      requested, not when it is first iterated.
    - InvalidArgumentError for negative limit/offset or contradictory
      filters.
"""

from collections.abc import Iterator
from uuid import UUID

from sqlalchemy import exists, select

from homebox_kernel.domain.dtos import ContainerInfo, EntityInfo, ItemInfo, LocationInfo
from homebox_kernel.domain.identifiers import parse_identifier
from homebox_kernel.exceptions import (
    ContainerNotFoundError,
    EntityNotFoundError,
    InvalidArgumentError,
    ItemNotFoundError,
    LocationNotFoundError,
)
from homebox_kernel.models.container import Container
from homebox_kernel.models.item import Item
from homebox_kernel.models.location import Location
from homebox_kernel.selectors.base import BaseSelector


def _check_paging(limit: int | None, offset: int) -> None:
    if limit is not None and limit < 0:
        raise InvalidArgumentError("limit", "must not be negative")
    if offset < 0:
        raise InvalidArgumentError("offset", "must not be negative")


class HierarchySelector(BaseSelector):
    """Point and list reads over locations, containers and items."""

    def get_location(self, location_id: UUID | str) -> LocationInfo:
        entity_id = parse_identifier(location_id)
        location = self.session.get(Location, entity_id)
        if location is None:
            raise LocationNotFoundError(str(entity_id))
        return LocationInfo.from_model(location)

    def get_container(self, container_id: UUID | str) -> ContainerInfo:
        entity_id = parse_identifier(container_id)
        container = self.session.get(Container, entity_id)
        if container is None:
            raise ContainerNotFoundError(str(entity_id))
        return ContainerInfo.from_model(container)

    def get_item(self, item_id: UUID | str) -> ItemInfo:
        entity_id = parse_identifier(item_id)
        item = self.session.get(Item, entity_id)
        if item is None:
            raise ItemNotFoundError(str(entity_id))
        return ItemInfo.from_model(item)

    def get(self, entity_id: UUID | str) -> EntityInfo:
        """
        Resolve an id of unknown kind.

        Ids are drawn from one space, so at most one table can match.

        Raises:
            EntityNotFoundError: No location, container or item has this id.
        """
        parsed = parse_identifier(entity_id)
        for model, to_dto in (
            (Item, ItemInfo.from_model),
            (Container, ContainerInfo.from_model),
            (Location, LocationInfo.from_model),
        ):
            row = self.session.get(model, parsed)
            if row is not None:
                return to_dto(row)
        raise EntityNotFoundError(str(parsed))

    def list_locations(
        self,
        limit: int | None = None,
        offset: int = 0,
    ) -> Iterator[LocationInfo]:
        _check_paging(limit, offset)
        stmt = select(Location).order_by(Location.name, Location.id)
        return self._stream(stmt, LocationInfo.from_model, limit, offset)

    def list_containers(
        self,
        location_id: UUID | str | None = None,
        unassigned: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> Iterator[ContainerInfo]:
        """
        List containers, optionally only those in one location or only the
        unassigned ones.

        Raises:
            LocationNotFoundError: ``location_id`` names no location.
            InvalidArgumentError: both filters given.
        """
        _check_paging(limit, offset)
        stmt = select(Container)
        if location_id is not None:
            if unassigned:
                raise InvalidArgumentError(
                    "unassigned", "cannot be combined with a location filter"
                )
            parent_id = parse_identifier(location_id)
            self._require(Location, parent_id, LocationNotFoundError)
            stmt = stmt.where(Container.location_id == parent_id)
        elif unassigned:
            stmt = stmt.where(Container.location_id.is_(None))
        stmt = stmt.order_by(Container.created, Container.id)
        return self._stream(stmt, ContainerInfo.from_model, limit, offset)

    def list_items(
        self,
        container_id: UUID | str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> Iterator[ItemInfo]:
        _check_paging(limit, offset)
        stmt = select(Item)
        if container_id is not None:
            parent_id = parse_identifier(container_id)
            self._require(Container, parent_id, ContainerNotFoundError)
            stmt = stmt.where(Item.container_id == parent_id)
        stmt = stmt.order_by(Item.created, Item.id)
        return self._stream(stmt, ItemInfo.from_model, limit, offset)

    def exists(self, model, entity_id: UUID) -> bool:
        return bool(self.session.scalar(select(exists().where(model.id == entity_id))))

    def _require(self, model, entity_id: UUID, error) -> None:
        if not self.exists(model, entity_id):
            raise error(str(entity_id))
