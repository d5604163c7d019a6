"""
Module: homebox_kernel.services.hierarchy_service
Responsibility: The hierarchy store adapter's write side.  Creates, updates
    and deletes Locations, Containers and Items while keeping every
    structural invariant intact at every observable point.
Architecture position: Kernel > Services.  May import from db/, models/,
    domain/ and services/base.py.

Invariants enforced:
    I1 -- create/update of an Item requires a live Container, read under a
          shared lock so it cannot vanish before commit.  A container
          cascade deletes its Items in the same transaction.
    I2 -- likewise for a Container's optional Location.  A location
          cascade unassigns its Containers (location := NULL), it never
          deletes them.
    I3 -- ids come only from the injected IdentifierService and are never
          written after insert.
    I4 -- created/updated come only from the injected Clock.  ``updated``
          is clamped to at least ``created``.
    I5 -- quantity is an int in [0, 2**63 - 1].

Locking protocol:
    - Target row: SELECT ... FOR UPDATE.
    - Referenced parent on create/re-parent: SELECT ... FOR SHARE.
    - Cascade parent: FOR UPDATE, then FOR UPDATE on every dependent.
    Row locks are PostgreSQL only; on SQLite the whole transaction holds
    the database write lock from BEGIN IMMEDIATE.

Two-phase cascade:
    Phase 1 locks the parent and collects the dependent id set (and raises
    Conflict if cascading was not requested).  Phase 2 issues one bulk
    UPDATE or DELETE for the dependents, then deletes the parent.  Both
    phases run in the caller's transaction.

Failure modes:
    - ValidationError subclasses for bad names, quantities, ids, or a None
      supplied for a required field.
    - NotFoundError subclasses when the target or a referenced parent does
      not exist (including a concurrent delete that won the race).
    - ConflictError subclasses on a non-cascading delete with dependents.
    - IntegrityError from the store is translated: FK -> NotFoundError,
      CHECK -> ValidationError.
"""

from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import case, delete, literal, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from homebox_kernel.db.base import UTCDateTime
from homebox_kernel.domain.clock import Clock, SystemClock
from homebox_kernel.domain.dtos import (
    UNSET,
    ContainerInfo,
    DeleteResult,
    EntityKind,
    ItemInfo,
    LocationInfo,
)
from homebox_kernel.domain.identifiers import IdentifierService
from homebox_kernel.exceptions import (
    ContainerNotEmptyError,
    ContainerNotFoundError,
    EntityNotFoundError,
    InvalidArgumentError,
    InvalidNameError,
    InvalidQuantityError,
    ItemNotFoundError,
    LocationNotEmptyError,
    LocationNotFoundError,
    ValidationError,
)
from homebox_kernel.logging_config import get_logger
from homebox_kernel.models.container import Container
from homebox_kernel.models.item import Item
from homebox_kernel.models.location import Location
from homebox_kernel.services.base import BaseService

logger = get_logger("services.hierarchy")

MAX_NAME_LENGTH = 255
MAX_QUANTITY = 2**63 - 1
DEFAULT_QUANTITY = 1

_Model = TypeVar("_Model", Location, Container, Item)


def normalize_required_name(entity_type: str, value: object) -> str:
    if value is None:
        raise InvalidNameError(entity_type, "is required")
    if not isinstance(value, str):
        raise InvalidNameError(entity_type, f"must be a string, got {type(value).__name__}")
    name = value.strip()
    if not name:
        raise InvalidNameError(entity_type, "must not be blank")
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidNameError(entity_type, f"longer than {MAX_NAME_LENGTH} characters")
    return name


def normalize_optional_name(entity_type: str, value: object) -> str | None:
    """Blank optional names are stored as NULL."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidNameError(entity_type, f"must be a string, got {type(value).__name__}")
    name = value.strip()
    if not name:
        return None
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidNameError(entity_type, f"longer than {MAX_NAME_LENGTH} characters")
    return name


def validate_quantity(value: object) -> int:
    # bool is an int subclass; True is not a quantity
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidQuantityError(value, "must be an integer")
    if value < 0:
        raise InvalidQuantityError(value, "must not be negative")
    if value > MAX_QUANTITY:
        raise InvalidQuantityError(value, f"must not exceed {MAX_QUANTITY}")
    return value


def validate_description(value: object) -> str | None:
    if value is None or isinstance(value, str):
        return value
    raise InvalidArgumentError("description", f"must be a string, got {type(value).__name__}")


class HierarchyService(BaseService):
    """
    Write side of the hierarchy store adapter.

    Contract:
        Every public method runs inside the caller's transaction and
        returns a DTO.  Nothing is committed here.

    Guarantees:
        - A failed call leaves the session dirty but the store untouched
          once the caller rolls back.
        - Cascades are never observable half applied.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        identifiers: IdentifierService | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._ids = identifiers or IdentifierService()

    # ------------------------------------------------------------------
    # Locations
    # ------------------------------------------------------------------

    def create_location(self, name: str) -> LocationInfo:
        location = Location(
            id=self._ids.generate(),
            name=normalize_required_name("location", name),
        )
        self.session.add(location)
        self._flush(location.id)

        logger.info("location_created", extra={"location_id": str(location.id)})
        return LocationInfo.from_model(location)

    def update_location(self, location_id: UUID | str, *, name: Any = UNSET) -> LocationInfo:
        location = self._lock_location(self._ids.parse(location_id))

        if name is not UNSET:
            location.name = normalize_required_name("location", name)

        self._flush(location.id)
        logger.info("location_updated", extra={"location_id": str(location.id)})
        return LocationInfo.from_model(location)

    def delete_location(self, location_id: UUID | str, cascade: bool = False) -> DeleteResult:
        """
        Delete a Location.

        With ``cascade`` the Location's Containers are unassigned (their
        location becomes NULL and ``updated`` is refreshed); they and their
        Items survive.  Without it, any referencing Container makes the
        delete fail.

        Raises:
            LocationNotFoundError: The location does not exist.
            LocationNotEmptyError: Containers reference it and cascade is False.
        """
        location = self._lock_location(self._ids.parse(location_id))

        # Phase 1: dependents under lock
        dependents = self._locked_ids(
            select(Container.id).where(Container.location_id == location.id)
        )
        if dependents and not cascade:
            raise LocationNotEmptyError(str(location.id), len(dependents))

        # Phase 2: bulk unassign, then the parent
        unassigned = 0
        if dependents:
            now = literal(self._clock.now(), UTCDateTime())
            self.session.execute(
                update(Container)
                .where(Container.id.in_(dependents))
                .values(
                    location_id=None,
                    updated=case((Container.created > now, Container.created), else_=now),
                )
                .execution_options(synchronize_session="fetch")
            )
            unassigned = len(dependents)

        self.session.delete(location)
        self._flush(location.id)

        logger.info(
            "location_deleted",
            extra={
                "location_id": str(location.id),
                "cascade": cascade,
                "unassigned_container_count": unassigned,
            },
        )
        return DeleteResult(
            id=location.id,
            kind=EntityKind.LOCATION,
            unassigned_container_count=unassigned,
        )

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------

    def create_container(
        self,
        name: str | None = None,
        location_id: UUID | str | None = None,
    ) -> ContainerInfo:
        clean_name = normalize_optional_name("container", name)
        parent_id = None
        if location_id is not None:
            parent_id = self._share_location(self._ids.parse(location_id)).id

        now = self._clock.now()
        container = Container(
            id=self._ids.generate(),
            created=now,
            updated=now,
            name=clean_name,
            location_id=parent_id,
        )
        self.session.add(container)
        self._flush(container.id)

        logger.info(
            "container_created",
            extra={
                "container_id": str(container.id),
                "location_id": str(parent_id) if parent_id else None,
            },
        )
        return ContainerInfo.from_model(container)

    def update_container(
        self,
        container_id: UUID | str,
        *,
        name: Any = UNSET,
        location_id: Any = UNSET,
    ) -> ContainerInfo:
        """
        Rename and/or re-parent a Container.

        ``location_id=None`` unassigns it.  A Container may move between
        Locations freely; nothing else changes for its Items.
        """
        container = self._lock_container(self._ids.parse(container_id))

        if name is not UNSET:
            container.name = normalize_optional_name("container", name)
        if location_id is not UNSET:
            if location_id is None:
                container.location_id = None
            else:
                container.location_id = self._share_location(self._ids.parse(location_id)).id

        self._touch(container)
        self._flush(container.id)

        logger.info("container_updated", extra={"container_id": str(container.id)})
        return ContainerInfo.from_model(container)

    def delete_container(self, container_id: UUID | str, cascade: bool = False) -> DeleteResult:
        """
        Delete a Container.

        With ``cascade`` its Items are hard-deleted in the same transaction.
        Without it, any remaining Item makes the delete fail.

        Raises:
            ContainerNotFoundError: The container does not exist.
            ContainerNotEmptyError: Items reference it and cascade is False.
        """
        container = self._lock_container(self._ids.parse(container_id))

        # Phase 1
        dependents = self._locked_ids(select(Item.id).where(Item.container_id == container.id))
        if dependents and not cascade:
            raise ContainerNotEmptyError(str(container.id), len(dependents))

        # Phase 2
        deleted = 0
        if dependents:
            self.session.execute(
                delete(Item)
                .where(Item.id.in_(dependents))
                .execution_options(synchronize_session="fetch")
            )
            deleted = len(dependents)

        self.session.delete(container)
        self._flush(container.id)

        logger.info(
            "container_deleted",
            extra={
                "container_id": str(container.id),
                "cascade": cascade,
                "deleted_item_count": deleted,
            },
        )
        return DeleteResult(
            id=container.id,
            kind=EntityKind.CONTAINER,
            deleted_item_count=deleted,
        )

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def create_item(
        self,
        name: str,
        container_id: UUID | str,
        quantity: int = DEFAULT_QUANTITY,
        description: str | None = None,
    ) -> ItemInfo:
        clean_name = normalize_required_name("item", name)
        clean_quantity = validate_quantity(quantity)
        clean_description = validate_description(description)
        if container_id is None:
            raise InvalidArgumentError("container", "is required")
        parent = self._share_container(self._ids.parse(container_id))

        now = self._clock.now()
        item = Item(
            id=self._ids.generate(),
            created=now,
            updated=now,
            name=clean_name,
            description=clean_description,
            quantity=clean_quantity,
            container_id=parent.id,
        )
        self.session.add(item)
        self._flush(item.id)

        logger.info(
            "item_created",
            extra={
                "item_id": str(item.id),
                "container_id": str(parent.id),
                "quantity": clean_quantity,
            },
        )
        return ItemInfo.from_model(item)

    def update_item(
        self,
        item_id: UUID | str,
        *,
        name: Any = UNSET,
        description: Any = UNSET,
        quantity: Any = UNSET,
        container_id: Any = UNSET,
    ) -> ItemInfo:
        """
        Partially update an Item.  Fields left as UNSET are untouched.

        ``description=None`` clears the description.  None for name,
        quantity or container is rejected: an Item always has all three.
        """
        item = self._lock_item(self._ids.parse(item_id))

        if name is not UNSET:
            item.name = normalize_required_name("item", name)
        if description is not UNSET:
            item.description = validate_description(description)
        if quantity is not UNSET:
            if quantity is None:
                raise InvalidQuantityError(None, "is required")
            item.quantity = validate_quantity(quantity)
        if container_id is not UNSET:
            if container_id is None:
                raise InvalidArgumentError("container", "an item must belong to a container")
            item.container_id = self._share_container(self._ids.parse(container_id)).id

        self._touch(item)
        self._flush(item.id)

        logger.info("item_updated", extra={"item_id": str(item.id)})
        return ItemInfo.from_model(item)

    def delete_item(self, item_id: UUID | str) -> DeleteResult:
        item = self._lock_item(self._ids.parse(item_id))
        self.session.delete(item)
        self._flush(item.id)

        logger.info("item_deleted", extra={"item_id": str(item.id)})
        return DeleteResult(id=item.id, kind=EntityKind.ITEM)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _touch(self, entity: Container | Item) -> None:
        now = self._clock.now()
        entity.updated = max(now, entity.created)

    def _read(self, model: type[_Model], entity_id: UUID, *, share: bool) -> _Model | None:
        stmt = (
            select(model)
            .where(model.id == entity_id)
            .execution_options(populate_existing=True)
        )
        if self.uses_row_locks:
            stmt = stmt.with_for_update(read=share)
        return self.session.execute(stmt).scalar_one_or_none()

    def _locked_ids(self, stmt) -> list[UUID]:
        if self.uses_row_locks:
            stmt = stmt.with_for_update()
        return list(self.session.execute(stmt).scalars())

    def _lock_location(self, location_id: UUID) -> Location:
        location = self._read(Location, location_id, share=False)
        if location is None:
            raise LocationNotFoundError(str(location_id))
        return location

    def _share_location(self, location_id: UUID) -> Location:
        location = self._read(Location, location_id, share=True)
        if location is None:
            raise LocationNotFoundError(str(location_id))
        return location

    def _lock_container(self, container_id: UUID) -> Container:
        container = self._read(Container, container_id, share=False)
        if container is None:
            raise ContainerNotFoundError(str(container_id))
        return container

    def _share_container(self, container_id: UUID) -> Container:
        container = self._read(Container, container_id, share=True)
        if container is None:
            raise ContainerNotFoundError(str(container_id))
        return container

    def _lock_item(self, item_id: UUID) -> Item:
        item = self._read(Item, item_id, share=False)
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return item

    def _flush(self, entity_id: UUID) -> None:
        try:
            self.session.flush()
        except IntegrityError as exc:
            translated = translate_integrity_error(exc, entity_id)
            if translated is None:
                raise
            logger.warning(
                "integrity_error_translated",
                extra={"entity_id": str(entity_id), "error_code": translated.code},
            )
            raise translated from exc


def translate_integrity_error(exc: IntegrityError, entity_id: UUID | str) -> Exception | None:
    """
    Map a store-level integrity fault onto the domain taxonomy.

    Returns None for faults with no domain meaning (e.g. a primary key
    collision), which the caller re-raises unchanged.
    """
    text = str(exc.orig).lower()
    if "foreign key" in text:
        return EntityNotFoundError(str(entity_id))
    if "check constraint" in text:
        return ValidationError(f"Constraint violated for {entity_id}: {exc.orig}")
    return None
