"""
Module: homebox_kernel.selectors.integrity_selector
Responsibility: Scan the store for rows that break a structural invariant.
    In a healthy store the result is always empty.  Used by tests after
    random and concurrent operation sequences, and by operators after
    restoring from backup.
Architecture position: Kernel > Selectors.

Checks:
    I1 -- item whose container does not resolve.
    I2 -- container whose non-null location does not resolve.
    I4 -- updated < created on a container or item.
    I5 -- negative item quantity.
"""

from sqlalchemy import select

from homebox_kernel.domain.dtos import EntityKind, IntegrityViolation
from homebox_kernel.invariants import HierarchyInvariant
from homebox_kernel.logging_config import get_logger
from homebox_kernel.models.container import Container
from homebox_kernel.models.item import Item
from homebox_kernel.models.location import Location
from homebox_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.integrity")


class IntegritySelector(BaseSelector):
    def find_violations(self) -> list[IntegrityViolation]:
        violations: list[IntegrityViolation] = []
        violations.extend(self._orphaned_items())
        violations.extend(self._dangling_locations())
        violations.extend(self._timestamp_inversions())
        violations.extend(self._negative_quantities())

        if violations:
            logger.error(
                "integrity_violations_found",
                extra={"violation_count": len(violations)},
            )
        return violations

    def is_consistent(self) -> bool:
        return not self.find_violations()

    def _orphaned_items(self) -> list[IntegrityViolation]:
        stmt = (
            select(Item.id, Item.container_id)
            .outerjoin(Container, Item.container_id == Container.id)
            .where(Container.id.is_(None))
        )
        return [
            IntegrityViolation(
                invariant=HierarchyInvariant.ITEM_HAS_CONTAINER,
                entity_kind=EntityKind.ITEM,
                entity_id=item_id,
                detail=f"container {container_id} does not exist",
            )
            for item_id, container_id in self.session.execute(stmt)
        ]

    def _dangling_locations(self) -> list[IntegrityViolation]:
        stmt = (
            select(Container.id, Container.location_id)
            .outerjoin(Location, Container.location_id == Location.id)
            .where(Container.location_id.is_not(None))
            .where(Location.id.is_(None))
        )
        return [
            IntegrityViolation(
                invariant=HierarchyInvariant.CONTAINER_LOCATION_RESOLVES,
                entity_kind=EntityKind.CONTAINER,
                entity_id=container_id,
                detail=f"location {location_id} does not exist",
            )
            for container_id, location_id in self.session.execute(stmt)
        ]

    def _timestamp_inversions(self) -> list[IntegrityViolation]:
        found = []
        for model, kind in ((Container, EntityKind.CONTAINER), (Item, EntityKind.ITEM)):
            stmt = select(model.id, model.created, model.updated).where(
                model.updated < model.created
            )
            for entity_id, created, updated in self.session.execute(stmt):
                found.append(
                    IntegrityViolation(
                        invariant=HierarchyInvariant.ADAPTER_TIMESTAMPS,
                        entity_kind=kind,
                        entity_id=entity_id,
                        detail=f"updated {updated.isoformat()} precedes created {created.isoformat()}",
                    )
                )
        return found

    def _negative_quantities(self) -> list[IntegrityViolation]:
        stmt = select(Item.id, Item.quantity).where(Item.quantity < 0)
        return [
            IntegrityViolation(
                invariant=HierarchyInvariant.QUANTITY_NON_NEGATIVE,
                entity_kind=EntityKind.ITEM,
                entity_id=item_id,
                detail=f"quantity {quantity} is negative",
            )
            for item_id, quantity in self.session.execute(stmt)
        ]
