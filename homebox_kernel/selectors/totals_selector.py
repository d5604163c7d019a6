"""
Module: homebox_kernel.selectors.totals_selector
Responsibility: The aggregation engine.  Item counts and quantity sums per
    container, per location, and over unassigned containers.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - No stored totals.  Every figure is computed from the items table at
      query time, so it can never drift from the rows it summarises.
    - Each rollup is a single SQL statement, so its counts and sums come
      from one snapshot even under READ COMMITTED.

Failure modes:
    - ContainerNotFoundError / LocationNotFoundError for a missing parent.
      An existing parent with no children yields all zeros.
"""

from uuid import UUID

from sqlalchemy import func, select

from homebox_kernel.domain.dtos import ContainerTotals, LocationTotals
from homebox_kernel.domain.identifiers import parse_identifier
from homebox_kernel.exceptions import ContainerNotFoundError, LocationNotFoundError
from homebox_kernel.models.container import Container
from homebox_kernel.models.item import Item
from homebox_kernel.models.location import Location
from homebox_kernel.selectors.base import BaseSelector


# Quantities go up to 2**63-1 and SQLite's SUM overflows int64, so each
# quantity is summed as a high and a low 32-bit half and recombined in
# Python.  Either half overflows only past 2**31 items in one rollup.
_HALF = 2**32


def _quantity_sums():
    return (
        func.coalesce(func.sum(Item.quantity // _HALF), 0),
        func.coalesce(func.sum(Item.quantity % _HALF), 0),
    )


def _combine(high, low) -> int:
    return int(high) * _HALF + int(low)


class TotalsSelector(BaseSelector):
    def container_totals(self, container_id: UUID | str) -> ContainerTotals:
        parent_id = parse_identifier(container_id)
        stmt = (
            select(Container.id, func.count(Item.id), *_quantity_sums())
            .select_from(Container)
            .outerjoin(Item, Item.container_id == Container.id)
            .where(Container.id == parent_id)
            .group_by(Container.id)
        )
        row = self.session.execute(stmt).one_or_none()
        if row is None:
            raise ContainerNotFoundError(str(parent_id))
        return ContainerTotals(
            container_id=parent_id,
            item_count=int(row[1]),
            total_quantity=_combine(row[2], row[3]),
        )

    def location_totals(self, location_id: UUID | str) -> LocationTotals:
        """
        Rollup over every container currently in the location and every
        item in those containers.
        """
        parent_id = parse_identifier(location_id)
        stmt = (
            select(
                Location.id,
                func.count(Container.id.distinct()),
                func.count(Item.id),
                *_quantity_sums(),
            )
            .select_from(Location)
            .outerjoin(Container, Container.location_id == Location.id)
            .outerjoin(Item, Item.container_id == Container.id)
            .where(Location.id == parent_id)
            .group_by(Location.id)
        )
        row = self.session.execute(stmt).one_or_none()
        if row is None:
            raise LocationNotFoundError(str(parent_id))
        return LocationTotals(
            location_id=parent_id,
            container_count=int(row[1]),
            item_count=int(row[2]),
            total_quantity=_combine(row[3], row[4]),
        )

    def unassigned_totals(self) -> LocationTotals:
        """Rollup over containers with no location.  ``location_id`` is None."""
        stmt = (
            select(
                func.count(Container.id.distinct()),
                func.count(Item.id),
                *_quantity_sums(),
            )
            .select_from(Container)
            .outerjoin(Item, Item.container_id == Container.id)
            .where(Container.location_id.is_(None))
        )
        container_count, item_count, high, low = self.session.execute(stmt).one()
        return LocationTotals(
            location_id=None,
            container_count=int(container_count),
            item_count=int(item_count),
            total_quantity=_combine(high, low),
        )
