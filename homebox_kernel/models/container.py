"""
Module: homebox_kernel.models.container
Responsibility: ORM persistence for Containers, the middle level of the
    hierarchy.  A Container may be unassigned (location IS NULL); that is a
    valid state, not an orphan.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    I2 -- containers.location references locations.uuid.
    I4 -- CHECK (updated >= created).
    I1 -- Container rows are the FK target of items.container; the database
          refuses to delete a Container still holding Items.
"""

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from homebox_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from homebox_kernel.models.item import Item
    from homebox_kernel.models.location import Location


class Container(TrackedBase):
    """Mid-level entity holding Items, optionally grouped under a Location."""

    __tablename__ = "containers"

    __table_args__ = (
        CheckConstraint("updated >= created", name="ck_container_updated_after_created"),
        Index("idx_container_location", "location"),
        Index("idx_container_created", "created"),
    )

    name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    location_id: Mapped[UUID | None] = mapped_column(
        "location",
        UUIDString(),
        ForeignKey("locations.uuid"),
        nullable=True,
    )

    location: Mapped["Location | None"] = relationship(
        back_populates="containers",
    )

    items: Mapped[list["Item"]] = relationship(
        back_populates="container",
        passive_deletes="all",
    )

    @property
    def is_unassigned(self) -> bool:
        return self.location_id is None

    def __repr__(self) -> str:
        return f"<Container {self.id} {self.name!r} location={self.location_id}>"
