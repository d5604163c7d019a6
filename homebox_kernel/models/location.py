"""
Module: homebox_kernel.models.location
Responsibility: ORM persistence for Locations, the root of the hierarchy.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    I2 -- Location rows are the FK target of containers.location.  The
          database refuses to delete a Location still referenced by a
          Container (no ON DELETE action); HierarchyService unassigns
          containers first when cascading.

Failure modes:
    - IntegrityError on raw DELETE while containers still reference the row.
"""

from typing import TYPE_CHECKING

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from homebox_kernel.db.base import Base

if TYPE_CHECKING:
    from homebox_kernel.models.container import Container


class Location(Base):
    """
    Top-level grouping.  Has no parent and no timestamps.

    Guarantees:
        - ``name`` is non-empty after stripping (service-level rule).
        - Names are not unique: two "Garage" locations are distinct rows.
    """

    __tablename__ = "locations"

    __table_args__ = (
        Index("idx_location_name", "name"),
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    containers: Mapped[list["Container"]] = relationship(
        back_populates="location",
        passive_deletes="all",
    )

    def __repr__(self) -> str:
        return f"<Location {self.id} {self.name!r}>"
