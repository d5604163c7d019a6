"""
Module: homebox_kernel.models.item
Responsibility: ORM persistence for Items, the leaves of the hierarchy.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    I1 -- items.container is NOT NULL and references containers.uuid.
    I4 -- CHECK (updated >= created).
    I5 -- CHECK (quantity >= 0).
"""

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from homebox_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from homebox_kernel.models.container import Container


class Item(TrackedBase):
    """Leaf entity; always belongs to exactly one Container."""

    __tablename__ = "items"

    __table_args__ = (
        CheckConstraint("updated >= created", name="ck_item_updated_after_created"),
        CheckConstraint("quantity >= 0", name="ck_item_quantity_non_negative"),
        Index("idx_item_container", "container"),
        Index("idx_item_created", "created"),
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    quantity: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=1,
    )

    container_id: Mapped[UUID] = mapped_column(
        "container",
        UUIDString(),
        ForeignKey("containers.uuid"),
        nullable=False,
    )

    container: Mapped["Container"] = relationship(
        back_populates="items",
    )

    def __repr__(self) -> str:
        return f"<Item {self.id} {self.name!r} x{self.quantity} container={self.container_id}>"
