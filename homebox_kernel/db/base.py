"""
Module: homebox_kernel.db.base
Responsibility: Declarative base classes for the SQLAlchemy ORM models.
    Provides the UUID primary key convention (stored in a column named
    ``uuid``), portable column types, and the TrackedBase mixin carrying the
    adapter-owned ``created``/``updated`` timestamps.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  MUST NOT import from models/, services/, selectors/ or domain/.

Invariants enforced:
    - I3: every entity has a UUID primary key.  The key has no default; it
      is assigned explicitly by the IdentifierService so that id generation
      has exactly one source.
    - I4: created/updated are timezone-aware UTC datetimes on every
      backend (SQLite stores naive text; UTCDateTime re-attaches UTC).

Failure modes:
    - IntegrityError on a duplicate primary key or a NULL created/updated.
"""

from datetime import UTC, datetime
from typing import ClassVar
from uuid import UUID as PyUUID

from sqlalchemy import DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID -> canonical lowercase hyphenated str.
        - process_result_value: str -> UUID.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, PyUUID):
            value = PyUUID(str(value))
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return PyUUID(value)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC datetime on every backend.

    Guarantees:
        - Values are normalised to UTC before binding.  Naive values are
          taken to be UTC already.
        - Loaded values always carry tzinfo=UTC, so comparisons between a
          stored timestamp and ``Clock.now()`` never mix naive and aware.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class Base(DeclarativeBase):
    """
    Declarative base for all Homebox models.

    Guarantees:
        - ``id`` maps to the ``uuid`` column, stored as String(36).
        - datetime annotations map to UTCDateTime.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: UTCDateTime(),
        PyUUID: UUIDString(),
    }

    id: Mapped[PyUUID] = mapped_column(
        "uuid",
        UUIDString(),
        primary_key=True,
    )


class TrackedBase(Base):
    """
    Abstract base for entities carrying created/updated timestamps.

    Contract:
        Both fields are written only by HierarchyService from its injected
        Clock; there are no server defaults and no onupdate hooks, so a row
        can never acquire a timestamp the adapter did not choose.
    """

    __abstract__ = True

    created: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    updated: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )


# Re-export UUID for convenience
UUID = PyUUID
