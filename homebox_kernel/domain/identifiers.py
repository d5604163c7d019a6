"""
Module: homebox_kernel.domain.identifiers
Responsibility: Generate and validate entity identifiers.
Architecture position: Kernel > Domain.  Pure; the only I/O is the OS random
    source behind ``uuid.uuid4``.

Invariants enforced:
    I3 -- identifiers are 128-bit random values drawn from a
          cryptographically secure source.  Collision probability is
          negligible; the store's primary key catches the rest.

Failure modes:
    - InvalidIdentifierError from parse() for anything that is not a UUID
      or a string ``uuid.UUID`` accepts.
"""

import itertools
from uuid import UUID, uuid4

from homebox_kernel.exceptions import InvalidIdentifierError


class IdentifierService:
    """
    Single source of new entity identifiers.

    Injected into HierarchyService so tests can substitute a deterministic
    sequence.
    """

    def generate(self) -> UUID:
        return uuid4()

    def parse(self, value: object) -> UUID:
        """
        Interpret ``value`` as an identifier.

        Accepts a ``UUID`` instance or any string form ``uuid.UUID`` accepts
        (hyphenated, braced, urn:uuid:, 32 hex digits).

        Raises:
            InvalidIdentifierError: value is of another type or malformed.
        """
        if isinstance(value, UUID):
            return value
        if not isinstance(value, str):
            raise InvalidIdentifierError(value)
        try:
            return UUID(value)
        except ValueError as exc:
            raise InvalidIdentifierError(value) from exc


class SequentialIdentifierService(IdentifierService):
    """Deterministic identifiers for tests: 00000000-0000-4000-8000-<n>."""

    def __init__(self, start: int = 1):
        self._counter = itertools.count(start)

    def generate(self) -> UUID:
        n = next(self._counter)
        return UUID(f"00000000-0000-4000-8000-{n:012x}")


_default = IdentifierService()


def new_identifier() -> UUID:
    return _default.generate()


def parse_identifier(value: object) -> UUID:
    return _default.parse(value)
