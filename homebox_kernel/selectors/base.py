"""
Module: homebox_kernel.selectors.base
Responsibility: Base class for read-only selectors (the query side of the
    store adapter and the aggregation engine).
Architecture position: Kernel > Selectors.  May import from db/, models/
    and domain/.  MUST NOT import from services/.

Invariants enforced:
    - Read-only: selectors never add, delete, flush or commit.
    - DTO return convention: results are frozen dataclasses, never ORM rows.
    - The caller owns the session, so several selector calls inside one
      session_scope observe one transaction.
"""

from abc import ABC
from collections.abc import Callable, Iterator
from typing import TypeVar

from sqlalchemy import Select
from sqlalchemy.orm import Session

T = TypeVar("T")

STREAM_BATCH_SIZE = 100


class BaseSelector(ABC):
    def __init__(self, session: Session):
        self.session = session

    def _stream(
        self,
        stmt: Select,
        convert: Callable[[object], T],
        limit: int | None = None,
        offset: int = 0,
    ) -> Iterator[T]:
        """
        Lazily yield converted rows, fetching ``STREAM_BATCH_SIZE`` at a time.

        The statement does not execute until the first item is requested.
        The iterator must be consumed inside the session's transaction.
        """
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        stmt = stmt.execution_options(yield_per=STREAM_BATCH_SIZE)

        def rows() -> Iterator[T]:
            for row in self.session.execute(stmt).scalars():
                yield convert(row)

        return rows()
