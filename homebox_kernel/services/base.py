"""
BaseService -- abstract base for kernel write-side services.

Responsibility:
    Common constructor and session contract.  Services receive a SQLAlchemy
    ``Session`` and persist through ``session.flush()``, never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    One logical operation == one transaction.  The caller (session_scope or
    a test harness) owns commit and rollback, so a multi-statement cascade
    is all-or-nothing.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Contract:
        Accepts a session from the caller and flushes within the caller's
        transaction.

    Non-goals:
        - Does NOT commit or roll back.
        - Does NOT provide read queries -- those live in
          ``homebox_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    @property
    def uses_row_locks(self) -> bool:
        """
        True when the backend supports SELECT ... FOR UPDATE / FOR SHARE.

        SQLite has no row locks; every SQLite transaction opens with
        BEGIN IMMEDIATE instead, which serialises writers database-wide.
        """
        return self.dialect_name == "postgresql"
