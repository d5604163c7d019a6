"""
ORM-level guards for identity and timestamp immutability.

===============================================================================
PROTECTED FIELDS
===============================================================================

Entity     | Field    | Rule
-----------|----------|---------------------------------------------
Location   | id       | Never changes after insert (I3)
Container  | id       | Never changes after insert (I3)
Container  | created  | Never changes after insert (I4)
Item       | id       | Never changes after insert (I3)
Item       | created  | Never changes after insert (I4)

The service layer never writes these fields on update.  The guards catch
code paths that bypass the service (ad-hoc scripts, direct ORM use) before
the UPDATE reaches the database.

===============================================================================
USAGE
===============================================================================

    from homebox_kernel.db.guards import register_identity_guards
    register_identity_guards()   # idempotent; called by create_store_engine
"""

from sqlalchemy import event, inspect

from homebox_kernel.exceptions import ImmutableFieldError
from homebox_kernel.logging_config import get_logger

logger = get_logger("db.guards")

_IMMUTABLE_FIELDS: dict[str, tuple[str, ...]] = {
    "Location": ("id",),
    "Container": ("id", "created"),
    "Item": ("id", "created"),
}


def _check_immutable_fields(mapper, connection, target):
    entity_type = type(target).__name__
    insp = inspect(target)
    for field in _IMMUTABLE_FIELDS.get(entity_type, ()):
        history = insp.attrs[field].history
        if history.deleted and history.added:
            entity_id = str(history.deleted[0]) if field == "id" else str(target.id)
            logger.error(
                "immutable_field_change_blocked",
                extra={
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                    "field": field,
                },
            )
            raise ImmutableFieldError(entity_type, entity_id, field)


def _models():
    from homebox_kernel.models import Container, Item, Location

    return (Location, Container, Item)


def register_identity_guards() -> None:
    """Attach the before_update guards to every hierarchy model."""
    for model in _models():
        if not event.contains(model, "before_update", _check_immutable_fields):
            event.listen(model, "before_update", _check_immutable_fields)


def unregister_identity_guards() -> None:
    """
    Remove the guards.

    WARNING: Only use this in tests that need to bypass the guard to prove
    the database constraints hold on their own.
    """
    for model in _models():
        if event.contains(model, "before_update", _check_immutable_fields):
            event.remove(model, "before_update", _check_immutable_fields)
