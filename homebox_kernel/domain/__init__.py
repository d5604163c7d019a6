"""Pure domain layer: clock, identifiers, symbol codec and DTOs."""

from homebox_kernel.domain.clock import Clock, SteppingClock, SystemClock
from homebox_kernel.domain.dtos import (
    UNSET,
    ContainerInfo,
    ContainerTotals,
    DeleteResult,
    EntityInfo,
    EntityKind,
    IntegrityViolation,
    ItemInfo,
    LabelInfo,
    LocationInfo,
    LocationTotals,
)
from homebox_kernel.domain.identifiers import IdentifierService, SequentialIdentifierService
from homebox_kernel.domain.symbol import SymbolCodec, SymbolPayload

__all__ = [
    "Clock",
    "SystemClock",
    "SteppingClock",
    "IdentifierService",
    "SequentialIdentifierService",
    "SymbolCodec",
    "SymbolPayload",
    "UNSET",
    "EntityKind",
    "EntityInfo",
    "LocationInfo",
    "ContainerInfo",
    "ItemInfo",
    "ContainerTotals",
    "LocationTotals",
    "LabelInfo",
    "DeleteResult",
    "IntegrityViolation",
]
