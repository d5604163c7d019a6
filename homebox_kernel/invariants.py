"""
Kernel Invariants Contract.

These invariants hold for every state a reader can observe. No configuration
or API option may relax them.

This module only declares them. Enforcement is distributed across
HierarchyService (validation, locking, two-phase cascades), the ORM
listeners in homebox_kernel.db.guards, and the database constraints
declared on the models.
"""

from enum import Enum, unique


@unique
class HierarchyInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    ITEM_HAS_CONTAINER = "item_has_container"
    """Every Item's container resolves to a live Container. Enforced by
    HierarchyService validation, container-cascade deletes, and the
    items.container foreign key."""

    CONTAINER_LOCATION_RESOLVES = "container_location_resolves"
    """Every Container's location, if set, resolves to a live Location.
    Enforced by HierarchyService validation, location-cascade unassignment,
    and the containers.location foreign key."""

    IDENTIFIER_UNIQUE = "identifier_unique"
    """Ids are immutable and never reused. Enforced by IdentifierService
    (uuid4), primary keys, and the immutable-key ORM guard."""

    ADAPTER_TIMESTAMPS = "adapter_timestamps"
    """created/updated are assigned only by the adapter and updated >=
    created. Enforced by HierarchyService and a CHECK constraint."""

    QUANTITY_NON_NEGATIVE = "quantity_non_negative"
    """Item quantity is never negative. Enforced by HierarchyService
    validation and a CHECK constraint."""

    CASCADE_ATOMICITY = "cascade_atomicity"
    """Cascading deletes and reassignments are never observable half
    applied. Enforced by the two-phase cascade inside one transaction."""


ALL_HIERARCHY_INVARIANTS: frozenset[HierarchyInvariant] = frozenset(HierarchyInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "homebox_services",
    "homebox_config",
    "homebox_server",
)
