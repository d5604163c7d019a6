"""Read-side selectors: lookups, listings, aggregation and integrity scans."""

from homebox_kernel.selectors.base import BaseSelector
from homebox_kernel.selectors.hierarchy_selector import HierarchySelector
from homebox_kernel.selectors.integrity_selector import IntegritySelector
from homebox_kernel.selectors.totals_selector import TotalsSelector

__all__ = [
    "BaseSelector",
    "HierarchySelector",
    "TotalsSelector",
    "IntegritySelector",
]
