"""Write-side kernel services."""

from homebox_kernel.services.base import BaseService
from homebox_kernel.services.hierarchy_service import HierarchyService

__all__ = [
    "BaseService",
    "HierarchyService",
]
