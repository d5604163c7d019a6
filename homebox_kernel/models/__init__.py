"""Domain models for the homebox kernel."""

from homebox_kernel.models.container import Container
from homebox_kernel.models.item import Item
from homebox_kernel.models.location import Location

__all__ = [
    "Location",
    "Container",
    "Item",
]
