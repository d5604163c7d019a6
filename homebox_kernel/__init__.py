"""
Homebox Kernel - inventory hierarchy and integrity engine

A three-level physical inventory store with:
- Locations containing Containers containing Items
- Referential integrity under concurrent mutation
- Explicit, atomic cascade policies
- On-demand quantity rollups
- Printable optical-code identifiers
"""

__version__ = "0.1.0"
