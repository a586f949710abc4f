"""
Island migration hooks and an in-process island pool.
"""

from .island_pool import IslandPool
from .port import MigrationPort, request_immigrants, start_migration

__all__ = [
    "MigrationPort",
    "IslandPool",
    "request_immigrants",
    "start_migration",
]
