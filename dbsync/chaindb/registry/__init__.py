"""
Pointer registry module for ChainDB.

The registry publishes the content id of the current VersionRecord:
- InMemoryPointerRegistry: tests and local development
- SqlitePointerRegistry: a database row with compare-and-set
- HttpPointerRegistry: client for the registry HTTP service
"""

from .base import ANY, PointerRegistry, create_pointer_registry, key_matches
from .http import HttpPointerRegistry
from .memory import InMemoryPointerRegistry
from .sqlite import SqlitePointerRegistry

__all__ = [
    "ANY",
    "HttpPointerRegistry",
    "InMemoryPointerRegistry",
    "PointerRegistry",
    "SqlitePointerRegistry",
    "create_pointer_registry",
    "key_matches",
]
