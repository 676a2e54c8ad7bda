"""
ChainDB Registry - HTTP service holding the pointer to each chain's head.

This service provides:
1. Public reads of the current record content id
2. Owner-key writes guarded by compare-and-set
3. An append-only write history per pointer
"""

from .app import create_app
from .routes import router

__all__ = ["create_app", "router"]
