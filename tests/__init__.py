"""
ChainDB Test Suite.

This package contains:
- unit/: Unit tests (no external services; SQLite and in-memory backends)
- integration/: Multi-device reconciliation scenarios and the registry service
"""
