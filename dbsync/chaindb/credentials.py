"""
Credential providers for registry writes.

Key management and signing live outside ChainDB; the core only asks whether
an authorization key is available right now. Providers are consulted at the
start of every save and never cache across saves.
"""

from __future__ import annotations

import os
from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class CredentialProvider(Protocol):
    def get(self) -> Optional[str]:
        """Return the authorization key, or None if none is available."""
        ...


class EnvCredentialProvider:
    """Reads the key from an environment variable on every call."""

    def __init__(self, env_var: str = "CHAINDB_PRIVATE_KEY") -> None:
        self.env_var = env_var

    def get(self) -> Optional[str]:
        return os.getenv(self.env_var) or None

    def __repr__(self) -> str:
        # never expose the key itself
        return f"EnvCredentialProvider(env_var={self.env_var!r})"


class StaticCredentialProvider:
    """Fixed key, or None for a client with no wallet."""

    def __init__(self, key: Optional[str]) -> None:
        self._key = key

    def get(self) -> Optional[str]:
        return self._key

    def __repr__(self) -> str:
        return f"StaticCredentialProvider(present={self._key is not None})"
