"""Contracts for the collaborator stores consumed by the gateway guards.

Implementations raise :class:`~bridge_guard.core.errors.StoreError` when the
backing store fails. A missing record is ``None``, never an error.
"""

from __future__ import annotations

from typing import Protocol


class AccountRecord(Protocol):
    """Fields the guards read from a user record."""

    id: str
    activated: bool
    role: str


class KeyRecord(Protocol):
    """Fields the guards read from a public key record."""

    key: str
    user_id: str


class UserStore(Protocol):
    async def lookup_by_credentials(self, name: str, secret: str) -> AccountRecord | None: ...

    async def find_by_id(self, user_id: str) -> AccountRecord | None: ...


class PublicKeyStore(Protocol):
    async def find_by_id(self, key_id: str) -> KeyRecord | None: ...


class NonceStore(Protocol):
    async def insert_unique(self, user_id: str, nonce: str) -> None:
        """Record the nonce, raising ``DuplicateNonce`` if it was already used."""
        ...


class WindowStore(Protocol):
    """Subset of the ``redis.asyncio.Redis`` API used by the rate limiter."""

    async def get(self, key: str) -> str | bytes | None: ...

    async def set(self, key: str, value: str, *, px: int | None = None) -> object: ...
