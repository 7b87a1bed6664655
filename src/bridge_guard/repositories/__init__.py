"""Collaborator store contracts and their SQL implementations."""

from .sql import SqlNonceStore, SqlPublicKeyStore, SqlUserStore
from .stores import NonceStore, PublicKeyStore, UserStore, WindowStore

__all__ = [
    "NonceStore",
    "PublicKeyStore",
    "SqlNonceStore",
    "SqlPublicKeyStore",
    "SqlUserStore",
    "UserStore",
    "WindowStore",
]
