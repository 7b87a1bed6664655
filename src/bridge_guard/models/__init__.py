"""SQLAlchemy models for the gateway collaborator stores."""

from .replay_protection import UserNonce
from .user import PublicKey, User

__all__ = [
    "PublicKey",
    "User",
    "UserNonce",
]
