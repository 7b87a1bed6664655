"""Coarse role-based authorization."""
from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from fastapi import Request

from bridge_guard.core.errors import (
    BadRequest,
    NotAuthorized,
    NotFound,
    NotImplementedByServer,
    StoreError,
)
from bridge_guard.repositories.stores import UserStore

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Role labels, ordered by rank."""

    ADMIN = "admin"
    MODERATOR = "moderator"
    USER = "user"

    @property
    def rank(self) -> int:
        return _RANKS[self]


_RANKS: dict[Role, int] = {
    Role.ADMIN: 3000,
    Role.MODERATOR: 2000,
    Role.USER: 1000,
}


def parse_role(label: str | None) -> Role:
    """Return the role for `label`.

    Raises:
        BadRequest: If the label is missing or not a known role.
    """
    if not label:
        raise BadRequest("Must specify a role")
    try:
        return Role(label.strip().lower())
    except ValueError as err:
        raise BadRequest(f"Unrecognized role: {label}") from err


def role_rank(label: str | None) -> int:
    """Return the numeric rank of a role label."""
    return parse_role(label).rank


class Authorizer:
    """Build per-route dependencies requiring a minimum role."""

    def __init__(self, users: UserStore) -> None:
        self._users = users

    def require(self, required_role: str | None) -> Callable[[Request], Awaitable[Any]]:
        """Return a dependency admitting users ranked at least `required_role`.

        The dependency must run after the authenticator. It reloads the user
        so a role changed since authentication is honoured.
        """

        async def authorize(request: Request) -> Any:
            request.state.authorized = False
            if not required_role:
                raise NotImplementedByServer("Must specify a role")

            identity = getattr(request.state, "identity", None)
            if identity is None:
                raise NotAuthorized("Unauthorized")

            try:
                user = await self._users.find_by_id(identity.user.id)
            except StoreError as err:
                raise NotFound(str(err) or "User not found") from err
            if user is None:
                raise NotFound("User not found")

            if role_rank(user.role) < role_rank(required_role):
                logger.info("User %s denied, requires role %s", user.id, required_role)
                raise NotAuthorized("Unauthorized")

            request.state.authorized = True
            return user

        return authorize
