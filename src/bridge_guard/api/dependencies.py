"""Shared API dependencies wiring the guards to their stores."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any

from fastapi import Depends, Request
from sqlalchemy.orm import sessionmaker

from bridge_guard.core.errors import NotAuthorized
from bridge_guard.core.settings import Settings
from bridge_guard.repositories import SqlNonceStore, SqlPublicKeyStore, SqlUserStore
from bridge_guard.services.authenticate import Authenticator, Identity
from bridge_guard.services.authorize import Authorizer
from bridge_guard.services.pow import PowService
from bridge_guard.services.rate_limiter import RateLimiter


@dataclass
class Guards:
    """Guard dependencies sharing one set of store handles."""

    settings: Settings
    redis: Any
    authenticate: Authenticator
    authorizer: Authorizer
    pow: PowService

    def require_role(self, role: str | None) -> Any:
        """Return a dependency admitting users ranked at least `role`."""
        return self.authorizer.require(role)

    def rate_limit(
        self,
        total: int | None = None,
        expire: int | None = None,
        **options: Any,
    ) -> RateLimiter:
        """Return a rate limiter using the configured defaults."""
        options.setdefault("ignore_errors", self.settings.rate_limit_ignore_errors)
        return RateLimiter(
            self.redis,
            self.settings.rate_limit_total if total is None else total,
            self.settings.rate_limit_expire_ms if expire is None else expire,
            **options,
        )


def build_guards(settings: Settings, session_factory: sessionmaker, redis: Any) -> Guards:
    """Create the guards for a session factory and a Redis client."""
    users = SqlUserStore(session_factory)
    return Guards(
        settings=settings,
        redis=redis,
        authenticate=Authenticator(
            users,
            SqlPublicKeyStore(session_factory),
            SqlNonceStore(session_factory),
        ),
        authorizer=Authorizer(users),
        pow=PowService(redis, settings),
    )


def get_identity(request: Request) -> Identity:
    """Return the identity attached by the authenticator."""
    identity: Identity | None = getattr(request.state, "identity", None)
    if identity is None:
        raise NotAuthorized("No authentication strategy detected")
    return identity


# Type alias for the authenticated identity dependency
IdentityDep = Annotated[Identity, Depends(get_identity)]
