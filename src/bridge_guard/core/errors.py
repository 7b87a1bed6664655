"""Failure types raised by the gateway guards.

Every guard raises one of these instead of building a response itself. The
error responder in :mod:`bridge_guard.api.errors` is the only place that maps
them to a status code and decides whether to log.
"""

from __future__ import annotations

from collections.abc import Mapping

HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_NOT_FOUND = 404
HTTP_TOO_MANY_REQUESTS = 429
HTTP_INTERNAL_SERVER_ERROR = 500
HTTP_NOT_IMPLEMENTED = 501


class ServiceError(Exception):
    """Base class for failures that carry an optional status code.

    Attributes:
        message: Client-facing message.
        code: Numeric status hint, or None when the failure has no HTTP meaning.
        headers: Extra response headers to send along with the error body.
    """

    code: int | str | None = None

    def __init__(
        self,
        message: str = "",
        *,
        code: int | str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.headers: dict[str, str] = dict(headers or {})


class BadRequest(ServiceError):
    """Malformed input, such as an unrecognized role label."""

    code = HTTP_BAD_REQUEST


class NotAuthorized(ServiceError):
    """Authentication or authorization failure."""

    code = HTTP_UNAUTHORIZED


class NotFound(ServiceError):
    """A referenced entity is missing."""

    code = HTTP_NOT_FOUND


class RateLimitExceeded(ServiceError):
    """The caller used up its rate-limit window."""

    code = HTTP_TOO_MANY_REQUESTS


class InternalError(ServiceError):
    """Unexpected server-side failure."""

    code = HTTP_INTERNAL_SERVER_ERROR


class NotImplementedByServer(ServiceError):
    """A guard was configured incorrectly, e.g. without a required role."""

    code = HTTP_NOT_IMPLEMENTED


class StoreError(ServiceError):
    """A collaborator store call failed.

    Carries no status code so the error responder treats it as a 500.
    """


class DuplicateNonce(StoreError):
    """The (user, nonce) pair was already recorded."""
