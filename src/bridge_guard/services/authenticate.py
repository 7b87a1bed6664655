"""Request authentication for the gateway.

Two strategies are supported:

- ``BASIC``: an ``Authorization: Basic`` header carrying ``name:secret``,
  checked against the user store.
- ``SIGNATURE``: ``x-signature`` and ``x-pubkey`` headers carrying a
  secp256k1 signature over the canonical request (see
  :mod:`bridge_guard.services.signing`) plus a single-use ``__nonce``
  parameter recorded in the nonce store.

:class:`Authenticator` is a FastAPI dependency. On success the resolved
:class:`Identity` is attached to ``request.state.identity`` and returned.
"""
from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from fastapi import Request
from starlette.datastructures import Headers

from bridge_guard.core.errors import DuplicateNonce, NotAuthorized, StoreError
from bridge_guard.repositories.stores import (
    AccountRecord,
    KeyRecord,
    NonceStore,
    PublicKeyStore,
    UserStore,
)
from bridge_guard.services.signing import (
    NONCE_PARAM,
    PUBKEY_HEADER,
    SIGNATURE_HEADER,
    extract_params,
    verify_signed_request,
)

logger = logging.getLogger(__name__)


class AuthStrategy(str, Enum):
    """Authentication mode selected for a request."""

    BASIC = "BASIC"
    SIGNATURE = "SIGNATURE"
    NONE = "NONE"


@dataclass(frozen=True)
class BasicCredentials:
    name: str
    secret: str


@dataclass(frozen=True)
class Identity:
    """Authenticated caller attached to the request state."""

    user: Any
    public_key: Any | None = None


def parse_basic_credentials(authorization: str | None) -> BasicCredentials | None:
    """Parse an ``Authorization: Basic`` header value.

    Returns:
        The credentials, or None if the header is absent, uses another scheme
        or cannot be decoded.
    """
    if not authorization:
        return None
    scheme, _, encoded = authorization.strip().partition(" ")
    if scheme.lower() != "basic" or not encoded:
        return None
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    name, sep, secret = decoded.partition(":")
    if not sep:
        return None
    return BasicCredentials(name=name, secret=secret)


def detect_strategy(headers: Headers) -> AuthStrategy:
    """Pick the authentication strategy from the request headers.

    Basic credentials take precedence over a signature when both are sent.
    """
    creds = parse_basic_credentials(headers.get("authorization"))
    if creds is not None and creds.name and creds.secret:
        return AuthStrategy.BASIC
    if headers.get(SIGNATURE_HEADER) and headers.get(PUBKEY_HEADER):
        return AuthStrategy.SIGNATURE
    return AuthStrategy.NONE


class Authenticator:
    """Resolve the caller's identity using basic credentials or a signature."""

    def __init__(
        self,
        users: UserStore,
        public_keys: PublicKeyStore,
        nonces: NonceStore,
    ) -> None:
        self._users = users
        self._public_keys = public_keys
        self._nonces = nonces

    async def __call__(self, request: Request) -> Identity:
        strategy = detect_strategy(request.headers)
        match strategy:
            case AuthStrategy.BASIC:
                identity = await self._basic(request)
            case AuthStrategy.SIGNATURE:
                identity = await self._signature(request)
            case _:
                raise NotAuthorized("No authentication strategy detected")

        request.state.identity = identity
        return identity

    async def _basic(self, request: Request) -> Identity:
        creds = parse_basic_credentials(request.headers.get("authorization"))
        if creds is None:
            raise NotAuthorized("No authentication strategy detected")

        try:
            user = await self._users.lookup_by_credentials(creds.name, creds.secret)
        except StoreError as err:
            raise NotAuthorized("Invalid email or password") from err
        if user is None:
            raise NotAuthorized("Invalid email or password")

        _ensure_activated(user)
        return Identity(user=user)

    async def _signature(self, request: Request) -> Identity:
        # Reject forgeries before touching any store.
        if not await verify_signed_request(request):
            logger.info("Rejected request with invalid signature on %s", request.url.path)
            raise NotAuthorized("Invalid signature")

        key_id = request.headers[PUBKEY_HEADER]
        try:
            pubkey: KeyRecord | None = await self._public_keys.find_by_id(key_id)
        except StoreError as err:
            raise NotAuthorized("Public key not registered") from err
        if pubkey is None:
            raise NotAuthorized("Public key not registered")

        user = await self._users.find_by_id(pubkey.user_id)
        if user is None:
            raise NotAuthorized("User not found")
        _ensure_activated(user)

        params = await extract_params(request)
        nonce = params.get(NONCE_PARAM)
        if nonce is None or nonce == "":
            raise NotAuthorized("Invalid nonce supplied")
        try:
            await self._nonces.insert_unique(user.id, str(nonce))
        except DuplicateNonce as err:
            logger.warning("Replayed nonce for user %s", user.id)
            raise NotAuthorized("Invalid nonce supplied") from err

        return Identity(user=user, public_key=pubkey)


def _ensure_activated(user: AccountRecord) -> None:
    if not user.activated:
        raise NotAuthorized("User account has not been activated")
