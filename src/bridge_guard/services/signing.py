"""Request canonicalization and signature checks used by the authenticator.

A signing client hashes ``METHOD\\nPATH\\nPAYLOAD`` with SHA-256 and signs the
digest with its secp256k1 key. The payload is the raw body for state-changing
methods and the raw query string for read-only ones.
"""
from __future__ import annotations

import hashlib
import json
from typing import Any, Final

from fastapi import Request

from bridge_guard.core.errors import NotAuthorized
from bridge_guard.core.security import decode_signed_credentials, verify_digest

FROM_BODY: Final[frozenset[str]] = frozenset({"POST", "PATCH", "PUT"})
FROM_QUERY: Final[frozenset[str]] = frozenset({"GET", "DELETE", "OPTIONS"})

SIGNATURE_HEADER: Final[str] = "x-signature"
PUBKEY_HEADER: Final[str] = "x-pubkey"
NONCE_PARAM: Final[str] = "__nonce"


def extract_payload(method: str, body: bytes, query: str) -> str:
    """Return the portion of the request covered by the signature.

    Raises:
        NotAuthorized: If the method carries neither a signed body nor query.
    """
    if method in FROM_BODY:
        return body.decode("utf-8")
    if method in FROM_QUERY:
        return query or ""
    raise NotAuthorized("Could not extract payload from query or body")


def payload_hash(method: str, path: str, payload: str) -> str:
    """Return the lowercase hex SHA-256 digest of the canonical contract."""
    contract = "\n".join([method, path, payload]).encode("utf-8")
    return hashlib.sha256(contract).hexdigest()


def verify_request_signature(
    method: str,
    path: str,
    body: bytes,
    query: str,
    signature_hex: str | None,
    pubkey_hex: str | None,
) -> bool:
    """Check that `signature_hex` signs this request under `pubkey_hex`.

    Header decoding happens before any hashing; malformed hex, DER or curve
    points make the check fail the same way a wrong signature does.
    """
    credentials = decode_signed_credentials(pubkey_hex, signature_hex)
    if credentials is None:
        return False
    public_key, signature = credentials

    try:
        payload = extract_payload(method, body, query)
    except UnicodeDecodeError:
        return False
    digest_hex = payload_hash(method, path, payload)
    return verify_digest(bytes.fromhex(digest_hex), signature, public_key)


def signed_path(request: Request) -> str:
    """Return the request path exactly as the client sent it.

    Clients sign the raw, still percent-encoded path, so the decoded
    ``url.path`` cannot be used.
    """
    raw_path = request.scope.get("raw_path")
    if not raw_path:
        return request.scope["path"]
    return raw_path.split(b"?", 1)[0].decode("latin-1")


async def verify_signed_request(request: Request) -> bool:
    """Run :func:`verify_request_signature` against a Starlette request."""
    body = await request.body() if request.method in FROM_BODY else b""
    return verify_request_signature(
        request.method,
        signed_path(request),
        body,
        request.url.query,
        request.headers.get(SIGNATURE_HEADER),
        request.headers.get(PUBKEY_HEADER),
    )


async def extract_params(request: Request) -> dict[str, Any]:
    """Return the signed request parameters (JSON body or query string)."""
    if request.method in FROM_BODY:
        body = await request.body()
        if not body:
            return {}
        try:
            params = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError):
            return {}
        return params if isinstance(params, dict) else {}
    if request.method in FROM_QUERY:
        return dict(request.query_params)
    return {}
