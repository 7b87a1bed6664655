"""Signature utilities built on secp256k1 ECDSA primitives."""
from __future__ import annotations

import binascii
import hashlib

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    Prehashed,
    decode_dss_signature,
    encode_dss_signature,
)

# Order of the secp256k1 base point.
SECP256K1_ORDER = int(
    "FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16
)
_HALF_ORDER = SECP256K1_ORDER // 2
DIGEST_SIZE_BYTES = 32


def normalize_signature(signature_der: bytes) -> bytes:
    """Return the DER signature rewritten to its low-S form.

    Raises:
        ValueError: If `signature_der` is not a valid DER-encoded signature.
    """
    r, s = decode_dss_signature(signature_der)
    if s > _HALF_ORDER:
        s = SECP256K1_ORDER - s
    return encode_dss_signature(r, s)


def load_public_key(pubkey_hex: str) -> ec.EllipticCurvePublicKey:
    """Decode a hex-encoded SEC1 secp256k1 public key.

    Raises:
        ValueError: If the hex or the curve point is malformed.
    """
    return ec.EllipticCurvePublicKey.from_encoded_point(
        ec.SECP256K1(), binascii.unhexlify(pubkey_hex)
    )


def verify_digest(digest: bytes, signature_der: bytes, public_key: ec.EllipticCurvePublicKey) -> bool:
    """Verify a DER signature over an already computed SHA-256 digest.

    `signature_der` is expected in low-S form, see :func:`normalize_signature`.
    """
    if len(digest) != DIGEST_SIZE_BYTES:
        return False
    try:
        public_key.verify(
            signature_der,
            digest,
            ec.ECDSA(Prehashed(hashes.SHA256())),
        )
        return True
    except (InvalidSignature, ValueError):
        return False


def decode_signed_credentials(
    pubkey_hex: str | None,
    signature_hex: str | None,
) -> tuple[ec.EllipticCurvePublicKey, bytes] | None:
    """Decode a hex public key and hex DER signature for verification.

    Returns:
        The public key and the low-S normalized signature, or None if either
        value is missing or malformed.
    """
    if not pubkey_hex or not signature_hex:
        return None
    try:
        public_key = load_public_key(pubkey_hex)
        signature = normalize_signature(binascii.unhexlify(signature_hex))
    except (binascii.Error, ValueError, TypeError):
        return None
    return public_key, signature


def hash_secret(secret: str) -> str:
    """Return a SHA-256 hex digest of the provided secret."""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()
