"""Proof-of-Work helpers.

A client proves work by finding a nonce such that
``scrypt(challenge, salt=nonce)`` is numerically below the current target.
"""
from __future__ import annotations

import hashlib

SCRYPT_N = 1024
SCRYPT_R = 1
SCRYPT_P = 1
DIGEST_BYTES = 32
MAX_TARGET = (1 << (DIGEST_BYTES * 8)) - 1
MAX_RETARGET_FACTOR = 4


def solution_digest(challenge: bytes, nonce: bytes) -> bytes:
    """Return the scrypt digest a solution is judged by."""
    return hashlib.scrypt(
        challenge,
        salt=nonce,
        n=SCRYPT_N,
        r=SCRYPT_R,
        p=SCRYPT_P,
        dklen=DIGEST_BYTES,
    )


def check_solution(challenge_hex: str, target_hex: str, nonce_hex: str) -> bool:
    """Validate a proposed proof-of-work solution.

    Args:
        challenge_hex: Hex-encoded challenge issued by the server.
        target_hex: Hex-encoded 256-bit target stored with the challenge.
        nonce_hex: Hex-encoded nonce chosen by the client.

    Returns:
        True if the digest is strictly below the target; False otherwise,
        including for malformed hex.
    """
    try:
        challenge = bytes.fromhex(challenge_hex)
        nonce = bytes.fromhex(nonce_hex)
        target = int(target_hex, 16)
    except (TypeError, ValueError):
        return False
    if not challenge or not nonce:
        return False
    digest = solution_digest(challenge, nonce)
    return int.from_bytes(digest, "big") < target


def format_target(target: int) -> str:
    """Render a target as 64 lowercase hex characters."""
    return f"{target:064x}"


def retarget(target_hex: str, solved: int, expected: int) -> str:
    """Scale the target so the solve rate moves toward `expected` per period.

    More solutions than expected lower the target (harder); fewer raise it.
    The adjustment is clamped to a factor of four either way and the result
    never exceeds the maximum target.
    """
    target = int(target_hex, 16)
    if expected <= 0:
        return format_target(target)
    solved = max(solved, 0)
    # new = target * expected / solved, with the ratio clamped to [1/4, 4].
    if solved * MAX_RETARGET_FACTOR <= expected:
        adjusted = target * MAX_RETARGET_FACTOR
    elif solved >= expected * MAX_RETARGET_FACTOR:
        adjusted = target // MAX_RETARGET_FACTOR
    else:
        adjusted = target * expected // solved
    return format_target(max(1, min(adjusted, MAX_TARGET)))
