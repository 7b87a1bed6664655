"""Proof-of-work challenge issuance and validation backed by Redis."""

from __future__ import annotations

import logging
import secrets
import time
from typing import Any, Final

from fastapi import Request
from redis.exceptions import RedisError

from bridge_guard.core import pow as core_pow
from bridge_guard.core.errors import BadRequest, StoreError
from bridge_guard.core.settings import Settings

logger = logging.getLogger(__name__)

CHALLENGE_HEADER: Final[str] = "x-challenge"
NONCE_HEADER: Final[str] = "x-challenge-nonce"
CHALLENGE_BYTES: Final[int] = 32


def _text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode()
    return str(value)


class PowService:
    """Service handling proof-of-work challenges and difficulty targets.

    Challenges live under ``<prefix><challenge>`` with their target as value
    and expire after ``pow_challenge_ttl_seconds``. Solve statistics live in
    the ``<prefix>stats`` hash and drive periodic retargeting.
    """

    def __init__(self, redis: Any, settings: Settings) -> None:
        self._redis = redis
        self._settings = settings

    def _challenge_key(self, challenge: str) -> str:
        return f"{self._settings.pow_key_prefix}{challenge}"

    async def get_target(self, now: float | None = None) -> str:
        """Return the current target, retargeting when the period elapsed."""
        now = int(time.time() if now is None else now)
        stats_key = self._settings.pow_stats_key
        try:
            raw = await self._redis.hgetall(stats_key)
            stats = {_text(k): _text(v) for k, v in (raw or {}).items()}

            if not stats.get("target") or not stats.get("timestamp"):
                target = self._settings.pow_initial_target
                await self._redis.hset(
                    stats_key,
                    mapping={"timestamp": now, "count": 0, "target": target},
                )
                return target

            target = stats["target"]
            elapsed = now - int(stats["timestamp"])
            if elapsed < self._settings.pow_retarget_period_seconds:
                return target

            solved = int(stats.get("count") or 0)
            new_target = core_pow.retarget(target, solved, self._settings.pow_retarget_count)
            logger.info("Retargeted proof of work after %d solutions: %s", solved, new_target)
            await self._redis.hset(
                stats_key,
                mapping={"timestamp": now, "count": 0, "target": new_target},
            )
            return new_target
        except RedisError as err:
            raise StoreError(f"Unable to read proof of work stats: {err}") from err

    async def get_challenge(self) -> tuple[str, str]:
        """Issue a new single-use challenge and return ``(challenge, target)``."""
        target = await self.get_target()
        challenge = secrets.token_hex(CHALLENGE_BYTES)
        try:
            await self._redis.set(
                self._challenge_key(challenge),
                target,
                ex=self._settings.pow_challenge_ttl_seconds,
            )
        except RedisError as err:
            raise StoreError(f"Unable to store challenge: {err}") from err
        return challenge, target

    async def verify(self, challenge: str | None, nonce: str | None) -> None:
        """Validate a solution and consume its challenge.

        Raises:
            BadRequest: If the challenge is unknown or the solution is wrong.
            StoreError: If Redis fails.
        """
        if not challenge or not nonce:
            raise BadRequest("Challenge not found")

        key = self._challenge_key(challenge)
        try:
            target = _text(await self._redis.get(key))
        except RedisError as err:
            raise StoreError(f"Unable to read challenge: {err}") from err
        if target is None:
            raise BadRequest("Challenge not found")

        if not core_pow.check_solution(challenge, target, nonce):
            raise BadRequest("Invalid proof of work")

        try:
            deleted = await self._redis.delete(key)
            if not deleted:
                # Another request consumed the challenge first.
                raise BadRequest("Challenge not found")
            await self._redis.hincrby(self._settings.pow_stats_key, "count", 1)
        except RedisError as err:
            raise StoreError(f"Unable to record solution: {err}") from err

    async def __call__(self, request: Request) -> None:
        await self.verify(
            request.headers.get(CHALLENGE_HEADER),
            request.headers.get(NONCE_HEADER),
        )
