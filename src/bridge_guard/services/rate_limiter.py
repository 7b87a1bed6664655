"""Fixed-capacity rate limiting with lazily reset windows.

Each logical key (by default path, method and remote address) owns a window
``{total, remaining, reset}`` stored as JSON in a shared key-value store with
a TTL equal to the window length. A new window only starts when a request
arrives after ``reset``; nothing runs on a schedule.

The read-modify-write on a window is not atomic. Concurrent requests for the
same key may observe the same ``remaining`` value, which makes the count an
approximation under contention.
"""
from __future__ import annotations

import inspect
import json
import logging
import math
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import asdict, dataclass

from fastapi import Request, Response
from redis.exceptions import RedisError

from bridge_guard.core.errors import RateLimitExceeded, ServiceError, StoreError
from bridge_guard.repositories.stores import WindowStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "rateLimit"
MILLISECONDS_PER_SECOND = 1000

LIMIT_HEADER = "X-RateLimit-Limit"
REMAINING_HEADER = "X-RateLimit-Remaining"
RESET_HEADER = "X-RateLimit-Reset"
RETRY_AFTER_HEADER = "Retry-After"

Lookup = Callable[[Request], Sequence[object]]
KeyFormatter = Callable[[Sequence[object]], str]
Whitelist = Callable[[Request], bool]
RateLimitedHandler = Callable[["Request", "RateLimitWindow"], Awaitable[None] | None]


@dataclass
class RateLimitWindow:
    """Counter state for one key.

    Attributes:
        total: Window capacity.
        remaining: Requests left, floored at -1.
        reset: Unix epoch milliseconds at which the window ends.
    """

    total: int
    remaining: int
    reset: int

    @classmethod
    def fresh(cls, total: int, expire: int, now: int) -> RateLimitWindow:
        return cls(total=total, remaining=total, reset=now + expire)

    @classmethod
    def loads(cls, raw: str | bytes) -> RateLimitWindow:
        data = json.loads(raw)
        return cls(
            total=int(data["total"]),
            remaining=int(data["remaining"]),
            reset=int(data["reset"]),
        )

    def dumps(self) -> str:
        return json.dumps(asdict(self))

    def consume(self) -> None:
        """Take one request out of the window without going below -1."""
        self.remaining = max(self.remaining - 1, -1)

    @property
    def exhausted(self) -> bool:
        return self.remaining < 0

    def headers(self) -> dict[str, str]:
        """Informational headers; remaining is never shown negative."""
        return {
            LIMIT_HEADER: str(self.total),
            REMAINING_HEADER: str(max(self.remaining, 0)),
            RESET_HEADER: str(math.ceil(self.reset / MILLISECONDS_PER_SECOND)),
        }

    def retry_after(self, now: int) -> int:
        """Whole seconds until the window resets."""
        return max(math.ceil((self.reset - now) / MILLISECONDS_PER_SECOND), 0)


def default_lookup(request: Request) -> list[str]:
    remote_address = request.client.host if request.client else ""
    return [request.url.path, request.method, remote_address]


def default_key_formatter(parts: Sequence[object]) -> str:
    return ":".join([KEY_PREFIX, *(str(part) for part in parts)])


def _now_ms() -> int:
    return int(time.time() * MILLISECONDS_PER_SECOND)


async def reject(request: Request, window: RateLimitWindow) -> None:
    """Default handler for an exhausted window: fail with a 429."""
    raise RateLimitExceeded("Rate limit exceeded")


class RateLimiter:
    """FastAPI dependency enforcing a per-key request budget.

    Args:
        store: Async key-value store, e.g. ``redis.asyncio.Redis``.
        total: Window capacity. Zero blocks every matching request.
        expire: Window length in milliseconds.
        lookup: Builds key parts from a request.
        key_formatter: Joins key parts into a storage key.
        whitelist: Requests for which it returns True bypass limiting.
        on_rate_limited: Called instead of the default 429 when a window is
            exhausted. Raising rejects the request; returning admits it.
        skip_headers: Do not emit the informational headers.
        ignore_errors: Admit the request when the store read fails.
        now_ms: Clock returning Unix epoch milliseconds.
    """

    def __init__(
        self,
        store: WindowStore,
        total: int,
        expire: int,
        *,
        lookup: Lookup = default_lookup,
        key_formatter: KeyFormatter = default_key_formatter,
        whitelist: Whitelist | None = None,
        on_rate_limited: RateLimitedHandler = reject,
        skip_headers: bool = False,
        ignore_errors: bool = False,
        now_ms: Callable[[], int] = _now_ms,
    ) -> None:
        if total < 0:
            raise ValueError("total must not be negative")
        if expire <= 0:
            raise ValueError("expire must be positive")
        self.store = store
        self.total = total
        self.expire = expire
        self.lookup = lookup
        self.key_formatter = key_formatter
        self.whitelist = whitelist
        self.on_rate_limited = on_rate_limited
        self.skip_headers = skip_headers
        self.ignore_errors = ignore_errors
        self._now_ms = now_ms

    async def __call__(self, request: Request, response: Response) -> None:
        if self.whitelist is not None and self.whitelist(request):
            return

        key = self.key_formatter(self.lookup(request))
        try:
            raw = await self.store.get(key)
        except (RedisError, StoreError) as err:
            if self.ignore_errors:
                logger.warning("Rate limit store unavailable, admitting %s: %s", key, err)
                return
            raise StoreError(f"Rate limit lookup failed: {err}") from err

        now = self._now_ms()
        window = self._load(raw, now)
        window.consume()

        try:
            await self.store.set(key, window.dumps(), px=self.expire)
        except (RedisError, StoreError) as err:
            logger.warning("Failed to persist rate limit window %s: %s", key, err)

        headers = {} if self.skip_headers else window.headers()
        response.headers.update(headers)

        if not window.exhausted:
            return

        if not self.skip_headers:
            headers[RETRY_AFTER_HEADER] = str(window.retry_after(self._now_ms()))
            response.headers.update(headers)

        try:
            result = self.on_rate_limited(request, window)
            if inspect.isawaitable(result):
                await result
        except ServiceError as exc:
            exc.headers = {**headers, **exc.headers}
            raise

    def _load(self, raw: str | bytes | None, now: int) -> RateLimitWindow:
        if raw is None:
            return RateLimitWindow.fresh(self.total, self.expire, now)
        try:
            window = RateLimitWindow.loads(raw)
        except (ValueError, KeyError, TypeError):
            logger.warning("Discarding unreadable rate limit window")
            return RateLimitWindow.fresh(self.total, self.expire, now)
        if now > window.reset:
            window.reset = now + self.expire
            window.remaining = self.total
        return window
