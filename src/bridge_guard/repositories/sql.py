"""SQLAlchemy-backed implementations of the collaborator store contracts."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from bridge_guard.core.errors import DuplicateNonce, StoreError
from bridge_guard.core.security import hash_secret
from bridge_guard.models import PublicKey, User, UserNonce

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]
T = TypeVar("T")


def _is_unique_violation(err: IntegrityError) -> bool:
    message = str(err.orig).lower()
    return "unique" in message or "duplicate" in message


class _SqlStore:
    """Runs blocking session work on the threadpool, one session per call."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def _run(self, work: Callable[[Session], T]) -> T:
        def _call() -> T:
            with self._session_factory() as session:
                return work(session)

        try:
            return await run_in_threadpool(_call)
        except StoreError:
            raise
        except SQLAlchemyError as err:
            logger.warning("Store operation failed: %s", err)
            raise StoreError(str(err)) from err


class SqlUserStore(_SqlStore):
    """User lookups by id or by basic credentials."""

    async def find_by_id(self, user_id: str) -> User | None:
        return await self._run(lambda session: session.get(User, user_id))

    async def lookup_by_credentials(self, name: str, secret: str) -> User | None:
        """Return the user when `secret` hashes to the stored password hash."""
        expected = hash_secret(secret)

        def _lookup(session: Session) -> User | None:
            user = session.get(User, name)
            if user is None or not secrets.compare_digest(user.hashpass, expected):
                return None
            return user

        return await self._run(_lookup)


class SqlPublicKeyStore(_SqlStore):
    async def find_by_id(self, key_id: str) -> PublicKey | None:
        return await self._run(lambda session: session.get(PublicKey, key_id))


class SqlNonceStore(_SqlStore):
    """Nonce ledger relying on the (user_id, nonce) unique constraint."""

    async def insert_unique(self, user_id: str, nonce: str) -> None:
        def _insert(session: Session) -> None:
            session.add(UserNonce(user_id=user_id, nonce=nonce))
            try:
                session.commit()
            except IntegrityError as err:
                session.rollback()
                if not _is_unique_violation(err):
                    raise
                raise DuplicateNonce(f"Nonce already used: {nonce}") from err

        await self._run(_insert)
