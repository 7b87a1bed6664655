# tests/conftest.py
from __future__ import annotations

import base64
from collections.abc import Iterator
from typing import Any

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from bridge_guard.api.dependencies import IdentityDep
from bridge_guard.core.security import hash_secret
from bridge_guard.core.settings import Settings
from bridge_guard.db.session import create_tables, drop_tables
from bridge_guard.main import create_app
from bridge_guard.models import PublicKey, User
from bridge_guard.services.signing import payload_hash

TEST_DB_URL = "sqlite://"


class FakeRedis:
    """In-memory stand-in for the subset of ``redis.asyncio.Redis`` we use."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}
        self.ttls: dict[str, int] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.get_calls = 0

    def _check(self, failing: bool) -> None:
        if failing:
            raise RedisConnectionError("redis unavailable")

    async def get(self, key: str) -> str | None:
        self.get_calls += 1
        self._check(self.fail_reads)
        return self.data.get(key)

    async def set(self, key: str, value: Any, *, px: int | None = None, ex: int | None = None) -> bool:
        self._check(self.fail_writes)
        self.data[key] = str(value)
        if px is not None:
            self.ttls[key] = px
        elif ex is not None:
            self.ttls[key] = ex * 1000
        return True

    async def delete(self, *keys: str) -> int:
        self._check(self.fail_writes)
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def hgetall(self, key: str) -> dict[str, str]:
        self._check(self.fail_reads)
        return dict(self.data.get(key, {}))

    async def hset(self, key: str, mapping: dict[str, Any]) -> int:
        self._check(self.fail_writes)
        bucket = self.data.setdefault(key, {})
        bucket.update({field: str(value) for field, value in mapping.items()})
        return len(mapping)

    async def hincrby(self, key: str, field: str, amount: int = 1) -> int:
        self._check(self.fail_writes)
        bucket = self.data.setdefault(key, {})
        bucket[field] = str(int(bucket.get(field, 0)) + amount)
        return int(bucket[field])


class ManualClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 0) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def tick(self, ms: int) -> None:
        self.now += ms


class Signer:
    """secp256k1 client key producing gateway request signatures."""

    def __init__(self) -> None:
        self.private_key = ec.generate_private_key(ec.SECP256K1())
        self.pubkey_hex = self.private_key.public_key().public_bytes(
            serialization.Encoding.X962,
            serialization.PublicFormat.CompressedPoint,
        ).hex()

    def sign(self, method: str, path: str, payload: str) -> str:
        digest = bytes.fromhex(payload_hash(method, path, payload))
        return self.private_key.sign(digest, ec.ECDSA(Prehashed(hashes.SHA256()))).hex()

    def headers(self, method: str, path: str, payload: str) -> dict[str, str]:
        return {
            "x-pubkey": self.pubkey_hex,
            "x-signature": self.sign(method, path, payload),
        }


def basic_auth(name: str, secret: str) -> dict[str, str]:
    token = base64.b64encode(f"{name}:{secret}".encode()).decode()
    return {"Authorization": f"Basic {token}"}


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(engine)
    try:
        yield engine
    finally:
        drop_tables(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db_session(session_factory: sessionmaker) -> Iterator[Session]:
    with session_factory() as session:
        yield session


@pytest.fixture()
def signer() -> Signer:
    return Signer()


@pytest.fixture()
def seeded_users(db_session: Session, signer: Signer) -> dict[str, User]:
    """Persist one user per role plus an inactive account."""
    users = {
        "admin": User(id="admin@example.com", hashpass=hash_secret("admin-secret"), activated=True, role="admin"),
        "moderator": User(
            id="mod@example.com", hashpass=hash_secret("mod-secret"), activated=True, role="moderator"
        ),
        "user": User(id="user@example.com", hashpass=hash_secret("user-secret"), activated=True, role="user"),
        "inactive": User(
            id="inactive@example.com", hashpass=hash_secret("inactive-secret"), activated=False, role="user"
        ),
    }
    db_session.add_all(users.values())
    db_session.add(PublicKey(key=signer.pubkey_hex, user_id=users["user"].id, label="laptop"))
    db_session.commit()
    return users


@pytest.fixture()
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        RATE_LIMIT_TOTAL=5,
        RATE_LIMIT_EXPIRE_MS=60_000,
        POW_INITIAL_TARGET="f" * 64,
    )


@pytest.fixture()
def app(
    test_settings: Settings,
    session_factory: sessionmaker,
    fake_redis: FakeRedis,
    seeded_users: dict[str, User],
    clock: ManualClock,
) -> FastAPI:
    app = create_app(test_settings, session_factory=session_factory, redis=fake_redis)
    guards = app.state.guards
    authenticated = [Depends(guards.authenticate)]

    @app.get("/files", dependencies=authenticated)
    async def list_files(identity: IdentityDep) -> dict[str, Any]:
        return {
            "user": identity.user.id,
            "pubkey": identity.public_key.key if identity.public_key else None,
        }

    @app.post("/files", dependencies=authenticated)
    async def create_file(identity: IdentityDep) -> dict[str, Any]:
        return {"user": identity.user.id}

    @app.get("/admin", dependencies=[*authenticated, Depends(guards.require_role("admin"))])
    async def admin_only() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/reports", dependencies=[*authenticated, Depends(guards.require_role("user"))])
    async def reports() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/route", dependencies=[Depends(guards.rate_limit(total=10, expire=60 * 60 * 1000, now_ms=clock))])
    async def limited() -> dict[str, str]:
        return {"status": "hello"}

    @app.post("/contacts", dependencies=[Depends(guards.pow)])
    async def contacts() -> dict[str, str]:
        return {"status": "created"}

    return app


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test", raise_server_exceptions=False) as test_client:
        yield test_client
