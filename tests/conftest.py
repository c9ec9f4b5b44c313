"""Pytest configuration and fixtures."""
import os

os.environ.setdefault("AUTH_JWT_SECRET", "test-secret-for-unit-tests-only-32char")
os.environ.setdefault("AUTH_BCRYPT_ROUNDS", "4")
os.environ.setdefault("AUTH_SWEEP_INTERVAL_SEC", "0")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from authgate.db.database import create_schema, make_engine, make_session_factory
from authgate.db.repositories.token_repo import TokenLedger
from authgate.db.repositories.user_repo import UserStore
from authgate.main import app
from authgate.service.auth_service import AuthService
from authgate.utils.security import TokenSigner

SECRET = os.environ["AUTH_JWT_SECRET"]


@pytest_asyncio.fixture
async def sessions(tmp_path):
    """File-backed SQLite so concurrent transactions get real connections."""
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'auth.db'}")
    await create_schema(engine)
    yield make_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def ledger(sessions):
    return TokenLedger(sessions)


@pytest.fixture
def users(sessions):
    return UserStore(sessions, bcrypt_rounds=4)


@pytest.fixture
def signer():
    return TokenSigner(secret=SECRET)


@pytest.fixture
def service(users, ledger, signer):
    return AuthService(users=users, ledger=ledger, signer=signer)


@pytest_asyncio.fixture
async def alice(service):
    """Registered user alice/pw123456."""
    gate = await service.issue_registration_gate()
    bundle = await service.register("alice", "pw123456", gate.token)
    return bundle


@pytest_asyncio.fixture
async def client(service):
    app.state.auth_service = service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
