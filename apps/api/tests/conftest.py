"""
Pytest Configuration and Fixtures
"""
import os

# Settings are read once at import time, so configure before importing the app
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CACHE_ENABLED"] = "false"
os.environ["PULSE_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["WALLET_ENCRYPTION_KEY"] = "test-wallet-key"
os.environ["SOLANA_RPC_URLS"] = '["http://127.0.0.1:9"]'
os.environ["RPC_TIMEOUT_SECONDS"] = "1"
os.environ["JUPITER_API_BASE"] = "http://127.0.0.1:9"
os.environ["LLM_API_KEY"] = ""

import base64

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool
from solders.keypair import Keypair

import app.models  # noqa: F401
from app.database import Base, get_session
from app.models import Agent, User
from app.services.wallet_locks import wallet_locks
from app.services.wallet_manager import wallet_manager
from app.services.websocket_manager import manager


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture
def anyio_backend():
    """Specify async backend"""
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_process_state():
    """Locks and sockets are process-wide; start every test clean."""
    wallet_locks._locks.clear()
    manager.active_connections.clear()
    yield
    wallet_locks._locks.clear()
    manager.active_connections.clear()


# ============== Database ==============

@pytest.fixture
async def db_engine():
    """In-memory database shared by every connection of one test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker):
    """Create test database session"""
    async with session_maker() as session:
        yield session


# ============== HTTP client ==============

@pytest.fixture
async def client(db_session):
    """Async test client with the database dependency overridden"""
    from app.main import app
    from app.cache import init_cache

    async def _get_test_session():
        yield db_session

    app.dependency_overrides[get_session] = _get_test_session
    await init_cache()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ============== Domain helpers ==============

@pytest.fixture
def user_keypair():
    """The user's own (non-custodial) wallet"""
    return Keypair()


def sign_message(keypair: Keypair, message: str) -> str:
    """Detached signature, base64 encoded the way wallet adapters send it."""
    return base64.b64encode(bytes(keypair.sign_message(message.encode("utf-8")))).decode("ascii")


async def login(client: AsyncClient, keypair: Keypair) -> dict:
    """Run nonce → sign → verify and return the session response body."""
    address = str(keypair.pubkey())
    nonce_resp = await client.post("/api/v1/auth/nonce", json={"wallet_address": address})
    assert nonce_resp.status_code == 200, nonce_resp.text
    message = nonce_resp.json()["message"]

    verify_resp = await client.post(
        "/api/v1/auth/verify",
        json={"wallet_address": address, "signature": sign_message(keypair, message), "message": message},
    )
    assert verify_resp.status_code == 200, verify_resp.text
    return verify_resp.json()


def auth_headers(session_body: dict) -> dict:
    return {"Authorization": f"Bearer {session_body['access_token']}"}


@pytest.fixture
async def user_with_wallet(db_session, user_keypair):
    """A persisted user with a freshly provisioned custodial wallet"""
    user = User(wallet_address=str(user_keypair.pubkey()))
    db_session.add(user)
    await db_session.flush()
    wallet = await wallet_manager.create_wallet(db_session, user)
    await db_session.commit()
    return user, wallet


@pytest.fixture
async def running_agent(db_session, user_with_wallet):
    """A running token_sniper agent owned by ``user_with_wallet``"""
    user, wallet = user_with_wallet
    agent = Agent(
        user_id=user.id,
        managed_wallet_id=wallet.id,
        name="Sniper",
        task_type="token_sniper",
        status="running",
        budget_limit=5.0,
    )
    db_session.add(agent)
    await db_session.commit()
    return agent
