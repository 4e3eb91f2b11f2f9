"""
Test fixtures - in-memory SQLite database, in-process cache with a fake
clock, mocked classifier/WhatsApp clients and an HTTP client for the app
"""
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from taskbot.api.webhooks import BotServices, get_bot_services
from taskbot.config import get_settings
from taskbot.database import Base, get_db
from taskbot.main import app
from taskbot.models.financial import FinancialSettings, MARKETING_RATE, RENTAL_RATE, TAX_RATE
from taskbot.models.user import Role, User
from taskbot.services.cache import InMemoryCache
from taskbot.services.claude_service import ClaudeService
from taskbot.services.conversation_memory import ConversationMemory
from taskbot.services.whatsapp_client import WhatsAppClient


class FakeClock:
    """Manually advanced clock shared by the cache and conversation memory"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest_asyncio.fixture()
async def session_factory():
    # one shared connection so every session sees the same in-memory database
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(session_factory):
    """Create a fresh in-memory SQLite database for each test"""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def seed_data(db_session):
    """One user per role, a user without any contact, and the default rates"""
    boss = User(username="boss", email="boss@example.com", phone_number="628111",
                whatsapp_number="628111", role=Role.SUPER_ADMIN)
    manager = User(username="manager", email="manager@example.com", phone_number="628222",
                   whatsapp_number="628222", role=Role.ADMIN)
    worker = User(username="worker", email="worker@example.com", phone_number="08333",
                  whatsapp_number="628333", role=Role.USER)
    silent = User(username="silent", email="silent@example.com", role=Role.USER)
    db_session.add_all([boss, manager, worker, silent])

    db_session.add_all([
        FinancialSettings(setting_name=TAX_RATE, percentage_value=10.0, is_active=True),
        FinancialSettings(setting_name=MARKETING_RATE, percentage_value=5.0, is_active=True),
        FinancialSettings(setting_name=RENTAL_RATE, percentage_value=3.0, is_active=True),
    ])
    await db_session.commit()
    for user in (boss, manager, worker, silent):
        await db_session.refresh(user)

    return {"boss": boss, "manager": manager, "worker": worker, "silent": silent}


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def cache(clock):
    return InMemoryCache(clock=clock)


@pytest.fixture()
def memory(cache, clock):
    return ConversationMemory(cache, limit=3, ttl_seconds=600, clock=clock)


@pytest.fixture()
def classifier():
    """Configured classifier whose classify() tests patch per case"""
    service = ClaudeService(get_settings(), client=MagicMock())
    service.classify = AsyncMock(return_value='{"type": "general", "data": {}, "message": "Hello!"}')
    return service


@pytest.fixture()
def whatsapp():
    client = WhatsAppClient(get_settings())
    client.send_text = AsyncMock(return_value=None)
    return client


@pytest.fixture()
def bot(cache, classifier, whatsapp):
    return BotServices(settings=get_settings(), cache=cache, classifier=classifier, whatsapp=whatsapp)


@pytest_asyncio.fixture()
async def client(db_session, seed_data, bot):
    """httpx AsyncClient bound to the FastAPI app"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_bot_services] = lambda: bot

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac

    app.dependency_overrides.clear()
