"""
Shared test fixtures.

Each test gets its own SQLite database file (aiosqlite) with the workflow
tables created, a frozen clock and, for API tests, an ASGI client with the
database session dependency pointed at the test database.
"""

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, List

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.infrastructure.database import Base, get_session
from src.workflow.application import INotifier, StaticPolicyProvider
from src.workflow.domain import ReminderNotice
import src.workflow.infrastructure.models  # noqa: F401  (registers tables on Base)

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingNotifier(INotifier):
    """Notifier that remembers every notice and answers with a fixed result."""

    def __init__(self, accept: bool = True):
        self.accept = accept
        self.notices: List[ReminderNotice] = []

    async def send_reminder(self, notice: ReminderNotice) -> bool:
        self.notices.append(notice)
        return self.accept


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def policy_provider() -> StaticPolicyProvider:
    return StaticPolicyProvider()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'workflow.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_maker, notifier) -> AsyncGenerator[AsyncClient, None]:
    """
    ASGI test client against the real app.

    The lifespan is not run, so the routes fall back to the default SLA
    policy; the notifier is replaced with a recording one.
    """
    from src.main import app

    async def _session_override() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = _session_override
    app.state.notifier = notifier

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
    del app.state.notifier
