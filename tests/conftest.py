"""
ndrop: pytest fixtures and configuration.

Provides:
- A throwaway SQLite file database (schema recreated per test)
- `db_session` for direct ORM access
- `client`: httpx AsyncClient bound to the app with dependency overrides
- `factory`: helpers that create users, admins, events, participants,
  slots, meetings and auth headers
"""
import os
import tempfile
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator, Optional

# Settings are read at import time; configure the environment first.
# This module may be imported both as `conftest` and `tests.conftest`;
# both must point at the same database file.
_DB_DIR = os.environ.setdefault("NDROP_TEST_DB_DIR", tempfile.mkdtemp(prefix="ndrop-tests-"))
TEST_DATABASE_URL = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["NOTIFICATIONS_PRIVILEGED_DATABASE_URL"] = ""
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.api import deps
from app.core.notifications.dispatcher import NotificationDispatcher, build_dispatcher
from app.db.models import (
    AdminAccount,
    Base,
    Event,
    EventParticipant,
    Meeting,
    TimeSlot,
    UserProfile,
)
from app.db.models.meeting import pair_key
from app.main import app
from app.utils.security import create_access_token

test_engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)

TestingSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@pytest_asyncio.fixture(autouse=True)
async def _schema() -> AsyncGenerator[None, None]:
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    async with TestingSessionLocal() as session:
        yield session


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    async def _get_db() -> AsyncGenerator[AsyncSession, None]:
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[deps.get_db] = _get_db
    app.dependency_overrides[deps.get_session_factory] = lambda: TestingSessionLocal
    app.dependency_overrides[deps.get_privileged_session_factory] = lambda: TestingSessionLocal

    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


def dispatcher_for(actor_id: Optional[uuid.UUID], *, privileged_enabled: bool = True) -> NotificationDispatcher:
    return build_dispatcher(
        actor_id=actor_id,
        session_factory=TestingSessionLocal,
        privileged_session_factory=TestingSessionLocal,
        privileged_enabled=privileged_enabled,
    )


def auth_headers(user_id: uuid.UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


class Factory:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def user(self, nickname: str = "user", **fields: Any) -> UserProfile:
        profile = UserProfile(id=uuid.uuid4(), nickname=nickname, **fields)
        self.session.add(profile)
        await self.session.commit()
        return profile

    async def admin(self, nickname: str = "admin", **fields: Any) -> UserProfile:
        profile = await self.user(nickname, **fields)
        self.session.add(AdminAccount(id=profile.id))
        await self.session.commit()
        return profile

    async def event(self, title: str = "Test Meetup", **fields: Any) -> Event:
        start = datetime(2026, 11, 5, 9, 0, tzinfo=timezone.utc)
        values = {
            "id": uuid.uuid4(),
            "title": title,
            "start_date": start,
            "end_date": start + timedelta(hours=9),
            "event_code": uuid.uuid4().hex[:8].upper(),
        }
        values.update(fields)
        event = Event(**values)
        self.session.add(event)
        await self.session.commit()
        return event

    async def join(self, event: Event, *users: UserProfile, status: str = "confirmed") -> None:
        for u in users:
            self.session.add(EventParticipant(event_id=event.id, user_id=u.id, status=status))
        await self.session.commit()

    async def slot(self, event: Event, *, offset_minutes: int = 60, is_blocked: bool = False) -> TimeSlot:
        start = event.start_date + timedelta(minutes=offset_minutes)
        slot = TimeSlot(
            id=uuid.uuid4(),
            event_id=event.id,
            start_time=start,
            end_time=start + timedelta(minutes=30),
            is_blocked=is_blocked,
        )
        self.session.add(slot)
        await self.session.commit()
        return slot

    async def meeting(
        self,
        event: Event,
        requester: UserProfile,
        receiver: UserProfile,
        *,
        status: str = "pending",
        slot: Optional[TimeSlot] = None,
    ) -> Meeting:
        meeting = Meeting(
            id=uuid.uuid4(),
            event_id=event.id,
            requester_id=requester.id,
            receiver_id=receiver.id,
            status=status,
            slot_id=slot.id if slot is not None else None,
            pair_key=pair_key(requester.id, receiver.id),
        )
        self.session.add(meeting)
        await self.session.commit()
        return meeting


@pytest_asyncio.fixture
async def factory(db_session: AsyncSession) -> Factory:
    return Factory(db_session)


@pytest.fixture
def headers():
    return auth_headers
