"""Pytest configuration and fixtures."""

import asyncio
import json
import os
from datetime import date, timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio

# Set test environment variables before importing app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("BASE_URL", "https://bridge.example.com")
os.environ.setdefault("DISPLAY_TIMEZONE", "UTC")

from app.models import (  # noqa: E402
    ActivityLog,
    Appointment,
    Base,
    CareGroup,
    CareGroupMember,
    Contact,
    Document,
    Profile,
    Task,
)
from app.models.base import utcnow  # noqa: E402
from app.services import realtime_session  # noqa: E402
from app.services.database import build_session_factory  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

GROUP_ID = "grp-1"
OTHER_GROUP_ID = "grp-2"
EMPTY_GROUP_ID = "grp-empty"


@pytest_asyncio.fixture
async def db_engine():
    """Create test database engine with the schema in place."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def writable_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Plain session used only to seed test data."""
    maker = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with maker() as session:
        yield session


@pytest.fixture
def session_factory(db_engine):
    """Read-only session factory, as used by the running service."""
    return build_session_factory(db_engine)


@pytest_asyncio.fixture
async def db_session(session_factory, seeded) -> AsyncGenerator[AsyncSession, None]:
    """Read-only session over the seeded database."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded(writable_session: AsyncSession):
    """
    Seed two care groups plus one with no records.

    Margaret Rose (grp-1) calls from 555-000-2222. Dana Lee (555-000-1111) is a
    member of grp-1 and grp-2.

    grp-1 has a mix of live, deleted, past and future rows for every lookup;
    grp-2 has rows that must never leak into grp-1 answers.
    """
    now = utcnow()
    today = date.today()

    dana = Profile(user_id="user-dana", first_name="Dana", last_name="Lee", phone="5550001111")
    writable_session.add(dana)

    writable_session.add_all(
        [
            CareGroup(
                id=GROUP_ID,
                name="Rose Family",
                recipient_first_name="Margaret",
                recipient_last_name="Rose",
                recipient_phone="5550002222",
                date_of_birth=date(1941, 4, 2),
                chronic_conditions="Type 2 diabetes",
                mobility="Uses a walker",
            ),
            CareGroup(
                id=OTHER_GROUP_ID,
                name="Other Family",
                recipient_first_name="Walter",
                recipient_last_name="Green",
            ),
            CareGroup(id=EMPTY_GROUP_ID, name="Empty Family", recipient_first_name="Ida"),
        ]
    )
    await writable_session.flush()

    # Dana joined grp-1 first, then grp-2
    writable_session.add_all(
        [
            CareGroupMember(
                id="mem-1",
                group_id=GROUP_ID,
                user_id="user-dana",
                is_admin=True,
                created_at=now - timedelta(days=30),
            ),
            CareGroupMember(
                id="mem-2",
                group_id=OTHER_GROUP_ID,
                user_id="user-dana",
                created_at=now - timedelta(days=2),
            ),
        ]
    )

    writable_session.add_all(
        [
            Appointment(
                id="apt-soon",
                group_id=GROUP_ID,
                description="Cardiology follow-up",
                date_time=now + timedelta(days=2),
                category="medical",
                street_address="12 Elm Street",
            ),
            Appointment(
                id="apt-later",
                group_id=GROUP_ID,
                description="Eye exam",
                date_time=now + timedelta(days=20),
            ),
            Appointment(
                id="apt-past",
                group_id=GROUP_ID,
                description="Dental cleaning",
                date_time=now - timedelta(days=5),
            ),
            Appointment(
                id="apt-deleted",
                group_id=GROUP_ID,
                description="Cancelled podiatry",
                date_time=now + timedelta(days=3),
                is_deleted=True,
            ),
            Appointment(
                id="apt-other",
                group_id=OTHER_GROUP_ID,
                description="Other group physio",
                date_time=now + timedelta(days=1),
            ),
        ]
    )

    writable_session.add_all(
        [
            Task(
                id="task-undated",
                group_id=GROUP_ID,
                title="Sort mail",
            ),
            Task(
                id="task-refill",
                group_id=GROUP_ID,
                title="Refill prescriptions",
                due_date=today + timedelta(days=3),
                priority="high",
                primary_owner_id="user-dana",
            ),
            Task(
                id="task-forms",
                group_id=GROUP_ID,
                title="Insurance forms",
                due_date=today + timedelta(days=10),
            ),
            Task(
                id="task-done",
                group_id=GROUP_ID,
                title="Book ride to clinic",
                due_date=today - timedelta(days=1),
                completed_at=now - timedelta(days=1),
            ),
            Task(
                id="task-other",
                group_id=OTHER_GROUP_ID,
                title="Other group task",
            ),
        ]
    )

    writable_session.add_all(
        [
            Document(
                id="doc-labs",
                group_id=GROUP_ID,
                title="Lab Results March",
                original_filename="labs.pdf",
                summary="A1C slightly elevated at 7.2. " * 10,
                upload_date=now - timedelta(days=2),
            ),
            Document(
                id="doc-discharge",
                group_id=GROUP_ID,
                title="Discharge summary",
                original_filename="discharge.pdf",
                summary="Discharged home with walker.",
                upload_date=now - timedelta(days=30),
            ),
            Document(
                id="doc-unsummarized",
                group_id=GROUP_ID,
                title="Lab scan pending",
                original_filename="scan.pdf",
                summary=None,
                upload_date=now,
            ),
        ]
    )

    writable_session.add_all(
        [
            Contact(
                id="contact-doctor",
                care_group_id=GROUP_ID,
                first_name="Alan",
                last_name="Patel",
                title="Cardiologist",
                contact_type="doctor",
                phone_primary="555-0100",
            ),
            Contact(
                id="contact-pharmacy",
                care_group_id=GROUP_ID,
                organization_name="Main Street Pharmacy",
                contact_type="pharmacy",
                phone_primary="555-0200",
            ),
            Contact(
                id="contact-deleted",
                care_group_id=GROUP_ID,
                first_name="Old",
                last_name="Doctor",
                contact_type="doctor",
                is_deleted=True,
            ),
        ]
    )

    writable_session.add_all(
        [
            ActivityLog(
                id="act-recent",
                group_id=GROUP_ID,
                title="Home visit",
                type="visit",
                date_time=now - timedelta(days=2),
                notes="Blood pressure normal, appetite good",
            ),
            ActivityLog(
                id="act-old",
                group_id=GROUP_ID,
                title="Phone check-in",
                type="call",
                date_time=now - timedelta(days=10),
            ),
        ]
    )

    await writable_session.commit()
    return GROUP_ID


# ============================================================================
# Fake call legs
# ============================================================================


class FakeTelephony:
    """In-memory stand-in for the Starlette WebSocket Twilio connects on."""

    def __init__(self):
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent = []
        self.closed = False
        self.close_code = None
        self.close_reason = None

    def feed(self, message: dict):
        self.incoming.put_nowait(json.dumps(message))

    def hang_up(self):
        self.incoming.put_nowait(None)

    async def iter_text(self):
        while True:
            message = await self.incoming.get()
            if message is None:
                return
            yield message

    async def send_text(self, data: str):
        if self.closed:
            raise RuntimeError("Cannot call send once a close message has been sent.")
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000, reason: str = None):
        if self.closed:
            raise RuntimeError("Cannot call send once a close message has been sent.")
        self.closed = True
        self.close_code = code
        self.close_reason = reason
        self.hang_up()


class FakeRealtimeSocket:
    """In-memory stand-in for the OpenAI Realtime client connection."""

    def __init__(self, url: str, headers):
        self.url = url
        self.headers = dict(headers or {})
        self.sent = []
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def push(self, event: dict):
        self.inbox.put_nowait(json.dumps(event))

    def drop(self):
        """Simulate the remote side closing the connection."""
        self.inbox.put_nowait(None)

    def sent_types(self):
        return [event["type"] for event in self.sent]

    async def send(self, data: str):
        self.sent.append(json.loads(data))

    def __aiter__(self):
        return self

    async def __anext__(self):
        message = await self.inbox.get()
        if message is None:
            raise StopAsyncIteration
        return message

    async def close(self):
        if not self.closed:
            self.closed = True
            self.drop()


@pytest.fixture
def telephony() -> FakeTelephony:
    return FakeTelephony()


@pytest.fixture
def realtime_sockets(monkeypatch):
    """Patch the Realtime connect call; returns the list of sockets opened."""
    sockets = []

    async def fake_connect(url, additional_headers=None, open_timeout=None):
        socket = FakeRealtimeSocket(url, additional_headers)
        sockets.append(socket)
        return socket

    monkeypatch.setattr(realtime_session.websockets, "connect", fake_connect)
    return sockets


@pytest.fixture
def eventually():
    """Wait until a condition holds, yielding to the event loop between checks."""

    async def wait(predicate, timeout: float = 2.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("Condition not met before timeout")
            await asyncio.sleep(0.01)

    return wait


def start_event(scope_id: str = None, stream_sid: str = "MZ-test", **extra) -> dict:
    custom = dict(extra)
    if scope_id:
        custom["scopeId"] = scope_id
    return {
        "event": "start",
        "start": {"streamSid": stream_sid, "callSid": "CA-test", "customParameters": custom},
    }


def media_event(payload: str) -> dict:
    return {"event": "media", "media": {"payload": payload}}


@pytest.fixture
def events():
    """Builders for Twilio media stream events."""

    class Events:
        start = staticmethod(start_event)
        media = staticmethod(media_event)
        stop = staticmethod(lambda: {"event": "stop"})

    return Events
