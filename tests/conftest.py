# tests/conftest.py - Shared test fixtures
import os
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

os.environ["ENVIRONMENT"] = "test"
os.environ["SWEEP_INTERVAL_SECONDS"] = "0"
os.environ["SMTP_HOST"] = ""
os.environ["SLOW_METHOD_THRESHOLD_MS"] = "1000"

from src.infrastructure.database import Base, enable_sqlite_savepoints, get_session
from src.main import app
from src.notifications.application import IEmailSender
from src.notifications.domain import EmailMessage
from src.notifications.interfaces.dependencies import get_email_sender
from src.workflow.infrastructure.models import EpicModel, ProjectModel, UserModel


class RecordingEmailSender(IEmailSender):
    """Email sender that keeps every message instead of delivering it."""

    def __init__(self, fail_for: tuple = ()):
        self.sent: list[EmailMessage] = []
        self.attachments: list[tuple[str, bytes]] = []
        self.fail_for = set(fail_for)

    async def send(self, to: str, subject: str, body: str) -> bool:
        if to in self.fail_for:
            return False
        self.sent.append(EmailMessage(to, subject, body))
        return True

    async def send_with_attachment(self, to, subject, body, filename, content) -> bool:
        if to in self.fail_for:
            return False
        self.sent.append(EmailMessage(to, subject, body))
        self.attachments.append((filename, content))
        return True

    def subjects(self) -> list[str]:
        return [m.subject for m in self.sent]


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    engine = enable_sqlite_savepoints(
        create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def email_sender():
    return RecordingEmailSender()


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, email_sender):
    """HTTP test client with overridden DB session and email sender"""

    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def _add(session, obj):
    session.add(obj)
    await session.flush()
    await session.refresh(obj)
    # Ends the transaction so no read lock is held while the client writes
    await session.commit()
    return obj


@pytest_asyncio.fixture
async def admin_user(db_session):
    """Administrator with access level 5"""
    return await _add(db_session, UserModel(
        username="admin", email="admin@enterprise.com", role="ADMIN", access_level=5
    ))


@pytest_asyncio.fixture
async def manager_user(db_session):
    """Manager with access level 4"""
    return await _add(db_session, UserModel(
        username="manager", email="manager@enterprise.com", role="MANAGER", access_level=4
    ))


@pytest_asyncio.fixture
async def employee_user(db_session):
    """Employee with access level 2"""
    return await _add(db_session, UserModel(
        username="employee", email="employee@enterprise.com", role="EMPLOYEE", access_level=2
    ))


@pytest_asyncio.fixture
async def project(db_session, manager_user):
    return await _add(db_session, ProjectModel(
        name="Platform", description="Core platform", manager_id=manager_user.id
    ))


@pytest_asyncio.fixture
async def epic(db_session, project):
    return await _add(db_session, EpicModel(name="Onboarding", project_id=project.id))


def user_headers(user) -> dict:
    """Headers identifying the acting user"""
    return {"X-User-Id": str(user.id)}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
