import os

# Settings are read at import time; point them at throwaway values before the app is imported.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"

from typing import AsyncGenerator, Optional
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from collegedesk.auth.identity_provider import IdentityProvider
from collegedesk.auth.models import Identity
from collegedesk.auth.roles import ROLE_MODELS
from collegedesk.core.enums import UserRole
from collegedesk.core.models import College
from collegedesk.db.session import Base, get_db, get_session_factory
from collegedesk.main import app

DEFAULT_PASSWORD = "Secret@123"


@pytest.fixture()
async def engine(tmp_path):
    """File-backed SQLite per test, so concurrent sessions see each other's commits."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False, future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app, one session per request like production."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def create_college(db: AsyncSession, name: str) -> College:
    college = College(name=name, address="1 College Road")
    db.add(college)
    await db.commit()
    await db.refresh(college)
    return college


@pytest.fixture()
async def college(db_session: AsyncSession) -> College:
    return await create_college(db_session, "Riverside Institute")


@pytest.fixture()
async def other_college(db_session: AsyncSession) -> College:
    return await create_college(db_session, "Hilltop College")


@pytest.fixture()
def make_user(db_session: AsyncSession, college: College):
    """Create an identity (with profile) and, unless role is None, its role row."""

    async def _make(
        email: str,
        role: Optional[UserRole] = UserRole.STUDENT,
        password: str = DEFAULT_PASSWORD,
        full_name: Optional[str] = None,
        college_id: Optional[UUID] = None,
        **extra,
    ) -> Identity:
        provider = IdentityProvider(db_session)
        identity = await provider.admin_create_identity(
            email, password, email_confirm=True, user_metadata={"full_name": full_name}
        )
        if role is not None:
            model = ROLE_MODELS[role]
            db_session.add(
                model(user_id=identity.id, email=email, college_id=college_id or college.id, **extra)
            )
            await db_session.commit()
        return identity

    return _make


@pytest.fixture()
def login(client: AsyncClient, college: College):
    """POST /auth/login and return the response."""

    async def _login(email: str, password: str = DEFAULT_PASSWORD, college_id: Optional[UUID] = None):
        return await client.post(
            "/api/v1/auth/login",
            json={"email": email, "password": password, "college_id": str(college_id or college.id)},
        )

    return _login


@pytest.fixture()
def auth_headers(login):
    async def _headers(email: str, password: str = DEFAULT_PASSWORD, college_id: Optional[UUID] = None) -> dict:
        response = await login(email, password, college_id)
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _headers


@pytest.fixture()
def count_rows(session_factory: async_sessionmaker):
    """Row count through a fresh session, so nothing cached in the test's own session leaks in."""

    async def _count(model, *criteria) -> int:
        async with session_factory() as session:
            result = await session.execute(select(func.count()).select_from(model).where(*criteria))
            return result.scalar_one()

    return _count
