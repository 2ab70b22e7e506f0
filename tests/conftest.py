import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("PAYMENT_GATEWAY_KEY_SECRET", "test-gateway-secret")

from typing import AsyncGenerator, Optional  # noqa: E402
from uuid import UUID, uuid4  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.auth.security import create_access_token  # noqa: E402
from app.core.models import AcademicSession, Student, Tenant  # noqa: E402
from app.core.notifications import RecordingNotificationDispatcher, get_notifier  # noqa: E402
from app.core.session_scope import Scope  # noqa: E402
from app.db.session import CORE_SCHEMA, SCHOOL_SCHEMA, Base, get_db  # noqa: E402
from app.main import app  # noqa: E402


TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture()
async def engine():
    """Fresh in-memory database per test. Postgres schemas are mapped away for SQLite."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        execution_options={"schema_translate_map": {CORE_SCHEMA: None, SCHOOL_SCHEMA: None}},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def notifier() -> RecordingNotificationDispatcher:
    return RecordingNotificationDispatcher()


@pytest.fixture()
async def client(session_factory, notifier) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app; each request gets its own session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# --- Factories ---
@pytest.fixture()
def make_tenant(db_session: AsyncSession):
    async def _make(name: str = "Green Valley School") -> Tenant:
        tenant = Tenant(organization_name=name, status="ACTIVE")
        db_session.add(tenant)
        await db_session.commit()
        return tenant

    return _make


@pytest.fixture()
def make_session(db_session: AsyncSession):
    async def _make(tenant: Tenant, name: str = "2025-26", active: bool = True, current: bool = True) -> AcademicSession:
        session = AcademicSession(tenant_id=tenant.id, name=name, is_active=active)
        db_session.add(session)
        await db_session.flush()
        if current:
            tenant.current_session_id = session.id
        await db_session.commit()
        return session

    return _make


@pytest.fixture()
def make_student(db_session: AsyncSession):
    async def _make(
        scope: Scope,
        full_name: str,
        class_name: str = "5",
        section: str = "A",
        roll_no: Optional[str] = None,
        transport_facility: bool = False,
        email: Optional[str] = None,
        unique_code: Optional[str] = None,
        is_active: bool = True,
    ) -> Student:
        student = Student(
            tenant_id=scope.tenant_id,
            session_id=scope.session_id,
            unique_code=unique_code or f"STU-{uuid4().hex[:8].upper()}",
            full_name=full_name,
            class_name=class_name,
            section=section,
            roll_no=roll_no,
            transport_facility=transport_facility,
            email=email,
            is_active=is_active,
        )
        db_session.add(student)
        await db_session.commit()
        return student

    return _make


@pytest.fixture()
async def tenant(make_tenant) -> Tenant:
    return await make_tenant()


@pytest.fixture()
async def scope(tenant, make_session) -> Scope:
    """Tenant with one active, current session."""
    session = await make_session(tenant)
    return Scope(tenant.id, session.id)


def _auth_headers(tenant_id: UUID, role: str = "PRINCIPAL", user_id: Optional[UUID] = None, name: str = "Office") -> dict:
    token = create_access_token(
        subject={
            "sub": str(user_id or uuid4()),
            "tenant_id": str(tenant_id),
            "role": role,
            "name": name,
        }
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def principal_headers(scope: Scope) -> dict:
    return _auth_headers(scope.tenant_id, "PRINCIPAL")


@pytest.fixture()
def headers_for():
    """Build bearer headers for any (tenant, role, user) combination."""
    return _auth_headers
