import uuid
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import JSON, event
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from expoflow.common.enums import TaskStatus, TaskType, UserRole
from expoflow.common.security import create_access_token
from expoflow.db.base import Base
from expoflow.db.models import *  # noqa: F401,F403 - ensure all models loaded

# Use in-memory SQLite for testing - remap JSONB to JSON
TEST_DATABASE_URL = "sqlite+aiosqlite://"


# Make JSONB render as JSON for SQLite
@event.listens_for(Base.metadata, "before_create")
def _remap_jsonb(target, connection, **kw):
    if connection.dialect.name == "sqlite":
        for table in target.tables.values():
            for column in table.columns:
                if isinstance(column.type, JSONB):
                    column.type = JSON()


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(db_session):
    from expoflow.api.deps import get_db
    from expoflow.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def committed_client(test_engine, db_session, tasks, auth_headers, department_headers):
    """Client whose requests get their own session, committed or rolled back like get_db."""
    from expoflow.api.deps import get_db
    from expoflow.main import app

    await db_session.commit()
    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_user(db_session, role: UserRole, full_name: str):
    from expoflow.db.models.user import User

    user = User(
        id=uuid.uuid4(),
        email=f"{role.value}_{uuid.uuid4().hex[:8]}@test.com",
        full_name=full_name,
        role=role.value,
    )
    db_session.add(user)
    await db_session.flush()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def manager_user(db_session):
    return await _create_user(db_session, UserRole.PROJECT_MANAGER, "Test Manager")


@pytest.fixture
async def designer_user(db_session):
    return await _create_user(db_session, UserRole.DESIGNER, "Test Designer")


@pytest.fixture
async def production_user(db_session):
    return await _create_user(db_session, UserRole.PRODUCTION, "Test Production Lead")


@pytest.fixture
async def finance_user(db_session):
    return await _create_user(db_session, UserRole.FINANCE, "Test Finance Officer")


def _headers(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture
def auth_headers(manager_user):
    return _headers(manager_user)


@pytest.fixture
def department_headers(designer_user, production_user, finance_user):
    return {
        "design": _headers(designer_user),
        "production": _headers(production_user),
        "finance": _headers(finance_user),
    }


@pytest.fixture
def make_enquiry(db_session):
    """Factory creating an enquiry with one task per requested type."""
    from expoflow.db.models.enquiry import Enquiry, EnquiryTask

    async def _make(types=(TaskType.MATERIALS, TaskType.BUDGET, TaskType.QUOTE)):
        enquiry = Enquiry(
            enquiry_number=f"ENQ-{uuid.uuid4().hex[:6].upper()}",
            title="Annual Trade Expo",
            client_name="Acme Events",
            venue="City Convention Centre",
            expected_delivery_date="2026-11-20",
        )
        db_session.add(enquiry)
        await db_session.flush()

        tasks = {}
        for task_type in types:
            task = EnquiryTask(
                enquiry_id=enquiry.id,
                enquiry=enquiry,
                type=task_type.value,
                title=f"{task_type.value.title()} for {enquiry.title}",
                status=TaskStatus.IN_PROGRESS.value,
            )
            db_session.add(task)
            tasks[task_type.value] = task
        await db_session.flush()
        return tasks

    return _make


@pytest.fixture
async def tasks(make_enquiry):
    return await make_enquiry()


@pytest.fixture
def element_payload():
    def _build(element_type="stage", name="Main Stage", materials=(), **fields):
        payload = {
            "elementType": element_type,
            "name": name,
            "category": "production",
            "isIncluded": True,
            "materials": list(materials),
        }
        payload.update(fields)
        return payload

    return _build


@pytest.fixture
def material_payload():
    def _build(description="Plywood", quantity=10, unit="Pcs", **fields):
        payload = {
            "description": description,
            "unitOfMeasurement": unit,
            "quantity": quantity,
            "isIncluded": True,
            "isAdditional": False,
        }
        payload.update(fields)
        return payload

    return _build


@pytest.fixture
def save_materials(client, auth_headers):
    async def _save(task, elements, project_info=None):
        response = await client.post(
            f"/api/v1/tasks/{task.id}/materials",
            headers=auth_headers,
            json={"projectInfo": project_info or {}, "projectElements": elements},
        )
        assert response.status_code == 200, response.text
        return response.json()

    return _save


@pytest.fixture
def approve_all(client, department_headers):
    async def _approve(task):
        response = None
        for department, headers in department_headers.items():
            response = await client.post(
                f"/api/v1/tasks/{task.id}/materials/approve/{department}",
                headers=headers,
                json={"comments": f"{department} ok"},
            )
            assert response.status_code == 200, response.text
        return response.json()

    return _approve
