import os
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

os.environ["ENV_STATE"] = "test"
from gestaoapi.database import database, user_table, utcnow  # noqa: E402
from gestaoapi.forms.response_store import ResponseStore  # noqa: E402
from gestaoapi.forms.schema_store import SchemaStore  # noqa: E402
from gestaoapi.main import app  # noqa: E402
from gestaoapi.security import create_access_token, get_password_hash  # noqa: E402


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture()
async def db() -> AsyncGenerator:
    await database.connect()
    yield database
    await database.disconnect()


@pytest.fixture()
async def async_client(db) -> AsyncGenerator:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def schema_store(db) -> SchemaStore:
    return SchemaStore(db)


@pytest.fixture()
def response_store(db) -> ResponseStore:
    return ResponseStore(db)


async def create_user(name: str, email: str, role: str, password: str = "1234", status: str = "ACTIVE") -> dict:
    query = user_table.insert().values(
        name=name,
        email=email,
        password_hash=get_password_hash(password),
        role=role,
        status=status,
        created_at=utcnow(),
    )
    user_id = await database.execute(query)
    return {"id": user_id, "name": name, "email": email, "role": role, "password": password}


@pytest.fixture()
async def admin_user(db) -> dict:
    return await create_user("Alice Admin", "admin@example.net", "ADMIN")


@pytest.fixture()
async def manager_user(db) -> dict:
    return await create_user("Marcos Gestor", "manager@example.net", "MANAGER")


@pytest.fixture()
async def viewer_user(db) -> dict:
    return await create_user("Ana", "viewer@example.net", "VIEWER")


def auth_headers(user: dict) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user['email'])}"}


@pytest.fixture()
def admin_headers(admin_user) -> dict:
    return auth_headers(admin_user)


@pytest.fixture()
def manager_headers(manager_user) -> dict:
    return auth_headers(manager_user)


@pytest.fixture()
def viewer_headers(viewer_user) -> dict:
    return auth_headers(viewer_user)


@pytest.fixture()
def make_user(db):
    return create_user
