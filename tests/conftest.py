import os

# must be in place before anything under board/ reads its config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from board.database import enable_sqlite_foreign_keys, get_async_session, init_models
from board.main import app
from board.models.user_model import User

PASSWORD = "secret123"


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(eng)
    await init_models(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def client(session_factory):
    async def _override():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = _override
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def register(client, username, password=PASSWORD):
    """Registers an account and returns bearer headers for it."""
    r = await client.post("/auth/register", json={"username": username, "password": password})
    assert r.status_code == 201, r.text
    client.cookies.clear()
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


async def set_role(session_factory, username, role):
    async with session_factory() as s:
        await s.execute(update(User).where(User.username == username).values(role=role))
        await s.commit()


async def fetch(session_factory, model, row_id):
    """Reads a row through a brand new session so counters are never stale."""
    async with session_factory() as s:
        return await s.get(model, row_id)


@pytest.fixture
async def admin(client, session_factory):
    headers = await register(client, "root_admin")
    await set_role(session_factory, "root_admin", "admin")
    return headers


@pytest.fixture
async def moderator(client, session_factory):
    headers = await register(client, "the_mod")
    await set_role(session_factory, "the_mod", "moderator")
    return headers


@pytest.fixture
async def member(client):
    return await register(client, "member_one")


@pytest.fixture
async def subforum_id(client, admin):
    r = await client.post("/admin/categories", json={"name": "General"}, headers=admin)
    assert r.status_code == 201, r.text
    r = await client.post(
        "/admin/subforums",
        json={"categoryId": r.json()["categoryId"], "name": "Chat"},
        headers=admin,
    )
    assert r.status_code == 201, r.text
    return r.json()["subforumId"]


async def new_thread(client, headers, subforum_id, title="A thread", content="hello"):
    r = await client.post(
        "/threads",
        json={"subforumId": subforum_id, "title": title, "content": content},
        headers=headers,
    )
    assert r.status_code == 201, r.text
    return r.json()["threadId"]


async def reply(client, headers, thread_id, content="a reply"):
    r = await client.post("/posts", json={"threadId": thread_id, "content": content}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["postId"]
