"""Shared pytest fixtures and configuration."""

import os
import tempfile

# Set test environment variables before the application is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-enough-bytes-for-hs256")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "marketplace-test-logs"))
os.environ.setdefault("ADMIN_NOTIFY_EMAIL", "moderation@example.com")
os.environ.setdefault("SITE_URL", "https://homes.example.com")

from typing import Any, Dict, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from marketplace.core.security import create_access_token, get_password_hash
from marketplace.database import Base, get_db
from marketplace.main import app
from marketplace.models.user import User, UserRole
from marketplace.services.notifications import (
    Notification,
    NotificationDispatcher,
    get_notification_dispatcher,
)

API = "/api/v1"
PASSWORD = "correct-horse-battery"


class RecordingDispatcher(NotificationDispatcher):
    """Captures notifications instead of enqueueing them"""

    def __init__(self):
        self.sent: List[Notification] = []

    def dispatch(self, notification: Notification) -> bool:
        self.sent.append(notification)
        return True

    def kinds(self) -> List[str]:
        return [n.kind for n in self.sent]


@pytest.fixture
async def engine():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
async def client(session_factory, dispatcher):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def make_user(
    session_factory,
    email: str,
    role: UserRole = UserRole.USER,
    verified: bool = True,
    password: str = PASSWORD,
) -> User:
    async with session_factory() as session:
        user = User(
            email=email,
            hashed_password=get_password_hash(password),
            full_name=email.split("@")[0].title(),
            role=role,
            email_verified=verified,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


def auth_headers(user: User) -> Dict[str, str]:
    token = create_access_token({"sub": str(user.id), "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def owner(session_factory):
    return await make_user(session_factory, "owner@example.com")


@pytest.fixture
async def other_user(session_factory):
    return await make_user(session_factory, "neighbour@example.com")


@pytest.fixture
async def unverified_user(session_factory):
    return await make_user(session_factory, "fresh@example.com", verified=False)


@pytest.fixture
async def admin(session_factory):
    return await make_user(session_factory, "admin@example.com", role=UserRole.ADMIN)


@pytest.fixture
def owner_headers(owner):
    return auth_headers(owner)


@pytest.fixture
def other_headers(other_user):
    return auth_headers(other_user)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


def listing_payload(**overrides: Any) -> Dict[str, Any]:
    payload = {
        "title": "Three bed semi-detached house",
        "description": "Bright family home close to the town centre.",
        "listing_type": "SALE",
        "property_type": "HOUSE",
        "price": 325000,
        "address_line1": "12  Ross Road",
        "city": "Killarney",
        "county": "Co. Kerry",
        "eircode": "v93 nn84",
        "bedrooms": 3,
        "bathrooms": 2,
        "images": [{"url": "https://res.cloudinary.com/demo/image/upload/front.jpg"}],
    }
    payload.update(overrides)
    return payload


async def create_listing(client: AsyncClient, headers: Dict[str, str], **overrides: Any) -> Dict[str, Any]:
    response = await client.post(f"{API}/listings", json=listing_payload(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def post_event(
    client: AsyncClient,
    listing_id: int,
    event: str,
    headers: Dict[str, str],
    body: Optional[Dict[str, Any]] = None,
):
    return await client.post(f"{API}/listings/{listing_id}/{event}", json=body, headers=headers)


@pytest.fixture
def publish(client, owner_headers, admin_headers):
    """Create a listing and drive it to PUBLISHED"""

    async def _publish(**overrides: Any) -> Dict[str, Any]:
        listing = await create_listing(client, owner_headers, **overrides)
        assert (await post_event(client, listing["id"], "submit", owner_headers)).status_code == 200
        response = await post_event(client, listing["id"], "approve", admin_headers)
        assert response.status_code == 200, response.text
        return response.json()

    return _publish
