import os
from datetime import datetime, timedelta
from typing import Optional

# Keep the module-level app in social_feed.main from exporting traces
os.environ.setdefault("OTEL_ENABLED", "false")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from social_feed.config import Settings
from social_feed.database import Database
from social_feed.main import create_app
from social_feed.models import Friendship, FriendshipStatus, Publication, UserProfile

BASE_TIME = datetime(2025, 1, 1, 12, 0, 0)


class Factory:
    """Row builders for storage-level tests; rows are added, not flushed."""

    def __init__(self, session) -> None:
        self.session = session

    def user(self, user_id: str, friends: Optional[str] = None) -> UserProfile:
        user = UserProfile(user_id=user_id, username=f"user_{user_id}", friends=friends)
        self.session.add(user)
        return user

    def edge(
        self, requester: str, addressee: str, status: str = FriendshipStatus.ACCEPTED
    ) -> Friendship:
        edge = Friendship.between(requester, addressee, status)
        self.session.add(edge)
        return edge

    def publication(
        self,
        pub_id: str,
        author: str,
        visibility: str = "public",
        minutes: int = 0,
        is_active: bool = True,
    ) -> Publication:
        created = BASE_TIME + timedelta(minutes=minutes)
        publication = Publication(
            id=pub_id,
            user_id=author,
            content=f"content of {pub_id}",
            type="text",
            visibility=visibility,
            meta={"source": "test"},
            is_active=is_active,
            created_at=created,
            updated_at=created,
        )
        self.session.add(publication)
        return publication


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'feed.db'}",
        db_isolation_level=None,
        otel_enabled=False,
        feed_max_page_size=100,
    )


@pytest_asyncio.fixture
async def database(test_settings):
    db = Database(test_settings)
    await db.start()
    await db.create_all()
    try:
        yield db
    finally:
        await db.stop()


@pytest_asyncio.fixture
async def session(database):
    async with database.session() as s:
        yield s


@pytest.fixture
def make(session) -> Factory:
    return Factory(session)


@pytest.fixture
def app(test_settings):
    return create_app(test_settings)


@pytest_asyncio.fixture
async def api_client(app):
    # ASGITransport doesn't emit lifespan events; run them ourselves
    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client
