"""
Test configuration and fixtures.

Provides:
- In-memory repositories and broker wired through build_services
- A token verifier that treats the bearer token as the user id
- A recording push notifier
- HTTPX AsyncClient over the ASGI app
"""
import asyncio
from typing import Any, Dict, List, Optional

import pytest
from httpx import AsyncClient, ASGITransport

from social_service.auth import SessionContext
from social_service.container import build_services
from social_service.domain.models import ArticleContent, ImageContent, PostKind
from social_service.infrastructure.database.memory import create_memory_repositories
from social_service.pubsub import InMemoryPubSub


class TokenIsUserId:
    """Auth client stand-in: any non-empty token names the user"""

    async def verify_token(self, token: str) -> Optional[dict]:
        if token == "invalid":
            return None
        return {"id": token, "is_active": True}


class RecordingPush:
    def __init__(self, fail: bool = False):
        self.sent: List[Dict[str, Any]] = []
        self.fail = fail

    async def notify_externally(self, user_id, title, body, data=None):
        if self.fail:
            raise RuntimeError("push gateway down")
        self.sent.append({"user_id": user_id, "title": title, "body": body, "data": data})


async def next_event(subscription, timeout: float = 1.0):
    return await asyncio.wait_for(subscription.__anext__(), timeout)


async def drain(subscription, timeout: float = 0.05) -> list:
    """Collect everything already queued on a subscription"""
    events = []
    while True:
        try:
            events.append(await asyncio.wait_for(subscription.__anext__(), timeout))
        except (asyncio.TimeoutError, StopAsyncIteration):
            return events


def session_for(user) -> SessionContext:
    return SessionContext(user=user, authenticated=True)


# =============================================================================
# Core fixtures
# =============================================================================

@pytest.fixture
def repos():
    return create_memory_repositories()


@pytest.fixture
def broker():
    return InMemoryPubSub(max_queue_size=64)


@pytest.fixture
def push():
    return RecordingPush()


@pytest.fixture
def services(repos, broker, push):
    return build_services(repos, broker, push=push, auth_client=TokenIsUserId())


@pytest.fixture
async def alice(repos):
    return await repos.users.create("alice", "alice@example.com", full_name="Alice Liddell")


@pytest.fixture
async def bob(repos):
    return await repos.users.create("bob", "bob@example.com", full_name="Bob Builder")


@pytest.fixture
async def carol(repos):
    return await repos.users.create("carol", "carol@example.com")


@pytest.fixture
async def article(repos, bob):
    return await repos.posts.create(
        bob.id, PostKind.ARTICLE, ArticleContent(title="Hello", content="First post"),
        caption="intro", tags=["hello"],
    )


@pytest.fixture
async def photo(repos, carol):
    return await repos.posts.create(
        carol.id, PostKind.IMAGE, ImageContent(images=["https://cdn.example.com/1.jpg"]),
    )


# =============================================================================
# API fixtures
# =============================================================================

@pytest.fixture
def app(services):
    from social_service.main import app as application

    application.state.services = services
    yield application
    del application.state.services


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def auth(user) -> Dict[str, str]:
    return {"Authorization": f"Bearer {user.id}"}
