"""
HTTP and WebSocket surface
"""
import asyncio

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from social_service.pubsub import Topics
from social_service.storage import ObjectStorage

from conftest import auth


class FakeStorage(ObjectStorage):
    def __init__(self):
        self.objects = {}

    async def store(self, data, filename, mime_type, folder):
        key = f"{folder}/{filename}"
        self.objects[key] = (data, mime_type)
        return key

    async def presign(self, key, ttl_seconds):
        return f"https://storage.example.com/{key}?ttl={ttl_seconds}"


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
@pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer invalid"}, {"Authorization": "Bearer ghost"}])
async def test_requests_without_session_are_unauthenticated(client, headers):
    response = await client.get("/api/v1/links", headers=headers)

    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["statusCode"] == 401


@pytest.mark.asyncio
async def test_link_request_flow(client, alice, bob):
    sent = await client.post(f"/api/v1/links/{bob.id}/request", headers=auth(alice))
    duplicate = await client.post(f"/api/v1/links/{bob.id}/request", headers=auth(alice))
    received = await client.get("/api/v1/links/requests/received", headers=auth(bob))
    accepted = await client.post(f"/api/v1/links/{alice.id}/accept", headers=auth(bob))
    state = await client.get(f"/api/v1/links/state/{bob.id}", headers=auth(alice))

    assert sent.status_code == 200
    assert sent.json()["data"]["status"] == "sent"
    assert duplicate.status_code == 409
    assert [u["id"] for u in received.json()["data"]["users"]] == [alice.id]
    assert accepted.json()["data"]["status"] == "linked"
    assert state.json()["data"] == {"userId": bob.id, "state": "linked"}


@pytest.mark.asyncio
async def test_messaging_flow(client, alice, bob):
    sent = await client.post(
        "/api/v1/conversations/messages",
        json={"recipientId": bob.id, "text": "hi"},
        headers=auth(alice),
    )
    conversation_id = sent.json()["data"]["conversationId"]
    inbox = await client.get("/api/v1/conversations", headers=auth(bob))
    seen = await client.post(f"/api/v1/conversations/{conversation_id}/seen", headers=auth(bob))
    unreads = await client.get("/api/v1/unreads", headers=auth(bob))

    assert sent.status_code == 201
    assert sent.json()["data"]["isSenderYou"] is True
    assert inbox.json()["data"][0]["myUnreadCount"] == 1
    assert seen.json()["data"]["seenCount"] == 1
    assert unreads.json()["data"]["messagesUnreads"] == 0


@pytest.mark.asyncio
async def test_message_to_self_is_bad_request(client, alice):
    response = await client.post(
        "/api/v1/conversations/messages",
        json={"recipientId": alice.id, "text": "me"},
        headers=auth(alice),
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_post_interactions(client, alice, article):
    liked = await client.post(f"/api/v1/posts/{article.id}/like", headers=auth(alice))
    commented = await client.post(
        f"/api/v1/posts/{article.id}/comments", json={"text": "great"}, headers=auth(alice)
    )
    empty = await client.post(
        f"/api/v1/posts/{article.id}/comments", json={"text": "   "}, headers=auth(alice)
    )
    post = await client.get(f"/api/v1/posts/{article.id}", headers=auth(alice))
    comments = await client.get(f"/api/v1/posts/{article.id}/comments", headers=auth(alice))

    assert liked.json()["data"] == {"targetId": article.id, "liked": True, "totalLikes": 1}
    assert commented.status_code == 201
    assert empty.status_code == 422
    assert post.json()["data"]["isLiked"] is True
    assert post.json()["data"]["commentsCount"] == 1
    assert [c["text"] for c in comments.json()["data"]] == ["great"]


@pytest.mark.asyncio
async def test_notifications_and_unreads(client, services, alice, bob):
    await services.relationships.send_link_request(alice, bob.id)

    listing = await client.get("/api/v1/notifications", headers=auth(bob))
    count = await client.get("/api/v1/notifications/unread-count", headers=auth(bob))
    read = await client.post("/api/v1/notifications/read-all", headers=auth(bob))
    verify = await client.get("/api/v1/unreads/verify", headers=auth(bob))
    bad_kind = await client.post("/api/v1/unreads/reset/likes", headers=auth(bob))

    assert listing.json()["data"]["notifications"][0]["title"] == "New Link Request"
    assert count.json()["data"] == {"count": 1}
    assert read.json()["data"]["affected"] == 1
    assert verify.json()["data"]["isAccurate"] is True
    assert bad_kind.status_code == 400


@pytest.mark.asyncio
async def test_upload_returns_presigned_url(client, services, alice):
    services.storage = FakeStorage()

    response = await client.post(
        "/api/v1/uploads",
        files={"file": ("photo.png", b"\x89PNG....", "image/png")},
        headers=auth(alice),
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["fileType"] == "image"
    assert data["url"].startswith("https://storage.example.com/")
    assert data["size"] == 8


@pytest.mark.asyncio
async def test_upload_without_storage_fails(client, alice):
    response = await client.post(
        "/api/v1/uploads",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=auth(alice),
    )
    assert response.status_code == 500


# WebSocket tests run on the TestClient's own event loop

def test_websocket_rejects_invalid_token(app):
    client = TestClient(app)

    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws/subscriptions?token=invalid"):
            pass

    assert exc.value.code == 4001


def test_websocket_subscribe_protocol(app, repos):
    alice = asyncio.run(repos.users.create("wsalice", "wsalice@example.com"))
    client = TestClient(app)

    with client.websocket_connect(f"/ws/subscriptions?token={alice.id}") as websocket:
        websocket.send_text("ping")
        assert websocket.receive_text() == "pong"

        websocket.send_json({"type": "subscribe", "id": "1", "topic": Topics.notification("someone-else")})
        denied = websocket.receive_json()
        assert denied == {
            "type": "error",
            "id": "1",
            "payload": {"kind": "PERMISSION_DENIED", "message": "You can only subscribe to your own updates"},
        }

        websocket.send_json({"type": "subscribe", "id": "2", "topic": "NOPE"})
        assert websocket.receive_json()["payload"]["kind"] == "INVALID_ARGUMENT"

        websocket.send_json({"type": "subscribe", "id": "3", "topic": Topics.notification(alice.id)})
        websocket.send_json({"type": "complete", "id": "3"})
        assert websocket.receive_json() == {"type": "complete", "id": "3"}
