"""
WebSocket router for realtime subscriptions.

Protocol (JSON text frames):
    client -> {"type": "subscribe", "id": "1", "topic": "CONVERSATION_<userId>"}
    client -> {"type": "complete", "id": "1"}
    server -> {"type": "next", "id": "1", "payload": {...}}
    server -> {"type": "error", "id": "1", "payload": {"kind": ..., "message": ...}}
    server -> {"type": "complete", "id": "1"}

The plain text frame "ping" is answered with "pong".
"""
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from typing import Dict, Optional
import asyncio
import json
import logging

from ...auth import SessionContext
from ...errors import SocialServiceError
from ...pubsub import Subscription
from ...container import ServiceContainer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["WebSocket"])


class SubscriptionSession:
    """Active subscriptions of one socket"""

    def __init__(self, websocket: WebSocket, services: ServiceContainer, context: SessionContext):
        self.websocket = websocket
        self.services = services
        self.context = context
        self.tasks: Dict[str, asyncio.Task] = {}
        self._send_lock = asyncio.Lock()

    async def send(self, message: dict) -> None:
        async with self._send_lock:
            await self.websocket.send_json(message)

    async def error(self, subscription_id: Optional[str], kind: str, message: str) -> None:
        await self.send({
            "type": "error",
            "id": subscription_id,
            "payload": {"kind": kind, "message": message},
        })

    async def subscribe(self, subscription_id: str, topic: str) -> None:
        if subscription_id in self.tasks:
            await self.error(subscription_id, "INVALID_ARGUMENT", "Subscription id already in use")
            return
        try:
            subscription = await self.services.gate.subscribe(self.context, topic)
        except SocialServiceError as e:
            logger.warning(f"Subscription to {topic} refused: {e.message}")
            await self.error(subscription_id, e.kind.value, e.message)
            return
        self.tasks[subscription_id] = asyncio.create_task(self._pump(subscription_id, subscription))

    async def _pump(self, subscription_id: str, subscription: Subscription) -> None:
        try:
            async for payload in subscription:
                await self.send({"type": "next", "id": subscription_id, "payload": payload})
            await self.send({"type": "complete", "id": subscription_id})
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Subscription {subscription_id} on {subscription.topic} failed: {e}")
        finally:
            await subscription.aclose()
            # A finished subscription frees its id
            if self.tasks.get(subscription_id) is asyncio.current_task():
                del self.tasks[subscription_id]

    async def complete(self, subscription_id: str) -> None:
        task = self.tasks.pop(subscription_id, None)
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        await self.send({"type": "complete", "id": subscription_id})

    async def close(self) -> None:
        tasks = list(self.tasks.values())
        self.tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def handle(self, data: str) -> None:
        if data == "ping":
            await self.websocket.send_text("pong")
            return
        try:
            message = json.loads(data)
        except ValueError:
            await self.error(None, "INVALID_ARGUMENT", "Malformed message")
            return
        if not isinstance(message, dict):
            await self.error(None, "INVALID_ARGUMENT", "Malformed message")
            return

        subscription_id = str(message.get("id") or "")
        message_type = message.get("type")
        if not subscription_id:
            await self.error(None, "INVALID_ARGUMENT", "Missing subscription id")
        elif message_type == "subscribe":
            await self.subscribe(subscription_id, str(message.get("topic") or ""))
        elif message_type == "complete":
            await self.complete(subscription_id)
        else:
            await self.error(subscription_id, "INVALID_ARGUMENT", f"Unknown message type: {message_type}")


@router.websocket("/subscriptions")
async def websocket_subscriptions(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
):
    """
    WebSocket endpoint for topic subscriptions.

    Authenticates via the token query parameter; the handshake yields
    {user, authenticated} which every subscribe request is checked against.
    """
    services: ServiceContainer = websocket.app.state.services

    try:
        context = await services.sessions.resolve(token)
    except SocialServiceError as e:
        logger.error(f"WebSocket handshake failed: {e.message}")
        await websocket.close(code=1011, reason=e.message)
        return

    if not context.authenticated:
        await websocket.close(code=4001, reason="Authentication required")
        return

    await websocket.accept()
    session = SubscriptionSession(websocket, services, context)
    logger.info(f"WebSocket connected for user {context.user.id}")

    try:
        while True:
            try:
                data = await websocket.receive_text()
            except WebSocketDisconnect:
                break
            await session.handle(data)
    finally:
        await session.close()
        logger.info(f"WebSocket disconnected for user {context.user.id}")
