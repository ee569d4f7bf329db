"""
Subscription gate - authorizes realtime subscriptions and shapes
per-subscriber payloads
"""
from typing import Optional
import logging

from .auth import SessionContext, require_auth
from .errors import InvalidArgumentError, NotFoundError, PermissionDeniedError
from .domain.models import PostAction, User
from .domain.repositories import Repositories
from .pubsub import Payload, PubSubBroker, Subscription, Topics, TransformedSubscription

logger = logging.getLogger(__name__)


class SubscriptionGate:
    """
    Entry point for every realtime subscription

    Rules:
        - every topic requires an authenticated session
        - user-scoped topics only for the owning user
        - MESSAGE_RECEIVED only for conversation participants
        - POST_UPDATED for any authenticated user
    """

    def __init__(self, repos: Repositories, pubsub: PubSubBroker):
        self.repos = repos
        self.pubsub = pubsub

    async def subscribe(self, context: Optional[SessionContext], topic: str) -> Subscription:
        """
        Authorize and open a subscription

        Raises:
            UnauthenticatedError: no session
            PermissionDeniedError: topic belongs to someone else
            InvalidArgumentError: unknown topic
            NotFoundError: conversation does not exist
        """
        user = require_auth(context)

        parsed = Topics.parse(topic)
        if parsed is None:
            raise InvalidArgumentError(f"Unknown topic: {topic}")
        prefix, entity_id = parsed

        if prefix in Topics.USER_SCOPED:
            if entity_id != user.id:
                raise PermissionDeniedError("You can only subscribe to your own updates")
            subscription = await self.pubsub.subscribe(topic)

        elif prefix == Topics.MESSAGE_RECEIVED:
            conversation = await self.repos.conversations.find_by_id(entity_id)
            if conversation is None:
                raise NotFoundError("Conversation not found")
            if not conversation.is_participant(user.id):
                raise PermissionDeniedError("You are not a participant of this conversation")
            subscription = TransformedSubscription(
                await self.pubsub.subscribe(topic), self._message_view(user)
            )

        else:
            subscription = TransformedSubscription(
                await self.pubsub.subscribe(topic), self._post_view(user)
            )

        logger.info(f"User {user.id} subscribed to {topic}")
        return subscription

    def _message_view(self, user: User):
        async def transform(payload: Payload) -> Payload:
            message = payload.get("messageReceived")
            if not isinstance(message, dict):
                return payload
            sender = message.get("sender") or {}
            view = dict(message, isSenderYou=sender.get("id") == user.id)
            return {"messageReceived": view}
        return transform

    def _post_view(self, user: User):
        async def transform(payload: Payload) -> Payload:
            update = payload.get("postUpdated")
            if not isinstance(update, dict):
                return payload
            if update.get("action") not in (PostAction.LIKE.value, PostAction.UNLIKE.value):
                return payload
            liked = await self.repos.likes.find(update["postId"], user.id) is not None
            return {"postUpdated": dict(update, isLiked=liked)}
        return transform
