"""
Messaging engine - conversations, messages and per-participant unread counters
"""
from typing import List, Optional, Sequence, Tuple
import logging

from ..config import settings
from ..errors import ErrorKind
from ..domain.models import (
    Attachment,
    Conversation,
    ConversationType,
    MessageType,
    UnreadKind,
    User,
)
from ..domain.repositories import Repositories
from ..pubsub import PubSubBroker, Topics
from ..schemas import ServiceResult, SeenPayload
from .notifications import NotificationService, safe_notification
from .presenters import conversation_payload, load_users, message_payload
from .unreads import UnreadsService

logger = logging.getLogger(__name__)


class MessagingService:
    """Business logic for private conversations"""

    def __init__(self, repos: Repositories, pubsub: PubSubBroker,
                 notifications: NotificationService, unreads: UnreadsService):
        self.repos = repos
        self.pubsub = pubsub
        self.notifications = notifications
        self.unreads = unreads

    async def find_or_create_conversation(self, user_a: str,
                                          user_b: str) -> Tuple[Conversation, bool]:
        """PRIVATE conversations are keyed by the unordered pair"""
        conversation, created = await self.repos.conversations.get_or_create_private(
            user_a, user_b
        )
        if created:
            logger.info(f"Created conversation {conversation.id} between {user_a} and {user_b}")
        return conversation, created

    async def _publish_conversation(self, conversation: Conversation,
                                    viewer_ids: Sequence[str]) -> None:
        users = await load_users(self.repos.users, conversation.participants)
        last_message = None
        if conversation.last_message_id:
            last_message = await self.repos.messages.find_by_id(conversation.last_message_id)
            if last_message and last_message.sender_id not in users:
                users.update(await load_users(self.repos.users, [last_message.sender_id]))
        for viewer_id in viewer_ids:
            view = conversation_payload(conversation, viewer_id, users, last_message)
            await self.pubsub.publish(
                Topics.conversation(viewer_id), {"conversationUpdated": view.to_wire()}
            )

    async def send_message(self, actor: User, recipient_id: str, text: str,
                           message_type: str = MessageType.TEXT.value) -> ServiceResult:
        """
        Send a message to another user

        Args:
            actor: Sending user
            recipient_id: Receiving user
            text: Message text, or the attachment URL for non-text types
            message_type: text, image, video, audio, file, pdf or other

        Returns:
            ServiceResult carrying the sender's view of the message
        """
        if recipient_id == actor.id:
            return ServiceResult.fail(ErrorKind.INVALID_ARGUMENT, "Cannot send message to yourself")

        try:
            kind = MessageType(str(message_type or "").lower())
        except ValueError:
            return ServiceResult.fail(ErrorKind.INVALID_ARGUMENT, "Unsupported messageType")

        if not text or not text.strip():
            return ServiceResult.fail(ErrorKind.INVALID_ARGUMENT, "Message content is required")

        recipient = await self.repos.users.find_by_id(recipient_id)
        if recipient is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Recipient not found")

        conversation, is_new = await self.find_or_create_conversation(actor.id, recipient.id)

        if kind.is_attachment:
            message = await self.repos.messages.create(
                conversation.id, actor.id, None,
                [Attachment(url=text, file_type=kind.value)],
            )
        else:
            message = await self.repos.messages.create(conversation.id, actor.id, text, [])

        # Sending clears the sender's own counter
        conversation, cleared = await self.repos.conversations.record_message(
            conversation.id, actor.id, message.id
        )
        for participant_id in conversation.participants:
            if participant_id != actor.id:
                await self.unreads.increment(participant_id, UnreadKind.MESSAGES)
        if cleared:
            await self.unreads.decrement(actor.id, UnreadKind.MESSAGES, cleared)

        # First message notifies about the conversation, later ones about the message
        name = actor.display_name
        if is_new:
            title, action_label = "New Conversation", "View Chat"
        else:
            title, action_label = "New Message", "View Message"
        await safe_notification(
            lambda: self.notifications.create_social_activity(
                recipient.id, actor, title, f"{name} sent you a message!",
                action_label=action_label, action_url=conversation.id,
            ),
            f"{title} notification",
        )

        await self._publish_conversation(conversation, conversation.participants)

        # isSenderYou is filled in per subscriber at delivery
        shared = message_payload(message, actor, viewer_id=None)
        await self.pubsub.publish(
            Topics.message_received(conversation.id), {"messageReceived": shared.to_wire()}
        )

        logger.info(f"User {actor.id} sent {kind.value} message in {conversation.id}")
        return ServiceResult.ok(
            "Message sent successfully",
            message_payload(message, actor, viewer_id=actor.id),
            status_code=201,
        )

    async def _participant_conversation(
        self, actor: User, conversation_id: str
    ) -> Tuple[Optional[Conversation], Optional[ServiceResult]]:
        conversation = await self.repos.conversations.find_by_id(conversation_id)
        if conversation is None:
            return None, ServiceResult.fail(ErrorKind.NOT_FOUND, "Conversation not found")
        if not conversation.is_participant(actor.id):
            return None, ServiceResult.fail(
                ErrorKind.PERMISSION_DENIED, "You are not a participant of this conversation"
            )
        return conversation, None

    async def mark_seen(self, actor: User, conversation_id: str,
                        message_ids: Optional[Sequence[str]] = None) -> ServiceResult:
        conversation, error = await self._participant_conversation(actor, conversation_id)
        if error:
            return error

        seen_count = await self.repos.messages.mark_seen(conversation.id, actor.id, message_ids)
        conversation, previous = await self.repos.conversations.reset_unread(
            conversation.id, actor.id
        )
        if previous:
            await self.unreads.decrement(actor.id, UnreadKind.MESSAGES, previous)

        await self._publish_conversation(conversation, [actor.id])

        return ServiceResult.ok(
            "Messages marked as seen successfully",
            SeenPayload(conversation_id=conversation.id, seen_count=seen_count),
        )

    async def my_conversations(self, actor: User) -> ServiceResult:
        conversations = await self.repos.conversations.list_for_user(actor.id)
        return ServiceResult.ok(
            "Conversations fetched successfully",
            await self._views(conversations, actor.id),
        )

    async def _views(self, conversations: List[Conversation], viewer_id: str):
        participant_ids = [p for c in conversations for p in c.participants]
        users = await load_users(self.repos.users, participant_ids)
        last_ids = [c.last_message_id for c in conversations if c.last_message_id]
        messages = {m.id: m for m in await self.repos.messages.find_by_ids(last_ids)}
        return [
            conversation_payload(c, viewer_id, users, messages.get(c.last_message_id))
            for c in conversations
        ]

    async def get_messages(self, actor: User, conversation_id: str,
                           limit: int = settings.DEFAULT_PAGE_SIZE,
                           offset: int = 0) -> ServiceResult:
        """Newest first; hides messages the actor deleted for themselves"""
        conversation, error = await self._participant_conversation(actor, conversation_id)
        if error:
            return error

        messages = await self.repos.messages.list_for_conversation(
            conversation.id, actor.id, limit, offset
        )
        senders = await load_users(self.repos.users, [m.sender_id for m in messages])
        return ServiceResult.ok(
            "Messages fetched successfully",
            [message_payload(m, senders.get(m.sender_id), actor.id) for m in messages],
        )

    async def search_conversations(self, actor: User, query: str,
                                   limit: int = settings.DEFAULT_PAGE_SIZE,
                                   offset: int = 0) -> ServiceResult:
        """Match the other participant's username or full name, case-insensitively"""
        needle = (query or "").strip().casefold()
        if not needle:
            return ServiceResult.ok("Conversations fetched successfully", [])

        conversations = [
            c for c in await self.repos.conversations.list_for_user(actor.id)
            if c.type == ConversationType.PRIVATE
        ]
        others = await load_users(
            self.repos.users, [c.other_participant(actor.id) for c in conversations]
        )

        def matches(conversation: Conversation) -> bool:
            other = others.get(conversation.other_participant(actor.id))
            if other is None:
                return False
            return any(
                needle in value.casefold()
                for value in (other.username, other.full_name) if value
            )

        matched = [c for c in conversations if matches(c)][offset:offset + limit]
        return ServiceResult.ok(
            "Conversations fetched successfully", await self._views(matched, actor.id)
        )

    async def delete_message_for_me(self, actor: User, message_id: str) -> ServiceResult:
        message = await self.repos.messages.find_by_id(message_id)
        if message is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Message not found")
        _, error = await self._participant_conversation(actor, message.conversation_id)
        if error:
            return error

        if not await self.repos.messages.delete_for_user(message.id, actor.id):
            return ServiceResult.fail(ErrorKind.CONFLICT, "Message already deleted")
        return ServiceResult.ok("Message deleted successfully", {"messageId": message.id})
