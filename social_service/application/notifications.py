"""
Notification engine - create, fan out, mark read and delete notifications
"""
from typing import Any, Awaitable, Callable, List, Optional, Sequence
import logging

from ..config import settings
from ..errors import ErrorKind
from ..domain.models import (
    NotificationAction,
    NotificationSource,
    NotificationStatus,
    NotificationType,
    NotificationUpdateType,
    UnreadKind,
    User,
)
from ..domain.repositories import Repositories
from ..pubsub import PubSubBroker, Topics
from ..schemas import (
    BulkNotificationResult,
    NotificationBatchPayload,
    NotificationPage,
    NotificationPayload,
    ServiceResult,
)
from .presenters import notification_payload
from .unreads import UnreadsService

logger = logging.getLogger(__name__)


async def safe_notification(operation: Callable[[], Awaitable[Any]],
                            context: str = "Notification operation") -> Optional[Any]:
    """Run a notification side effect; failures are logged, never raised"""
    try:
        return await operation()
    except Exception as e:
        logger.error(f"{context} failed: {e}", exc_info=True)
        return None


def _action(label: Optional[str], url: Optional[str]) -> Optional[NotificationAction]:
    if label is None and url is None:
        return None
    return NotificationAction(label=label, url=url)


class NotificationService:
    """Notification business logic"""

    def __init__(self, repos: Repositories, pubsub: PubSubBroker,
                 unreads: UnreadsService, push=None):
        self.repos = repos
        self.pubsub = pubsub
        self.unreads = unreads
        # Anything with notify_externally(user_id, title, body, data)
        self.push = push

    async def _publish(self, user_id: str, payload) -> None:
        await self.pubsub.publish(
            Topics.notification(user_id), {"notificationUpdateListen": payload.to_wire()}
        )

    async def _push(self, user_id: str, title: str, body: Optional[str], data: dict) -> None:
        if self.push is None:
            return
        try:
            await self.push.notify_externally(user_id, title, body or "", data)
        except Exception as e:
            logger.error(f"Push notification to {user_id} failed: {e}")

    async def create(
        self,
        recipient_id: str,
        type: NotificationType,
        title: str,
        description: Optional[str] = None,
        source: Optional[NotificationSource] = None,
        image_url: Optional[str] = None,
        action: Optional[NotificationAction] = None,
        update_type: NotificationUpdateType = NotificationUpdateType.NEW,
    ) -> NotificationPayload:
        """
        Persist a notification and deliver it

        Increments the recipient's notificationsUnreads, publishes to
        NOTIFICATION_<recipientId> and queues a push.
        """
        notification = await self.repos.notifications.create(
            recipient_id, type, title,
            description=description, source=source, image_url=image_url, action=action,
        )
        await self.unreads.increment(recipient_id, UnreadKind.NOTIFICATIONS)

        payload = notification_payload(notification, update_type)
        await self._publish(recipient_id, payload)
        logger.info(f"Notification published: {update_type.value} for user {recipient_id}")

        await self._push(recipient_id, title, description, {
            "notificationId": notification.id,
            "type": type.value,
            "url": action.url if action else None,
        })
        return payload

    # Typed constructors
    async def create_social_activity(
        self,
        recipient_id: str,
        actor: User,
        title: str,
        description: Optional[str] = None,
        action_label: Optional[str] = None,
        action_url: Optional[str] = None,
        update_type: NotificationUpdateType = NotificationUpdateType.NEW,
    ) -> NotificationPayload:
        source = NotificationSource(id=actor.id, name=actor.display_name, avatar_url=actor.avatar_url)
        return await self.create(
            recipient_id, NotificationType.SOCIAL_ACTIVITY, title,
            description=description, source=source,
            action=_action(action_label, action_url), update_type=update_type,
        )

    async def create_promotional(self, user_id: str, title: str, description: Optional[str] = None,
                                 action_label: Optional[str] = None,
                                 action_url: Optional[str] = None) -> NotificationPayload:
        return await self.create(
            user_id, NotificationType.PROMOTIONAL, title,
            description=description, action=_action(action_label, action_url),
        )

    async def create_job_opportunity(self, user_id: str, company: NotificationSource, title: str,
                                     description: Optional[str] = None,
                                     action_label: Optional[str] = None,
                                     action_url: Optional[str] = None) -> NotificationPayload:
        return await self.create(
            user_id, NotificationType.JOB_OPPORTUNITY, title,
            description=description, source=company, action=_action(action_label, action_url),
        )

    async def create_content_recommendation(self, user_id: str, publisher: NotificationSource,
                                            title: str,
                                            image_url: Optional[str] = None) -> NotificationPayload:
        return await self.create(
            user_id, NotificationType.CONTENT_RECOMMENDATION, title,
            source=publisher, image_url=image_url,
        )

    async def create_personalized_suggestion(self, user_id: str, curator: NotificationSource,
                                             title: str) -> NotificationPayload:
        return await self.create(
            user_id, NotificationType.PERSONALIZED_SUGGESTION, title, source=curator,
        )

    async def create_profile_activity(self, user_id: str, title: str,
                                      description: Optional[str] = None,
                                      action_label: Optional[str] = None,
                                      action_url: Optional[str] = None) -> NotificationPayload:
        # Profile actions need both parts
        action = _action(action_label, action_url) if action_label and action_url else None
        return await self.create(
            user_id, NotificationType.PROFILE_ACTIVITY, title,
            description=description, action=action,
        )

    async def delete_link_request_notification(self, recipient_id: str,
                                               actor_id: str) -> Optional[NotificationPayload]:
        """Remove the pending link-request notice actor sent to recipient"""
        notification = await self.repos.notifications.find_link_request(recipient_id, actor_id)
        if notification is None:
            logger.info(f"No link request notification from {actor_id} for {recipient_id}")
            return None

        deleted = await self.repos.notifications.delete(notification.id, recipient_id)
        if deleted is None:
            return None
        if deleted.is_unread:
            await self.unreads.decrement(recipient_id, UnreadKind.NOTIFICATIONS)

        payload = notification_payload(deleted, NotificationUpdateType.DELETED)
        await self._publish(recipient_id, payload)
        logger.info(f"Notification deletion published for user {recipient_id}")
        return payload

    # Actor-scoped reads and mutations
    async def list_notifications(self, actor: User, limit: int = settings.DEFAULT_PAGE_SIZE,
                                 offset: int = 0,
                                 status: Optional[NotificationStatus] = None) -> ServiceResult:
        notifications = await self.repos.notifications.list_for_user(actor.id, limit, offset, status)
        page = NotificationPage(
            notifications=[notification_payload(n) for n in notifications],
            limit=limit,
            offset=offset,
            has_more=len(notifications) == limit,
        )
        return ServiceResult.ok("Notifications fetched successfully", page)

    async def unread_count(self, actor: User) -> ServiceResult:
        count = await self.repos.notifications.count_unread(actor.id)
        return ServiceResult.ok("Unread count fetched successfully", {"count": count})

    async def _after_read(self, actor: User, flipped: List[str]) -> None:
        if not flipped:
            return
        await self.unreads.decrement(actor.id, UnreadKind.NOTIFICATIONS, len(flipped))
        await self._publish(actor.id, NotificationBatchPayload(
            user_id=actor.id,
            notification_ids=flipped,
            notification_update=NotificationUpdateType.READ,
        ))

    async def mark_read(self, actor: User, notification_ids: Sequence[str]) -> ServiceResult:
        if not notification_ids:
            return ServiceResult.fail(ErrorKind.INVALID_ARGUMENT, "notificationIds are required")
        flipped = await self.repos.notifications.mark_read(actor.id, notification_ids)
        await self._after_read(actor, flipped)
        return ServiceResult.ok(
            f"{len(flipped)} notifications marked as read",
            BulkNotificationResult(affected=len(flipped), unread_affected=len(flipped)),
        )

    async def mark_all_read(self, actor: User) -> ServiceResult:
        flipped = await self.repos.notifications.mark_all_read(actor.id)
        await self._after_read(actor, flipped)
        return ServiceResult.ok(
            "All notifications marked as read",
            BulkNotificationResult(affected=len(flipped), unread_affected=len(flipped)),
        )

    async def delete_one(self, actor: User, notification_id: str) -> ServiceResult:
        deleted = await self.repos.notifications.delete(notification_id, actor.id)
        if deleted is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Notification not found")
        if deleted.is_unread:
            await self.unreads.decrement(actor.id, UnreadKind.NOTIFICATIONS)
        payload = notification_payload(deleted, NotificationUpdateType.DELETED)
        await self._publish(actor.id, payload)
        return ServiceResult.ok("Notification deleted successfully", payload)

    async def delete_all(self, actor: User) -> ServiceResult:
        deleted, unread = await self.repos.notifications.delete_all(actor.id)
        if unread:
            await self.unreads.decrement(actor.id, UnreadKind.NOTIFICATIONS, unread)
        if deleted:
            await self._publish(actor.id, NotificationBatchPayload(
                user_id=actor.id,
                notification_ids=[],
                notification_update=NotificationUpdateType.BATCH_DELETE,
            ))
        return ServiceResult.ok(
            f"{deleted} notifications deleted",
            BulkNotificationResult(affected=deleted, unread_affected=unread),
        )
