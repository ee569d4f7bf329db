"""
Relationship engine - link request state machine

    none -> sent -> linked | withdrawn | rejected
    linked -> none (removeLink)

Pending state lives in the users' sent_links / received_links arrays.
"""
from datetime import datetime
from typing import List, Optional, Tuple
import logging
import time

from ..config import settings
from ..errors import ErrorKind
from ..domain.models import LINK_REQUEST_TITLE, LinkStatus, User
from ..domain.repositories import Repositories
from ..pubsub import PubSubBroker, Topics
from ..schemas import LinkRequestPayload, LinkStatePayload, ServiceResult, UserPage
from .notifications import NotificationService, safe_notification
from .presenters import link_party, summaries

logger = logging.getLogger(__name__)


def _remove(ids: List[str], user_id: str) -> List[str]:
    return [i for i in ids if i != user_id]


def _add(ids: List[str], user_id: str) -> List[str]:
    return ids if user_id in ids else ids + [user_id]


class RelationshipService:
    """Business logic for link requests and links"""

    def __init__(self, repos: Repositories, pubsub: PubSubBroker,
                 notifications: NotificationService):
        self.repos = repos
        self.pubsub = pubsub
        self.notifications = notifications

    async def _load_pair(self, actor: User, other_id: str) -> Tuple[User, Optional[User]]:
        """Fresh copies of both users; the session copy may be stale"""
        me = await self.repos.users.find_by_id(actor.id) or actor
        other = await self.repos.users.find_by_id(other_id)
        return me, other

    def _event(self, sender: User, receiver: User, status: LinkStatus,
               with_totals: bool = False) -> LinkRequestPayload:
        now = datetime.utcnow()
        return LinkRequestPayload(
            id=f"{sender.id}_{receiver.id}_{int(time.time() * 1000)}",
            sender=link_party(sender, with_totals),
            receiver=link_party(receiver, with_totals),
            status=status,
            created_at=now,
            updated_at=now,
        )

    async def _publish(self, user_id: str, payload: LinkRequestPayload) -> None:
        """
        Push a link update to one user's topic.

        Only a new pending request is viewer-tagged (sender sees "sent", receiver
        sees "accept"). Terminal states publish the same payload to both sides.
        """
        await self.pubsub.publish(
            Topics.link_request_updated(user_id), {"linkRequestUpdated": payload.to_wire()}
        )

    async def _drop_request_notification(self, recipient_id: str, actor_id: str, context: str):
        await safe_notification(
            lambda: self.notifications.delete_link_request_notification(recipient_id, actor_id),
            context,
        )

    async def send_link_request(self, actor: User, target_id: str) -> ServiceResult:
        """
        Send a link request

        Args:
            actor: Requesting user
            target_id: User to link with

        Returns:
            ServiceResult carrying the sender's view of the request
        """
        if target_id == actor.id:
            return ServiceResult.fail(ErrorKind.INVALID_ARGUMENT, "You cannot send a link request to yourself")

        me, target = await self._load_pair(actor, target_id)
        if target is None:
            return ServiceResult.fail(ErrorKind.INVALID_ARGUMENT, "Receiver not found")

        if me.is_linked_to(target.id) and target.is_linked_to(me.id):
            return ServiceResult.fail(ErrorKind.CONFLICT, "You are already linked with this user")
        if me.has_sent_to(target.id):
            return ServiceResult.fail(ErrorKind.CONFLICT, "Link request already sent")
        if me.has_received_from(target.id):
            return ServiceResult.fail(
                ErrorKind.CONFLICT, "This user has already sent you a link request"
            )

        me.sent_links = _add(me.sent_links, target.id)
        target.received_links = _add(target.received_links, me.id)
        await self.repos.users.save_relationships([me, target])

        sender_view = self._event(me, target, LinkStatus.SENT)
        receiver_view = sender_view.model_copy(update={"status": LinkStatus.ACCEPT})
        await self._publish(me.id, sender_view)
        await self._publish(target.id, receiver_view)

        name = me.display_name
        await safe_notification(
            lambda: self.notifications.create_social_activity(
                target.id, me, LINK_REQUEST_TITLE, f"{name} sent you a link request!",
                action_label="Accept", action_url=me.id,
            ),
            "Link request notification",
        )

        logger.info(f"User {me.id} sent link request to {target.id}")
        return ServiceResult.ok("Link request sent successfully.", sender_view)

    async def withdraw_link_request(self, actor: User, target_id: str) -> ServiceResult:
        me, target = await self._load_pair(actor, target_id)
        if target is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Receiver not found")
        if not me.has_sent_to(target.id):
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "No link request found to withdraw")

        me.sent_links = _remove(me.sent_links, target.id)
        target.received_links = _remove(target.received_links, me.id)
        await self.repos.users.save_relationships([me, target])

        update = self._event(me, target, LinkStatus.WITHDRAWN)
        await self._publish(me.id, update)
        await self._publish(target.id, update)

        await self._drop_request_notification(target.id, me.id, "Link request withdrawal notification")

        logger.info(f"User {me.id} withdrew link request to {target.id}")
        return ServiceResult.ok("Link request withdrawn successfully.", update)

    async def accept_link_request(self, actor: User, sender_id: str) -> ServiceResult:
        me, sender = await self._load_pair(actor, sender_id)
        if sender is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Sender not found")

        if me.is_linked_to(sender.id) and sender.is_linked_to(me.id):
            return ServiceResult.fail(ErrorKind.CONFLICT, "You are already linked with this user")
        if not me.has_received_from(sender.id):
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "No link request found from this user")

        me.received_links = _remove(me.received_links, sender.id)
        sender.sent_links = _remove(sender.sent_links, me.id)
        me.links = _add(me.links, sender.id)
        sender.links = _add(sender.links, me.id)
        await self.repos.users.save_relationships([me, sender])

        update = self._event(sender, me, LinkStatus.LINKED, with_totals=True)
        await self._publish(sender.id, update)
        await self._publish(me.id, update)

        await self._drop_request_notification(me.id, sender.id, "Link request accept notification")

        logger.info(f"User {me.id} accepted link request from {sender.id}")
        return ServiceResult.ok("Link request accepted successfully.", update)

    async def reject_link_request(self, actor: User, sender_id: str) -> ServiceResult:
        me, sender = await self._load_pair(actor, sender_id)
        if sender is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Sender not found")
        if not me.has_received_from(sender.id):
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "No link request found from this user")

        me.received_links = _remove(me.received_links, sender.id)
        sender.sent_links = _remove(sender.sent_links, me.id)
        await self.repos.users.save_relationships([me, sender])

        update = self._event(sender, me, LinkStatus.REJECTED)
        await self._publish(sender.id, update)
        await self._publish(me.id, update)

        await self._drop_request_notification(me.id, sender.id, "Link request reject notification")

        logger.info(f"User {me.id} rejected link request from {sender.id}")
        return ServiceResult.ok("Link request rejected successfully.", update)

    async def remove_link(self, actor: User, linked_user_id: str) -> ServiceResult:
        me, other = await self._load_pair(actor, linked_user_id)
        if other is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "User not found")
        # A half-written link still counts, so removal can repair it
        if not (me.is_linked_to(other.id) or other.is_linked_to(me.id)):
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "You are not linked with this user")

        me.links = _remove(me.links, other.id)
        other.links = _remove(other.links, me.id)
        await self.repos.users.save_relationships([me, other])

        update = self._event(me, other, LinkStatus.REMOVED, with_totals=True)
        await self._publish(me.id, update)
        await self._publish(other.id, update)

        logger.info(f"User {me.id} removed link with {other.id}")
        return ServiceResult.ok("Link removed successfully.", update)

    # Queries
    async def get_link_state(self, actor: User, other_id: str) -> ServiceResult:
        me, other = await self._load_pair(actor, other_id)
        if other is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "User not found")
        return ServiceResult.ok(
            "Link state fetched successfully",
            LinkStatePayload(user_id=other.id, state=me.relationship_with(other.id)),
        )

    async def _page(self, ids: List[str], limit: int, offset: int) -> UserPage:
        window = ids[offset:offset + limit]
        users = await self.repos.users.find_by_ids(window)
        return UserPage(
            users=summaries(users),
            total=len(ids),
            limit=limit,
            offset=offset,
            has_more=offset + len(window) < len(ids),
        )

    async def list_links(self, actor: User, limit: int = settings.DEFAULT_PAGE_SIZE,
                         offset: int = 0) -> ServiceResult:
        me = await self.repos.users.find_by_id(actor.id) or actor
        return ServiceResult.ok("Links fetched successfully", await self._page(me.links, limit, offset))

    async def list_sent_requests(self, actor: User, limit: int = settings.DEFAULT_PAGE_SIZE,
                                 offset: int = 0) -> ServiceResult:
        me = await self.repos.users.find_by_id(actor.id) or actor
        return ServiceResult.ok(
            "Sent link requests fetched successfully", await self._page(me.sent_links, limit, offset)
        )

    async def list_received_requests(self, actor: User, limit: int = settings.DEFAULT_PAGE_SIZE,
                                     offset: int = 0) -> ServiceResult:
        me = await self.repos.users.find_by_id(actor.id) or actor
        return ServiceResult.ok(
            "Received link requests fetched successfully",
            await self._page(me.received_links, limit, offset),
        )
