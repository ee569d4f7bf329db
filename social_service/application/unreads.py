"""
Unread aggregator - per-user cached unread counters

The only writer of ``User.unreads``. Every change is published to
USER_UNREADS_<userId>.
"""
from typing import List, Optional, Sequence, Union
import logging

from ..config import settings
from ..errors import ErrorKind, InvalidArgumentError
from ..domain.models import UnreadKind, UserUnreads
from ..domain.repositories import Repositories
from ..pubsub import PubSubBroker, Topics
from ..schemas import (
    ServiceResult,
    UnreadsBatchResult,
    UnreadsCounts,
    UnreadsVerification,
)
from .presenters import unreads_payload

logger = logging.getLogger(__name__)


def parse_kind(kind: Union[str, UnreadKind]) -> UnreadKind:
    """Validate an unread type name"""
    if isinstance(kind, UnreadKind):
        return kind
    try:
        return UnreadKind(kind)
    except ValueError:
        valid = ", ".join(k.value for k in UnreadKind)
        raise InvalidArgumentError(f"Invalid unread type. Must be one of: {valid}")


def _counts(unreads: UserUnreads) -> UnreadsCounts:
    return UnreadsCounts(
        notifications=unreads.notifications_unreads,
        messages=unreads.messages_unreads,
        total=unreads.total,
    )


class UnreadsService:
    """Maintains and reconciles notificationsUnreads / messagesUnreads"""

    def __init__(self, repos: Repositories, pubsub: PubSubBroker):
        self.repos = repos
        self.pubsub = pubsub

    async def _publish(self, user_id: str, unreads: UserUnreads) -> None:
        await self.pubsub.publish(
            Topics.user_unreads(user_id),
            {"unreadsUpdated": unreads_payload(user_id, unreads).to_wire()},
        )

    # Bookkeeping used by the other engines
    async def increment(self, user_id: str, kind: Union[str, UnreadKind],
                        amount: int = 1) -> Optional[UserUnreads]:
        kind = parse_kind(kind)
        if amount < 0:
            raise InvalidArgumentError("Count cannot be negative")
        if amount == 0:
            return await self.repos.users.get_unreads(user_id)
        unreads = await self.repos.users.increment_unreads(user_id, kind, amount)
        if unreads is None:
            logger.warning(f"Cannot increment {kind.value} unreads, user {user_id} not found")
            return None
        await self._publish(user_id, unreads)
        return unreads

    async def decrement(self, user_id: str, kind: Union[str, UnreadKind],
                        amount: int = 1) -> Optional[UserUnreads]:
        """Decrement, never below zero"""
        kind = parse_kind(kind)
        if amount < 0:
            raise InvalidArgumentError("Count cannot be negative")
        if amount == 0:
            return await self.repos.users.get_unreads(user_id)
        unreads = await self.repos.users.increment_unreads(user_id, kind, -amount)
        if unreads is None:
            logger.warning(f"Cannot decrement {kind.value} unreads, user {user_id} not found")
            return None
        await self._publish(user_id, unreads)
        return unreads

    async def set_count(self, user_id: str, kind: Union[str, UnreadKind],
                        count: int) -> Optional[UserUnreads]:
        kind = parse_kind(kind)
        if count < 0:
            raise InvalidArgumentError("Count cannot be negative")
        if kind == UnreadKind.NOTIFICATIONS:
            unreads = await self.repos.users.set_unreads(user_id, notifications=count)
        else:
            unreads = await self.repos.users.set_unreads(user_id, messages=count)
        if unreads is not None:
            await self._publish(user_id, unreads)
        return unreads

    # Queries and maintenance
    async def get_total(self, user_id: str) -> ServiceResult:
        """Cheap read of the cached counters"""
        unreads = await self.repos.users.get_unreads(user_id)
        if unreads is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "User not found")
        return ServiceResult.ok("Unreads fetched successfully", unreads_payload(user_id, unreads))

    async def reset(self, user_id: str, kind: Union[str, UnreadKind]) -> ServiceResult:
        try:
            kind = parse_kind(kind)
        except InvalidArgumentError as e:
            return ServiceResult.fail(e.kind, e.message)
        unreads = await self.set_count(user_id, kind, 0)
        if unreads is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "User not found")
        return ServiceResult.ok(
            f"{kind.value.capitalize()} unreads reset successfully",
            unreads_payload(user_id, unreads),
        )

    async def reset_all(self, user_id: str) -> ServiceResult:
        unreads = await self.repos.users.set_unreads(user_id, notifications=0, messages=0)
        if unreads is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "User not found")
        await self._publish(user_id, unreads)
        return ServiceResult.ok("All unreads reset successfully", unreads_payload(user_id, unreads))

    async def compute_actual(self, user_id: str) -> UserUnreads:
        """Recompute both counters from ground truth"""
        notifications = await self.repos.notifications.count_unread(user_id)
        conversations = await self.repos.conversations.list_for_user(user_id)
        messages = sum(c.unread_for(user_id) for c in conversations)
        return UserUnreads(notifications_unreads=notifications, messages_unreads=messages)

    async def sync(self, user_id: str) -> ServiceResult:
        """Overwrite the cache with recomputed counters"""
        if await self.repos.users.get_unreads(user_id) is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "User not found")
        actual = await self.compute_actual(user_id)
        unreads = await self.repos.users.set_unreads(
            user_id,
            notifications=actual.notifications_unreads,
            messages=actual.messages_unreads,
        )
        await self._publish(user_id, unreads)
        logger.info(
            f"Synced unreads for {user_id}: notifications={unreads.notifications_unreads}, "
            f"messages={unreads.messages_unreads}"
        )
        return ServiceResult.ok("Unreads synced successfully", unreads_payload(user_id, unreads))

    async def verify(self, user_id: str) -> ServiceResult:
        """Compare cached and recomputed counters without mutating"""
        stored = await self.repos.users.get_unreads(user_id)
        if stored is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "User not found")
        actual = await self.compute_actual(user_id)
        differences = UserUnreads(
            notifications_unreads=actual.notifications_unreads - stored.notifications_unreads,
            messages_unreads=actual.messages_unreads - stored.messages_unreads,
        )
        is_accurate = (
            differences.notifications_unreads == 0 and differences.messages_unreads == 0
        )
        if not is_accurate:
            logger.warning(
                f"Unread drift for {user_id}: stored={stored}, actual={actual}"
            )
        return ServiceResult.ok(
            "Unreads verified",
            UnreadsVerification(
                user_id=user_id,
                is_accurate=is_accurate,
                stored=_counts(stored),
                actual=_counts(actual),
                differences=_counts(differences),
            ),
        )

    async def batch_sync(self, user_ids: Sequence[str]) -> ServiceResult:
        """Sync several users; one failure does not stop the rest"""
        failed: List[str] = []
        synced = 0
        for user_id in user_ids:
            try:
                result = await self.sync(user_id)
            except Exception as e:
                logger.error(f"Failed to sync unreads for {user_id}: {e}")
                failed.append(user_id)
                continue
            if result.success:
                synced += 1
            else:
                failed.append(user_id)
        return ServiceResult.ok(
            f"Synced unreads for {synced} of {len(user_ids)} users",
            UnreadsBatchResult(
                total=len(user_ids), synced=synced, failed=len(failed), failed_user_ids=failed
            ),
        )

    async def sync_all(self, batch_size: Optional[int] = None) -> ServiceResult:
        batch_size = batch_size or settings.UNREADS_SYNC_BATCH_SIZE
        if batch_size <= 0:
            return ServiceResult.fail(ErrorKind.INVALID_ARGUMENT, "Batch size must be positive")
        total = synced = 0
        failed: List[str] = []
        offset = 0
        while True:
            user_ids = await self.repos.users.list_ids(batch_size, offset)
            if not user_ids:
                break
            result = await self.batch_sync(user_ids)
            batch: UnreadsBatchResult = result.data
            total += batch.total
            synced += batch.synced
            failed.extend(batch.failed_user_ids)
            offset += len(user_ids)
            logger.info(f"Unreads sync progress: {offset} users processed")
        return ServiceResult.ok(
            f"Synced unreads for {synced} of {total} users",
            UnreadsBatchResult(total=total, synced=synced, failed=len(failed), failed_user_ids=failed),
        )
