"""
Unread aggregator bookkeeping and reconciliation
"""
import pytest

from social_service.domain.models import UnreadKind
from social_service.errors import InvalidArgumentError
from social_service.pubsub import Topics

from conftest import drain


@pytest.mark.asyncio
async def test_increment_publishes_totals(services, broker, alice):
    sub = await broker.subscribe(Topics.user_unreads(alice.id))

    await services.unreads.increment(alice.id, "messages", 2)
    await services.unreads.increment(alice.id, UnreadKind.NOTIFICATIONS)

    events = [e["unreadsUpdated"] for e in await drain(sub)]
    assert events[-1] == {
        "userId": alice.id,
        "notificationsUnreads": 1,
        "messagesUnreads": 2,
        "totalUnreads": 3,
    }


@pytest.mark.asyncio
async def test_decrement_never_goes_negative(services, repos, alice):
    await services.unreads.increment(alice.id, "notifications")

    await services.unreads.decrement(alice.id, "notifications", 5)

    assert (await repos.users.get_unreads(alice.id)).notifications_unreads == 0


@pytest.mark.asyncio
async def test_invalid_kind_and_negative_counts_raise(services, alice):
    with pytest.raises(InvalidArgumentError):
        await services.unreads.increment(alice.id, "likes")
    with pytest.raises(InvalidArgumentError):
        await services.unreads.set_count(alice.id, "messages", -1)


@pytest.mark.asyncio
async def test_reset_by_kind_and_all(services, alice):
    await services.unreads.increment(alice.id, "notifications", 3)
    await services.unreads.increment(alice.id, "messages", 4)

    reset = await services.unreads.reset(alice.id, "notifications")
    assert reset.data.notifications_unreads == 0
    assert reset.data.messages_unreads == 4

    bad = await services.unreads.reset(alice.id, "likes")
    assert bad.status_code == 400

    everything = await services.unreads.reset_all(alice.id)
    assert everything.data.total_unreads == 0


@pytest.mark.asyncio
async def test_get_total_for_unknown_user(services):
    result = await services.unreads.get_total("nobody")
    assert result.status_code == 404


@pytest.mark.asyncio
async def test_counters_track_messages_and_notifications(services, repos, alice, bob):
    await services.messaging.send_message(alice, bob.id, "one")
    await services.messaging.send_message(alice, bob.id, "two")

    total = (await services.unreads.get_total(bob.id)).data
    assert total.messages_unreads == 2
    assert total.notifications_unreads == 2

    verification = (await services.unreads.verify(bob.id)).data
    assert verification.is_accurate


@pytest.mark.asyncio
async def test_verify_detects_and_sync_repairs_drift(services, repos, alice, bob):
    await services.messaging.send_message(alice, bob.id, "hi")
    await repos.users.set_unreads(bob.id, notifications=9, messages=0)

    verification = (await services.unreads.verify(bob.id)).data
    assert not verification.is_accurate
    assert verification.differences.notifications == -8
    assert verification.differences.messages == 1

    synced = await services.unreads.sync(bob.id)
    assert synced.data.notifications_unreads == 1
    assert synced.data.messages_unreads == 1
    assert (await services.unreads.verify(bob.id)).data.is_accurate


@pytest.mark.asyncio
async def test_batch_sync_reports_failures(services, alice, bob):
    result = await services.unreads.batch_sync([alice.id, "ghost", bob.id])

    assert result.data.total == 3
    assert result.data.synced == 2
    assert result.data.failed_user_ids == ["ghost"]


@pytest.mark.asyncio
async def test_sync_all_walks_every_user(services, repos, alice, bob, carol):
    await repos.users.set_unreads(carol.id, notifications=4)

    result = await services.unreads.sync_all(batch_size=2)

    assert result.data.total == 3
    assert result.data.synced == 3
    assert (await repos.users.get_unreads(carol.id)).notifications_unreads == 0
