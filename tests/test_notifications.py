"""
Notification lifecycle and unread bookkeeping
"""
import pytest

from social_service.domain.models import (
    NotificationSource,
    NotificationStatus,
    NotificationType,
    NotificationUpdateType,
)
from social_service.pubsub import Topics

from conftest import drain


async def _seed(services, user, count):
    return [
        await services.notifications.create_promotional(user.id, f"Promo {i}", "Sale")
        for i in range(count)
    ]


@pytest.mark.asyncio
async def test_create_persists_counts_publishes_and_pushes(services, repos, broker, push, alice, bob):
    sub = await broker.subscribe(Topics.notification(bob.id))

    payload = await services.notifications.create_social_activity(
        bob.id, alice, "New Message", "alice sent you a message!",
        action_label="View Message", action_url="conv-1",
    )

    assert payload.type == NotificationType.SOCIAL_ACTIVITY
    assert payload.source.id == alice.id
    assert (await repos.users.get_unreads(bob.id)).notifications_unreads == 1
    [event] = await drain(sub)
    assert event["notificationUpdateListen"]["notificationUpdate"] == "NEW"
    assert event["notificationUpdateListen"]["action"] == {"label": "View Message", "url": "conv-1"}
    assert push.sent[0]["user_id"] == bob.id
    assert push.sent[0]["data"]["url"] == "conv-1"


@pytest.mark.asyncio
async def test_typed_constructors(services, alice):
    company = NotificationSource(id="acme", name="Acme", avatar_url=None)

    job = await services.notifications.create_job_opportunity(alice.id, company, "Hiring")
    rec = await services.notifications.create_content_recommendation(
        alice.id, company, "Read this", image_url="https://cdn.example.com/r.png"
    )
    pick = await services.notifications.create_personalized_suggestion(alice.id, company, "For you")
    profile = await services.notifications.create_profile_activity(alice.id, "Viewed", action_label="See")

    assert job.type == NotificationType.JOB_OPPORTUNITY
    assert rec.image_url == "https://cdn.example.com/r.png"
    assert pick.type == NotificationType.PERSONALIZED_SUGGESTION
    assert profile.action is None


@pytest.mark.asyncio
async def test_list_newest_first_with_has_more(services, alice):
    await _seed(services, alice, 3)

    page = (await services.notifications.list_notifications(alice, limit=2)).data
    rest = (await services.notifications.list_notifications(alice, limit=2, offset=2)).data

    assert [n.title for n in page.notifications] == ["Promo 2", "Promo 1"]
    assert page.has_more
    assert [n.title for n in rest.notifications] == ["Promo 0"]
    assert not rest.has_more


@pytest.mark.asyncio
async def test_mark_read_decrements_by_flipped_rows(services, repos, broker, alice):
    created = await _seed(services, alice, 3)
    sub = await broker.subscribe(Topics.notification(alice.id))

    first = await services.notifications.mark_read(alice, [created[0].id, created[0].id])
    again = await services.notifications.mark_read(alice, [created[0].id])

    assert first.data.affected == 1
    assert again.data.affected == 0
    assert (await repos.users.get_unreads(alice.id)).notifications_unreads == 2
    [event] = await drain(sub)
    assert event["notificationUpdateListen"]["notificationUpdate"] == "READ"
    assert event["notificationUpdateListen"]["notificationIds"] == [created[0].id]

    unread = await services.notifications.list_notifications(alice, status=NotificationStatus.UNREAD)
    assert len(unread.data.notifications) == 2


@pytest.mark.asyncio
async def test_mark_read_requires_ids(services, alice):
    result = await services.notifications.mark_read(alice, [])
    assert result.status_code == 400


@pytest.mark.asyncio
async def test_mark_all_read_and_unread_count(services, repos, alice):
    await _seed(services, alice, 2)
    assert (await services.notifications.unread_count(alice)).data == {"count": 2}

    result = await services.notifications.mark_all_read(alice)

    assert result.data.affected == 2
    assert (await services.notifications.unread_count(alice)).data == {"count": 0}
    assert (await repos.users.get_unreads(alice.id)).notifications_unreads == 0


@pytest.mark.asyncio
async def test_delete_one_only_for_owner(services, repos, broker, alice, bob):
    [created] = await _seed(services, alice, 1)
    sub = await broker.subscribe(Topics.notification(alice.id))

    denied = await services.notifications.delete_one(bob, created.id)
    deleted = await services.notifications.delete_one(alice, created.id)

    assert denied.status_code == 404
    assert deleted.data.notification_update == NotificationUpdateType.DELETED
    assert (await repos.users.get_unreads(alice.id)).notifications_unreads == 0
    [event] = await drain(sub)
    assert event["notificationUpdateListen"]["id"] == created.id


@pytest.mark.asyncio
async def test_delete_read_notification_keeps_counter(services, repos, alice):
    created = await _seed(services, alice, 2)
    await services.notifications.mark_read(alice, [created[0].id])

    await services.notifications.delete_one(alice, created[0].id)

    assert (await repos.users.get_unreads(alice.id)).notifications_unreads == 1


@pytest.mark.asyncio
async def test_delete_all(services, repos, alice):
    created = await _seed(services, alice, 3)
    await services.notifications.mark_read(alice, [created[0].id])

    result = await services.notifications.delete_all(alice)

    assert result.data.affected == 3
    assert result.data.unread_affected == 2
    assert (await repos.users.get_unreads(alice.id)).notifications_unreads == 0
    assert await repos.notifications.list_for_user(alice.id, limit=10) == []
