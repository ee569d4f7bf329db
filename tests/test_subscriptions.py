"""
Subscription authorization and per-subscriber payload shaping
"""
import pytest

from social_service.auth import SessionContext
from social_service.errors import (
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
    UnauthenticatedError,
)
from social_service.pubsub import Topics

from conftest import drain, next_event, session_for


@pytest.mark.asyncio
@pytest.mark.parametrize("topic_for", [
    Topics.conversation,
    Topics.link_request_updated,
    Topics.notification,
    Topics.user_unreads,
])
async def test_user_topics_only_for_owner(services, alice, bob, topic_for):
    with pytest.raises(PermissionDeniedError):
        await services.gate.subscribe(session_for(bob), topic_for(alice.id))

    subscription = await services.gate.subscribe(session_for(alice), topic_for(alice.id))
    assert subscription.topic == topic_for(alice.id)
    await subscription.aclose()


@pytest.mark.asyncio
async def test_anonymous_session_is_rejected(services, alice):
    with pytest.raises(UnauthenticatedError):
        await services.gate.subscribe(SessionContext.anonymous(), Topics.conversation(alice.id))
    with pytest.raises(UnauthenticatedError):
        await services.gate.subscribe(SessionContext(user=alice, authenticated=False), Topics.conversation(alice.id))


@pytest.mark.asyncio
async def test_unknown_topic_is_invalid(services, alice):
    with pytest.raises(InvalidArgumentError):
        await services.gate.subscribe(session_for(alice), "WHATEVER_1")


@pytest.mark.asyncio
async def test_conversation_owner_receives_updates(services, alice, bob):
    subscription = await services.gate.subscribe(session_for(bob), Topics.conversation(bob.id))

    await services.messaging.send_message(alice, bob.id, "hello")

    event = await next_event(subscription)
    assert event["conversationUpdated"]["myUnreadCount"] == 1


@pytest.mark.asyncio
async def test_message_topic_requires_participant(services, alice, bob, carol):
    sent = await services.messaging.send_message(alice, bob.id, "hi")
    topic = Topics.message_received(sent.data.conversation_id)

    with pytest.raises(PermissionDeniedError):
        await services.gate.subscribe(session_for(carol), topic)
    with pytest.raises(NotFoundError):
        await services.gate.subscribe(session_for(alice), Topics.message_received("missing"))


@pytest.mark.asyncio
async def test_message_events_are_viewer_relative(services, alice, bob):
    sent = await services.messaging.send_message(alice, bob.id, "hi")
    topic = Topics.message_received(sent.data.conversation_id)
    alice_sub = await services.gate.subscribe(session_for(alice), topic)
    bob_sub = await services.gate.subscribe(session_for(bob), topic)

    await services.messaging.send_message(bob, alice.id, "hello back")

    for_alice = (await next_event(alice_sub))["messageReceived"]
    for_bob = (await next_event(bob_sub))["messageReceived"]
    assert for_alice["text"] == for_bob["text"] == "hello back"
    assert for_alice["isSenderYou"] is False
    assert for_bob["isSenderYou"] is True


@pytest.mark.asyncio
async def test_post_events_carry_subscriber_is_liked(services, alice, bob, article):
    await services.interactions.toggle_like(bob, article.id)
    alice_sub = await services.gate.subscribe(session_for(alice), Topics.post_updated(article.id))
    bob_sub = await services.gate.subscribe(session_for(bob), Topics.post_updated(article.id))

    await services.interactions.toggle_like(alice, article.id)

    for_alice = (await next_event(alice_sub))["postUpdated"]
    for_bob = (await next_event(bob_sub))["postUpdated"]
    assert for_alice["totalLikes"] == for_bob["totalLikes"] == 2
    assert for_alice["isLiked"] is True
    assert for_bob["isLiked"] is True

    await services.interactions.add_comment(alice, article.id, "no like flag here")
    comment_event = (await next_event(alice_sub))["postUpdated"]
    assert comment_event["action"] == "COMMENT_ADDED"
    assert comment_event["isLiked"] is None


@pytest.mark.asyncio
async def test_closed_subscription_stops_receiving(services, broker, alice):
    subscription = await services.gate.subscribe(session_for(alice), Topics.user_unreads(alice.id))
    await subscription.aclose()

    await services.unreads.increment(alice.id, "messages")

    assert broker.subscriber_count(Topics.user_unreads(alice.id)) == 0
    assert await drain(subscription) == []
