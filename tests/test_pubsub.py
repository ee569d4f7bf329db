"""
In-memory fan-out broker
"""
import pytest

from social_service.pubsub import InMemoryPubSub, Topics

from conftest import drain, next_event


@pytest.mark.asyncio
async def test_publish_reaches_every_subscriber_of_topic():
    broker = InMemoryPubSub()
    first = await broker.subscribe("POST_UPDATED_p1")
    second = await broker.subscribe("POST_UPDATED_p1")
    other = await broker.subscribe("POST_UPDATED_p2")

    delivered = await broker.publish("POST_UPDATED_p1", {"n": 1})

    assert delivered == 2
    assert await next_event(first) == {"n": 1}
    assert await next_event(second) == {"n": 1}
    assert await drain(other) == []


@pytest.mark.asyncio
async def test_publish_without_subscribers_is_dropped():
    broker = InMemoryPubSub()

    assert await broker.publish("NOTIFICATION_u1", {"n": 1}) == 0

    late = await broker.subscribe("NOTIFICATION_u1")
    assert await drain(late) == []


@pytest.mark.asyncio
async def test_events_arrive_in_publish_order():
    broker = InMemoryPubSub()
    sub = await broker.subscribe("USER_UNREADS_u1")

    for n in range(5):
        await broker.publish("USER_UNREADS_u1", {"n": n})

    assert [e["n"] for e in await drain(sub)] == [0, 1, 2, 3, 4]


@pytest.mark.asyncio
async def test_slow_subscriber_drops_oldest():
    broker = InMemoryPubSub(max_queue_size=2)
    sub = await broker.subscribe("USER_UNREADS_u1")

    for n in range(4):
        await broker.publish("USER_UNREADS_u1", {"n": n})

    assert [e["n"] for e in await drain(sub)] == [2, 3]


@pytest.mark.asyncio
async def test_aclose_unregisters_and_ends_iteration():
    broker = InMemoryPubSub()
    sub = await broker.subscribe("CONVERSATION_u1")
    assert broker.subscriber_count("CONVERSATION_u1") == 1

    await sub.aclose()

    assert broker.subscriber_count("CONVERSATION_u1") == 0
    assert [event async for event in sub] == []


def test_topic_parse():
    assert Topics.parse(Topics.message_received("c1")) == (Topics.MESSAGE_RECEIVED, "c1")
    assert Topics.parse("LINK_REQUEST_UPDATED_u9") == (Topics.LINK_REQUEST_UPDATED, "u9")
    assert Topics.parse("NOTIFICATION_") is None
    assert Topics.parse("SOMETHING_ELSE_1") is None
