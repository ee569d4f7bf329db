"""
Conversations, messages and per-participant unread counters
"""
import asyncio
import inspect

import pytest

from social_service.pubsub import Topics

from conftest import drain


async def _titles(repos, user):
    return [n.title for n in await repos.notifications.list_for_user(user.id, limit=50)]


def _suspend_store_calls(monkeypatch, *stores):
    """Every store coroutine yields to the loop once, as a network round trip would"""
    for store in stores:
        for name in dir(store):
            method = getattr(store, name)
            if name.startswith("_") or not inspect.iscoroutinefunction(method):
                continue

            async def suspended(*args, _method=method, **kwargs):
                await asyncio.sleep(0)
                return await _method(*args, **kwargs)

            monkeypatch.setattr(store, name, suspended)


@pytest.mark.asyncio
async def test_first_message_creates_conversation(services, repos, alice, bob):
    result = await services.messaging.send_message(alice, bob.id, "hi")

    assert result.success
    assert result.status_code == 201
    assert result.data.is_sender_you
    conversation = await repos.conversations.find_by_id(result.data.conversation_id)
    assert sorted(conversation.participants) == sorted([alice.id, bob.id])
    assert conversation.unread_counts == {alice.id: 0, bob.id: 1}
    assert await _titles(repos, bob) == ["New Conversation"]


@pytest.mark.asyncio
async def test_second_message_reuses_conversation(services, repos, alice, bob):
    first = await services.messaging.send_message(alice, bob.id, "hi")
    second = await services.messaging.send_message(alice, bob.id, "again")

    assert first.data.conversation_id == second.data.conversation_id
    conversation = await repos.conversations.find_by_id(second.data.conversation_id)
    assert conversation.unread_counts == {alice.id: 0, bob.id: 2}
    # Newest first
    assert await _titles(repos, bob) == ["New Message", "New Conversation"]


@pytest.mark.asyncio
async def test_reply_resets_sender_counter(services, repos, alice, bob):
    sent = await services.messaging.send_message(alice, bob.id, "hi")
    await services.messaging.send_message(bob, alice.id, "hey")

    conversation = await repos.conversations.find_by_id(sent.data.conversation_id)
    assert conversation.unread_counts == {alice.id: 1, bob.id: 0}
    assert (await repos.users.get_unreads(bob.id)).messages_unreads == 0
    assert (await repos.users.get_unreads(alice.id)).messages_unreads == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("recipient, text, message_type, status", [
    ("self", "hi", "text", 400),
    ("bob", "hi", "sticker", 400),
    ("bob", "   ", "text", 400),
    ("nobody", "hi", "text", 404),
])
async def test_send_message_rejects_bad_input(services, alice, bob, recipient, text, message_type, status):
    recipient_id = {"self": alice.id, "bob": bob.id}.get(recipient, recipient)

    result = await services.messaging.send_message(alice, recipient_id, text, message_type)

    assert not result.success
    assert result.status_code == status


@pytest.mark.asyncio
async def test_attachment_message_stores_url(services, alice, bob):
    url = "https://cdn.example.com/attachments/a.png"

    result = await services.messaging.send_message(alice, bob.id, url, "IMAGE")

    assert result.success
    assert result.data.text is None
    assert result.data.attachments[0].url == url
    assert result.data.attachments[0].file_type == "image"


@pytest.mark.asyncio
async def test_mark_seen_resets_counter_and_aggregate(services, repos, alice, bob):
    sent = await services.messaging.send_message(alice, bob.id, "one")
    await services.messaging.send_message(alice, bob.id, "two")
    conversation_id = sent.data.conversation_id
    assert (await repos.users.get_unreads(bob.id)).messages_unreads == 2

    result = await services.messaging.mark_seen(bob, conversation_id)

    assert result.success
    assert result.data.seen_count == 2
    conversation = await repos.conversations.find_by_id(conversation_id)
    assert conversation.unread_for(bob.id) == 0
    assert (await repos.users.get_unreads(bob.id)).messages_unreads == 0
    messages = await repos.messages.list_for_conversation(conversation_id, bob.id, limit=10)
    assert all(bob.id in m.seen_by for m in messages)


@pytest.mark.asyncio
async def test_mark_seen_requires_participant(services, alice, bob, carol):
    sent = await services.messaging.send_message(alice, bob.id, "private")

    denied = await services.messaging.mark_seen(carol, sent.data.conversation_id)
    missing = await services.messaging.mark_seen(carol, "missing")

    assert denied.status_code == 403
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_send_publishes_conversation_views_and_one_message_event(services, broker, alice, bob):
    alice_conv = await broker.subscribe(Topics.conversation(alice.id))
    bob_conv = await broker.subscribe(Topics.conversation(bob.id))

    result = await services.messaging.send_message(alice, bob.id, "hi")
    messages = await broker.subscribe(Topics.message_received(result.data.conversation_id))
    await services.messaging.send_message(alice, bob.id, "second")

    alice_view = (await drain(alice_conv))[-1]["conversationUpdated"]
    bob_view = (await drain(bob_conv))[-1]["conversationUpdated"]
    assert alice_view["myUnreadCount"] == 0
    assert bob_view["myUnreadCount"] == 2
    assert alice_view["otherUser"]["id"] == bob.id
    assert bob_view["otherUser"]["id"] == alice.id
    assert bob_view["lastMessage"]["text"] == "second"

    events = await drain(messages)
    assert len(events) == 1
    assert events[0]["messageReceived"]["text"] == "second"


@pytest.mark.asyncio
async def test_my_conversations_most_recent_first(services, alice, bob, carol):
    await services.messaging.send_message(alice, bob.id, "to bob")
    await services.messaging.send_message(alice, carol.id, "to carol")

    result = await services.messaging.my_conversations(alice)

    assert [c.other_user.id for c in result.data] == [carol.id, bob.id]
    assert result.data[0].last_message.text == "to carol"


@pytest.mark.asyncio
async def test_get_messages_newest_first_and_participant_only(services, alice, bob, carol):
    sent = await services.messaging.send_message(alice, bob.id, "one")
    await services.messaging.send_message(bob, alice.id, "two")

    result = await services.messaging.get_messages(alice, sent.data.conversation_id)
    denied = await services.messaging.get_messages(carol, sent.data.conversation_id)

    assert [m.text for m in result.data] == ["two", "one"]
    assert [m.is_sender_you for m in result.data] == [False, True]
    assert denied.status_code == 403


@pytest.mark.asyncio
async def test_delete_message_for_me_hides_only_for_actor(services, alice, bob):
    sent = await services.messaging.send_message(alice, bob.id, "oops")

    result = await services.messaging.delete_message_for_me(alice, sent.data.id)
    again = await services.messaging.delete_message_for_me(alice, sent.data.id)

    assert result.success
    assert again.status_code == 409
    mine = await services.messaging.get_messages(alice, sent.data.conversation_id)
    theirs = await services.messaging.get_messages(bob, sent.data.conversation_id)
    assert mine.data == []
    assert [m.text for m in theirs.data] == ["oops"]


@pytest.mark.asyncio
async def test_search_conversations_matches_other_participant(services, alice, bob, carol):
    await services.messaging.send_message(alice, bob.id, "hi bob")
    await services.messaging.send_message(alice, carol.id, "hi carol")

    by_name = await services.messaging.search_conversations(alice, "builder")
    by_username = await services.messaging.search_conversations(alice, "CAR")
    empty = await services.messaging.search_conversations(alice, "  ")

    assert [c.other_user.id for c in by_name.data] == [bob.id]
    assert [c.other_user.id for c in by_username.data] == [carol.id]
    assert empty.data == []


@pytest.mark.asyncio
async def test_push_failure_does_not_fail_send(repos, broker, alice, bob):
    from social_service.container import build_services
    from conftest import RecordingPush

    services = build_services(repos, broker, push=RecordingPush(fail=True))

    result = await services.messaging.send_message(alice, bob.id, "still delivered")

    assert result.success
    assert len(await repos.notifications.list_for_user(bob.id, limit=10)) == 1


@pytest.mark.asyncio
async def test_crossing_first_messages_share_one_conversation(services, repos, monkeypatch, alice, bob):
    _suspend_store_calls(monkeypatch, repos.conversations, repos.messages)

    to_bob, to_alice = await asyncio.gather(
        services.messaging.send_message(alice, bob.id, "hi bob"),
        services.messaging.send_message(bob, alice.id, "hi alice"),
    )

    assert to_bob.data.conversation_id == to_alice.data.conversation_id
    assert len(await repos.conversations.list_for_user(alice.id)) == 1
    assert sorted(await _titles(repos, alice) + await _titles(repos, bob)) == [
        "New Conversation", "New Message",
    ]


@pytest.mark.asyncio
async def test_concurrent_sends_keep_counter_and_aggregate_in_step(services, repos, monkeypatch, alice, bob):
    sent = await services.messaging.send_message(alice, bob.id, "first")
    await services.messaging.mark_seen(bob, sent.data.conversation_id)
    _suspend_store_calls(monkeypatch, repos.conversations, repos.messages)

    await asyncio.gather(
        services.messaging.send_message(alice, bob.id, "a"),
        services.messaging.send_message(alice, bob.id, "b"),
    )

    conversation = await repos.conversations.find_by_id(sent.data.conversation_id)
    assert conversation.unread_for(bob.id) == 2
    assert (await repos.users.get_unreads(bob.id)).messages_unreads == 2


@pytest.mark.asyncio
async def test_mark_seen_by_id_only_touches_listed_messages(services, repos, alice, bob):
    sent = [
        await services.messaging.send_message(alice, bob.id, text)
        for text in ("one", "two", "three")
    ]
    conversation_id = sent[0].data.conversation_id

    result = await services.messaging.mark_seen(bob, conversation_id, [sent[1].data.id])

    assert result.data.seen_count == 1
    messages = await repos.messages.list_for_conversation(conversation_id, bob.id, limit=10)
    assert [m.text for m in messages if bob.id in m.seen_by] == ["two"]
    # The whole conversation counter still resets
    conversation = await repos.conversations.find_by_id(conversation_id)
    assert conversation.unread_for(bob.id) == 0
    assert (await repos.users.get_unreads(bob.id)).messages_unreads == 0
