"""
Likes, comments and post counters
"""
import pytest

from social_service.application.interactions import InteractionService
from social_service.domain.models import PostAction
from social_service.pubsub import Topics

from conftest import drain


@pytest.mark.asyncio
async def test_like_then_unlike_round_trips_counter(services, repos, broker, alice, article):
    sub = await broker.subscribe(Topics.post_updated(article.id))

    liked = await services.interactions.toggle_like(alice, article.id)
    assert liked.data.liked and liked.data.total_likes == 1
    assert await repos.likes.find(article.id, alice.id) is not None

    unliked = await services.interactions.toggle_like(alice, article.id)
    assert not unliked.data.liked and unliked.data.total_likes == 0
    assert await repos.likes.find(article.id, alice.id) is None
    assert (await repos.posts.find_by_id(article.id)).likes_count == 0

    events = [e["postUpdated"] for e in await drain(sub)]
    assert [e["action"] for e in events] == ["LIKE", "UNLIKE"]
    assert [e["totalLikes"] for e in events] == [1, 0]
    assert events[0]["like"] == {"userId": alice.id}


@pytest.mark.asyncio
async def test_like_missing_post_is_not_found(services, alice):
    result = await services.interactions.toggle_like(alice, "missing")
    assert result.status_code == 404


@pytest.mark.asyncio
async def test_add_comment_and_reply(services, repos, broker, alice, bob, article):
    sub = await broker.subscribe(Topics.post_updated(article.id))

    top = await services.interactions.add_comment(alice, article.id, "  nice post  ")
    reply = await services.interactions.add_comment(bob, article.id, "thanks", top.data.id)

    assert top.status_code == 201
    assert top.data.text == "nice post"
    assert top.data.reply_count == 0
    assert reply.data.parent_comment_id == top.data.id
    assert (await repos.posts.find_by_id(article.id)).comments_count == 2

    events = [e["postUpdated"] for e in await drain(sub)]
    assert [e["action"] for e in events] == ["COMMENT_ADDED", "COMMENT_ADDED"]
    assert events[-1]["totalComments"] == 2
    assert events[-1]["comment"]["text"] == "thanks"


@pytest.mark.asyncio
async def test_replies_are_one_level_deep(services, alice, bob, article):
    top = await services.interactions.add_comment(alice, article.id, "top")
    reply = await services.interactions.add_comment(bob, article.id, "reply", top.data.id)

    nested = await services.interactions.add_comment(alice, article.id, "nested", reply.data.id)

    assert nested.status_code == 400


@pytest.mark.asyncio
async def test_reply_parent_must_belong_to_post(services, alice, article, photo):
    top = await services.interactions.add_comment(alice, article.id, "top")

    result = await services.interactions.add_comment(alice, photo.id, "elsewhere", top.data.id)

    assert result.status_code == 404


@pytest.mark.asyncio
async def test_empty_comment_is_invalid(services, alice, article):
    result = await services.interactions.add_comment(alice, article.id, "   ")
    assert result.status_code == 400


@pytest.mark.asyncio
async def test_edit_comment_owner_only(services, broker, alice, bob, article):
    comment = await services.interactions.add_comment(alice, article.id, "first draft")
    sub = await broker.subscribe(Topics.post_updated(article.id))

    denied = await services.interactions.edit_comment(bob, comment.data.id, "hijack")
    edited = await services.interactions.edit_comment(alice, comment.data.id, "final")

    assert denied.status_code == 403
    assert edited.data.text == "final"
    [event] = await drain(sub)
    assert event["postUpdated"]["action"] == "COMMENT_UPDATED"
    assert event["postUpdated"]["commentId"] == comment.data.id


@pytest.mark.asyncio
async def test_delete_comment_cascades_replies(services, repos, alice, bob, article):
    top = await services.interactions.add_comment(alice, article.id, "top")
    reply = await services.interactions.add_comment(bob, article.id, "reply", top.data.id)
    await services.interactions.toggle_comment_like(bob, reply.data.id)
    await services.interactions.add_comment(bob, article.id, "another")

    denied = await services.interactions.delete_comment(bob, top.data.id)
    deleted = await services.interactions.delete_comment(alice, top.data.id)

    assert denied.status_code == 403
    assert deleted.success
    assert deleted.data.action == PostAction.COMMENT_DELETED
    assert await repos.comments.find_by_id(reply.data.id) is None
    assert await repos.comment_likes.count_for_comment(reply.data.id) == 0
    post = await repos.posts.find_by_id(article.id)
    assert post.comments_count == 1 == await repos.comments.count_for_post(article.id)


@pytest.mark.asyncio
async def test_toggle_comment_like(services, alice, article):
    comment = await services.interactions.add_comment(alice, article.id, "like me")

    liked = await services.interactions.toggle_comment_like(alice, comment.data.id)
    unliked = await services.interactions.toggle_comment_like(alice, comment.data.id)

    assert liked.data.liked and liked.data.total_likes == 1
    assert not unliked.data.liked and unliked.data.total_likes == 0


@pytest.mark.asyncio
async def test_comment_listing_orders(services, alice, bob, article):
    first = await services.interactions.add_comment(alice, article.id, "first")
    await services.interactions.add_comment(bob, article.id, "second")
    await services.interactions.add_comment(bob, article.id, "r1", first.data.id)
    await services.interactions.add_comment(alice, article.id, "r2", first.data.id)

    comments = await services.interactions.get_comments(article.id)
    replies = await services.interactions.get_replies(first.data.id)

    assert [c.text for c in comments.data] == ["second", "first"]
    assert [c.reply_count for c in comments.data] == [0, 2]
    assert [r.text for r in replies.data] == ["r1", "r2"]


@pytest.mark.asyncio
async def test_feed_and_post_carry_is_liked(services, alice, article, photo):
    await services.interactions.toggle_like(alice, article.id)

    feed = await services.interactions.get_home_feed(alice)
    post = await services.interactions.get_post(alice, article.id)

    assert [(p.id, p.is_liked) for p in feed.data] == [(photo.id, False), (article.id, True)]
    assert post.data.is_liked
    assert post.data.title == "Hello"
    assert feed.data[0].images == ["https://cdn.example.com/1.jpg"]


@pytest.mark.asyncio
async def test_counter_reconciliation(services, repos, alice, article):
    await services.interactions.toggle_like(alice, article.id)
    await repos.posts.set_counters(article.id, likes_count=7, comments_count=3)

    report = await services.interactions.verify_post_counters(article.id)
    assert not report.data.is_accurate
    assert report.data.actual.likes == 1 and report.data.actual.comments == 0

    await services.interactions.sync_post_counters(article.id)
    post = await repos.posts.find_by_id(article.id)
    assert (post.likes_count, post.comments_count) == (1, 0)
    assert (await services.interactions.verify_post_counters(article.id)).data.is_accurate


@pytest.mark.asyncio
async def test_counters_clamp_at_zero(repos, broker, alice, article):
    service = InteractionService(repos, broker, clamp_counters=True)
    await repos.likes.create(article.id, alice.id)

    result = await service.toggle_like(alice, article.id)

    assert not result.data.liked
    assert result.data.total_likes == 0
